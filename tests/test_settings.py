from conftest import MemoryStore, press, run_tasks, tasks_in

from gitmind.events import ConfigSaved
from gitmind.screens.settings import TABS, SettingsScreen
from gitmind.tasks import Tasks


def test_brackets_cycle_tabs_outside_text_fields(config, tasks):
    screen = SettingsScreen(config, tasks)
    press(screen, "tab", "tab", "tab")  # onto a toggle

    press(screen, "]")
    assert screen.tab == 1
    press(screen, "[", "[")
    assert screen.tab == len(TABS) - 1


def test_letter_hotkeys_need_non_text_focus(config, tasks):
    screen = SettingsScreen(config, tasks)

    press(screen, "a")
    assert screen.tab == 0
    assert screen.form["main_branch"].value == "maina"

    press(screen, "tab", "tab", "tab", "a")
    assert screen.tab == 4


def test_save_applies_and_persists(config, tasks, store):
    screen = SettingsScreen(config, tasks)
    press(screen, "tab", "tab", "tab", "space")

    commands = press(screen, "ctrl+s")
    assert config.git.auto_push is True
    assert len(tasks_in(commands)) == 1

    run_tasks(screen, commands)
    assert screen.success_message == "Settings saved successfully"
    assert store.saved[-1].git.auto_push is True


def test_invalid_values_never_reach_live_config(config, tasks, store):
    screen = SettingsScreen(config, tasks)
    press(screen, "ctrl+u", "tab", "tab", "tab", "space")

    commands = press(screen, "s")

    assert commands == []
    assert screen.error_message == "Error: git.main_branch cannot be empty"
    assert config.git.main_branch == "main"
    assert config.git.auto_push is False
    assert store.saved == []


def test_non_numeric_size_is_rejected(config, tasks):
    screen = SettingsScreen(config, tasks)
    screen.tab = 4
    screen.form.focus_on("max_diff_size")
    press(screen, "x")

    assert press(screen, "ctrl+s") == []
    assert screen.error_message == "Error: max diff size must be a number"


def test_save_failure_is_reported(config, git, github, analyzer):
    store = MemoryStore(error="disk full")
    screen = SettingsScreen(config, Tasks(git, github, store, analyzer_factory=lambda s: analyzer))

    run_tasks(screen, press(screen, "ctrl+s"))

    assert screen.error_message == "Error: disk full"
    assert screen.success_message == ""


def test_theme_change_applies_to_live_config(config, tasks):
    screen = SettingsScreen(config, tasks)
    press(screen, "tab", "tab", "tab", "u", "right")

    run_tasks(screen, press(screen, "s"))

    assert config.ui.theme == "ocean-blue"


def test_saves_from_other_screens_are_ignored(config, tasks):
    screen = SettingsScreen(config, tasks)

    screen.update(ConfigSaved("onboarding"))

    assert screen.success_message == ""


def test_escape_returns(config, tasks):
    screen = SettingsScreen(config, tasks)

    press(screen, "escape")

    assert screen.should_return_to_parent()


def test_h_on_a_choice_switches_to_github_tab(config, tasks):
    screen = SettingsScreen(config, tasks)
    press(screen, "tab", "tab", "tab", "u")
    assert screen.form.focused.name == "theme"

    press(screen, "h")

    assert screen.tab == 1
    assert screen.forms[5]["theme"].value == "claude-warm"
