from conftest import press, run_tasks, tasks_in

from gitmind.errors import GitError, NotFullyMergedError
from gitmind.events import BranchOpDone
from gitmind.models import BranchInfo
from gitmind.screens.branches import BranchScreen, BranchState


def _screen(config, tasks) -> BranchScreen:
    screen = BranchScreen(config, tasks)
    run_tasks(screen, screen.init())
    return screen


def _select(screen: BranchScreen, name: str) -> None:
    screen.index = [b.name for b in screen.branches].index(name)


def test_delete_defaults_to_no(config, tasks):
    screen = _screen(config, tasks)
    _select(screen, "feature/x")

    press(screen, "d")
    assert screen.state == BranchState.DELETING
    assert screen.button == 0
    assert screen.selected.name == "feature/x"

    commands = press(screen, "enter")
    assert screen.state == BranchState.BROWSING
    assert commands == []
    assert screen.selected is None


def test_not_fully_merged_escalates_to_force_prompt(config, tasks, git):
    git.errors["delete_branch"] = NotFullyMergedError("feature/x")
    screen = _screen(config, tasks)
    _select(screen, "feature/x")

    commands = press(screen, "d", "right", "enter")
    assert screen.state == BranchState.MANAGING
    assert len(tasks_in(commands)) == 1

    run_tasks(screen, commands)
    assert screen.state == BranchState.FORCE_DELETE_PROMPT
    assert screen.button == 0

    del git.errors["delete_branch"]
    commands = press(screen, "right", "enter")
    assert screen.force is True
    run_tasks(screen, commands)

    assert git.called("delete_branch") == [
        ("delete_branch", "feature/x", False),
        ("delete_branch", "feature/x", True),
    ]


def test_other_delete_failure_returns_to_browsing(config, tasks, git):
    git.errors["delete_branch"] = GitError("git branch -d: error: permission denied")
    screen = _screen(config, tasks)
    _select(screen, "feature/x")

    run_tasks(screen, press(screen, "d", "right", "enter"))

    assert screen.state == BranchState.BROWSING
    assert screen.error_message == "Error: git branch -d: error: permission denied"
    assert screen.selected is None
    assert screen.force is False


def test_declining_force_delete_clears_flags(config, tasks, git):
    git.errors["delete_branch"] = NotFullyMergedError("feature/x")
    screen = _screen(config, tasks)
    _select(screen, "feature/x")
    run_tasks(screen, press(screen, "d", "right", "enter"))

    press(screen, "escape")

    assert screen.state == BranchState.BROWSING
    assert screen.force is False
    assert screen.selected is None


def test_successful_delete_offers_remote_cleanup(config, tasks, git):
    screen = _screen(config, tasks)
    _select(screen, "feature/x")

    run_tasks(screen, press(screen, "d", "right", "enter"))
    assert screen.state == BranchState.DELETE_REMOTE_PROMPT

    run_tasks(screen, press(screen, "right", "enter"))
    assert git.called("delete_remote_branch") == [("delete_remote_branch", "feature/x", "origin")]
    assert screen.state == BranchState.BROWSING
    assert screen.success_message == "Branch 'feature/x' deleted locally and remotely"


def test_declining_remote_cleanup_reports_local_delete(config, tasks, git):
    screen = _screen(config, tasks)
    _select(screen, "feature/x")
    run_tasks(screen, press(screen, "d", "right", "enter"))

    commands = press(screen, "escape")

    assert screen.state == BranchState.BROWSING
    assert screen.success_message == "Local branch 'feature/x' deleted"
    assert git.called("delete_remote_branch") == []
    assert len(tasks_in(commands)) == 1


def test_protected_branch_is_rejected_before_any_task(config, tasks, git):
    screen = _screen(config, tasks)
    _select(screen, "main")

    commands = press(screen, "d", "right", "enter")

    assert commands == []
    assert screen.state == BranchState.BROWSING
    assert screen.error_message == "cannot delete protected branch 'main'"
    assert git.called("delete_branch") == []


def test_escape_while_managing_drops_late_completion(config, tasks):
    screen = _screen(config, tasks)
    _select(screen, "feature/x")
    commands = press(screen, "d", "right", "enter")

    press(screen, "escape")
    assert screen.state == BranchState.BROWSING
    assert screen.error_message == "Operation cancelled"

    assert run_tasks(screen, commands) == []
    assert screen.state == BranchState.BROWSING


def test_managing_ignores_other_keys(config, tasks):
    screen = _screen(config, tasks)
    _select(screen, "feature/x")
    press(screen, "d", "right", "enter")

    press(screen, "q", "down", "enter")

    assert screen.state == BranchState.MANAGING
    assert not screen.should_return_to_parent()


def test_rename_seeds_input_and_validates(config, tasks, git):
    screen = _screen(config, tasks)
    _select(screen, "feature/x")

    press(screen, "r")
    assert screen.state == BranchState.RENAMING
    assert screen.input.value == "feature/x"

    # Unchanged name is rejected locally and the form stays open
    assert press(screen, "enter") == []
    assert screen.state == BranchState.RENAMING
    assert screen.error_message == "new branch name must be different from old name"

    commands = press(screen, "backspace", "y", "enter")
    assert screen.state == BranchState.MANAGING
    run_tasks(screen, commands)

    assert git.called("rename_branch") == [("rename_branch", "feature/x", "feature/y")]
    assert screen.state == BranchState.BROWSING
    assert screen.success_message == "Branch 'feature/x' renamed to 'feature/y'"


def test_escape_discards_rename_draft(config, tasks):
    screen = _screen(config, tasks)
    _select(screen, "feature/x")

    press(screen, "r", "z", "escape")

    assert screen.state == BranchState.BROWSING
    assert screen.input is None


def test_set_upstream_requires_a_value(config, tasks, git):
    screen = _screen(config, tasks)
    _select(screen, "feature/login")

    press(screen, "u")
    assert screen.input.value == ""
    press(screen, "enter")
    assert screen.error_message == "upstream branch is required"

    for ch in "origin/feature/login":
        press(screen, ch)
    run_tasks(screen, press(screen, "enter"))

    assert git.called("set_upstream") == [("set_upstream", "feature/login", "origin/feature/login")]


def test_enter_toggles_details_and_escape_collapses(config, tasks):
    screen = _screen(config, tasks)

    press(screen, "enter")
    assert screen.state == BranchState.EXPANDED
    press(screen, "escape")
    assert screen.state == BranchState.BROWSING
    assert not screen.should_return_to_parent()

    press(screen, "escape")
    assert screen.should_return_to_parent()


def test_stale_ticket_is_ignored(config, tasks):
    screen = _screen(config, tasks)
    _select(screen, "feature/x")
    press(screen, "d", "right", "enter")

    assert screen.update(BranchOpDone(screen.ticket - 1, "delete", message="old")) == []
    assert screen.state == BranchState.MANAGING


def test_remote_cleanup_targets_the_tracked_branch(config, tasks, git):
    git.details.append(BranchInfo(name="fix", upstream="origin/feature/fix"))
    screen = _screen(config, tasks)
    _select(screen, "fix")

    run_tasks(screen, press(screen, "d", "right", "enter"))
    assert screen.state == BranchState.DELETE_REMOTE_PROMPT
    assert screen._prompt_text() == "Also delete branch 'feature/fix' on remote 'origin'?"

    run_tasks(screen, press(screen, "right", "enter"))

    assert git.called("delete_remote_branch") == [("delete_remote_branch", "feature/fix", "origin")]
    assert screen.success_message == "Branch 'fix' deleted locally and 'origin/feature/fix' remotely"


def test_remote_name_from_git_wins_over_upstream_text(config, tasks, git):
    git.details.append(BranchInfo(name="fix", upstream="team/fork/fix",
                                  upstream_remote="team/fork", upstream_branch="fix"))
    screen = _screen(config, tasks)
    _select(screen, "fix")

    run_tasks(screen, press(screen, "d", "right", "enter"))
    run_tasks(screen, press(screen, "right", "enter"))

    assert git.called("delete_remote_branch") == [("delete_remote_branch", "fix", "team/fork")]


def test_local_upstream_skips_remote_prompt(config, tasks, git):
    git.details.append(BranchInfo(name="topic", upstream="feature/login",
                                  upstream_remote=".", upstream_branch="feature/login"))
    screen = _screen(config, tasks)
    _select(screen, "topic")

    run_tasks(screen, press(screen, "d", "right", "enter"))

    assert screen.state == BranchState.BROWSING
    assert git.called("delete_remote_branch") == []
