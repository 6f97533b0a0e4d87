import logging

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.text import Text

from gitmind.config import (
    AI_PROVIDERS, API_TIERS, CONVENTIONS, GITIGNORES, LICENSES, VISIBILITIES, AppConfig,
)
from gitmind.errors import ConfigError
from gitmind.events import Command, ConfigSaved, Event, Key
from gitmind.tasks import Tasks
from gitmind.theme import THEMES, Theme
from gitmind.widgets import Choice, Form, TextField, Toggle, status_line

LOG = logging.getLogger(__name__)

TABS = ["Git", "GitHub", "Commits", "Naming", "AI", "UI"]
TAB_HOTKEYS = {"g": 0, "h": 1, "c": 2, "n": 3, "a": 4, "u": 5}


def _split(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _int(value: str, name: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        raise ConfigError(f"{name} must be a number") from None


def build_forms(config: AppConfig) -> list[Form]:
    """One form per tab, seeded from the live config."""
    git, gh, commits, naming, ai = config.git, config.github, config.commits, config.naming, config.ai
    return [
        Form([
            TextField("main_branch", "Main branch", git.main_branch),
            TextField("protected_branches", "Protected branches", ", ".join(git.protected_branches)),
            TextField("default_remote", "Default remote", git.default_remote),
            Toggle("auto_push", "Push after committing", git.auto_push),
            Toggle("auto_pull", "Pull before analyzing", git.auto_pull),
        ]),
        Form([
            Toggle("enabled", "GitHub integration", gh.enabled),
            Choice("default_visibility", "Visibility", list(VISIBILITIES)).select(gh.default_visibility),
            Choice("default_license", "License", list(LICENSES)).select(gh.default_license),
            Choice("default_gitignore", ".gitignore", list(GITIGNORES)).select(gh.default_gitignore),
            Toggle("enable_issues", "Issues", gh.enable_issues),
            Toggle("enable_wiki", "Wiki", gh.enable_wiki),
            Toggle("enable_projects", "Projects", gh.enable_projects),
            TextField("pr_default_base", "PR base branch", gh.pr_default_base),
        ]),
        Form([
            Choice("convention", "Convention", list(CONVENTIONS)).select(commits.convention),
            TextField("types", "Types", ", ".join(commits.types)),
            Toggle("require_scope", "Require scope", commits.require_scope),
            Toggle("require_breaking_marker", "Require breaking-change marker", commits.require_breaking_marker),
            TextField("max_subject_length", "Max subject length", str(commits.max_subject_length)),
        ]),
        Form([
            Toggle("enforce", "Enforce pattern", naming.enforce),
            TextField("pattern", "Pattern", naming.pattern),
            TextField("allowed_prefixes", "Allowed prefixes", ", ".join(naming.allowed_prefixes)),
        ]),
        Form([
            Choice("provider", "Provider", list(AI_PROVIDERS)).select(ai.provider),
            TextField("api_key", "API key", ai.api_key, masked=True),
            Choice("api_tier", "API tier", list(API_TIERS)).select(ai.api_tier),
            TextField("default_model", "Model", ai.default_model),
            TextField("fallback_model", "Fallback model", ai.fallback_model),
            TextField("max_diff_size", "Max diff size", str(ai.max_diff_size)),
            Toggle("include_context", "Include recent commits", ai.include_context),
        ]),
        Form([
            Choice("theme", "Theme", list(THEMES)).select(config.ui.theme),
        ]),
    ]


def apply_forms(forms: list[Form], config: AppConfig) -> None:
    """Copy every field into config. Raises ConfigError on unparsable numbers."""
    git, gh, commits, naming, ai, ui = (f.values() for f in forms)

    config.git.main_branch = git["main_branch"].strip()
    config.git.protected_branches = _split(git["protected_branches"])
    config.git.default_remote = git["default_remote"].strip() or "origin"
    config.git.auto_push = git["auto_push"]
    config.git.auto_pull = git["auto_pull"]

    for name in ("enabled", "default_visibility", "default_license", "default_gitignore",
                 "enable_issues", "enable_wiki", "enable_projects"):
        setattr(config.github, name, gh[name])
    config.github.pr_default_base = gh["pr_default_base"].strip()

    config.commits.convention = commits["convention"]
    config.commits.types = _split(commits["types"])
    config.commits.require_scope = commits["require_scope"]
    config.commits.require_breaking_marker = commits["require_breaking_marker"]
    config.commits.max_subject_length = _int(commits["max_subject_length"], "max subject length")

    config.naming.enforce = naming["enforce"]
    config.naming.pattern = naming["pattern"].strip()
    config.naming.allowed_prefixes = _split(naming["allowed_prefixes"])

    config.ai.provider = ai["provider"]
    config.ai.api_key = ai["api_key"].strip()
    config.ai.api_tier = ai["api_tier"]
    config.ai.default_model = ai["default_model"].strip()
    config.ai.fallback_model = ai["fallback_model"].strip()
    config.ai.max_diff_size = _int(ai["max_diff_size"], "max diff size")
    config.ai.include_context = ai["include_context"]

    config.ui.theme = ui["theme"]


class SettingsScreen:
    def __init__(self, config: AppConfig, tasks: Tasks) -> None:
        self.config = config
        self.tasks = tasks
        self.forms = build_forms(config)
        self.tab = 0
        self.saving = False
        self.error_message = ""
        self.success_message = ""
        self._return = False

    @property
    def form(self) -> Form:
        return self.forms[self.tab]

    def should_return_to_parent(self) -> bool:
        return self._return

    def captures_text(self) -> bool:
        return self.form.captures_text()

    def save(self) -> list[Command]:
        # Validate a copy first so a bad field never reaches the live config
        candidate = self.config.snapshot()
        try:
            apply_forms(self.forms, candidate)
            candidate.validate()
        except ConfigError as exc:
            self.error_message = f"Error: {exc}"
            self.success_message = ""
            return []
        apply_forms(self.forms, self.config)
        self.saving = True
        self.error_message = ""
        return [self.tasks.save_config("settings", self.config)]

    def update(self, event: Event) -> list[Command]:
        if isinstance(event, ConfigSaved):
            if event.origin != "settings":
                return []
            self.saving = False
            if event.error:
                self.error_message = f"Error: {event.error}"
                self.success_message = ""
            else:
                self.error_message = ""
                self.success_message = "Settings saved successfully"
            return []
        if not isinstance(event, Key):
            return []

        k = event.key
        typing = self.captures_text()
        if k == "escape":
            self._return = True
        elif k == "ctrl+s" or (k == "s" and not typing):
            if not self.saving:
                return self.save()
        elif k == "[" and not typing:
            self.tab = (self.tab - 1) % len(TABS)
        elif k == "]" and not typing:
            self.tab = (self.tab + 1) % len(TABS)
        elif k in TAB_HOTKEYS and not typing:
            self.tab = TAB_HOTKEYS[k]
        else:
            self.form.handle_key(event)
        return []

    def render(self, theme: Theme) -> RenderableType:
        tabs = Text()
        for i, name in enumerate(TABS):
            if i:
                tabs.append("  ")
            if i == self.tab:
                tabs.append(f" {name} ", style=f"bold reverse {theme.primary}")
            else:
                tabs.append(f" {name} ", style=theme.muted)
        status = Text("Saving...", style=theme.muted) if self.saving else status_line(
            theme, self.error_message, self.success_message)
        return Group(
            tabs,
            Panel(self.form.render(theme), title=TABS[self.tab], border_style=theme.primary),
            status,
            Text("[ ] or g/h/c/n/a/u tabs • Tab move • Space toggle • ←/→ choose • Ctrl+S save • Esc back",
                 style=theme.muted),
        )
