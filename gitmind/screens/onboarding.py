"""
First-run setup wizard.

A fixed list of steps with one active index. Each step reports an outcome
(next, back, cancel, save) after a keypress and the wizard moves accordingly.
The GitHub step runs its own small state machine around the gh CLI checks
and repository creation.
"""

import logging
from enum import Enum

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.text import Text

from gitmind.config import (
    AI_PROVIDERS, API_TIERS, CONVENTIONS, GITIGNORES, LICENSES, VISIBILITIES, AppConfig,
)
from gitmind.events import (
    Command, ConfigSaved, Event, GitHubChecked, GitHubRepoCreated, Key, RepoChecked,
)
from gitmind.models import CreateRepoOptions
from gitmind.tasks import Tasks
from gitmind.theme import Theme
from gitmind.widgets import Button, Choice, Form, TextField, Toggle, status_line

LOG = logging.getLogger(__name__)

NEXT, BACK, CANCEL, SAVE = "next", "back", "cancel", "save"


def _split(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Step:
    title = ""

    def __init__(self, wizard: "OnboardingWizard") -> None:
        self.wizard = wizard
        self.outcome: str | None = None
        self.error = ""

    @property
    def config(self) -> AppConfig:
        return self.wizard.config

    def init(self) -> list[Command]:
        return []

    def update(self, event: Event) -> list[Command]:
        return []

    def render(self, theme: Theme) -> RenderableType:
        return Text("")


class WelcomeStep(Step):
    title = "Welcome"

    def update(self, event: Event) -> list[Command]:
        if isinstance(event, Key):
            if event.key == "enter":
                self.outcome = NEXT
            elif event.key in ("escape", "q"):
                self.outcome = CANCEL
        return []

    def render(self, theme: Theme) -> RenderableType:
        return Group(
            Text("Welcome to GitMind", style=theme.style("primary", bold=True)),
            Text(""),
            Text("A few questions set up git defaults, GitHub, commit conventions,\n"
                 "branch naming and the AI provider. Everything can be changed later in Settings.",
                 style=theme.text),
            Text(""),
            Text("Enter start • Esc skip setup", style=theme.muted),
        )


class GitStep(Step):
    title = "Git repository"

    def __init__(self, wizard: "OnboardingWizard") -> None:
        super().__init__(wizard)
        self.is_repo: bool | None = None
        self.working = False

    def init(self) -> list[Command]:
        self.working = True
        return [self.wizard.tasks.check_repo()]

    def update(self, event: Event) -> list[Command]:
        if isinstance(event, RepoChecked):
            self.working = False
            self.is_repo = event.is_repo
            self.error = event.error or ""
            return []
        if not isinstance(event, Key) or self.working:
            return []
        if event.key == "escape":
            self.outcome = BACK
        elif event.key == "s":
            self.outcome = NEXT
        elif event.key == "enter":
            if self.is_repo:
                self.outcome = NEXT
            else:
                self.working = True
                return [self.wizard.tasks.init_repo()]
        return []

    def render(self, theme: Theme) -> RenderableType:
        if self.working:
            body = Text("Checking repository...", style=theme.muted)
        elif self.is_repo:
            body = Text(f"✓ {self.wizard.repo_path} is a git repository", style=theme.success)
        else:
            body = Text(f"{self.wizard.repo_path} is not a git repository.\nPress Enter to run git init.",
                        style=theme.warning)
        return Group(body, status_line(theme, self.error), Text(""),
                     Text("Enter continue • s skip • Esc back", style=theme.muted))


class GitHubPhase(Enum):
    CHECKING = "checking"
    INFO = "info"
    FORM = "form"
    CREATING = "creating"
    DONE = "done"


class GitHubStep(Step):
    title = "GitHub"

    def __init__(self, wizard: "OnboardingWizard") -> None:
        super().__init__(wizard)
        self.phase = GitHubPhase.CHECKING
        self.info = ""
        self.url = ""
        gh = self.config.github
        self.form = Form([
            TextField("name", "Repository name", wizard.repo_path.name),
            TextField("description", "Description"),
            Choice("visibility", "Visibility", list(VISIBILITIES)).select(gh.default_visibility),
            Choice("license", "License", list(LICENSES)).select(gh.default_license),
            Choice("gitignore", ".gitignore", list(GITIGNORES)).select(gh.default_gitignore),
            Toggle("readme", "Add README", True),
            Toggle("issues", "Enable issues", gh.enable_issues),
            Toggle("wiki", "Enable wiki", gh.enable_wiki),
            Button("create", "Create repository"),
            Button("skip", "Skip"),
        ])

    def init(self) -> list[Command]:
        self.phase = GitHubPhase.CHECKING
        return [self.wizard.tasks.check_github(self.config.git.default_remote)]

    def options(self) -> CreateRepoOptions:
        v = self.form.values()
        return CreateRepoOptions(
            name=v["name"].strip(),
            description=v["description"].strip(),
            private=v["visibility"] == "private",
            license=v["license"],
            gitignore=v["gitignore"],
            add_readme=v["readme"],
            enable_issues=v["issues"],
            enable_wiki=v["wiki"],
        )

    def update(self, event: Event) -> list[Command]:
        if isinstance(event, GitHubChecked):
            if self.phase != GitHubPhase.CHECKING:
                return []
            if event.error:
                self.info = f"Could not check GitHub setup: {event.error}"
            elif not event.available:
                self.info = "GitHub CLI (gh) is not installed. Install it to create repositories from here."
            elif not event.authenticated:
                self.info = "GitHub CLI is not authenticated. Run 'gh auth login' and come back."
            elif event.has_remote:
                self.info = "A remote is already configured for this repository."
            else:
                self.phase = GitHubPhase.FORM
                return []
            self.phase = GitHubPhase.INFO
            return []

        if isinstance(event, GitHubRepoCreated):
            if self.phase != GitHubPhase.CREATING:
                return []
            if event.error:
                self.error = event.error
                self.phase = GitHubPhase.FORM
                return []
            self.url = event.url
            self.error = ""
            self.phase = GitHubPhase.DONE
            # Completion handled on the event loop, so the live config is safe to touch
            opts = self.options()
            gh = self.config.github
            gh.enabled = True
            gh.default_visibility = "private" if opts.private else "public"
            gh.default_license = opts.license
            gh.default_gitignore = opts.gitignore
            gh.enable_issues = opts.enable_issues
            gh.enable_wiki = opts.enable_wiki
            return []

        if not isinstance(event, Key):
            return []
        k = event.key
        if self.phase == GitHubPhase.CHECKING:
            if k == "escape":
                self.outcome = BACK
        elif self.phase in (GitHubPhase.INFO, GitHubPhase.DONE):
            if k in ("enter", "s"):
                self.outcome = NEXT
            elif k == "escape":
                self.outcome = BACK
        elif self.phase == GitHubPhase.FORM:
            if k == "escape":
                self.outcome = BACK
                return []
            pressed = self.form.handle_key(event)
            if pressed == "skip":
                self.outcome = NEXT
            elif pressed == "create":
                opts = self.options()
                if not opts.name:
                    self.error = "repository name is required"
                    return []
                self.error = ""
                self.phase = GitHubPhase.CREATING
                return [self.wizard.tasks.create_github_repo(opts)]
        return []

    def render(self, theme: Theme) -> RenderableType:
        if self.phase == GitHubPhase.CHECKING:
            body = Text("Checking GitHub CLI...", style=theme.muted)
            hint = "Esc back"
        elif self.phase == GitHubPhase.INFO:
            body = Text(self.info, style=theme.warning)
            hint = "Enter continue • s skip • Esc back"
        elif self.phase == GitHubPhase.CREATING:
            body = Text("Creating repository on GitHub...", style=theme.muted)
            hint = ""
        elif self.phase == GitHubPhase.DONE:
            body = Text(f"✓ Created {self.url} and set it as origin", style=theme.success)
            hint = "Enter continue"
        else:
            body = self.form.render(theme)
            hint = "Tab move • Space toggle • ←/→ choose • Esc back"
        return Group(body, status_line(theme, self.error), Text(""), Text(hint, style=theme.muted))


class FormStep(Step):
    """A step that edits part of the config through a form."""

    def __init__(self, wizard: "OnboardingWizard") -> None:
        super().__init__(wizard)
        self.form = self.build_form()

    def build_form(self) -> Form:
        raise NotImplementedError

    def validate(self, values: dict) -> str:
        return ""

    def apply(self, values: dict) -> None:
        raise NotImplementedError

    def update(self, event: Event) -> list[Command]:
        if not isinstance(event, Key):
            return []
        if event.key == "escape":
            self.outcome = BACK
            return []
        if self.form.handle_key(event) == "continue":
            values = self.form.values()
            self.error = self.validate(values)
            if not self.error:
                self.apply(values)
                self.outcome = NEXT
        return []

    def render(self, theme: Theme) -> RenderableType:
        return Group(self.form.render(theme), status_line(theme, self.error), Text(""),
                     Text("Tab move • Space toggle • ←/→ choose • Esc back", style=theme.muted))


class BranchesStep(FormStep):
    title = "Branches"

    def build_form(self) -> Form:
        git = self.config.git
        return Form([
            TextField("main_branch", "Main branch", git.main_branch),
            TextField("protected", "Protected branches", ", ".join(git.protected_branches)),
            Toggle("auto_push", "Push after committing", git.auto_push),
            Button("continue", "Continue"),
        ])

    def validate(self, values: dict) -> str:
        return "" if values["main_branch"].strip() else "main branch cannot be empty"

    def apply(self, values: dict) -> None:
        git = self.config.git
        git.main_branch = values["main_branch"].strip()
        git.protected_branches = _split(values["protected"])
        git.auto_push = values["auto_push"]


class CommitsStep(FormStep):
    title = "Commits"

    def build_form(self) -> Form:
        commits = self.config.commits
        return Form([
            Choice("convention", "Convention", list(CONVENTIONS)).select(commits.convention),
            TextField("types", "Commit types", ", ".join(commits.types)),
            Toggle("require_scope", "Require scope", commits.require_scope),
            Button("continue", "Continue"),
        ])

    def apply(self, values: dict) -> None:
        commits = self.config.commits
        commits.convention = values["convention"]
        commits.types = _split(values["types"])
        commits.require_scope = values["require_scope"]


class NamingStep(FormStep):
    title = "Branch naming"

    def build_form(self) -> Form:
        naming = self.config.naming
        return Form([
            Toggle("enforce", "Enforce naming pattern", naming.enforce),
            TextField("pattern", "Pattern", naming.pattern),
            TextField("prefixes", "Allowed prefixes", ", ".join(naming.allowed_prefixes)),
            Button("continue", "Continue"),
        ])

    def validate(self, values: dict) -> str:
        if values["enforce"] and "{description}" not in values["pattern"]:
            return "pattern must contain {description}"
        return ""

    def apply(self, values: dict) -> None:
        naming = self.config.naming
        naming.enforce = values["enforce"]
        naming.pattern = values["pattern"].strip()
        naming.allowed_prefixes = _split(values["prefixes"])


class AIStep(FormStep):
    title = "AI provider"

    def build_form(self) -> Form:
        ai = self.config.ai
        return Form([
            Choice("provider", "Provider", list(AI_PROVIDERS)).select(ai.provider),
            TextField("api_key", "API key", ai.api_key, masked=True),
            Choice("api_tier", "API tier", list(API_TIERS)).select(ai.api_tier),
            TextField("model", "Model", ai.default_model),
            Button("continue", "Continue"),
        ])

    def apply(self, values: dict) -> None:
        ai = self.config.ai
        ai.provider = values["provider"]
        ai.api_key = values["api_key"].strip()
        ai.api_tier = values["api_tier"]
        ai.default_model = values["model"].strip() or ai.default_model


class SummaryStep(Step):
    title = "Summary"

    def update(self, event: Event) -> list[Command]:
        if isinstance(event, Key):
            if event.key == "enter":
                self.outcome = SAVE
            elif event.key == "escape":
                self.outcome = BACK
        return []

    def render(self, theme: Theme) -> RenderableType:
        c = self.config
        rows = [
            f"Main branch:     {c.git.main_branch}",
            f"Protected:       {', '.join(c.git.protected_branches)}",
            f"GitHub:          {'enabled' if c.github.enabled else 'disabled'}",
            f"Convention:      {c.commits.convention}",
            f"Naming pattern:  {c.naming.pattern}{' (enforced)' if c.naming.enforce else ''}",
            f"AI provider:     {c.ai.provider} / {c.ai.default_model}",
            f"API key:         {'set' if c.ai.resolved_api_key() else 'missing'}",
        ]
        return Group(Text("\n".join(rows), style=theme.text), Text(""),
                     Text("Enter save and finish • Esc back", style=theme.muted))


STEP_CLASSES = [WelcomeStep, GitStep, GitHubStep, BranchesStep, CommitsStep, NamingStep, AIStep, SummaryStep]


class OnboardingWizard:
    def __init__(self, config: AppConfig, tasks: Tasks, remote_only: bool = False) -> None:
        self.config = config
        self.tasks = tasks
        self.remote_only = remote_only
        classes = [GitHubStep] if remote_only else STEP_CLASSES
        self.steps: list[Step] = [cls(self) for cls in classes]
        self.index = 0
        self.saving = False
        self.save_error = ""
        self.completed = False
        self.cancelled = False

    @property
    def repo_path(self):
        return self.tasks.git.repo_path

    @property
    def step(self) -> Step:
        return self.steps[self.index]

    def init(self) -> list[Command]:
        return self.step.init()

    def update(self, event: Event) -> list[Command]:
        if isinstance(event, ConfigSaved):
            if event.origin == "onboarding" and self.saving:
                self.saving = False
                self.save_error = event.error or ""
                self.completed = True
            return []
        if self.saving:
            return []

        commands = self.step.update(event)
        outcome, self.step.outcome = self.step.outcome, None
        if outcome is None:
            return commands

        if outcome == CANCEL:
            self.cancelled = True
        elif outcome == BACK:
            if self.index == 0:
                self.cancelled = True
            else:
                self.index -= 1
                commands += self.step.init()
        elif outcome == NEXT and self.index + 1 < len(self.steps):
            self.index += 1
            commands += self.step.init()
        else:
            # SAVE on the summary, or NEXT past the last step in remote-only mode
            self.saving = True
            commands.append(self.tasks.save_config("onboarding", self.config))
        return commands

    def render(self, theme: Theme) -> RenderableType:
        progress = Text()
        for i, step in enumerate(self.steps):
            if i:
                progress.append(" › ", style=theme.muted)
            style = theme.style("primary", bold=True) if i == self.index else theme.muted
            progress.append(step.title, style=style)
        title = "GitHub remote setup" if self.remote_only else f"Setup {self.index + 1}/{len(self.steps)}"
        body = Text("Saving configuration...", style=theme.muted) if self.saving else self.step.render(theme)
        return Group(progress, Panel(body, title=Text(title, style=theme.style("accent", bold=True)),
                                     border_style=theme.primary))
