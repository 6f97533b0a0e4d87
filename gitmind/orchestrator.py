"""
Root state machine.

Owns which screen is active, gives the overlay first refusal on every key,
forwards everything else to the active screen, and turns finished screens and
action requests into background tasks or screen switches. It is the only
place that starts tasks on the user's behalf or opens overlays.

``handle`` mutates the orchestrator in place and returns the commands the
driver should carry out. All calls happen on the event loop thread.
"""

import logging
from enum import Enum

from rich.console import Group, RenderableType
from rich.text import Text

from gitmind import actions
from gitmind.config import AppConfig, ConfigStore
from gitmind.errors import ConfigError
from gitmind.events import (
    BranchListLoaded, BranchOpDone, BranchesLoaded, Command, CommitAnalysisDone, CommitExecuted,
    CommitsLoaded, ConfigSaved, Event, GitHubChecked, GitHubInfoLoaded, GitHubRepoCreated, Key,
    LocalActionDone, MergeAnalysisDone, MergeExecuted, Notify, Quit, RepoChecked, RepoStatusLoaded,
    Tick,
)
from gitmind.overlay import OverlayKind, OverlayManager
from gitmind.screens.branches import BranchScreen
from gitmind.screens.commit import CommitDecisionScreen
from gitmind.screens.dashboard import Dashboard
from gitmind.screens.merge import MergeDecisionScreen
from gitmind.screens.onboarding import OnboardingWizard
from gitmind.screens.settings import SettingsScreen
from gitmind.tasks import Tasks, loading_tick
from gitmind.theme import Theme, get_theme

LOG = logging.getLogger(__name__)

ONBOARDING_CANCELLED = "Setup cancelled. You can run 'gitmind --onboard' to configure later."
ONBOARDING_DONE = "Setup complete! Welcome to GitMind."


class ScreenState(Enum):
    DASHBOARD = "dashboard"
    COMMIT_ANALYZING = "commit-analyzing"
    COMMIT_DECISION = "commit-decision"
    COMMIT_EXECUTING = "commit-executing"
    MERGE_ANALYZING = "merge-analyzing"
    MERGE_DECISION = "merge-decision"
    MERGE_EXECUTING = "merge-executing"
    ONBOARDING = "onboarding"
    SETTINGS = "settings"
    BRANCHES = "branches"


ANALYZING_STATES = (ScreenState.COMMIT_ANALYZING, ScreenState.MERGE_ANALYZING)
EXECUTING_STATES = (ScreenState.COMMIT_EXECUTING, ScreenState.MERGE_EXECUTING)
LOADING_STATES = ANALYZING_STATES + EXECUTING_STATES

LOADING_MESSAGES = {
    ScreenState.COMMIT_ANALYZING: "Analyzing changes with AI",
    ScreenState.MERGE_ANALYZING: "Analyzing merge with AI",
    ScreenState.COMMIT_EXECUTING: "Committing changes",
    ScreenState.MERGE_EXECUTING: "Merging branches",
}
CANCEL_PROMPTS = {
    ScreenState.COMMIT_ANALYZING: "Cancel commit analysis?",
    ScreenState.MERGE_ANALYZING: "Cancel merge analysis?",
    ScreenState.COMMIT_DECISION: "Return to dashboard without committing?",
    ScreenState.MERGE_DECISION: "Return to dashboard without merging?",
}


class Orchestrator:
    def __init__(self, config: AppConfig, store: ConfigStore, tasks: Tasks, onboarding: bool = False) -> None:
        self.config = config
        self.store = store
        self.tasks = tasks
        self.overlay = OverlayManager()
        self.dashboard = Dashboard(config, tasks)
        self.state = ScreenState.DASHBOARD

        self.commit_screen: CommitDecisionScreen | None = None
        self.merge_screen: MergeDecisionScreen | None = None
        self.branch_screen: BranchScreen | None = None
        self.settings_screen: SettingsScreen | None = None
        self.onboarding: OnboardingWizard | None = None
        if onboarding:
            self.onboarding = OnboardingWizard(config, tasks)
            self.state = ScreenState.ONBOARDING

        # Bumped whenever an analysis starts or is abandoned
        self.ticket = 0
        self.dots = 0
        # At most one ScheduleTick is outstanding at a time
        self.tick_pending = False

    def init(self) -> list[Command]:
        if self.state == ScreenState.ONBOARDING:
            return self.onboarding.init()
        return self.dashboard.init()

    def is_loading(self) -> bool:
        return self.state in LOADING_STATES

    # =========================================================================
    # Event dispatch
    # =========================================================================

    def handle(self, event: Event) -> list[Command]:
        if isinstance(event, Key):
            return self._on_key(event)
        if isinstance(event, Tick):
            return self._on_tick()

        if isinstance(event, (RepoStatusLoaded, BranchesLoaded, CommitsLoaded)):
            return self.dashboard.update(event)
        if isinstance(event, CommitAnalysisDone):
            return self._on_commit_analysis(event)
        if isinstance(event, MergeAnalysisDone):
            return self._on_merge_analysis(event)
        if isinstance(event, CommitExecuted):
            return self._on_executed(event, ScreenState.COMMIT_EXECUTING, "Commit")
        if isinstance(event, MergeExecuted):
            return self._on_executed(event, ScreenState.MERGE_EXECUTING, "Merge")
        if isinstance(event, LocalActionDone):
            return self._on_local_action(event)
        if isinstance(event, GitHubInfoLoaded):
            return self._on_github_info(event)
        if isinstance(event, (BranchListLoaded, BranchOpDone)):
            if self.branch_screen is None:
                return []
            return self.branch_screen.update(event)
        if isinstance(event, (RepoChecked, GitHubChecked, GitHubRepoCreated)):
            if self.onboarding is None:
                return []
            return self._forward_onboarding(event)
        if isinstance(event, ConfigSaved):
            if event.origin == "onboarding" and self.onboarding is not None:
                return self._forward_onboarding(event)
            if event.origin == "settings" and self.settings_screen is not None:
                return self.settings_screen.update(event)
            return []
        LOG.warning("unhandled event %r", event)
        return []

    def _on_tick(self) -> list[Command]:
        self.tick_pending = False
        if not self.is_loading():
            # Ends the tick chain
            return []
        self.dots = (self.dots + 1) % 4
        return self._schedule_tick()

    def _schedule_tick(self) -> list[Command]:
        if self.tick_pending:
            return []
        self.tick_pending = True
        return [loading_tick()]

    # =========================================================================
    # Keys
    # =========================================================================

    def _on_key(self, key: Key) -> list[Command]:
        if key.key == "ctrl+c":
            return [Quit()]

        if self.overlay.intercepts_input():
            outcome = self.overlay.handle_key(key)
            if outcome.dismissed_error and outcome.from_analysis:
                self.state = ScreenState.DASHBOARD
            elif self.is_loading() and self.overlay.kind == OverlayKind.NONE:
                # Declined a cancel prompt, the work is still running
                self.overlay.show_loading(LOADING_MESSAGES[self.state])
            return outcome.commands

        state = self.state
        if state in LOADING_STATES:
            if key.key == "escape" and state in ANALYZING_STATES:
                self.overlay.confirm(CANCEL_PROMPTS[state], self._abandon)
            return []
        if state == ScreenState.DASHBOARD:
            return self._on_dashboard_key(key)
        if state == ScreenState.COMMIT_DECISION:
            return self._on_commit_decision_key(key)
        if state == ScreenState.MERGE_DECISION:
            return self._on_merge_decision_key(key)
        if state == ScreenState.BRANCHES:
            commands = self.branch_screen.update(key)
            if self.branch_screen.should_return_to_parent():
                self.branch_screen = None
                return commands + self._to_dashboard()
            return commands
        if state == ScreenState.SETTINGS:
            return self._on_settings_key(key)
        if state == ScreenState.ONBOARDING:
            return self._forward_onboarding(key)
        return []

    def _on_dashboard_key(self, key: Key) -> list[Command]:
        if not self.dashboard.has_submenu():
            if key.key in ("q", "escape"):
                return [Quit()]
            if key.key == "2":
                self.settings_screen = SettingsScreen(self.config, self.tasks)
                self.state = ScreenState.SETTINGS
                return []

        commands = self.dashboard.update(key)
        action = self.dashboard.get_action()
        if action is not None:
            self.dashboard.clear_action()
            commands += self._dispatch(action)
        return commands

    def _on_commit_decision_key(self, key: Key) -> list[Command]:
        screen = self.commit_screen
        if key.key == "escape" and not screen.is_editing():
            self.overlay.confirm(CANCEL_PROMPTS[self.state], self._abandon)
            return []
        commands = screen.update(key)
        if screen.has_decision():
            choice = screen.take_decision()
            self.state = ScreenState.COMMIT_EXECUTING
            self._start_loading()
            return commands + [self.tasks.execute_commit(self.config, choice)] + self._schedule_tick()
        if screen.should_return_to_parent():
            return commands + self._to_dashboard()
        return commands

    def _on_merge_decision_key(self, key: Key) -> list[Command]:
        screen = self.merge_screen
        if key.key == "escape" and not screen.is_editing():
            self.overlay.confirm(CANCEL_PROMPTS[self.state], self._abandon)
            return []
        commands = screen.update(key)
        if screen.has_decision():
            choice = screen.take_decision()
            self.state = ScreenState.MERGE_EXECUTING
            self._start_loading()
            return commands + [self.tasks.execute_merge(choice)] + self._schedule_tick()
        if screen.should_return_to_parent():
            return commands + self._to_dashboard()
        return commands

    def _on_settings_key(self, key: Key) -> list[Command]:
        screen = self.settings_screen
        if key.key == "1" and not screen.captures_text():
            self.settings_screen = None
            return self._to_dashboard()
        commands = screen.update(key)
        if screen.should_return_to_parent():
            self.settings_screen = None
            return commands + self._to_dashboard()
        return commands

    # =========================================================================
    # Actions
    # =========================================================================

    def _dispatch(self, action: actions.ActionRequest) -> list[Command]:
        LOG.info("action %r", action)
        if isinstance(action, actions.Commit):
            return self._start_analysis(ScreenState.COMMIT_ANALYZING,
                                        lambda t: self.tasks.analyze_commit(t, self.config, action.message))
        if isinstance(action, actions.Merge):
            return self._start_analysis(
                ScreenState.MERGE_ANALYZING,
                lambda t: self.tasks.analyze_merge(t, self.config, action.source, action.target))
        if isinstance(action, actions.LOCAL_ACTIONS):
            return [self.tasks.local_action(action, self.config)]
        if isinstance(action, actions.ShowGitHubInfo):
            return [self.tasks.github_info()]
        if isinstance(action, actions.Refresh):
            return self.dashboard.init()
        if isinstance(action, actions.ManageBranches):
            self.branch_screen = BranchScreen(self.config, self.tasks)
            self.state = ScreenState.BRANCHES
            return self.branch_screen.init()
        if isinstance(action, actions.SetupRemote):
            self.onboarding = OnboardingWizard(self.config, self.tasks, remote_only=True)
            self.state = ScreenState.ONBOARDING
            return self.onboarding.init()
        raise ValueError(f"unknown action: {action!r}")

    def _start_analysis(self, state: ScreenState, build) -> list[Command]:
        if self.overlay.is_busy():
            LOG.debug("ignoring %s while busy", state.value)
            return []
        self.ticket += 1
        self.state = state
        self._start_loading()
        return [build(self.ticket)] + self._schedule_tick()

    def _start_loading(self) -> None:
        self.dots = 0
        self.overlay.show_loading(LOADING_MESSAGES[self.state])

    def _abandon(self) -> list[Command]:
        """Confirmed cancel: back to the dashboard, the running task is left to finish."""
        LOG.info("abandoning %s", self.state.value)
        self.ticket += 1
        self.commit_screen = None
        self.merge_screen = None
        return self._to_dashboard()

    def _to_dashboard(self) -> list[Command]:
        self.state = ScreenState.DASHBOARD
        self.overlay.clear_loading()
        return self.dashboard.init()

    # =========================================================================
    # Completions
    # =========================================================================

    def _is_current(self, ticket: int, state: ScreenState) -> bool:
        if ticket != self.ticket or self.state != state:
            LOG.info("discarding stale %s result (ticket %d)", state.value, ticket)
            return False
        return True

    def _analysis_failed(self, title: str, error: str) -> list[Command]:
        # The operation a pending cancel prompt asked about no longer exists
        self.overlay.clear()
        self.overlay.show_error(f"{title}\n\n{error}", from_analysis=True)
        self.state = ScreenState.DASHBOARD
        return self.dashboard.init()

    def _on_commit_analysis(self, event: CommitAnalysisDone) -> list[Command]:
        if not self._is_current(event.ticket, ScreenState.COMMIT_ANALYZING):
            return []
        if event.error:
            return self._analysis_failed("Commit Analysis Failed", event.error)
        self.overlay.clear_loading()
        self.commit_screen = CommitDecisionScreen(event.result)
        self.state = ScreenState.COMMIT_DECISION
        return []

    def _on_merge_analysis(self, event: MergeAnalysisDone) -> list[Command]:
        if not self._is_current(event.ticket, ScreenState.MERGE_ANALYZING):
            return []
        if event.error:
            return self._analysis_failed("Merge Analysis Failed", event.error)
        self.overlay.clear_loading()
        self.merge_screen = MergeDecisionScreen(event.result)
        self.state = ScreenState.MERGE_DECISION
        return []

    def _on_executed(self, event: CommitExecuted | MergeExecuted, state: ScreenState,
                     label: str) -> list[Command]:
        if self.state != state:
            LOG.info("discarding %s result outside %s", label.lower(), state.value)
            return []
        self.commit_screen = None
        self.merge_screen = None
        if event.error:
            notice = Notify(f"{label} failed: {event.error}", "error")
        elif event.message:
            notice = Notify(f"{label} successful!\n{event.message}")
        else:
            notice = Notify(f"{label} successful!")
        return [notice] + self._to_dashboard()

    def _on_local_action(self, event: LocalActionDone) -> list[Command]:
        if event.error:
            notice = Notify(f"{event.label} failed: {event.error}", "error")
        else:
            notice = Notify(event.message)
        return [notice] + self.dashboard.init()

    def _on_github_info(self, event: GitHubInfoLoaded) -> list[Command]:
        if event.error:
            return [Notify(f"GitHub info failed: {event.error}", "error")]
        info = event.info
        lines = [f"{info.full_name} ({info.visibility.lower()})"]
        if info.description:
            lines.append(info.description)
        lines.append(info.url)
        return [Notify("\n".join(lines))]

    def _forward_onboarding(self, event: Event) -> list[Command]:
        wizard = self.onboarding
        commands = wizard.update(event)
        if wizard.cancelled:
            self.onboarding = None
            if wizard.remote_only:
                return commands + self._to_dashboard()
            return commands + [Quit(ONBOARDING_CANCELLED)]
        if not wizard.completed:
            return commands

        self.onboarding = None
        notices = []
        if wizard.save_error:
            notices.append(Notify(f"Could not save config: {wizard.save_error}", "warning"))
        if wizard.remote_only:
            notices.append(Notify("GitHub remote configured"))
            return commands + notices + self._to_dashboard()

        try:
            self.config = self.store.load()
        except ConfigError as exc:
            LOG.warning("reloading config after setup failed: %s", exc)
        self.dashboard = Dashboard(self.config, self.tasks)
        notices.append(Notify(ONBOARDING_DONE))
        return commands + notices + self._to_dashboard()

    # =========================================================================
    # Rendering
    # =========================================================================

    def theme(self) -> Theme:
        return get_theme(self.config.ui.theme)

    def _render_screen(self, theme: Theme) -> RenderableType:
        state = self.state
        if state == ScreenState.COMMIT_DECISION and self.commit_screen is not None:
            return self.commit_screen.render(theme)
        if state == ScreenState.MERGE_DECISION and self.merge_screen is not None:
            return self.merge_screen.render(theme)
        if state == ScreenState.BRANCHES:
            return self.branch_screen.render(theme)
        if state == ScreenState.SETTINGS:
            return self.settings_screen.render(theme)
        if state == ScreenState.ONBOARDING:
            return self.onboarding.render(theme)
        return self.dashboard.render(theme)

    def render(self) -> RenderableType:
        theme = self.theme()
        operation = self.state.value if self.is_loading() else ""
        base = self._render_screen(theme)
        if self.state in (ScreenState.DASHBOARD, ScreenState.SETTINGS):
            tabs = Text()
            for number, name, state in ((1, "Dashboard", ScreenState.DASHBOARD), (2, "Settings", ScreenState.SETTINGS)):
                style = theme.style("primary", bold=True) if state == self.state else theme.muted
                tabs.append(f" {number} {name} ", style=style)
            base = Group(tabs, base)
        return self.overlay.render(theme, base, operation, self.dots)
