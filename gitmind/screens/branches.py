"""
Branch management: browse local branches, delete (with force and remote
follow-ups), rename, and set upstream.

Every operation runs as a background task while the screen sits in MANAGING.
Each task carries a ticket; completions for a ticket the screen no longer
waits on (the user pressed Esc) are dropped.
"""

import logging
from enum import Enum

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from gitmind import workflows
from gitmind.config import AppConfig
from gitmind.errors import ValidationError
from gitmind.events import BranchListLoaded, BranchOpDone, Command, Event, Key
from gitmind.models import BranchInfo
from gitmind.tasks import Tasks
from gitmind.theme import Theme
from gitmind.widgets import TextField, button_row, status_line

LOG = logging.getLogger(__name__)

NO, YES = 0, 1


class BranchState(Enum):
    BROWSING = "browsing"
    EXPANDED = "expanded"
    DELETING = "deleting"
    FORCE_DELETE_PROMPT = "force-delete-prompt"
    DELETE_REMOTE_PROMPT = "delete-remote-prompt"
    RENAMING = "renaming"
    SETTING_UPSTREAM = "setting-upstream"
    MANAGING = "managing"


PROMPT_STATES = (BranchState.DELETING, BranchState.FORCE_DELETE_PROMPT, BranchState.DELETE_REMOTE_PROMPT)
INPUT_STATES = (BranchState.RENAMING, BranchState.SETTING_UPSTREAM)


class BranchScreen:
    def __init__(self, config: AppConfig, tasks: Tasks) -> None:
        self.config = config
        self.tasks = tasks
        self.state = BranchState.BROWSING
        self.branches: list[BranchInfo] = []
        self.index = 0
        self.loading = False

        # The branch being acted on and the flags of the pending delete
        self.selected: BranchInfo | None = None
        self.force = False
        self.delete_remote = False
        self.pending_op = ""

        self.button = NO
        self.input: TextField | None = None
        self.error_message = ""
        self.success_message = ""
        self.ticket = 0
        self._return = False

    def init(self) -> list[Command]:
        self.loading = True
        return [self.tasks.load_branch_details(self.config)]

    def should_return_to_parent(self) -> bool:
        return self._return

    def highlighted(self) -> BranchInfo | None:
        if 0 <= self.index < len(self.branches):
            return self.branches[self.index]
        return None

    def _reset(self, state: BranchState = BranchState.BROWSING) -> None:
        self.state = state
        self.selected = None
        self.force = False
        self.delete_remote = False
        self.pending_op = ""
        self.button = NO
        self.input = None

    def _start(self, op: str, build) -> list[Command]:
        self.ticket += 1
        self.pending_op = op
        self.state = BranchState.MANAGING
        return [build(self.ticket)]

    # -------------------------------------------------------------------------
    # Updates
    # -------------------------------------------------------------------------

    def update(self, event: Event) -> list[Command]:
        if isinstance(event, BranchListLoaded):
            self.loading = False
            if event.error:
                self.error_message = event.error
            else:
                self.branches = list(event.branches)
            self.index = min(self.index, max(0, len(self.branches) - 1))
            return []
        if isinstance(event, BranchOpDone):
            return self._on_done(event)
        if not isinstance(event, Key):
            return []

        if self.state in (BranchState.BROWSING, BranchState.EXPANDED):
            return self._on_browse_key(event)
        if self.state in PROMPT_STATES:
            return self._on_prompt_key(event)
        if self.state in INPUT_STATES:
            return self._on_input_key(event)
        if self.state == BranchState.MANAGING and event.key == "escape":
            LOG.info("branch %s cancelled in the UI", self.pending_op)
            self.ticket += 1
            self._reset()
            self.error_message = "Operation cancelled"
        return []

    def _on_browse_key(self, key: Key) -> list[Command]:
        k = key.key
        if k in ("q", "escape"):
            if self.state == BranchState.EXPANDED and k == "escape":
                self.state = BranchState.BROWSING
            else:
                self._return = True
        elif k in ("up", "k"):
            self.index = max(0, self.index - 1)
        elif k in ("down", "j"):
            self.index = min(max(0, len(self.branches) - 1), self.index + 1)
        elif k == "enter":
            if self.state == BranchState.EXPANDED:
                self.state = BranchState.BROWSING
            elif self.highlighted() is not None:
                self.state = BranchState.EXPANDED
        elif k == "R":
            self.error_message = ""
            self.success_message = ""
            return self.init()
        elif k in ("d", "r", "u"):
            branch = self.highlighted()
            if branch is None:
                return []
            self.error_message = ""
            self.success_message = ""
            self._reset()
            self.selected = branch
            if k == "d":
                self.state = BranchState.DELETING
            elif k == "r":
                self.state = BranchState.RENAMING
                self.input = TextField("name", "New name", branch.name)
            else:
                self.state = BranchState.SETTING_UPSTREAM
                self.input = TextField("upstream", "Upstream", branch.upstream,
                                       placeholder=f"{self.config.git.default_remote}/{branch.name}")
        return []

    def _on_prompt_key(self, key: Key) -> list[Command]:
        k = key.key
        if k in ("left", "h", "right", "l", "tab"):
            self.button = YES - self.button
            return []
        if k == "escape" or (k == "enter" and self.button == NO):
            return self._decline()
        if k != "enter":
            return []

        branch = self.selected
        if self.state == BranchState.DELETING:
            try:
                workflows.validate_delete(branch.name, self._current_branch(), self.config.git.protected_branches)
            except ValidationError as exc:
                self._reset()
                self.error_message = str(exc)
                return []
            self.force = False
            return self._start("delete", lambda t: self.tasks.delete_branch(t, self.config, branch.name, False))
        if self.state == BranchState.FORCE_DELETE_PROMPT:
            self.force = True
            return self._start("delete", lambda t: self.tasks.delete_branch(t, self.config, branch.name, True))
        remote, remote_branch = branch.remote_counterpart()
        self.delete_remote = True
        return self._start(
            "delete-remote", lambda t: self.tasks.delete_remote_branch(t, branch.name, remote, remote_branch))

    def _decline(self) -> list[Command]:
        if self.state == BranchState.DELETE_REMOTE_PROMPT:
            name = self.selected.name
            self._reset()
            self.success_message = f"Local branch '{name}' deleted"
            return self.init()
        self._reset()
        return []

    def _on_input_key(self, key: Key) -> list[Command]:
        if key.key == "escape":
            self._reset()
            return []
        if key.key != "enter":
            self.input.handle_key(key)
            return []

        branch = self.selected
        value = self.input.value.strip()
        try:
            if self.state == BranchState.RENAMING:
                workflows.validate_rename(branch.name, value, [b.name for b in self.branches])
            else:
                workflows.validate_upstream(value)
        except ValidationError as exc:
            # Stay in the form so the draft can be fixed
            self.error_message = str(exc)
            return []

        self.error_message = ""
        if self.state == BranchState.RENAMING:
            return self._start("rename", lambda t: self.tasks.rename_branch(t, branch.name, value))
        return self._start("upstream", lambda t: self.tasks.set_upstream(t, branch.name, value))

    def _on_done(self, event: BranchOpDone) -> list[Command]:
        if self.state != BranchState.MANAGING or event.ticket != self.ticket:
            LOG.debug("dropping stale %s completion (ticket %d)", event.op, event.ticket)
            return []

        branch = self.selected
        if event.error:
            if event.not_fully_merged and not self.force:
                self.state = BranchState.FORCE_DELETE_PROMPT
                self.button = NO
                self.pending_op = ""
                return []
            self._reset()
            self.error_message = f"Error: {event.error}"
            return self.init()

        self.success_message = event.message
        self.error_message = ""
        if event.op == "delete" and branch is not None and branch.remote_counterpart() is not None:
            self.state = BranchState.DELETE_REMOTE_PROMPT
            self.button = NO
            self.force = False
            self.pending_op = ""
            return self.init()
        self._reset()
        return self.init()

    def _current_branch(self) -> str:
        for branch in self.branches:
            if branch.is_current:
                return branch.name
        return ""

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def _prompt_text(self) -> str:
        name = self.selected.name if self.selected else ""
        if self.state == BranchState.DELETING:
            return f"Delete local branch '{name}'?"
        if self.state == BranchState.FORCE_DELETE_PROMPT:
            return f"Branch '{name}' is not fully merged.\nForce delete and lose its unmerged commits?"
        remote, remote_branch = self.selected.remote_counterpart()
        return f"Also delete branch '{remote_branch}' on remote '{remote}'?"

    def render(self, theme: Theme) -> RenderableType:
        table = Table(expand=True, border_style=theme.border, header_style=theme.style("secondary", bold=True))
        table.add_column("")
        table.add_column("Branch")
        table.add_column("Upstream")
        table.add_column("Sync", justify="right")
        for i, branch in enumerate(self.branches):
            cursor = "▶" if i == self.index else " "
            name = Text(branch.name, style=theme.style("primary", bold=True) if i == self.index else theme.text)
            if branch.is_current:
                name.append(" ●", style=theme.success)
            if branch.is_protected:
                name.append(" (protected)", style=theme.muted)
            sync = f"↑{branch.ahead} ↓{branch.behind}" if branch.upstream else "-"
            table.add_row(cursor, name, branch.upstream or "-", sync)

        parts: list[RenderableType] = [table]
        if self.loading:
            parts.append(Text("Loading branches...", style=theme.muted))

        branch = self.highlighted()
        if self.state == BranchState.EXPANDED and branch is not None:
            parts.append(Panel(Group(
                Text(f"Upstream: {branch.upstream or 'none'}", style=theme.text),
                Text(f"Ahead {branch.ahead} • Behind {branch.behind}", style=theme.text),
                Text(f"Last commit: {branch.last_commit or '-'}", style=theme.muted),
            ), title=branch.name, border_style=theme.accent))
        elif self.state in PROMPT_STATES:
            parts.append(Panel(Group(
                Text(self._prompt_text(), justify="center"),
                Text(""),
                button_row(theme, ["No", "Yes"], self.button),
            ), title="Confirm", border_style=theme.warning))
        elif self.state in INPUT_STATES:
            title = "Rename branch" if self.state == BranchState.RENAMING else "Set upstream"
            parts.append(Panel(Group(
                self.input.render(theme, True),
                Text("Enter submit • Esc cancel", style=theme.muted),
            ), title=title, border_style=theme.accent))
        elif self.state == BranchState.MANAGING:
            parts.append(Text(f"Working on {self.pending_op}... (Esc to stop waiting)", style=theme.warning))

        parts.append(status_line(theme, self.error_message, self.success_message))
        parts.append(Text("↑↓ move • Enter details • d delete • r rename • u upstream • R refresh • q back",
                          style=theme.muted))
        return Group(*parts)
