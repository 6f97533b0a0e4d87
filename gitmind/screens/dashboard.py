"""
Dashboard: six cards in a 2x3 grid, each opening a submenu.

Submenu contents come from ``build_entries``, which both the renderer and the
Enter handler call, so the cursor bound and the selected entry always agree
with what is on screen.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from gitmind import actions
from gitmind.config import AppConfig
from gitmind.events import (
    BranchesLoaded, Command, CommitsLoaded, Event, Key, RepoStatusLoaded,
)
from gitmind.models import BranchInfo, CommitInfo, RepoStatus
from gitmind.tasks import Tasks
from gitmind.theme import Theme
from gitmind.widgets import menu, status_line

LOG = logging.getLogger(__name__)

CARDS = ["REPOSITORY", "COMMIT", "MERGE", "RECENT COMMITS", "BRANCHES", "QUICK ACTIONS"]
COLUMNS = 3
MAX_LISTED_FILES = 10

HELP_LINES = [
    "↑↓←→ / hjkl  move between cards",
    "Tab / Shift+Tab  next / previous card",
    "Enter  open card, select entry",
    "Esc / q  close submenu, quit from the grid",
    "r  refresh    b  manage branches",
    "1 / 2  dashboard / settings",
]


class Submenu(Enum):
    NONE = "none"
    REPOSITORY = "repository"
    COMMIT = "commit"
    MERGE = "merge"
    COMMITS = "commits"
    BRANCHES = "branches"
    HELP = "help"


CARD_SUBMENUS = [
    Submenu.REPOSITORY, Submenu.COMMIT, Submenu.MERGE,
    Submenu.COMMITS, Submenu.BRANCHES, Submenu.HELP,
]


@dataclass(frozen=True)
class MenuEntry:
    label: str
    action: actions.ActionRequest | None = None
    hint: str = ""


@dataclass
class DashboardData:
    repo: RepoStatus | None = None
    branch: BranchInfo | None = None
    branches: list[str] = field(default_factory=list)
    commits: list[CommitInfo] = field(default_factory=list)


# =============================================================================
# Entry builders
# =============================================================================

def build_repo_actions(repo: RepoStatus | None) -> list[MenuEntry]:
    entries = []
    if repo is not None:
        if repo.has_remote:
            if repo.can_fetch():
                entries.append(MenuEntry("Fetch", actions.Fetch(), "update remote refs"))
            if repo.can_pull():
                entries.append(MenuEntry("Pull", actions.Pull(), f"{repo.behind} behind"))
            if repo.can_push():
                entries.append(MenuEntry("Push", actions.Push(repo.branch), f"{repo.ahead} ahead"))
            if repo.is_github:
                entries.append(MenuEntry("View on GitHub", actions.ViewGitHub()))
                entries.append(MenuEntry("Show GitHub info", actions.ShowGitHubInfo()))
        else:
            entries.append(MenuEntry("Set up GitHub remote", actions.SetupRemote(), "no remote configured"))
    entries.append(MenuEntry("Refresh", actions.Refresh()))
    return entries


def _commit_entries(data: DashboardData, config: AppConfig) -> list[MenuEntry]:
    entries = [MenuEntry(
        "Analyze and commit",
        actions.Commit(conventional=config.uses_conventional_commits),
        "AI suggests message and branch",
    )]
    repo = data.repo
    if repo is None:
        return entries
    if not repo.has_changes:
        entries.append(MenuEntry("Working tree clean"))
        return entries
    entries.append(MenuEntry(repo.change_summary()))
    for change in repo.changes[:MAX_LISTED_FILES]:
        entries.append(MenuEntry(f"{change.status.strip() or '?'} {change.path}"))
    if len(repo.changes) > MAX_LISTED_FILES:
        entries.append(MenuEntry(f"... and {len(repo.changes) - MAX_LISTED_FILES} more"))
    return entries


def _merge_entries(data: DashboardData, config: AppConfig) -> list[MenuEntry]:
    if data.repo is None:
        return [MenuEntry("Loading branches...")]
    source = data.repo.branch
    target = data.branch.merge_target(config.git.main_branch) if data.branch else config.git.main_branch
    entries = []
    if source != target:
        entries.append(MenuEntry(f"Analyze merge into {target}", actions.Merge(source, target),
                                 f"from {source}"))
    for name in data.branches:
        if name not in (source, target):
            entries.append(MenuEntry(f"Merge into {name}", actions.Merge(source, name)))
    if not entries:
        entries.append(MenuEntry(f"Already on {target}; switch to a feature branch to merge"))
    return entries


def _commit_list_entries(data: DashboardData) -> list[MenuEntry]:
    if not data.commits:
        return [MenuEntry("No commits yet")]
    return [MenuEntry(f"{c.short_hash} {c.message}", hint=c.author) for c in data.commits]


def _branch_entries(data: DashboardData) -> list[MenuEntry]:
    current = data.repo.branch if data.repo else ""
    entries = []
    for name in data.branches:
        if name == current:
            entries.append(MenuEntry(f"● {name}", hint="current"))
        else:
            entries.append(MenuEntry(f"Switch to {name}", actions.SwitchBranch(name)))
    entries.append(MenuEntry("Manage branches...", actions.ManageBranches(), "delete, rename, upstream"))
    return entries


def build_entries(submenu: Submenu, data: DashboardData, config: AppConfig) -> list[MenuEntry]:
    """The one ordered entry list for a submenu."""
    if submenu == Submenu.REPOSITORY:
        return build_repo_actions(data.repo)
    if submenu == Submenu.COMMIT:
        return _commit_entries(data, config)
    if submenu == Submenu.MERGE:
        return _merge_entries(data, config)
    if submenu == Submenu.COMMITS:
        return _commit_list_entries(data)
    if submenu == Submenu.BRANCHES:
        return _branch_entries(data)
    if submenu == Submenu.HELP:
        return [MenuEntry(line) for line in HELP_LINES]
    return []


# =============================================================================
# Dashboard state machine
# =============================================================================

class Dashboard:
    def __init__(self, config: AppConfig, tasks: Tasks) -> None:
        self.config = config
        self.tasks = tasks
        self.data = DashboardData()
        self.card = 0
        self.submenu = Submenu.NONE
        self.cursor = 0
        self.pending: set[str] = set()
        self.error = ""
        self._action: actions.ActionRequest | None = None

    def init(self) -> list[Command]:
        self.pending = {"status", "branches", "commits"}
        self.error = ""
        return list(self.tasks.refresh_dashboard(self.config))

    def is_loading(self) -> bool:
        return bool(self.pending)

    def has_submenu(self) -> bool:
        return self.submenu != Submenu.NONE

    def get_action(self) -> actions.ActionRequest | None:
        return self._action

    def clear_action(self) -> None:
        self._action = None

    def entries(self) -> list[MenuEntry]:
        return build_entries(self.submenu, self.data, self.config)

    def max_index(self) -> int:
        return max(0, len(self.entries()) - 1)

    def _clamp_cursor(self) -> None:
        self.cursor = min(max(self.cursor, 0), self.max_index())

    # -------------------------------------------------------------------------
    # Updates
    # -------------------------------------------------------------------------

    def update(self, event: Event) -> list[Command]:
        if isinstance(event, Key):
            return self._on_key(event)
        if isinstance(event, RepoStatusLoaded):
            self.pending.discard("status")
            if event.error:
                self.error = event.error
            else:
                self.data.repo = event.repo
                self.data.branch = event.branch
        elif isinstance(event, BranchesLoaded):
            self.pending.discard("branches")
            if event.error:
                self.error = event.error
            else:
                self.data.branches = list(event.branches)
        elif isinstance(event, CommitsLoaded):
            self.pending.discard("commits")
            if event.error:
                self.error = event.error
            else:
                self.data.commits = list(event.commits)
        self._clamp_cursor()
        return []

    def _on_key(self, key: Key) -> list[Command]:
        if self.has_submenu():
            return self._on_submenu_key(key)

        k = key.key
        row, col = divmod(self.card, COLUMNS)
        if k in ("up", "k", "down", "j"):
            self.card = ((row + 1) % 2) * COLUMNS + col
        elif k in ("left", "h"):
            self.card = row * COLUMNS + (col - 1) % COLUMNS
        elif k in ("right", "l"):
            self.card = row * COLUMNS + (col + 1) % COLUMNS
        elif k == "tab":
            self.card = (self.card + 1) % len(CARDS)
        elif k == "shift+tab":
            self.card = (self.card - 1) % len(CARDS)
        elif k == "enter":
            self.submenu = CARD_SUBMENUS[self.card]
            self.cursor = 0
        elif k == "r":
            return self.init()
        elif k == "b":
            self._action = actions.ManageBranches()
        return []

    def _on_submenu_key(self, key: Key) -> list[Command]:
        k = key.key
        if k in ("escape", "q"):
            self.submenu = Submenu.NONE
            self.cursor = 0
        elif k in ("up", "k"):
            self.cursor = max(0, self.cursor - 1)
        elif k in ("down", "j"):
            self.cursor = min(self.max_index(), self.cursor + 1)
        elif k in ("enter", "space"):
            entries = self.entries()
            entry = entries[self.cursor] if self.cursor < len(entries) else None
            if entry is not None and entry.action is not None:
                self._action = entry.action
            self.submenu = Submenu.NONE
            self.cursor = 0
        return []

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def _card_body(self, index: int, theme: Theme) -> Text:
        data = self.data
        repo = data.repo
        if repo is None:
            return Text("loading..." if self.is_loading() else "-", style=theme.muted)
        if index == 0:
            text = Text(f"{repo.branch}\n", style=theme.style("text", bold=True))
            text.append(f"{repo.sync_summary()}\n", style=theme.secondary)
            text.append(repo.remote_url or "no remote", style=theme.muted)
            return text
        if index == 1:
            if not repo.has_changes:
                return Text("Working tree clean", style=theme.success)
            return Text(repo.change_summary(), style=theme.warning)
        if index == 2:
            branch = data.branch
            target = branch.merge_target(self.config.git.main_branch) if branch else self.config.git.main_branch
            text = Text(f"→ {target}\n", style=theme.text)
            if branch and branch.commit_count:
                text.append(f"{branch.commit_count} commit(s) ahead of parent", style=theme.muted)
            return text
        if index == 3:
            if not data.commits:
                return Text("No commits yet", style=theme.muted)
            return Text("\n".join(f"{c.short_hash} {c.message[:28]}" for c in data.commits[:3]),
                        style=theme.text)
        if index == 4:
            return Text(f"{len(data.branches)} local branch(es)\ncurrent: {repo.branch}", style=theme.text)
        return Text("r refresh · b branches\n2 settings · q quit", style=theme.muted)

    def render(self, theme: Theme) -> RenderableType:
        grid = Table.grid(expand=True, padding=(0, 1))
        for _ in range(COLUMNS):
            grid.add_column(ratio=1)
        panels = []
        for i, title in enumerate(CARDS):
            selected = i == self.card
            panels.append(Panel(
                self._card_body(i, theme),
                title=Text(title, style=theme.style("primary" if selected else "secondary", bold=selected)),
                border_style=theme.primary if selected else theme.border,
                height=6,
            ))
        grid.add_row(*panels[:COLUMNS])
        grid.add_row(*panels[COLUMNS:])

        parts: list[RenderableType] = [grid]
        if self.has_submenu():
            entries = self.entries()
            parts.append(Panel(
                menu(theme, [e.label for e in entries], self.cursor, [e.hint for e in entries]),
                title=Text(CARDS[self.card], style=theme.style("accent", bold=True)),
                subtitle=Text("↑↓ move • Enter select • Esc close", style=theme.muted),
                border_style=theme.accent,
            ))
        if self.is_loading():
            parts.append(Text("Loading repository data...", style=theme.muted))
        parts.append(status_line(theme, error=self.error))
        return Group(*parts)
