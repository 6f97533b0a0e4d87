"""
Events consumed by the orchestrator and commands it hands back to the driver.

Everything that reaches ``Orchestrator.handle`` is one of the event classes
below: a keypress, a loading tick, or the single completion produced by a
background task. Handlers dispatch on the concrete class.
"""

from dataclasses import dataclass, field
from typing import Callable, Union

from gitmind.models import (
    BranchInfo, CommitAnalysis, CommitInfo, MergeAnalysis, RepoInfo, RepoStatus,
)

TICK_INTERVAL = 0.5


# =============================================================================
# Input
# =============================================================================

@dataclass(frozen=True)
class Key:
    key: str
    character: str | None = None

    @property
    def is_printable(self) -> bool:
        return self.character is not None and len(self.character) == 1 and self.character.isprintable()


@dataclass(frozen=True)
class Tick:
    pass


# =============================================================================
# Task completions
# =============================================================================

@dataclass(frozen=True)
class RepoStatusLoaded:
    repo: RepoStatus | None = None
    branch: BranchInfo | None = None
    error: str | None = None


@dataclass(frozen=True)
class BranchesLoaded:
    branches: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class CommitsLoaded:
    commits: list[CommitInfo] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class CommitAnalysisDone:
    ticket: int
    result: CommitAnalysis | None = None
    error: str | None = None


@dataclass(frozen=True)
class MergeAnalysisDone:
    ticket: int
    result: MergeAnalysis | None = None
    error: str | None = None


@dataclass(frozen=True)
class CommitExecuted:
    message: str = ""
    error: str | None = None


@dataclass(frozen=True)
class MergeExecuted:
    message: str = ""
    error: str | None = None


@dataclass(frozen=True)
class LocalActionDone:
    label: str
    message: str = ""
    error: str | None = None


@dataclass(frozen=True)
class GitHubInfoLoaded:
    info: RepoInfo | None = None
    error: str | None = None


@dataclass(frozen=True)
class BranchListLoaded:
    branches: list[BranchInfo] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class BranchOpDone:
    ticket: int
    op: str  # "delete", "delete-remote", "rename", "upstream"
    message: str = ""
    error: str | None = None
    not_fully_merged: bool = False


@dataclass(frozen=True)
class RepoChecked:
    is_repo: bool
    error: str | None = None


@dataclass(frozen=True)
class GitHubChecked:
    available: bool
    authenticated: bool
    has_remote: bool
    error: str = ""


@dataclass(frozen=True)
class GitHubRepoCreated:
    url: str = ""
    error: str | None = None


@dataclass(frozen=True)
class ConfigSaved:
    origin: str  # "settings" or "onboarding"
    error: str | None = None


Event = Union[
    Key, Tick,
    RepoStatusLoaded, BranchesLoaded, CommitsLoaded,
    CommitAnalysisDone, MergeAnalysisDone, CommitExecuted, MergeExecuted,
    LocalActionDone, GitHubInfoLoaded,
    BranchListLoaded, BranchOpDone,
    RepoChecked, GitHubChecked, GitHubRepoCreated, ConfigSaved,
]


# =============================================================================
# Commands
# =============================================================================

@dataclass(frozen=True)
class RunTask:
    """Run fn off the event loop; its return value is the completion event."""
    name: str
    fn: Callable[[], Event]


@dataclass(frozen=True)
class ScheduleTick:
    delay: float = TICK_INTERVAL


@dataclass(frozen=True)
class Notify:
    message: str
    severity: str = "information"


@dataclass(frozen=True)
class Quit:
    message: str = ""


Command = Union[RunTask, ScheduleTick, Notify, Quit]
