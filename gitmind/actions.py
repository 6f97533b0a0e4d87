"""Requests a screen hands to the orchestrator once the user commits to an operation."""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Commit:
    conventional: bool
    message: str = ""


@dataclass(frozen=True)
class Merge:
    source: str
    target: str


@dataclass(frozen=True)
class SwitchBranch:
    name: str


@dataclass(frozen=True)
class Fetch:
    pass


@dataclass(frozen=True)
class Pull:
    pass


@dataclass(frozen=True)
class Push:
    branch: str


@dataclass(frozen=True)
class ViewGitHub:
    pass


@dataclass(frozen=True)
class ShowGitHubInfo:
    pass


@dataclass(frozen=True)
class SetupRemote:
    pass


@dataclass(frozen=True)
class Refresh:
    pass


@dataclass(frozen=True)
class ManageBranches:
    pass


ActionRequest = Union[
    Commit, Merge, SwitchBranch, Fetch, Pull, Push, ViewGitHub, ShowGitHubInfo,
    SetupRemote, Refresh, ManageBranches,
]

# Run in the background while the UI keeps going; the dashboard refreshes afterwards.
LOCAL_ACTIONS = (SwitchBranch, Fetch, Pull, Push, ViewGitHub)
