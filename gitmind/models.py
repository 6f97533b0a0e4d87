from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class ActionType(str, Enum):
    COMMIT_DIRECT = "commit-direct"
    CREATE_BRANCH = "create-branch"
    SPLIT_COMMITS = "split-commits"
    REVIEW = "review"
    MERGE = "merge"
    CREATE_PR = "create-pr"

    @classmethod
    def parse(cls, value: str) -> "ActionType":
        """Map a provider string to an action; anything unknown needs review."""
        normalized = (value or "").strip().lower().replace("_", "-")
        for action in cls:
            if action.value == normalized:
                return action
        return cls.REVIEW


@dataclass
class Alternative:
    action: ActionType
    description: str
    confidence: float = 0.0


@dataclass
class Decision:
    """The analyzer's recommendation for a set of changes."""
    action: ActionType
    reasoning: str
    confidence: float
    suggested_message: str
    branch_name: str = ""
    alternatives: list[Alternative] = field(default_factory=list)


@dataclass
class FileChange:
    path: str
    status: str  # porcelain XY code, e.g. " M", "??"
    additions: int = 0
    deletions: int = 0

    @property
    def untracked(self) -> bool:
        return self.status == "??"


@dataclass
class RepoStatus:
    path: Path
    branch: str
    changes: list[FileChange] = field(default_factory=list)
    remote_url: str = ""
    ahead: int = 0
    behind: int = 0
    is_empty: bool = False  # no commits yet

    @property
    def has_remote(self) -> bool:
        return bool(self.remote_url)

    @property
    def is_github(self) -> bool:
        return "github.com" in self.remote_url

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)

    def can_fetch(self) -> bool:
        return self.why_not_fetch() is None

    def why_not_fetch(self) -> str | None:
        if not self.has_remote:
            return "no remote configured"
        return None

    def can_pull(self) -> bool:
        return self.why_not_pull() is None

    def why_not_pull(self) -> str | None:
        if not self.has_remote:
            return "no remote configured"
        if self.behind <= 0:
            return "nothing to pull"
        return None

    def can_push(self) -> bool:
        return self.why_not_push() is None

    def why_not_push(self) -> str | None:
        if not self.has_remote:
            return "no remote configured"
        if self.ahead <= 0:
            return "nothing to push"
        return None

    def sync_summary(self) -> str:
        if not self.has_remote:
            return "no remote"
        if self.ahead == 0 and self.behind == 0:
            return "synced"
        return f"↑{self.ahead} ↓{self.behind}"

    def change_summary(self) -> str:
        if not self.changes:
            return "no changes"
        added = sum(c.additions for c in self.changes)
        removed = sum(c.deletions for c in self.changes)
        return f"{len(self.changes)} file(s) changed, +{added} -{removed}"


@dataclass
class BranchInfo:
    name: str
    parent: str = ""
    upstream: str = ""
    ahead: int = 0
    behind: int = 0
    commit_count: int = 0
    is_current: bool = False
    is_protected: bool = False
    last_commit: str = ""
    # Remote and branch name on that remote, when upstream is a remote-tracking ref
    upstream_remote: str = ""
    upstream_branch: str = ""

    def remote_counterpart(self) -> tuple[str, str] | None:
        """(remote, branch) that a remote delete for this branch must target."""
        if self.upstream_remote:
            # "." means the upstream is another local branch
            if self.upstream_remote == "." or not self.upstream_branch:
                return None
            return self.upstream_remote, self.upstream_branch
        remote, _, branch = self.upstream.partition("/")
        if remote and branch:
            return remote, branch
        return None

    def merge_target(self, main_branch: str) -> str:
        return self.parent or main_branch


@dataclass
class CommitInfo:
    hash: str
    author: str
    date: str
    message: str

    @property
    def short_hash(self) -> str:
        return self.hash[:7]


@dataclass
class CommitAnalysis:
    repo: RepoStatus
    branch: BranchInfo
    decision: Decision
    diff: str = ""
    model: str = ""


@dataclass
class MergeAnalysis:
    source: str
    target: str
    commits: list[CommitInfo] = field(default_factory=list)
    can_merge: bool = True
    conflicts: list[str] = field(default_factory=list)
    suggested_strategy: str = "regular"
    merge_message: str = ""
    reasoning: str = ""


@dataclass
class CommitChoice:
    """What the user settled on in the commit decision screen."""
    action: ActionType
    message: str
    branch_name: str = ""


@dataclass
class MergeChoice:
    source: str
    target: str
    strategy: str
    message: str


@dataclass
class RepoInfo:
    full_name: str
    description: str
    visibility: str
    url: str


@dataclass
class CreateRepoOptions:
    name: str
    description: str = ""
    private: bool = False
    license: str = "MIT"
    gitignore: str = "Python"
    add_readme: bool = True
    enable_issues: bool = True
    enable_wiki: bool = False
