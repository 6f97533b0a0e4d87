from pathlib import Path

import pytest

from gitmind.ai import MergeSuggestion
from gitmind.config import AppConfig
from gitmind.events import Key, RunTask
from gitmind.models import (
    ActionType, Alternative, BranchInfo, CommitInfo, Decision, FileChange, RepoInfo, RepoStatus,
)
from gitmind.orchestrator import Orchestrator
from gitmind.tasks import Tasks


class FakeGit:
    """In-memory stand-in for GitBackend. Set ``errors[method] = exc`` to make a call fail."""

    def __init__(self, repo_path: Path = Path("/work/demo")) -> None:
        self.repo_path = repo_path
        self.branch = "feature/login"
        self.parent = "main"
        self.branches = ["main", "feature/login", "feature/x"]
        self.details = [
            BranchInfo(name="main", upstream="origin/main", is_protected=True, last_commit="init"),
            BranchInfo(name="feature/login", parent="main", is_current=True, last_commit="add form"),
            BranchInfo(name="feature/x", upstream="origin/feature/x", ahead=2, last_commit="wip"),
        ]
        self.changes = [FileChange("app.py", " M", 3, 1), FileChange("notes.txt", "??")]
        self.remote = "git@github.com:me/demo.git"
        self.ahead = 1
        self.behind = 0
        self.repo = True
        self.commits = [CommitInfo("a" * 40, "me", "2024-01-01", "add form")]
        self.merge_clean = True
        self.errors: dict[str, Exception] = {}
        self.calls: list[tuple] = []

    def _call(self, name: str, *args) -> None:
        self.calls.append((name,) + args)
        if name in self.errors:
            raise self.errors[name]

    def called(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    # Queries

    def is_repo(self) -> bool:
        return self.repo

    def is_empty(self) -> bool:
        return False

    def current_branch(self) -> str:
        return self.branch

    def has_remote(self, remote: str = "origin") -> bool:
        return bool(self.remote)

    def get_status(self) -> RepoStatus:
        self._call("get_status")
        return RepoStatus(path=self.repo_path, branch=self.branch, changes=list(self.changes),
                          remote_url=self.remote, ahead=self.ahead, behind=self.behind)

    def get_parent_branch(self, branch: str) -> str:
        return self.parent if branch == self.branch else ""

    def get_branch_info(self, protected=None) -> BranchInfo:
        return BranchInfo(name=self.branch, parent=self.parent, is_current=True,
                          is_protected=self.branch in (protected or []), commit_count=len(self.commits))

    def list_branches(self) -> list[str]:
        self._call("list_branches")
        return list(self.branches)

    def list_branch_details(self, protected=None) -> list[BranchInfo]:
        self._call("list_branch_details")
        return list(self.details)

    def get_log(self, limit: int = 10) -> list[CommitInfo]:
        return self.commits[:limit]

    def get_branch_commits(self, branch: str, exclude: str) -> list[CommitInfo]:
        return list(self.commits)

    def get_diff(self, staged: bool = False) -> str:
        return "diff --git a/app.py b/app.py\n+login()" if staged else ""

    def can_merge(self, source: str, target: str):
        return (True, []) if self.merge_clean else (False, ["app.py"])

    def short_head(self) -> str:
        return "abc1234"

    # Mutations

    def init_repo(self) -> None:
        self._call("init_repo")
        self.repo = True

    def checkout_branch(self, name: str) -> None:
        self._call("checkout_branch", name)
        self.branch = name

    def create_branch(self, name: str, parent: str = "") -> None:
        self._call("create_branch", name, parent)
        self.branch = name

    def fetch(self, remote: str = "origin") -> str:
        self._call("fetch", remote)
        return ""

    def pull(self) -> str:
        self._call("pull")
        return ""

    def push(self, branch: str, remote: str = "origin") -> str:
        self._call("push", branch, remote)
        return ""

    def stage_all(self) -> None:
        self._call("stage_all")

    def commit(self, message: str) -> str:
        self._call("commit", message)
        return ""

    def merge(self, source: str, strategy: str, message: str) -> None:
        self._call("merge", source, strategy, message)

    def abort_merge(self) -> None:
        self._call("abort_merge")

    def delete_branch(self, name: str, force: bool = False) -> None:
        self._call("delete_branch", name, force)

    def delete_remote_branch(self, name: str, remote: str = "origin") -> None:
        self._call("delete_remote_branch", name, remote)

    def rename_branch(self, old: str, new: str) -> None:
        self._call("rename_branch", old, new)

    def set_upstream(self, branch: str, upstream: str) -> None:
        self._call("set_upstream", branch, upstream)

    def set_remote(self, url: str, remote: str = "origin") -> None:
        self._call("set_remote", url, remote)
        self.remote = url


class FakeGitHub:
    def __init__(self) -> None:
        self.available = True
        self.authenticated = True
        self.opened = 0
        self.created = []

    def is_available(self) -> bool:
        return self.available

    def is_authenticated(self) -> bool:
        return self.authenticated

    def view_repo_web(self) -> None:
        self.opened += 1

    def get_repo_info(self) -> RepoInfo:
        return RepoInfo("me/demo", "A demo", "public", "https://github.com/me/demo")

    def get_current_user(self) -> str:
        return "me"

    def create_repository(self, options) -> str:
        self.created.append(options)
        return f"https://github.com/me/{options.name}.git"


def make_decision(action=ActionType.CREATE_BRANCH, alternatives=None) -> Decision:
    if alternatives is None:
        alternatives = [
            Alternative(ActionType.COMMIT_DIRECT, "small enough to commit", 0.4),
            Alternative(ActionType.REVIEW, "look again first", 0.2),
        ]
    return Decision(
        action=action,
        reasoning="new feature work",
        confidence=0.85,
        suggested_message="feat(auth): add login form",
        branch_name="feature/login-form",
        alternatives=alternatives,
    )


class FakeAnalyzer:
    model = "fake-model"

    def __init__(self, settings=None, decision: Decision | None = None, error: Exception | None = None) -> None:
        self.settings = settings
        self.decision = decision or make_decision()
        self.error = error
        self.requests = []

    def analyze_commit(self, req) -> Decision:
        self.requests.append(req)
        if self.error:
            raise self.error
        return self.decision

    def suggest_merge(self, req) -> MergeSuggestion:
        self.requests.append(req)
        if self.error:
            raise self.error
        return MergeSuggestion("squash", "Merge login form", "single feature")


class MemoryStore:
    def __init__(self, config: AppConfig | None = None, error: str | None = None) -> None:
        self.saved: list[AppConfig] = []
        self.config = config
        self.error = error

    def exists(self) -> bool:
        return self.config is not None

    def load(self) -> AppConfig:
        return self.config.snapshot() if self.config else AppConfig()

    def save(self, config: AppConfig) -> str | None:
        self.saved.append(config)
        if self.error is None:
            self.config = config
        return self.error


def press(target, *keys: str) -> list:
    """Send keys to an orchestrator or screen, collecting every returned command."""
    commands = []
    for k in keys:
        character = k if len(k) == 1 else None
        event = Key(k, character)
        if isinstance(target, Orchestrator):
            commands += target.handle(event)
        else:
            commands += target.update(event)
    return commands


def tasks_in(commands: list) -> list[RunTask]:
    return [c for c in commands if isinstance(c, RunTask)]


def run_tasks(target, commands: list) -> list:
    """Run every RunTask inline and feed its completion back, like the driver does."""
    out = []
    for task in tasks_in(commands):
        event = task.fn()
        if isinstance(target, Orchestrator):
            out += target.handle(event)
        else:
            out += target.update(event)
    return out


@pytest.fixture
def git():
    return FakeGit()


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
def analyzer():
    return FakeAnalyzer()


@pytest.fixture
def store():
    return MemoryStore(AppConfig())


@pytest.fixture
def config():
    return AppConfig()


@pytest.fixture
def tasks(git, github, store, analyzer):
    return Tasks(git, github, store, analyzer_factory=lambda settings: analyzer)


@pytest.fixture
def orchestrator(config, store, tasks):
    orch = Orchestrator(config, store, tasks)
    run_tasks(orch, orch.init())
    return orch
