"""
Background task builders.

Every builder snapshots the live config on the calling (event loop) thread,
then returns a RunTask whose body runs one backend call elsewhere and always
returns exactly one completion event. Exceptions stop at this boundary and
become the event's ``error`` string.
"""

import logging
from typing import Callable

from gitmind import actions, workflows
from gitmind.ai import AIAnalyzer
from gitmind.config import AISettings, AppConfig, ConfigStore
from gitmind.errors import GitMindError, NotFullyMergedError
from gitmind.events import (
    BranchesLoaded, BranchListLoaded, BranchOpDone, CommitAnalysisDone, CommitExecuted,
    CommitsLoaded, ConfigSaved, Event, GitHubChecked, GitHubInfoLoaded, GitHubRepoCreated,
    LocalActionDone, MergeAnalysisDone, MergeExecuted, RepoChecked, RepoStatusLoaded, RunTask,
    ScheduleTick, TICK_INTERVAL,
)
from gitmind.git import GitBackend
from gitmind.github import GitHubClient
from gitmind.models import CommitChoice, CreateRepoOptions, MergeChoice

LOG = logging.getLogger(__name__)

RECENT_COMMITS = 10


def background(name: str, body: Callable[[], Event],
               on_error: Callable[[Exception], Event]) -> RunTask:
    def run() -> Event:
        try:
            return body()
        except GitMindError as exc:
            LOG.warning("task %s failed: %s", name, exc)
            return on_error(exc)
        except Exception as exc:
            # Anything else is a bug in a backend, still reported as one completion
            LOG.exception("task %s crashed", name)
            return on_error(exc)
    return RunTask(name, run)


def loading_tick() -> ScheduleTick:
    return ScheduleTick(TICK_INTERVAL)


class Tasks:
    """Binds the backends so screens and the orchestrator can request work."""

    def __init__(self, git: GitBackend, github: GitHubClient, store: ConfigStore,
                 analyzer_factory: Callable[[AISettings], AIAnalyzer] = AIAnalyzer) -> None:
        self.git = git
        self.github = github
        self.store = store
        self.analyzer_factory = analyzer_factory

    # -------------------------------------------------------------------------
    # Dashboard data
    # -------------------------------------------------------------------------

    def refresh_dashboard(self, config: AppConfig) -> list[RunTask]:
        cfg = config.snapshot()
        git = self.git

        def status() -> RepoStatusLoaded:
            return RepoStatusLoaded(repo=git.get_status(), branch=git.get_branch_info(cfg.git.protected_branches))

        return [
            background("repo-status", status, lambda e: RepoStatusLoaded(error=str(e))),
            background("branches", lambda: BranchesLoaded(branches=git.list_branches()),
                       lambda e: BranchesLoaded(error=str(e))),
            background("recent-commits", lambda: CommitsLoaded(commits=git.get_log(RECENT_COMMITS)),
                       lambda e: CommitsLoaded(error=str(e))),
        ]

    # -------------------------------------------------------------------------
    # Analysis and execution
    # -------------------------------------------------------------------------

    def analyze_commit(self, ticket: int, config: AppConfig, message: str) -> RunTask:
        cfg = config.snapshot()

        def body() -> CommitAnalysisDone:
            analyzer = self.analyzer_factory(cfg.ai)
            result = workflows.analyze_commit(self.git, analyzer, cfg, message)
            return CommitAnalysisDone(ticket, result=result)

        return background("analyze-commit", body, lambda e: CommitAnalysisDone(ticket, error=str(e)))

    def analyze_merge(self, ticket: int, config: AppConfig, source: str, target: str) -> RunTask:
        cfg = config.snapshot()

        def body() -> MergeAnalysisDone:
            analyzer = self.analyzer_factory(cfg.ai)
            result = workflows.analyze_merge(self.git, analyzer, cfg, source, target)
            return MergeAnalysisDone(ticket, result=result)

        return background("analyze-merge", body, lambda e: MergeAnalysisDone(ticket, error=str(e)))

    def execute_commit(self, config: AppConfig, choice: CommitChoice) -> RunTask:
        cfg = config.snapshot()
        return background(
            "execute-commit",
            lambda: CommitExecuted(message=workflows.execute_commit(self.git, cfg, choice)),
            lambda e: CommitExecuted(error=str(e)),
        )

    def execute_merge(self, choice: MergeChoice) -> RunTask:
        return background(
            "execute-merge",
            lambda: MergeExecuted(message=workflows.execute_merge(self.git, choice)),
            lambda e: MergeExecuted(error=str(e)),
        )

    # -------------------------------------------------------------------------
    # Local dashboard actions
    # -------------------------------------------------------------------------

    def local_action(self, action: actions.ActionRequest, config: AppConfig) -> RunTask:
        remote = config.git.default_remote
        git = self.git

        if isinstance(action, actions.SwitchBranch):
            label = f"Switch to {action.name}"

            def body() -> LocalActionDone:
                git.checkout_branch(action.name)
                return LocalActionDone(label, f"Switched to branch '{action.name}'")
        elif isinstance(action, actions.Fetch):
            label = "Fetch"

            def body() -> LocalActionDone:
                git.fetch(remote)
                return LocalActionDone(label, f"Fetched from {remote}")
        elif isinstance(action, actions.Pull):
            label = "Pull"

            def body() -> LocalActionDone:
                git.pull()
                return LocalActionDone(label, "Pulled latest changes")
        elif isinstance(action, actions.Push):
            label = "Push"

            def body() -> LocalActionDone:
                git.push(action.branch, remote)
                return LocalActionDone(label, f"Pushed '{action.branch}' to {remote}")
        elif isinstance(action, actions.ViewGitHub):
            label = "View on GitHub"

            def body() -> LocalActionDone:
                self.github.view_repo_web()
                return LocalActionDone(label, "Opened in browser")
        else:
            raise ValueError(f"not a local action: {action!r}")

        return background(f"local:{label}", body, lambda e: LocalActionDone(label, error=str(e)))

    def github_info(self) -> RunTask:
        return background(
            "github-info",
            lambda: GitHubInfoLoaded(info=self.github.get_repo_info()),
            lambda e: GitHubInfoLoaded(error=str(e)),
        )

    # -------------------------------------------------------------------------
    # Branch management
    # -------------------------------------------------------------------------

    def load_branch_details(self, config: AppConfig) -> RunTask:
        protected = list(config.git.protected_branches)
        return background(
            "branch-details",
            lambda: BranchListLoaded(branches=self.git.list_branch_details(protected)),
            lambda e: BranchListLoaded(error=str(e)),
        )

    def delete_branch(self, ticket: int, config: AppConfig, name: str, force: bool) -> RunTask:
        cfg = config.snapshot()

        def failed(exc: Exception) -> BranchOpDone:
            return BranchOpDone(ticket, "delete", error=str(exc),
                                not_fully_merged=isinstance(exc, NotFullyMergedError))

        return background(
            "delete-branch",
            lambda: BranchOpDone(ticket, "delete", message=workflows.delete_branch(self.git, cfg, name, force)),
            failed,
        )

    def delete_remote_branch(self, ticket: int, name: str, remote: str, remote_branch: str) -> RunTask:
        return background(
            "delete-remote-branch",
            lambda: BranchOpDone(ticket, "delete-remote",
                                 message=workflows.delete_remote_branch(self.git, name, remote, remote_branch)),
            lambda e: BranchOpDone(ticket, "delete-remote", error=str(e)),
        )

    def rename_branch(self, ticket: int, old: str, new: str) -> RunTask:
        return background(
            "rename-branch",
            lambda: BranchOpDone(ticket, "rename", message=workflows.rename_branch(self.git, old, new)),
            lambda e: BranchOpDone(ticket, "rename", error=str(e)),
        )

    def set_upstream(self, ticket: int, branch: str, upstream: str) -> RunTask:
        return background(
            "set-upstream",
            lambda: BranchOpDone(ticket, "upstream", message=workflows.set_upstream(self.git, branch, upstream)),
            lambda e: BranchOpDone(ticket, "upstream", error=str(e)),
        )

    # -------------------------------------------------------------------------
    # Onboarding and settings
    # -------------------------------------------------------------------------

    def check_repo(self) -> RunTask:
        return background(
            "check-repo",
            lambda: RepoChecked(is_repo=self.git.is_repo()),
            lambda e: RepoChecked(is_repo=False, error=str(e)),
        )

    def init_repo(self) -> RunTask:
        def body() -> RepoChecked:
            self.git.init_repo()
            return RepoChecked(is_repo=True)
        return background("init-repo", body, lambda e: RepoChecked(is_repo=False, error=str(e)))

    def check_github(self, remote: str) -> RunTask:
        def body() -> GitHubChecked:
            available = self.github.is_available()
            authenticated = available and self.github.is_authenticated()
            return GitHubChecked(available, authenticated, self.git.has_remote(remote))
        return background(
            "check-github", body,
            lambda e: GitHubChecked(available=False, authenticated=False, has_remote=False, error=str(e)),
        )

    def create_github_repo(self, options: CreateRepoOptions) -> RunTask:
        return background(
            "create-github-repo",
            lambda: GitHubRepoCreated(url=workflows.create_github_repo(self.github, self.git, options)),
            lambda e: GitHubRepoCreated(error=str(e)),
        )

    def save_config(self, origin: str, config: AppConfig) -> RunTask:
        cfg = config.snapshot()
        return background(
            f"save-config:{origin}",
            lambda: ConfigSaved(origin, error=self.store.save(cfg)),
            lambda e: ConfigSaved(origin, error=str(e)),
        )
