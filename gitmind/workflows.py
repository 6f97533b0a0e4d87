"""
Use cases that combine the git, GitHub and AI backends.

Each function performs one blocking unit of work and raises a GitMindError
subclass on failure; they are meant to run inside a background task.
"""

import logging

from gitmind.ai import AIAnalyzer, CommitAnalysisRequest, MergeMessageRequest
from gitmind.config import AppConfig
from gitmind.errors import GitError, GitMindError, ValidationError
from gitmind.git import GitBackend
from gitmind.github import GitHubClient
from gitmind.models import (
    ActionType, CommitAnalysis, CommitChoice, CreateRepoOptions, MergeAnalysis, MergeChoice,
    RepoStatus,
)

LOG = logging.getLogger(__name__)

MERGE_TARGET_CANDIDATES = ["main", "master", "develop", "development"]
RECENT_LOG_LIMIT = 5


# =============================================================================
# Analysis
# =============================================================================

def _untracked_summary(repo: RepoStatus) -> str:
    paths = [c.path for c in repo.changes if c.untracked]
    if not paths:
        return ""
    return "New files to be added:\n" + "\n".join(f"  {p}" for p in paths)


def analyze_commit(git: GitBackend, analyzer: AIAnalyzer, config: AppConfig,
                   user_prompt: str = "") -> CommitAnalysis:
    if not git.is_repo():
        raise GitMindError(f"not a git repository: {git.repo_path}")
    repo = git.get_status()
    if not repo.has_changes:
        raise GitMindError("no changes to commit")
    branch = git.get_branch_info(config.git.protected_branches)

    diff = git.get_diff(staged=True) or git.get_diff(staged=False)
    if not diff:
        diff = _untracked_summary(repo)

    recent = []
    if branch.parent:
        recent = git.get_branch_commits(branch.name, branch.parent)[:RECENT_LOG_LIMIT]
    if not recent:
        recent = git.get_log(RECENT_LOG_LIMIT)

    decision = analyzer.analyze_commit(CommitAnalysisRequest(
        repo=repo,
        branch=branch,
        diff=diff,
        recent_log=[c.message for c in recent],
        user_prompt=user_prompt,
        conventional=config.uses_conventional_commits,
    ))
    return CommitAnalysis(repo=repo, branch=branch, decision=decision, diff=diff, model=analyzer.model)


def resolve_merge_target(git: GitBackend, config: AppConfig, source: str) -> str:
    branches = git.list_branches()
    parent = git.get_parent_branch(source)
    if parent and parent in branches:
        return parent
    candidates = [config.git.main_branch] + MERGE_TARGET_CANDIDATES
    for name in candidates:
        if name != source and name in branches:
            return name
    others = [b for b in branches if b != source]
    if not others:
        raise GitMindError("no other branches available to merge into")
    raise GitMindError(f"no merge target found; available branches: {', '.join(others)}")


def analyze_merge(git: GitBackend, analyzer: AIAnalyzer, config: AppConfig,
                  source: str = "", target: str = "") -> MergeAnalysis:
    if not git.is_repo():
        raise GitMindError(f"not a git repository: {git.repo_path}")
    source = source or git.current_branch()
    target = target or resolve_merge_target(git, config, source)
    if source == target:
        raise GitMindError("cannot merge branch into itself")
    if target not in git.list_branches():
        raise GitMindError(f"target branch '{target}' does not exist")

    commits = git.get_branch_commits(source, target)
    if not commits:
        raise GitMindError(f"no commits to merge (branch '{source}' is up to date with '{target}')")
    can_merge, conflicts = git.can_merge(source, target)

    suggestion = analyzer.suggest_merge(MergeMessageRequest(
        source=source,
        target=target,
        commits=[c.message for c in commits],
        can_merge=can_merge,
    ))
    return MergeAnalysis(
        source=source,
        target=target,
        commits=commits,
        can_merge=can_merge,
        conflicts=conflicts,
        suggested_strategy=suggestion.strategy,
        merge_message=suggestion.message,
        reasoning=suggestion.reasoning,
    )


# =============================================================================
# Execution
# =============================================================================

def execute_commit(git: GitBackend, config: AppConfig, choice: CommitChoice) -> str:
    if not choice.message.strip():
        raise ValidationError("commit message is required")

    if choice.action == ActionType.REVIEW:
        return "Changes left for manual review"

    branch = git.current_branch()
    if choice.action == ActionType.CREATE_BRANCH:
        if not choice.branch_name.strip():
            raise ValidationError("branch name is required")
        parent = "" if git.is_empty() else branch
        git.create_branch(choice.branch_name, parent)
        branch = choice.branch_name
    elif choice.action != ActionType.COMMIT_DIRECT:
        raise ValidationError(f"action '{choice.action.value}' cannot be executed from here")

    git.stage_all()
    git.commit(choice.message)
    result = f"Committed to '{branch}'"

    if config.git.auto_push and git.has_remote(config.git.default_remote):
        try:
            git.push(branch, config.git.default_remote)
        except GitError as exc:
            raise GitMindError(f"commit successful but push failed: {exc}") from exc
        result += f" and pushed to {config.git.default_remote}"
    return result


def execute_merge(git: GitBackend, choice: MergeChoice) -> str:
    if not choice.source or not choice.target:
        raise ValidationError("source and target branches are required")
    if choice.source == choice.target:
        raise ValidationError("cannot merge branch into itself")

    message = choice.message.strip() or f"Merge branch '{choice.source}' into {choice.target}"
    git.checkout_branch(choice.target)
    try:
        git.merge(choice.source, choice.strategy or "regular", message)
    except GitError:
        try:
            git.abort_merge()
        except GitError as abort_exc:
            LOG.warning("merge --abort failed: %s", abort_exc)
        raise
    return f"{git.short_head()} Successfully merged '{choice.source}' into '{choice.target}'"


# =============================================================================
# Branch management
# =============================================================================

def validate_delete(name: str, current: str, protected: list[str]) -> None:
    if not name:
        raise ValidationError("branch name is required")
    if name == current:
        raise ValidationError(f"cannot delete currently checked out branch '{name}'")
    if name in protected:
        raise ValidationError(f"cannot delete protected branch '{name}'")


def validate_rename(old: str, new: str, existing: list[str]) -> None:
    if not old or not new:
        raise ValidationError("both old and new branch names are required")
    if old == new:
        raise ValidationError("new branch name must be different from old name")
    if new in existing:
        raise ValidationError(f"branch '{new}' already exists")


def validate_upstream(upstream: str) -> None:
    if not upstream:
        raise ValidationError("upstream branch is required")


def delete_branch(git: GitBackend, config: AppConfig, name: str, force: bool = False) -> str:
    validate_delete(name, git.current_branch(), config.git.protected_branches)
    git.delete_branch(name, force=force)
    return f"Local branch '{name}' deleted successfully"


def delete_remote_branch(git: GitBackend, name: str, remote: str, remote_branch: str) -> str:
    """Delete remote_branch on remote, the tracked counterpart of local branch name."""
    try:
        git.delete_remote_branch(remote_branch, remote)
    except GitError as exc:
        raise GitMindError(f"Local branch deleted, but remote deletion failed: {exc}") from exc
    if remote_branch == name:
        return f"Branch '{name}' deleted locally and remotely"
    return f"Branch '{name}' deleted locally and '{remote}/{remote_branch}' remotely"


def rename_branch(git: GitBackend, old: str, new: str) -> str:
    validate_rename(old, new, git.list_branches())
    git.rename_branch(old, new)
    return f"Branch '{old}' renamed to '{new}'"


def set_upstream(git: GitBackend, branch: str, upstream: str) -> str:
    validate_upstream(upstream)
    git.set_upstream(branch, upstream)
    return f"Branch '{branch}' now tracks '{upstream}'"


# =============================================================================
# GitHub
# =============================================================================

def create_github_repo(github: GitHubClient, git: GitBackend, options: CreateRepoOptions) -> str:
    """Create the repository on GitHub and point origin at it. Returns the remote URL."""
    if not options.name.strip():
        raise ValidationError("repository name is required")
    user = github.get_current_user()
    LOG.info("creating GitHub repository %s/%s", user, options.name)
    url = github.create_repository(options)
    git.set_remote(url)
    return url
