"""
Exception types raised by the gitmind backends.

Backends raise these; the task boundary in ``gitmind.tasks`` turns them into
display strings so the interface never sees a raw exception.
"""

from __future__ import annotations


class GitMindError(Exception):
    """Base class for all gitmind specific errors."""


class GitError(GitMindError):
    """Raised when a git command fails."""


class NotFullyMergedError(GitError):
    """Raised when deleting a branch that still holds unmerged commits."""

    def __init__(self, branch: str, detail: str = "") -> None:
        self.branch = branch
        message = f"branch '{branch}' is not fully merged"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class AIError(GitMindError):
    """Raised when the AI provider cannot produce an analysis."""


class GitHubError(GitMindError):
    """Raised when a gh CLI call fails."""


class ConfigError(GitMindError):
    """Raised when the configuration is unreadable or invalid."""


class ValidationError(GitMindError):
    """Raised when user input is rejected before any backend call."""
