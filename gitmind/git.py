import logging
import re
import subprocess
from pathlib import Path

from gitmind.errors import GitError, NotFullyMergedError
from gitmind.models import BranchInfo, CommitInfo, FileChange, RepoStatus

LOG = logging.getLogger(__name__)

GIT_READ_TIMEOUT = 10
GIT_WRITE_TIMEOUT = 30

_FIELD_SEP = "\x1f"
_LOG_FORMAT = "--format=%H%x1f%an%x1f%aI%x1f%s"
_TRACK_RE = re.compile(r"(ahead|behind) (\d+)")


def run_git(args: list[str], cwd: Path, timeout: int = GIT_WRITE_TIMEOUT) -> tuple[bool, str]:
    try:
        result = subprocess.run(
            ["git"] + args,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        if result.returncode == 0:
            return True, result.stdout.rstrip()
        else:
            # On failure, prefer stderr (where git errors go), fall back to stdout
            error = result.stderr.strip() or result.stdout.strip()
            for line in error.split('\n'):
                if line.startswith(('fatal:', 'error:')):
                    return False, line
            lines = [l for l in error.split('\n') if l.strip()]
            return False, lines[-1] if lines else "Unknown error"
    except subprocess.TimeoutExpired:
        return False, f"Command timed out after {timeout}s"
    except OSError as e:
        return False, str(e)


def _parse_commits(output: str) -> list[CommitInfo]:
    commits = []
    for line in output.splitlines():
        parts = line.split(_FIELD_SEP)
        if len(parts) != 4:
            continue
        commits.append(CommitInfo(hash=parts[0], author=parts[1], date=parts[2], message=parts[3]))
    return commits


def _parse_track(track: str) -> tuple[int, int]:
    counts = dict((name, int(n)) for name, n in _TRACK_RE.findall(track))
    return counts.get("ahead", 0), counts.get("behind", 0)


class GitBackend:
    """Git operations for one repository, run through the git CLI."""

    def __init__(self, repo_path: Path, read_timeout: int = GIT_READ_TIMEOUT,
                 write_timeout: int = GIT_WRITE_TIMEOUT) -> None:
        self.repo_path = repo_path
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout

    def _read(self, args: list[str]) -> str:
        ok, output = run_git(args, self.repo_path, self.read_timeout)
        if not ok:
            raise GitError(f"git {' '.join(args[:2])}: {output}")
        return output

    def _write(self, args: list[str]) -> str:
        LOG.info("git %s", " ".join(args))
        ok, output = run_git(args, self.repo_path, self.write_timeout)
        if not ok:
            raise GitError(f"git {' '.join(args[:2])}: {output}")
        return output

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def is_repo(self) -> bool:
        ok, output = run_git(["rev-parse", "--is-inside-work-tree"], self.repo_path, self.read_timeout)
        return ok and output == "true"

    def is_empty(self) -> bool:
        ok, _ = run_git(["rev-parse", "--verify", "HEAD"], self.repo_path, self.read_timeout)
        return not ok

    def current_branch(self) -> str:
        ok, branch = run_git(["symbolic-ref", "--short", "HEAD"], self.repo_path, self.read_timeout)
        if ok and branch:
            return branch
        branch = self._read(["rev-parse", "--abbrev-ref", "HEAD"])
        return "DETACHED" if branch == "HEAD" else branch

    def remote_url(self, remote: str = "origin") -> str:
        ok, url = run_git(["remote", "get-url", remote], self.repo_path, self.read_timeout)
        return url if ok else ""

    def has_remote(self, remote: str = "origin") -> bool:
        return bool(self.remote_url(remote))

    def get_status(self) -> RepoStatus:
        branch = self.current_branch()
        empty = self.is_empty()

        changes: dict[str, FileChange] = {}
        for line in self._read(["status", "--porcelain"]).splitlines():
            if len(line) < 4:
                continue
            path = line[3:]
            if " -> " in path:
                path = path.split(" -> ", 1)[1]
            changes[path] = FileChange(path=path, status=line[:2])

        if not empty:
            ok, numstat = run_git(["diff", "HEAD", "--numstat"], self.repo_path, self.read_timeout)
            if ok:
                for line in numstat.splitlines():
                    parts = line.split("\t")
                    if len(parts) == 3 and parts[2] in changes:
                        change = changes[parts[2]]
                        change.additions = int(parts[0]) if parts[0].isdigit() else 0
                        change.deletions = int(parts[1]) if parts[1].isdigit() else 0

        ahead = behind = 0
        ok, counts = run_git(
            ["rev-list", "--left-right", "--count", "HEAD...@{upstream}"],
            self.repo_path, self.read_timeout,
        )
        if ok and "\t" in counts:
            left, right = counts.split("\t", 1)
            ahead = int(left) if left.isdigit() else 0
            behind = int(right) if right.isdigit() else 0

        return RepoStatus(
            path=self.repo_path,
            branch=branch,
            changes=list(changes.values()),
            remote_url=self.remote_url(),
            ahead=ahead,
            behind=behind,
            is_empty=empty,
        )

    def get_parent_branch(self, branch: str) -> str:
        ok, parent = run_git(["config", "--get", f"branch.{branch}.parent"], self.repo_path, self.read_timeout)
        return parent if ok else ""

    def get_branch_info(self, protected: list[str] | None = None) -> BranchInfo:
        """Describe the checked out branch."""
        name = self.current_branch()
        info = BranchInfo(name=name, is_current=True, is_protected=name in (protected or []))
        info.parent = self.get_parent_branch(name)

        ok, upstream = run_git(
            ["rev-parse", "--abbrev-ref", f"{name}@{{upstream}}"],
            self.repo_path, self.read_timeout,
        )
        if ok:
            info.upstream = upstream
            ok, counts = run_git(
                ["rev-list", "--left-right", "--count", f"{name}...{upstream}"],
                self.repo_path, self.read_timeout,
            )
            if ok and "\t" in counts:
                left, right = counts.split("\t", 1)
                info.ahead = int(left) if left.isdigit() else 0
                info.behind = int(right) if right.isdigit() else 0

        if info.parent:
            info.commit_count = len(self.get_branch_commits(name, info.parent))
        return info

    def list_branches(self) -> list[str]:
        output = self._read(["for-each-ref", "--format=%(refname:short)", "refs/heads"])
        return [line for line in output.splitlines() if line]

    def list_branch_details(self, protected: list[str] | None = None) -> list[BranchInfo]:
        fmt = ("%(HEAD)%1f%(refname:short)%1f%(upstream:short)%1f%(upstream:remotename)%1f"
               "%(upstream:remoteref)%1f%(upstream:track,nobracket)%1f%(contents:subject)")
        output = self._read(["for-each-ref", f"--format={fmt}", "refs/heads"])
        branches = []
        for line in output.splitlines():
            parts = line.split(_FIELD_SEP)
            if len(parts) != 7:
                continue
            head, name, upstream, remote, remote_ref, track, subject = parts
            ahead, behind = _parse_track(track)
            branches.append(BranchInfo(
                name=name,
                upstream=upstream,
                upstream_remote=remote,
                upstream_branch=remote_ref.removeprefix("refs/heads/"),
                ahead=ahead,
                behind=behind,
                is_current=head == "*",
                is_protected=name in (protected or []),
                last_commit=subject,
            ))
        return branches

    def get_log(self, limit: int = 10) -> list[CommitInfo]:
        if self.is_empty():
            return []
        return _parse_commits(self._read(["log", f"-n{limit}", _LOG_FORMAT]))

    def get_branch_commits(self, branch: str, exclude: str) -> list[CommitInfo]:
        """Commits reachable from branch but not from exclude."""
        ok, output = run_git(["log", f"{exclude}..{branch}", _LOG_FORMAT], self.repo_path, self.read_timeout)
        if not ok:
            if "unknown revision" in output or "bad revision" in output:
                return []
            raise GitError(f"git log {exclude}..{branch}: {output}")
        return _parse_commits(output)

    def get_diff(self, staged: bool = False) -> str:
        args = ["diff", "--cached"] if staged else ["diff"]
        return self._read(args)

    def can_merge(self, source: str, target: str) -> tuple[bool, list[str]]:
        """Check for conflicts without touching the working tree."""
        try:
            result = subprocess.run(
                ["git", "merge-tree", "--write-tree", "--name-only", "--no-messages", target, source],
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                timeout=self.read_timeout,
            )
        except subprocess.TimeoutExpired:
            raise GitError(f"merge preview timed out after {self.read_timeout}s")
        if result.returncode == 0:
            return True, []
        if result.returncode == 1:
            # First line is the tree id, the rest are conflicted paths
            lines = [l for l in result.stdout.splitlines() if l.strip()]
            return False, lines[1:]
        raise GitError(f"merge preview failed: {result.stderr.strip()}")

    def short_head(self) -> str:
        return self._read(["rev-parse", "--short", "HEAD"])

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def init_repo(self) -> None:
        self._write(["init"])

    def checkout_branch(self, name: str) -> None:
        self._write(["checkout", name])

    def create_branch(self, name: str, parent: str = "") -> None:
        self._write(["checkout", "-b", name])
        if parent:
            self._write(["config", f"branch.{name}.parent", parent])

    def fetch(self, remote: str = "origin") -> str:
        return self._write(["fetch", remote, "--prune"])

    def pull(self) -> str:
        return self._write(["pull", "--rebase"])

    def push(self, branch: str, remote: str = "origin") -> str:
        return self._write(["push", "-u", remote, branch])

    def stage_all(self) -> None:
        self._write(["add", "-A"])

    def commit(self, message: str) -> str:
        return self._write(["commit", "-m", message])

    def merge(self, source: str, strategy: str, message: str) -> None:
        if strategy == "squash":
            self._write(["merge", "--squash", source])
            self._write(["commit", "-m", message])
        elif strategy == "fast-forward":
            self._write(["merge", "--ff-only", source])
        else:
            self._write(["merge", "--no-ff", "-m", message, source])

    def abort_merge(self) -> None:
        self._write(["merge", "--abort"])

    def delete_branch(self, name: str, force: bool = False) -> None:
        args = ["branch", "-D" if force else "-d", name]
        LOG.info("git %s", " ".join(args))
        ok, output = run_git(args, self.repo_path, self.read_timeout)
        if ok:
            return
        if "not fully merged" in output:
            raise NotFullyMergedError(name, output)
        raise GitError(f"git branch -d: {output}")

    def delete_remote_branch(self, name: str, remote: str = "origin") -> None:
        self._write(["push", remote, "--delete", name])

    def rename_branch(self, old: str, new: str) -> None:
        self._write(["branch", "-m", old, new])

    def set_upstream(self, branch: str, upstream: str) -> None:
        self._write(["branch", f"--set-upstream-to={upstream}", branch])

    def set_remote(self, url: str, remote: str = "origin") -> None:
        if self.has_remote(remote):
            self._write(["remote", "set-url", remote, url])
        else:
            self._write(["remote", "add", remote, url])
