import subprocess
from pathlib import Path

from gitmind import git as git_module
from gitmind.errors import GitError, NotFullyMergedError
from gitmind.git import GitBackend, _parse_track, run_git


def _fake_run(responses):
    """Answer each git invocation from a {subcommand-prefix: (code, stdout, stderr)} map."""
    calls = []

    def run(cmd, **kwargs):
        calls.append(cmd)
        args = " ".join(cmd[1:])
        for prefix, (code, out, err) in responses.items():
            if args.startswith(prefix):
                return subprocess.CompletedProcess(cmd, code, out, err)
        return subprocess.CompletedProcess(cmd, 0, "", "")

    run.calls = calls
    return run


def test_run_git_prefers_fatal_line(monkeypatch):
    monkeypatch.setattr(git_module.subprocess, "run", _fake_run({
        "push": (1, "", "hint: something\nfatal: no upstream configured\nhint: more"),
    }))

    ok, output = run_git(["push"], Path("."))

    assert not ok
    assert output == "fatal: no upstream configured"


def test_run_git_falls_back_to_last_line(monkeypatch):
    monkeypatch.setattr(git_module.subprocess, "run", _fake_run({
        "merge": (1, "Auto-merging a.py\nAutomatic merge failed\n", ""),
    }))

    ok, output = run_git(["merge", "x"], Path("."))

    assert not ok
    assert output == "Automatic merge failed"


def test_run_git_reports_timeout(monkeypatch):
    def run(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])

    monkeypatch.setattr(git_module.subprocess, "run", run)

    assert run_git(["fetch"], Path("."), timeout=5) == (False, "Command timed out after 5s")


def test_status_keeps_leading_space_of_porcelain_code(monkeypatch):
    monkeypatch.setattr(git_module.subprocess, "run", _fake_run({
        "symbolic-ref": (0, "main\n", ""),
        "status --porcelain": (0, " M app.py\n?? notes.txt\nR  old.py -> new.py\n", ""),
        "diff HEAD --numstat": (0, "3\t1\tapp.py\n-\t-\tlogo.png\n", ""),
        "rev-list": (0, "2\t0\n", ""),
        "remote get-url": (0, "git@github.com:me/demo.git\n", ""),
    }))

    status = GitBackend(Path("/work/demo")).get_status()

    assert status.branch == "main"
    assert [(c.path, c.status) for c in status.changes] == [
        ("app.py", " M"), ("notes.txt", "??"), ("new.py", "R "),
    ]
    assert status.changes[0].additions == 3
    assert status.changes[0].deletions == 1
    assert status.ahead == 2
    assert status.remote_url == "git@github.com:me/demo.git"


def test_delete_branch_not_fully_merged(monkeypatch):
    monkeypatch.setattr(git_module.subprocess, "run", _fake_run({
        "branch -d": (1, "", "error: The branch 'feature/x' is not fully merged.\n"),
    }))

    try:
        GitBackend(Path(".")).delete_branch("feature/x")
    except NotFullyMergedError as exc:
        assert exc.branch == "feature/x"
    else:
        raise AssertionError("expected NotFullyMergedError")


def test_delete_branch_other_failure_is_plain_git_error(monkeypatch):
    monkeypatch.setattr(git_module.subprocess, "run", _fake_run({
        "branch -d": (1, "", "error: branch 'nope' not found.\n"),
    }))

    try:
        GitBackend(Path(".")).delete_branch("nope")
    except NotFullyMergedError:
        raise AssertionError("not an unmerged-branch failure")
    except GitError as exc:
        assert "not found" in str(exc)
    else:
        raise AssertionError("expected GitError")


def test_force_delete_uses_capital_d(monkeypatch):
    run = _fake_run({})
    monkeypatch.setattr(git_module.subprocess, "run", run)

    GitBackend(Path(".")).delete_branch("feature/x", force=True)

    assert run.calls == [["git", "branch", "-D", "feature/x"]]


def test_squash_merge_commits_separately(monkeypatch):
    run = _fake_run({})
    monkeypatch.setattr(git_module.subprocess, "run", run)

    GitBackend(Path(".")).merge("feature/x", "squash", "Add x")

    assert run.calls == [
        ["git", "merge", "--squash", "feature/x"],
        ["git", "commit", "-m", "Add x"],
    ]


def test_can_merge_lists_conflicted_paths(monkeypatch):
    monkeypatch.setattr(git_module.subprocess, "run", _fake_run({
        "merge-tree": (1, "4b825dc\napp.py\nREADME.md\n", ""),
    }))

    assert GitBackend(Path(".")).can_merge("feature/x", "main") == (False, ["app.py", "README.md"])


def test_branch_details_parse_tracking(monkeypatch):
    line = "\x1f".join(["*", "fix", "origin/feature/fix", "origin", "refs/heads/feature/fix", "ahead 2, behind 1", "init"])
    other = "\x1f".join([" ", "feature/x", "", "", "", "", "wip"])
    monkeypatch.setattr(git_module.subprocess, "run", _fake_run({
        "for-each-ref": (0, f"{line}\n{other}\n", ""),
    }))

    fix, feature = GitBackend(Path(".")).list_branch_details(protected=["fix"])

    assert (fix.name, fix.ahead, fix.behind) == ("fix", 2, 1)
    assert fix.is_current and fix.is_protected
    assert fix.remote_counterpart() == ("origin", "feature/fix")
    assert feature.upstream == ""
    assert feature.remote_counterpart() is None
    assert not feature.is_current


def test_parse_track():
    assert _parse_track("") == (0, 0)
    assert _parse_track("behind 4") == (0, 4)
    assert _parse_track("ahead 1, behind 3") == (1, 3)
