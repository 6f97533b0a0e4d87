from gitmind import workflows
from gitmind.errors import GitError, GitMindError, ValidationError
from gitmind.models import ActionType, CommitChoice, MergeChoice


def test_create_branch_commit_records_parent(git, config):
    result = workflows.execute_commit(
        git, config, CommitChoice(ActionType.CREATE_BRANCH, "feat: x", "feature/new"))

    assert git.called("create_branch") == [("create_branch", "feature/new", "feature/login")]
    assert git.called("commit") == [("commit", "feat: x")]
    assert result == "Committed to 'feature/new'"
    assert git.called("push") == []


def test_auto_push_failure_keeps_the_commit(git, config):
    config.git.auto_push = True
    git.errors["push"] = GitError("git push: fatal: rejected")

    try:
        workflows.execute_commit(git, config, CommitChoice(ActionType.COMMIT_DIRECT, "fix: y"))
    except GitMindError as exc:
        assert str(exc) == "commit successful but push failed: git push: fatal: rejected"
    else:
        raise AssertionError("expected GitMindError")
    assert git.called("commit") == [("commit", "fix: y")]


def test_auto_push_success(git, config):
    config.git.auto_push = True

    result = workflows.execute_commit(git, config, CommitChoice(ActionType.COMMIT_DIRECT, "fix: y"))

    assert result == "Committed to 'feature/login' and pushed to origin"


def test_review_does_not_touch_the_repo(git, config):
    result = workflows.execute_commit(git, config, CommitChoice(ActionType.REVIEW, "wip"))

    assert result == "Changes left for manual review"
    assert git.calls == []


def test_empty_message_is_rejected(git, config):
    try:
        workflows.execute_commit(git, config, CommitChoice(ActionType.COMMIT_DIRECT, "  "))
    except ValidationError:
        pass
    else:
        raise AssertionError("expected ValidationError")


def test_failed_merge_is_aborted(git):
    git.errors["merge"] = GitError("git merge --no-ff: CONFLICT")

    try:
        workflows.execute_merge(git, MergeChoice("feature/x", "main", "regular", "Merge x"))
    except GitError:
        pass
    else:
        raise AssertionError("expected GitError")
    assert git.called("abort_merge") == [("abort_merge",)]
    assert git.branch == "main"


def test_merge_uses_default_message(git):
    result = workflows.execute_merge(git, MergeChoice("feature/x", "main", "squash", ""))

    assert git.called("merge") == [("merge", "feature/x", "squash", "Merge branch 'feature/x' into main")]
    assert result == "abc1234 Successfully merged 'feature/x' into 'main'"


def test_merge_target_prefers_recorded_parent(git, config):
    assert workflows.resolve_merge_target(git, config, "feature/login") == "main"

    git.branches = ["feature/x", "develop"]
    assert workflows.resolve_merge_target(git, config, "feature/x") == "develop"


def test_merge_target_missing(git, config):
    git.branches = ["feature/x", "spike"]

    try:
        workflows.resolve_merge_target(git, config, "feature/x")
    except GitMindError as exc:
        assert str(exc) == "no merge target found; available branches: spike"
    else:
        raise AssertionError("expected GitMindError")


def test_branch_validators():
    for call, message in [
        (lambda: workflows.validate_delete("main", "main", []), "cannot delete currently checked out branch 'main'"),
        (lambda: workflows.validate_delete("develop", "main", ["develop"]), "cannot delete protected branch 'develop'"),
        (lambda: workflows.validate_rename("a", "b", ["b"]), "branch 'b' already exists"),
        (lambda: workflows.validate_upstream(""), "upstream branch is required"),
    ]:
        try:
            call()
        except ValidationError as exc:
            assert str(exc) == message
        else:
            raise AssertionError(f"expected ValidationError: {message}")


def test_analyze_commit_without_changes(git, analyzer, config):
    git.changes = []

    try:
        workflows.analyze_commit(git, analyzer, config)
    except GitMindError as exc:
        assert str(exc) == "no changes to commit"
    else:
        raise AssertionError("expected GitMindError")


def test_analyze_merge_reports_conflicts(git, analyzer, config):
    git.merge_clean = False

    analysis = workflows.analyze_merge(git, analyzer, config)

    assert (analysis.source, analysis.target) == ("feature/login", "main")
    assert not analysis.can_merge
    assert analysis.conflicts == ["app.py"]
    assert analysis.suggested_strategy == "squash"
