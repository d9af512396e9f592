"""Tests for gitops: enumeration, the origin check, identity and deletion."""

import pytest

from gittidy.gitops import (
    PreconditionFailure, RemoteOracle, delete_branch, discover_repositories,
    get_identity, list_local_branches, require_repository,
)

from conftest import RecordingLogger, branch_names, git, make_branch, make_repo


def test_list_local_branches_excludes_protected_names_exactly(isolated_git):
    repo, _ = make_repo(isolated_git)
    for name in ["maintenance", "master", "masterpiece", "feature/login"]:
        git(["branch", name], repo)

    branches = list_local_branches(repo)

    assert branches == ["feature/login", "maintenance", "masterpiece"]


def test_list_local_branches_custom_protected(isolated_git):
    repo, _ = make_repo(isolated_git)
    git(["branch", "develop"], repo)
    git(["branch", "topic"], repo)

    assert list_local_branches(repo, protected=["main", "develop"]) == ["topic"]
    assert list_local_branches(repo, protected=[]) == ["develop", "main", "topic"]


def test_remote_oracle_matches_exact_branch(isolated_git):
    repo, _ = make_repo(isolated_git)
    make_branch(repo, "feature/x-long", push=True)
    make_branch(repo, "local-only")

    oracle = RemoteOracle("origin")

    assert oracle.exists("feature/x-long", repo)
    assert not oracle.exists("feature/x", repo)
    assert not oracle.exists("x-long", repo)
    assert not oracle.exists("local-only", repo)
    assert not oracle.unavailable


def test_remote_oracle_unreachable_counts_as_absent_and_warns_once(isolated_git):
    repo, _ = make_repo(isolated_git, with_remote=False)
    git(["remote", "add", "origin", str(isolated_git / "missing.git")], repo)
    logger = RecordingLogger()

    oracle = RemoteOracle("origin", logger)

    assert not oracle.exists("one", repo)
    assert not oracle.exists("two", repo)
    assert oracle.unavailable
    assert len(logger.warnings) == 1


def test_get_identity_reads_user_name(isolated_git):
    repo, _ = make_repo(isolated_git)

    identity = get_identity(repo, author="octocat")

    assert identity.name == "Test"
    assert identity.author == "octocat"


def test_get_identity_missing_user_is_precondition_failure(isolated_git):
    repo, _ = make_repo(isolated_git)
    git(["config", "--unset", "user.name"], repo)

    with pytest.raises(PreconditionFailure):
        get_identity(repo)


def test_require_repository_checks(isolated_git):
    with pytest.raises(PreconditionFailure, match="does not exist"):
        require_repository(isolated_git / "nope")

    plain = isolated_git / "plain"
    plain.mkdir()
    with pytest.raises(PreconditionFailure, match="not a git repository"):
        require_repository(plain)

    repo, _ = make_repo(isolated_git, with_remote=False)
    with pytest.raises(PreconditionFailure, match="No remote 'origin'"):
        require_repository(repo)


def test_delete_branch_forces_unmerged_branch(isolated_git):
    repo, _ = make_repo(isolated_git)
    make_branch(repo, "squashed-upstream")

    ok, message = delete_branch(repo, "squashed-upstream")

    assert ok
    assert message == ""
    assert "squashed-upstream" not in branch_names(repo)


def test_delete_branch_reports_failure(isolated_git):
    repo, _ = make_repo(isolated_git)
    make_branch(repo, "busy")
    git(["checkout", "busy"], repo)

    ok, message = delete_branch(repo, "busy")

    assert not ok
    assert message
    assert "busy" in branch_names(repo)


def test_discover_repositories(isolated_git):
    make_repo(isolated_git, name="beta")
    make_repo(isolated_git, name="alpha")
    (isolated_git / "not-a-repo").mkdir()

    found = discover_repositories(isolated_git)

    assert [p.name for p in found] == ["alpha", "beta"]


def test_discover_repositories_missing_path(isolated_git):
    with pytest.raises(PreconditionFailure):
        discover_repositories(isolated_git / "missing")
