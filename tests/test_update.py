"""Tests for the main-branch updater."""

import pytest

from gittidy.update import UpdateError, update_all, update_main_branch

from conftest import advance_origin, git, make_branch, make_repo


def head(repo, ref="main"):
    return git(["rev-parse", ref], repo).stdout.strip()


def test_fast_forwards_when_on_main(isolated_git):
    repo, origin = make_repo(isolated_git)
    upstream = advance_origin(isolated_git, origin)

    update_main_branch(repo)

    assert head(repo) == upstream
    assert (repo / "upstream.txt").exists()


def test_moves_main_when_on_feature_branch(isolated_git):
    repo, origin = make_repo(isolated_git)
    make_branch(repo, "feature")
    git(["checkout", "feature"], repo)
    upstream = advance_origin(isolated_git, origin)

    update_main_branch(repo, verbose=True)

    assert head(repo) == upstream
    assert git(["branch", "--show-current"], repo).stdout.strip() == "feature"


def test_refuses_with_local_changes_on_main(isolated_git):
    repo, origin = make_repo(isolated_git)
    advance_origin(isolated_git, origin)
    (repo / "README.md").write_text("edited")

    with pytest.raises(UpdateError, match="Local changes"):
        update_main_branch(repo)


def test_dry_run_changes_nothing(isolated_git):
    repo, origin = make_repo(isolated_git)
    before = head(repo)
    advance_origin(isolated_git, origin)

    update_main_branch(repo, dry_run=True)

    assert head(repo) == before


def test_missing_remote(isolated_git):
    repo, _ = make_repo(isolated_git, with_remote=False)

    with pytest.raises(UpdateError, match="No remote"):
        update_main_branch(repo)


def test_missing_branch_on_remote(isolated_git):
    repo, _ = make_repo(isolated_git)

    with pytest.raises(UpdateError, match="No trunk branch"):
        update_main_branch(repo, branch="trunk")


def test_not_a_repository(isolated_git):
    plain = isolated_git / "plain"
    plain.mkdir()

    with pytest.raises(UpdateError, match="Not a git repository"):
        update_main_branch(plain)


def test_update_all_reports_each_repository(isolated_git):
    good, origin = make_repo(isolated_git, name="good")
    upstream = advance_origin(isolated_git, origin)
    make_repo(isolated_git, name="lonely", with_remote=False)

    report = update_all(isolated_git)

    assert report.successful == ["good"]
    assert list(report.failed) == ["lonely"]
    assert report.total == 2
    assert head(good) == upstream
