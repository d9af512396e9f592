"""Shared fixtures: throwaway git repositories with a bare 'origin'."""

import subprocess
import tempfile
from pathlib import Path

import pytest

from gittidy.review import MergeEvidence, ReviewQuery


GITHUB_URL = "https://github.com/acme/widgets.git"


def git(args, cwd):
    """Run git in ``cwd`` and fail the test on error."""
    return subprocess.run(["git"] + args, cwd=cwd, capture_output=True, text=True, check=True)


def commit_file(repo: Path, name: str, content: str, message: str):
    (repo / name).write_text(content)
    git(["add", name], repo)
    git(["commit", "-m", message], repo)


def configure_user(repo: Path):
    git(["config", "user.email", "test@test.com"], repo)
    git(["config", "user.name", "Test"], repo)
    git(["config", "commit.gpgsign", "false"], repo)


def make_repo(root: Path, name: str = "work", remote_url: str = GITHUB_URL,
              with_remote: bool = True):
    """Create ``root/name`` with one commit on main, pushed to a bare origin.

    The origin remote is configured with ``remote_url`` and rewritten to the
    local bare repository through ``url.<path>.insteadOf``, so URL parsing
    sees a GitHub URL while git talks to the filesystem.
    Returns (repo_path, origin_path).
    """
    origin = root / f"{name}-origin.git"
    git(["init", "--bare", "-b", "main", str(origin)], root)

    repo = root / name
    repo.mkdir()
    git(["init", "-b", "main"], repo)
    configure_user(repo)
    commit_file(repo, "README.md", "initial", "Initial")

    if with_remote:
        git(["remote", "add", "origin", remote_url], repo)
        git(["config", f"url.{origin}.insteadOf", remote_url], repo)
        git(["push", "origin", "main"], repo)
    return repo, origin


def make_branch(repo: Path, name: str, push: bool = False):
    """Create a branch with one unique commit and return to main."""
    git(["checkout", "-b", name], repo)
    commit_file(repo, f"{name.replace('/', '_')}.txt", name, f"Work on {name}")
    if push:
        git(["push", "origin", name], repo)
    git(["checkout", "main"], repo)


def advance_origin(root: Path, origin: Path, branch: str = "main") -> str:
    """Push a new commit to ``origin/branch`` from a separate clone; return its sha."""
    clone = Path(tempfile.mkdtemp(dir=root))
    git(["clone", "-b", branch, str(origin), "clone"], clone)
    clone = clone / "clone"
    configure_user(clone)
    commit_file(clone, "upstream.txt", "upstream", "Upstream change")
    git(["push", "origin", branch], clone)
    return git(["rev-parse", "HEAD"], clone).stdout.strip()


def branch_names(repo: Path):
    out = git(["for-each-ref", "--format=%(refname:short)", "refs/heads/"], repo).stdout
    return [line for line in out.splitlines() if line]


class RecordingLogger:
    """Collects log lines instead of writing files."""

    def __init__(self):
        self.infos = []
        self.warnings = []
        self.errors = []

    def info(self, message):
        self.infos.append(message)

    def warning(self, message):
        self.warnings.append(message)

    def error(self, message):
        self.errors.append(message)


class StaticQuery(ReviewQuery):
    """Review query that knows a fixed set of merged branches."""

    name = "static"
    description = "static test query"
    available = True

    def __init__(self, merged=None):
        self.merged = merged or {}
        self.calls = []

    def find_merged(self, repo, branch, author):
        self.calls.append((repo, branch, author))
        if branch in self.merged:
            number = self.merged[branch]
            return MergeEvidence(
                title=f"Merge {branch}",
                url=f"https://github.com/{repo.slug}/pull/{number}",
                number=number,
            )
        return None


@pytest.fixture
def workdir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def isolated_git(monkeypatch, workdir):
    """Keep the developer's global and system git config out of the tests."""
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(workdir / "gitconfig-global"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_TERMINAL_PROMPT", "0")
    return workdir


@pytest.fixture
def recording_logger():
    return RecordingLogger()


@pytest.fixture
def test_config(workdir):
    return {
        "remote": "origin",
        "protected_branches": ["main", "master"],
        "github_author": "@me",
        "review_backend": "none",
        "github_api_url": "https://api.github.com",
        "search_path": str(workdir),
        "main_branch": "main",
        "log_dir": str(workdir / "logs"),
    }
