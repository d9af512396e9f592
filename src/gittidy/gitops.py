#!/usr/bin/env python3
"""
gitops - Git plumbing used by gittidy.

Repository checks, local branch enumeration, the origin existence check
and the forced local branch delete all live here so the cleanup and
update modules only deal with decisions.
"""

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple


DEFAULT_PROTECTED = ("main", "master")


# ANSI color codes
class Colors:
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'

    RED = '\033[31m'
    GREEN = '\033[32m'
    YELLOW = '\033[33m'
    BLUE = '\033[34m'
    CYAN = '\033[36m'

    BRIGHT_GREEN = '\033[92m'
    BRIGHT_BLUE = '\033[94m'


class PreconditionFailure(Exception):
    """A repository cannot be processed at all (bad path, no remote, no identity)."""
    pass


@dataclass
class Identity:
    """Who we are in this repository.

    ``name`` is the git ``user.name``; ``author`` is what the review system
    is asked to match pull request authors against.
    """
    name: str
    author: str = "@me"


def run_git(args: list, cwd: Path = None, check: bool = False, timeout: int = 60) -> subprocess.CompletedProcess:
    """Run git command and return result with timeout and error handling."""
    try:
        result = subprocess.run(
            ["git"] + args,
            capture_output=True,
            text=True,
            check=False,
            cwd=cwd,
            timeout=timeout,
            encoding='utf-8',
            errors='replace'
        )

        if check and result.returncode != 0:
            raise subprocess.CalledProcessError(
                result.returncode,
                ["git"] + args,
                result.stdout,
                result.stderr
            )

        return result

    except subprocess.TimeoutExpired:
        raise RuntimeError(f"Git command timed out after {timeout}s: git {' '.join(args)}")
    except subprocess.CalledProcessError:
        raise
    except OSError as e:
        raise RuntimeError(f"Git command failed: git {' '.join(args)}\n{str(e)}")


def is_git_repo(path: Path) -> bool:
    """Check if the given path is a git repository."""
    try:
        result = run_git(["rev-parse", "--git-dir"], cwd=path)
    except RuntimeError:
        return False
    return result.returncode == 0


def get_remote_url(repo_path: Path, remote: str = "origin") -> Optional[str]:
    """Return the configured URL of ``remote`` or None."""
    result = run_git(["config", "--get", f"remote.{remote}.url"], cwd=repo_path)
    url = result.stdout.strip()
    if result.returncode != 0 or not url:
        return None
    return url


def require_repository(repo_path: Path, remote: str = "origin") -> Path:
    """Validate that ``repo_path`` is a git working copy with ``remote`` configured."""
    repo_path = Path(repo_path)
    if not repo_path.is_dir():
        raise PreconditionFailure(f"Repository path '{repo_path}' does not exist")
    if not is_git_repo(repo_path):
        raise PreconditionFailure(f"'{repo_path}' is not a git repository")
    if get_remote_url(repo_path, remote) is None:
        raise PreconditionFailure(f"No remote '{remote}' configured in '{repo_path}'")
    return repo_path


def get_identity(repo_path: Path, author: str = "@me") -> Identity:
    """Read ``user.name`` for the repository; its absence stops processing."""
    result = run_git(["config", "user.name"], cwd=repo_path)
    name = result.stdout.strip()
    if result.returncode != 0 or not name:
        raise PreconditionFailure(
            "Could not determine git user. Please set with: git config user.name 'Your Name'"
        )
    return Identity(name=name, author=author or "@me")


def list_local_branches(repo_path: Path, protected: Iterable[str] = DEFAULT_PROTECTED) -> List[str]:
    """List local branch names in git's ref order, minus the protected names.

    Protected names are matched exactly, so ``maintenance`` is not
    mistaken for ``main``.
    """
    protected = set(protected)
    result = run_git(["for-each-ref", "--format=%(refname)", "refs/heads/"], cwd=repo_path)
    if result.returncode != 0:
        return []

    branches = []
    for line in result.stdout.splitlines():
        ref = line.strip()
        if not ref.startswith("refs/heads/"):
            continue
        name = ref[len("refs/heads/"):]
        if name and name not in protected:
            branches.append(name)
    return branches


def get_current_branch(repo_path: Path) -> Optional[str]:
    """Get the name of the current branch (None on detached HEAD)."""
    result = run_git(["branch", "--show-current"], cwd=repo_path)
    name = result.stdout.strip()
    if result.returncode == 0 and name:
        return name
    return None


def has_local_changes(repo_path: Path) -> bool:
    """True when the working tree or the index differs from HEAD."""
    unstaged = run_git(["diff", "--quiet"], cwd=repo_path)
    staged = run_git(["diff", "--cached", "--quiet"], cwd=repo_path)
    return unstaged.returncode != 0 or staged.returncode != 0


class RemoteOracle:
    """Answers whether a branch still exists on the remote.

    An unreachable remote counts as "does not exist". That is reported
    once per oracle, not once per branch.
    """

    def __init__(self, remote: str = "origin", logger=None):
        self.remote = remote
        self.logger = logger
        self.unavailable = False

    def exists(self, branch: str, repo_path: Path) -> bool:
        ref = f"refs/heads/{branch}"
        try:
            result = run_git(["ls-remote", "--heads", self.remote, ref], cwd=repo_path)
        except RuntimeError as e:
            self._report_unavailable(str(e))
            return False

        if result.returncode != 0:
            self._report_unavailable(result.stderr.strip())
            return False

        for line in result.stdout.splitlines():
            parts = line.split()
            if len(parts) == 2 and parts[1] == ref:
                return True
        return False

    def _report_unavailable(self, detail: str):
        if self.unavailable:
            return
        self.unavailable = True
        message = (f"Remote '{self.remote}' could not be queried; "
                   f"treating branches as absent from it ({detail or 'no details'})")
        if self.logger:
            self.logger.warning(message)
        else:
            print(f"{Colors.YELLOW}⚠️  {message}{Colors.RESET}")


def delete_branch(repo_path: Path, branch: str) -> Tuple[bool, str]:
    """Force-delete a local branch. Returns (success, error message)."""
    try:
        result = run_git(["branch", "-D", branch], cwd=repo_path)
    except RuntimeError as e:
        return False, str(e)

    if result.returncode == 0:
        return True, ""
    return False, result.stderr.strip() or f"git branch -D exited with {result.returncode}"


def discover_repositories(search_path: Path) -> List[Path]:
    """Immediate sub-directories of ``search_path`` that are git working copies."""
    search_path = Path(search_path).expanduser()
    if not search_path.is_dir():
        raise PreconditionFailure(f"Path '{search_path}' does not exist")
    return sorted(
        (p for p in search_path.iterdir() if p.is_dir() and (p / ".git").exists()),
        key=lambda p: p.name
    )
