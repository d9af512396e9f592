#!/usr/bin/env python3
"""
review - Merge evidence lookup against the code-review system.

Answers "was there a merged pull request, authored by me, whose head was
this branch?" using whichever query capability the environment offers:

- the GitHub CLI (``gh pr list``)
- the GitHub REST search API (needs GITHUB_TOKEN or GH_TOKEN)
- nothing, in which case no branch ever has evidence
"""

import os
import re
import json
import shutil
import subprocess
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Callable, Dict, List, NamedTuple, Optional
from urllib.parse import urlparse

import requests

from gittidy.gitops import Identity, get_remote_url


# git@host:owner/name.git and ssh://git@host[:port]/owner/name.git
SSH_URL_RE = re.compile(
    r"^(?:ssh://)?[\w.-]+@(?P<host>[\w.-]+)(?::\d+)?[:/](?P<owner>[^/:\s]+)/(?P<name>[^/\s]+?)\.git$"
)
# https://[user@]host[:port]/owner/name.git
HTTPS_URL_RE = re.compile(
    r"^https?://(?:[^@/\s]+@)?(?P<host>[\w.-]+(?::\d+)?)/(?P<owner>[^/\s]+)/(?P<name>[^/\s]+?)\.git$"
)

GITHUB_HOST = "github.com"


class ResolutionError(Exception):
    """Merge evidence for one branch could not be determined."""
    pass


class RepoRef(NamedTuple):
    host: str
    owner: str
    name: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def gh_repo(self) -> str:
        """Repository argument for ``gh --repo`` (host-qualified off github.com)."""
        if self.host == GITHUB_HOST:
            return self.slug
        return f"{self.host}/{self.slug}"


def parse_remote_url(remote_url: str) -> RepoRef:
    """Split an SSH or HTTPS remote URL into host, owner and repository name."""
    url = (remote_url or "").strip()
    for pattern in (SSH_URL_RE, HTTPS_URL_RE):
        match = pattern.match(url)
        if match:
            return RepoRef(match.group("host"), match.group("owner"), match.group("name"))
    raise ResolutionError(f"Could not determine repository from remote URL: {remote_url}")


def parse_repo_slug(remote_url: str) -> str:
    """Return ``owner/name`` for a remote URL."""
    return parse_remote_url(remote_url).slug


@dataclass
class MergeEvidence:
    """A merged pull request that explains why a branch can go."""
    title: str
    url: str
    number: Optional[int] = None
    merged_at: Optional[str] = None

    @classmethod
    def from_record(cls, record: Dict) -> "MergeEvidence":
        if not isinstance(record, dict):
            raise ResolutionError(f"Malformed pull request record: {record!r}")
        title = record.get("title")
        url = record.get("url")
        if not isinstance(title, str) or not isinstance(url, str) or not url:
            raise ResolutionError(f"Pull request record is missing title/url: {record!r}")
        return cls(
            title=title,
            url=url,
            number=record.get("number"),
            merged_at=record.get("mergedAt"),
        )

    def as_dict(self) -> Dict:
        return {key: value for key, value in asdict(self).items() if value is not None}

    def render(self, indent: str = "") -> List[str]:
        """Key/value lines for the console."""
        lines = []
        if self.number is not None:
            lines.append(f"{indent}number: #{self.number}")
        lines.append(f"{indent}title:  {self.title}")
        lines.append(f"{indent}url:    {self.url}")
        if self.merged_at:
            lines.append(f"{indent}merged: {self.merged_at}")
        return lines


class ReviewQuery:
    """A way of asking the code-review system for merged pull requests.

    Subclasses that can answer set ``available = True``.
    """

    name = "base"
    description = "abstract code-review query"
    available = False

    def find_merged(self, repo: RepoRef, branch: str, author: str) -> Optional[MergeEvidence]:
        raise NotImplementedError


class UnavailableQuery(ReviewQuery):
    """Stands in when neither gh nor an API token is present."""

    name = "none"
    description = "no code-review query tool"
    available = False

    def find_merged(self, repo: RepoRef, branch: str, author: str) -> Optional[MergeEvidence]:
        return None


def run_command(args: List[str], timeout: int = 60) -> subprocess.CompletedProcess:
    """Run a command and return result."""
    return subprocess.run(
        args,
        capture_output=True,
        text=True,
        check=False,
        timeout=timeout,
        encoding='utf-8',
        errors='replace'
    )


class GhCliQuery(ReviewQuery):
    """Merge evidence via ``gh pr list``."""

    name = "gh"
    description = "GitHub CLI (gh)"
    available = True

    def __init__(self, runner: Optional[Callable[[List[str]], subprocess.CompletedProcess]] = None):
        self.runner = runner or run_command

    def find_merged(self, repo: RepoRef, branch: str, author: str) -> Optional[MergeEvidence]:
        args = [
            "gh", "pr", "list",
            "--repo", repo.gh_repo,
            "--head", branch,
            "--state", "merged",
            "--author", author,
            "--json", "title,url,number,mergedAt",
            "--limit", "1",
        ]
        try:
            result = self.runner(args)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ResolutionError(f"gh pr list failed: {e}")

        if result.returncode != 0:
            detail = (result.stderr or "").strip() or f"exit code {result.returncode}"
            raise ResolutionError(f"gh pr list failed: {detail}")

        try:
            data = json.loads(result.stdout or "[]")
        except json.JSONDecodeError:
            raise ResolutionError(f"Malformed response from gh: {result.stdout[:200]!r}")

        if not isinstance(data, list):
            raise ResolutionError(f"Unexpected response from gh: {data!r}")
        if not data:
            return None
        return MergeEvidence.from_record(data[0])


class GitHubApiQuery(ReviewQuery):
    """Merge evidence via the GitHub REST search API."""

    name = "api"
    description = "GitHub REST API"
    available = True

    def __init__(self, token: str, api_url: str = "https://api.github.com",
                 session: Optional[requests.Session] = None, timeout: int = 10):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def api_url_for(self, repo: RepoRef) -> str:
        """API root serving ``repo``: the configured one when it belongs to
        the repository's host, else the Enterprise default for that host."""
        api_host = urlparse(self.api_url).netloc.lower()
        host = repo.host.lower()
        if api_host == host:
            return self.api_url
        if host == "github.com" and api_host == "api.github.com":
            return self.api_url
        return f"https://{repo.host}/api/v3"

    def find_merged(self, repo: RepoRef, branch: str, author: str) -> Optional[MergeEvidence]:
        query = f"repo:{repo.slug} is:pr is:merged head:{branch} author:{author}"
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
        }
        try:
            resp = self.session.get(
                f"{self.api_url_for(repo)}/search/issues",
                params={"q": query, "per_page": 1},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ResolutionError(f"GitHub API request failed: {e}")

        if resp.status_code != 200:
            raise ResolutionError(f"GitHub API returned HTTP {resp.status_code} for {repo.slug}")

        try:
            data = resp.json()
        except ValueError:
            raise ResolutionError("Malformed response from GitHub API")

        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise ResolutionError(f"Unexpected response from GitHub API: {data!r}")
        if not items:
            return None

        item = items[0]
        if not isinstance(item, dict):
            raise ResolutionError(f"Malformed search result: {item!r}")
        pull = item.get("pull_request")
        if not isinstance(pull, dict):
            pull = {}
        return MergeEvidence.from_record({
            "title": item.get("title"),
            "url": item.get("html_url"),
            "number": item.get("number"),
            "mergedAt": pull.get("merged_at") or item.get("closed_at"),
        })


def detect_review_query(backend: str = "auto", api_url: str = "https://api.github.com",
                        env: Optional[Dict[str, str]] = None,
                        which: Callable[[str], Optional[str]] = shutil.which) -> ReviewQuery:
    """Pick the query capability for this run.

    ``backend`` is one of ``auto``, ``gh``, ``api`` or ``none``. A requested
    backend that is not usable here falls back to ``UnavailableQuery``.
    """
    if env is None:
        env = os.environ
    token = env.get("GITHUB_TOKEN") or env.get("GH_TOKEN")
    has_gh = which("gh") is not None

    if backend == "none":
        return UnavailableQuery()
    if backend in ("auto", "gh") and has_gh:
        return GhCliQuery()
    if backend in ("auto", "api") and token:
        return GitHubApiQuery(token, api_url=api_url)
    return UnavailableQuery()


def announce_capability(query: ReviewQuery, logger=None):
    """Say once per run where merge evidence comes from."""
    if query.available:
        message = f"Merge evidence source: {query.description}"
        if logger:
            logger.info(message)
        print(f"🔌 {message}")
        return

    message = ("No code-review query tool available (install gh or set GITHUB_TOKEN); "
               "no branch will be treated as merged")
    if logger:
        logger.warning(message)
    else:
        print(f"⚠️  {message}")


class MergeEvidenceResolver:
    """Looks up merge evidence for branches already gone from the remote."""

    def __init__(self, query: ReviewQuery, remote: str = "origin"):
        self.query = query
        self.remote = remote

    def resolve(self, branch: str, repo_path: Path, identity: Identity) -> Optional[MergeEvidence]:
        remote_url = get_remote_url(repo_path, self.remote)
        if remote_url is None:
            raise ResolutionError(f"No URL configured for remote '{self.remote}'")
        repo = parse_remote_url(remote_url)

        if not self.query.available:
            return None
        return self.query.find_merged(repo, branch, identity.author)
