#!/usr/bin/env python3
"""
update - Fast-forward local main branches across many repositories.

For each repository directly under a search path:
- on the main branch: pull (fast-forward only), refusing if there are local changes
- on any other branch: move main to origin/main without checking it out
"""

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from gittidy.config import load_config
from gittidy.gitops import (
    Colors, PreconditionFailure, discover_repositories, get_current_branch,
    get_remote_url, has_local_changes, is_git_repo, run_git,
)
from gittidy.log import get_logger


class UpdateError(Exception):
    """The main branch of one repository could not be updated."""
    pass


@dataclass
class UpdateReport:
    successful: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.successful) + len(self.failed)


def _git(args: list, repo_path: Path, error: str):
    try:
        result = run_git(args, cwd=repo_path, timeout=120)
    except RuntimeError as e:
        raise UpdateError(f"{error} ({e})")
    if result.returncode != 0:
        raise UpdateError(error)
    return result


def update_main_branch(repo_path: Path, branch: str = "main", remote: str = "origin",
                       dry_run: bool = False, verbose: bool = False):
    """Bring ``branch`` up to date with ``remote/branch``. Raises UpdateError."""
    repo_path = Path(repo_path)

    if not is_git_repo(repo_path):
        raise UpdateError("Not a git repository")
    if get_remote_url(repo_path, remote) is None:
        raise UpdateError(f"No remote {remote} configured")

    heads = _git(["ls-remote", "--heads", remote, f"refs/heads/{branch}"], repo_path,
                 f"Could not query {remote}")
    if not heads.stdout.strip():
        raise UpdateError(f"No {branch} branch on {remote} (might be 'master' or different name)")

    if dry_run:
        print(f"🔍 [DRY RUN] Would update {branch} branch in: {repo_path.name}")
        return

    if verbose:
        print("📥 Fetching latest changes...")
    _git(["fetch", remote], repo_path, "Failed to fetch from remote")

    current = get_current_branch(repo_path)
    if verbose:
        print(f"📍 Current branch: {current or 'unknown'}")

    if current == branch:
        if verbose:
            print(f"🔄 On {branch} branch, pulling changes...")
        if has_local_changes(repo_path):
            raise UpdateError("Local changes would be overwritten by merge")
        _git(["pull", "--ff-only", remote, branch], repo_path,
             "Failed to pull changes (merge conflict or other error)")
    else:
        if verbose:
            print(f"📝 On feature branch ({current}), updating {branch} branch...")
        _git(["branch", "-f", branch, f"{remote}/{branch}"], repo_path,
             f"Failed to update {branch} branch (might be checked out elsewhere)")


def update_all(search_path: Path, branch: str = "main", remote: str = "origin",
               dry_run: bool = False, verbose: bool = False, logger=None) -> UpdateReport:
    """Update the main branch of every repository directly under ``search_path``."""
    print("🔍 Discovering git repositories...")
    repos = discover_repositories(search_path)
    report = UpdateReport()
    if not repos:
        print(f"❌ No git repositories found in '{search_path}'")
        return report

    print(f"📊 Found {len(repos)} git repositories to process:")
    for repo in repos:
        print(f"   - {repo.name}")
    print()

    total = len(repos)
    compact = total > 1 and not verbose
    for processed, repo in enumerate(repos, 1):
        if compact:
            print(f"Processing {repo.name} ({processed}/{total})... ", end="", flush=True)
        elif verbose:
            print(f"🏗️  Processing repository: {repo.name}")
            print("═" * 60)

        try:
            update_main_branch(repo, branch=branch, remote=remote,
                               dry_run=dry_run, verbose=verbose)
        except UpdateError as e:
            report.failed[repo.name] = str(e)
            if logger:
                logger.error(f"update-main {repo}: {e}")
            if compact:
                print("❌")
            elif verbose:
                print(f"❌ {e}")
            else:
                print()
        else:
            report.successful.append(repo.name)
            if logger and not dry_run:
                logger.info(f"update-main {repo}: {branch} updated")
            if compact:
                print("✅")
            elif verbose:
                print(f"✅ {repo.name} updated successfully")
            else:
                print()

    print()
    print("🎉 Update process complete!")
    print()
    print_report(report)
    return report


def print_report(report: UpdateReport):
    print("📊 SUMMARY")
    print("═" * 60)

    if report.successful:
        print(f"{Colors.GREEN}✅ Successfully updated repositories ({len(report.successful)}):{Colors.RESET}")
        for name in report.successful:
            print(f"   - {name}")
        print()

    if report.failed:
        print(f"{Colors.RED}❌ Failed to update repositories ({len(report.failed)}):{Colors.RESET}")
        for name, message in report.failed.items():
            print(f"   - {name}: {message}")
        print()

    print(f"📈 Total: {report.total} repositories processed")
    print(f"   - Successful: {len(report.successful)}")
    print(f"   - Failed: {len(report.failed)}")


def main_with_args(search_path: Optional[str] = None, branch: Optional[str] = None,
                   dry_run: bool = False, verbose: bool = False) -> int:
    """CLI entry for update-main. Returns the exit code."""
    config = load_config()
    logger = get_logger(config)
    search = Path(search_path or config.get("search_path")).expanduser()
    branch = branch or config.get("main_branch", "main")

    print(f"🔍 Starting {branch} branch update process...")
    print(f"📁 Searching for git repositories in: {search}")
    print()

    try:
        report = update_all(search, branch=branch, remote=config.get("remote", "origin"),
                            dry_run=dry_run, verbose=verbose, logger=logger)
    except PreconditionFailure as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1

    if not report.total or report.failed:
        return 1
    return 0
