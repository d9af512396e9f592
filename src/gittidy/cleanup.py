#!/usr/bin/env python3
"""
cleanup - Delete local branches whose pull requests have merged.

A local branch is a deletion candidate when it is gone from origin AND
a merged pull request authored by us had it as its head. Candidates are
then listed, deleted all at once, or confirmed one by one.
"""

import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from gittidy.config import load_config
from gittidy.gitops import (
    Colors, Identity, PreconditionFailure, RemoteOracle,
    delete_branch, discover_repositories, get_identity,
    list_local_branches, require_repository,
)
from gittidy.log import get_logger
from gittidy.review import (
    MergeEvidence, MergeEvidenceResolver, ResolutionError, ReviewQuery,
    announce_capability, detect_review_query,
)


class Mode(Enum):
    LIST = "list"
    FORCE = "force"
    INTERACTIVE = "interactive"


class Response(Enum):
    DELETE = "delete"
    DECLINE = "decline"
    SKIP_ALL = "skip-all"


REASON_ON_REMOTE = "exists on origin"
REASON_NO_EVIDENCE = "unmerged or different author"
REASON_ERROR = "resolution error"


@dataclass
class Candidate:
    branch: str
    evidence: MergeEvidence


@dataclass
class BranchError:
    branch: str
    message: str


@dataclass
class Classification:
    candidates: List[Candidate] = field(default_factory=list)
    retained: List[Tuple[str, str]] = field(default_factory=list)
    errors: List[BranchError] = field(default_factory=list)


@dataclass
class RunOutcome:
    """What happened to the candidates of one repository."""
    repository: Path
    mode: Mode
    deleted: int = 0
    skipped: int = 0
    failed: int = 0
    pending: List[Candidate] = field(default_factory=list)
    declined: List[str] = field(default_factory=list)
    failures: List[Tuple[str, str]] = field(default_factory=list)
    errors: List[BranchError] = field(default_factory=list)


@dataclass
class MultiRunReport:
    outcomes: List[RunOutcome] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def total_deleted(self) -> int:
        return sum(o.deleted for o in self.outcomes)

    @property
    def total_skipped(self) -> int:
        return sum(o.skipped for o in self.outcomes)

    @property
    def total_failed(self) -> int:
        return sum(o.failed for o in self.outcomes)


Executor = Callable[[Path, str], Tuple[bool, str]]
Ask = Callable[[Candidate], Optional[Response]]


def classify(branches: Sequence[str], repo_path: Path, identity: Identity,
             oracle: RemoteOracle, resolver: MergeEvidenceResolver) -> Classification:
    """Split local branches into deletion candidates and retained branches.

    The resolver is only consulted for branches the oracle says are gone
    from origin. A resolver or git failure is recorded against its branch and the
    next branch is checked as usual.
    """
    result = Classification()

    for branch in branches:
        print(f"🔍 Checking branch: {branch}")

        if oracle.exists(branch, repo_path):
            print("   ⏭️  Branch exists on origin - keeping")
            result.retained.append((branch, REASON_ON_REMOTE))
            print()
            continue

        print("   👀 Branch doesn't exist on origin - checking for merged PR")
        try:
            evidence = resolver.resolve(branch, repo_path, identity)
        except (ResolutionError, RuntimeError) as e:
            print(f"   {Colors.RED}❌ Could not check for merged PR: {e}{Colors.RESET}")
            result.errors.append(BranchError(branch, str(e)))
            result.retained.append((branch, REASON_ERROR))
            print()
            continue

        if evidence is not None:
            print(f"   {Colors.GREEN}✅ Found merged PR - CANDIDATE FOR DELETION{Colors.RESET}")
            result.candidates.append(Candidate(branch, evidence))
        else:
            print("   ⚠️  No merged PR found - keeping branch (may be unmerged or different author)")
            result.retained.append((branch, REASON_NO_EVIDENCE))
        print()

    return result


def _delete(candidate: Candidate, repo_path: Path, executor: Executor,
            outcome: RunOutcome, logger=None):
    print(f"🗑️  Deleting merged branch: {candidate.branch}")
    print(f"   📝 Associated PR: {candidate.evidence.title} ({candidate.evidence.url})")
    ok, message = executor(repo_path, candidate.branch)
    if ok:
        outcome.deleted += 1
        if logger:
            logger.info(f"Deleted branch '{candidate.branch}' in {repo_path} "
                        f"(PR: {candidate.evidence.url})")
    else:
        outcome.failed += 1
        outcome.failures.append((candidate.branch, message))
        print(f"   {Colors.RED}✗ Failed to delete '{candidate.branch}': {message}{Colors.RESET}")
        if logger:
            logger.error(f"Failed to delete branch '{candidate.branch}' in {repo_path}: {message}")


def dispose(candidates: Sequence[Candidate], mode: Mode, repo_path: Path,
            executor: Executor = delete_branch, ask: Optional[Ask] = None,
            logger=None) -> RunOutcome:
    """Carry out (or hold back) the deletion of each candidate according to ``mode``."""
    outcome = RunOutcome(repository=Path(repo_path), mode=mode)

    if mode is Mode.LIST:
        outcome.pending = list(candidates)
        return outcome

    if not candidates:
        return outcome

    if mode is Mode.FORCE:
        print(f"🚀 Force mode enabled - deleting all {len(candidates)} branches...")
        print()
        for candidate in candidates:
            _delete(candidate, repo_path, executor, outcome, logger)
        return outcome

    if ask is None:
        ask = prompt_for_disposition

    print("🤔 Interactive mode - confirm each deletion:")
    print()
    total = len(candidates)
    for index, candidate in enumerate(candidates):
        response = None
        while response is None:
            response = ask(candidate)

        if response is Response.DELETE:
            _delete(candidate, repo_path, executor, outcome, logger)
        elif response is Response.DECLINE:
            print(f"   ⏭️  Skipping: {candidate.branch}")
            outcome.declined.append(candidate.branch)
        else:
            print("   ⏭️  Skipping all remaining branches...")
            outcome.skipped += total - index
            break
        print()

    return outcome


def safe_input(prompt: str = "") -> Optional[str]:
    """input() that returns None on Ctrl+C or end of input."""
    try:
        return input(prompt)
    except (KeyboardInterrupt, EOFError):
        print()
        return None


ANSWERS = {
    "y": Response.DELETE,
    "yes": Response.DELETE,
    "n": Response.DECLINE,
    "no": Response.DECLINE,
    "s": Response.SKIP_ALL,
    "skip": Response.SKIP_ALL,
}


def prompt_for_disposition(candidate: Candidate,
                           input_func: Callable[[str], Optional[str]] = safe_input) -> Optional[Response]:
    """Ask the operator about one candidate. None means "ask again"."""
    print(f"Branch: {Colors.CYAN}{candidate.branch}{Colors.RESET}")
    print("PR:")
    for line in candidate.evidence.render(indent="   "):
        print(line)
    print()

    reply = input_func("Delete this branch? (y/n/s=skip all remaining): ")
    if reply is None:
        return Response.SKIP_ALL

    response = ANSWERS.get(reply.strip().lower())
    if response is None:
        print("   ❓ Please enter y, n, or s")
    return response


def print_candidates(candidates: Sequence[Candidate]):
    if not candidates:
        print("🎉 No branches match the deletion criteria!")
        print("📋 All branches are either:")
        print("   - Still exist on origin (not merged yet)")
        print("   - Don't have associated merged PRs")
        return

    print(f"📋 Branches that match deletion criteria ({len(candidates)} total):")
    print()
    for i, candidate in enumerate(candidates, 1):
        print(f"{i}. {Colors.BOLD}{candidate.branch}{Colors.RESET}")
        for line in candidate.evidence.render(indent="   "):
            print(line)
        print()


def print_summary(outcome: RunOutcome):
    if outcome.mode is Mode.LIST:
        print("📊 Summary:")
        print(f"   - Branches that would be deleted: {len(outcome.pending)}")
        print("   - Use 'gittidy cleanup' to delete them interactively")
        print("   - Use 'gittidy cleanup -f' to delete them all at once")
    else:
        label = "Force" if outcome.mode is Mode.FORCE else "Interactive"
        print(f"🎉 {label} cleanup complete!")
        print("📊 Summary:")
        print(f"   - Branches deleted: {outcome.deleted}")
        if outcome.mode is Mode.INTERACTIVE:
            print(f"   - Branches skipped: {outcome.skipped}")
        print(f"   - Branches failed:  {outcome.failed}")
        for branch, message in outcome.failures:
            print(f"     {Colors.RED}✗ {branch}: {message}{Colors.RESET}")

    if outcome.errors:
        print()
        print(f"{Colors.YELLOW}⚠️  Branches that could not be checked ({len(outcome.errors)}):{Colors.RESET}")
        for error in outcome.errors:
            print(f"   - {error.branch}: {error.message}")


def print_remaining(repo_path: Path, protected: Sequence[str]):
    print()
    print("📋 Remaining branches:")
    remaining = list_local_branches(repo_path, protected)
    if remaining:
        for branch in remaining:
            print(f"- {branch}")
    else:
        print("   (none)")


def run_cleanup(repo_path: Path, mode: Mode, config: Optional[dict] = None,
                query: Optional[ReviewQuery] = None, ask: Optional[Ask] = None,
                executor: Executor = delete_branch, logger=None) -> RunOutcome:
    """Classify and dispose of the local branches of one repository.

    Raises PreconditionFailure when the repository cannot be processed.
    When ``query`` is not given it is detected here and announced.
    """
    if config is None:
        config = load_config()
    if logger is None:
        logger = get_logger(config)
    remote = config.get("remote", "origin")
    protected = config.get("protected_branches", ["main", "master"])

    repo_path = require_repository(Path(repo_path), remote)
    identity = get_identity(repo_path, config.get("github_author", "@me"))

    print(f"📁 Working in repository: {repo_path}")
    print(f"👤 Checking for user: {identity.name}")
    print()
    logger.info(f"Cleanup ({mode.value}) started in {repo_path} as {identity.name}")

    branches = list_local_branches(repo_path, protected)
    if not branches:
        print("📋 No local branches found to check.")
        return RunOutcome(repository=repo_path, mode=mode)

    print("📋 Local branches found:")
    for branch in branches:
        print(f"   {branch}")
    print()

    if query is None:
        query = detect_review_query(
            config.get("review_backend", "auto"),
            api_url=config.get("github_api_url", "https://api.github.com"),
        )
        announce_capability(query, logger)
        print()

    print("🔍 Identifying branches that match deletion criteria...")
    print()
    oracle = RemoteOracle(remote, logger)
    resolver = MergeEvidenceResolver(query, remote)
    classification = classify(branches, repo_path, identity, oracle, resolver)
    for error in classification.errors:
        logger.error(f"{repo_path}: could not resolve merge evidence for '{error.branch}': {error.message}")

    print_candidates(classification.candidates)

    outcome = dispose(classification.candidates, mode, repo_path,
                      executor=executor, ask=ask, logger=logger)
    outcome.errors = classification.errors

    if classification.candidates or outcome.errors:
        print()
        print_summary(outcome)
    if mode is not Mode.LIST and classification.candidates:
        print_remaining(repo_path, protected)

    logger.info(f"Cleanup finished in {repo_path}: deleted={outcome.deleted} "
                f"skipped={outcome.skipped} failed={outcome.failed}")
    return outcome


def cleanup_all(search_path: Path, mode: Mode, config: Optional[dict] = None,
                query: Optional[ReviewQuery] = None, ask: Optional[Ask] = None,
                executor: Executor = delete_branch, logger=None) -> MultiRunReport:
    """Run cleanup for every repository directly under ``search_path``.

    A repository that fails its preconditions is recorded and skipped;
    the others are processed as usual.
    """
    if config is None:
        config = load_config()
    if logger is None:
        logger = get_logger(config)

    repos = discover_repositories(search_path)
    report = MultiRunReport()
    if not repos:
        print(f"❌ No git repositories found in '{search_path}'")
        return report

    print(f"📊 Found {len(repos)} git repositories to process:")
    for repo in repos:
        print(f"   - {repo.name}")
    print()

    if query is None:
        query = detect_review_query(
            config.get("review_backend", "auto"),
            api_url=config.get("github_api_url", "https://api.github.com"),
        )
        announce_capability(query, logger)
        print()

    for repo in repos:
        print(f"{Colors.BOLD}{'═' * 60}{Colors.RESET}")
        print(f"{Colors.BOLD}🏗️  {repo.name}{Colors.RESET}")
        print(f"{Colors.BOLD}{'═' * 60}{Colors.RESET}")
        try:
            outcome = run_cleanup(repo, mode, config=config, query=query, ask=ask,
                                  executor=executor, logger=logger)
        except PreconditionFailure as e:
            print(f"{Colors.RED}❌ {e}{Colors.RESET}")
            logger.error(f"Skipping {repo}: {e}")
            report.failures[repo.name] = str(e)
        else:
            report.outcomes.append(outcome)
        print()

    print_report(report, mode)
    return report


def print_report(report: MultiRunReport, mode: Mode):
    print("📊 SUMMARY")
    print("═" * 60)
    for outcome in report.outcomes:
        name = outcome.repository.name
        if mode is Mode.LIST:
            print(f"   - {name}: {len(outcome.pending)} would be deleted")
        else:
            print(f"   - {name}: {outcome.deleted} deleted, "
                  f"{outcome.skipped} skipped, {outcome.failed} failed")
    if report.failures:
        print()
        print(f"❌ Repositories not processed ({len(report.failures)}):")
        for name, message in report.failures.items():
            print(f"   - {name}: {message}")
    print()
    print(f"📈 Total: {len(report.outcomes) + len(report.failures)} repositories")
    if mode is not Mode.LIST:
        print(f"   - Deleted: {report.total_deleted}")
        print(f"   - Skipped: {report.total_skipped}")
        print(f"   - Failed:  {report.total_failed}")


def main_with_args(repo_path: Path, mode: Mode) -> int:
    """CLI entry for a single repository. Returns the exit code."""
    print("🔍 Starting branch cleanup process...")
    print()
    try:
        outcome = run_cleanup(repo_path, mode)
    except PreconditionFailure as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1
    return 1 if outcome.failed else 0


def main_all(search_path: Path, mode: Mode) -> int:
    """CLI entry for every repository under a directory. Returns the exit code."""
    print("🔍 Starting branch cleanup process...")
    print(f"📁 Searching for git repositories in: {search_path}")
    print()
    try:
        report = cleanup_all(search_path, mode)
    except PreconditionFailure as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1
    return 1 if report.failures or report.total_failed else 0
