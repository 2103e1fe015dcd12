"""
Concurrent aggregation of the PRs that concern the viewer.

Pipeline:
1. Direct relevance over the listed PRs (sequential, no I/O)
2. Optional review-comment scan: one lookup per listed PR
3. Diff stats: one lookup per relevant PR
4. Join and order, most recently updated first

Each fan-out stage runs its lookups as asyncio tasks behind a semaphore and
merges results on the coordinating coroutine as they complete. Merging is
key insertion, so completion order never affects the outcome. A stage is
fail-fast: the first failed lookup cancels the rest and nothing from that
stage is returned.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .github import Comment, FileStat, GitHubAPIError, GitHubClient, PullRequest
from .relevance import PRKey, comment_mentions, is_relevant


logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 8

# Sort key for PRs without an updated_at: older than any real timestamp
_UNKNOWN_TIME = datetime.min.replace(tzinfo=timezone.utc)


class LookupFailure(Exception):
    """A per-PR lookup failed; the whole stage is aborted."""
    def __init__(self, stage: str, number: int, cause: Exception):
        super().__init__(f"{stage} lookup for PR #{number} failed: {cause}")
        self.stage = stage
        self.number = number
        self.cause = cause


class IdentityInvariantError(RuntimeError):
    """A lookup reported a PR outside the set its stage was seeded from.

    Indicates a bug, not a user-facing condition.
    """


class TaskJoinError(RuntimeError):
    """A lookup task was cancelled or crashed instead of completing."""


@dataclass(frozen=True)
class DiffStat:
    """Added and removed line counts of one PR."""
    additions: int = 0
    deletions: int = 0

    def __post_init__(self) -> None:
        if self.additions < 0 or self.deletions < 0:
            raise ValueError(f"Line counts must be non-negative: +{self.additions}/-{self.deletions}")

    def __add__(self, other: "DiffStat") -> "DiffStat":
        if not isinstance(other, DiffStat):
            return NotImplemented
        return DiffStat(self.additions + other.additions, self.deletions + other.deletions)

    @classmethod
    def total(cls, files: Iterable[FileStat]) -> "DiffStat":
        """Sum the line counts of a PR's changed files."""
        return sum((cls(f.additions, f.deletions) for f in files), cls())


class RelevantSet:
    """PRs that concern the viewer, deduplicated by PRKey.

    The first PR inserted for a number is kept; later duplicates are ignored.
    Once frozen, further insertion is an error.
    """

    def __init__(self, prs: Iterable[PullRequest] = ()):
        self._items: dict[PRKey, PullRequest] = {}
        self.frozen = False
        self.update(prs)

    def add(self, pr: PullRequest) -> None:
        if self.frozen:
            raise RuntimeError("RelevantSet is frozen")
        self._items.setdefault(PRKey.of(pr), pr)

    def update(self, prs: Iterable[PullRequest]) -> None:
        for pr in prs:
            self.add(pr)

    def freeze(self) -> None:
        self.frozen = True

    def keys(self) -> Iterable[PRKey]:
        return self._items.keys()

    def get(self, key: PRKey) -> PullRequest | None:
        return self._items.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __iter__(self) -> Iterator[PullRequest]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        numbers = sorted(key.number for key in self._items)
        return f"RelevantSet({numbers})"


@dataclass
class ResultRow:
    """One PR with its diff stat, ready for rendering."""
    pr: PullRequest
    stat: DiffStat


Lookup = Callable[[int], Any]


async def _call(lookup: Lookup, number: int) -> Any:
    """Run a lookup; blocking callables go to a worker thread."""
    if inspect.iscoroutinefunction(lookup):
        return await lookup(number)
    maybe = await asyncio.to_thread(lookup, number)
    # Callable objects with an async __call__ hand back a coroutine
    if asyncio.iscoroutine(maybe):
        return await maybe
    return maybe


async def _fan_out(
    stage: str,
    keys: Iterable[PRKey],
    lookup: Lookup,
    on_result: Callable[[PRKey, Any], None],
    max_concurrency: int,
    transform: Callable[[Any], Any] | None = None,
) -> None:
    """
    Run one lookup task per key and feed each result to on_result.

    on_result is only ever called from this coroutine, one completion at a
    time. The first failure cancels every pending task and is raised.
    """
    semaphore = asyncio.Semaphore(max(max_concurrency, 1))

    async def run_one(key: PRKey) -> tuple[PRKey, Any]:
        async with semaphore:
            try:
                result = await _call(lookup, key.number)
            except GitHubAPIError as e:
                raise LookupFailure(stage, key.number, e) from e
        if transform is not None:
            result = transform(result)
        return key, result

    tasks = [asyncio.create_task(run_one(key)) for key in keys]
    logger.debug("Started %d %s lookups (max %d concurrent)", len(tasks), stage, max_concurrency)

    pending = set(tasks)
    try:
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                key, result = _join(stage, task)
                logger.debug("%s lookup for PR #%d finished", stage, key.number)
                on_result(key, result)
    finally:
        if pending:
            logger.debug("Abandoning %d in-flight %s lookups", len(pending), stage)
            for task in pending:
                task.cancel()
        # Reap every task so no exception goes unretrieved
        await asyncio.gather(*tasks, return_exceptions=True)


def _join(stage: str, task: asyncio.Task) -> tuple[PRKey, Any]:
    if task.cancelled():
        raise TaskJoinError(f"{stage} lookup task was cancelled")
    exc = task.exception()
    if exc is None:
        return task.result()
    if isinstance(exc, LookupFailure):
        raise exc
    raise TaskJoinError(f"{stage} lookup task crashed: {exc!r}") from exc


async def find_comment_mentions(
    prs: Sequence[PullRequest],
    fetch_comments: Callable[[int], list[Comment]],
    login: str,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> RelevantSet:
    """
    Find the PRs whose review comments mention login or were written by login.

    Every listed PR is scanned, including ones already known to be relevant.

    Raises:
        LookupFailure: a comment lookup failed; no PRs are returned
    """
    seed: dict[PRKey, PullRequest] = {}
    for pr in prs:
        # First listing of a number wins, as in RelevantSet
        seed.setdefault(PRKey.of(pr), pr)
    mentioned = RelevantSet()

    def merge(key: PRKey, comments: list[Comment]) -> None:
        pr = seed.get(key)
        if pr is None:
            raise IdentityInvariantError(f"Comments returned for unknown PR #{key.number}")
        if comment_mentions(comments, login):
            mentioned.add(pr)

    await _fan_out("comments", seed.keys(), fetch_comments, merge, max_concurrency)
    return mentioned


async def collect_diff_stats(
    relevant: RelevantSet,
    fetch_files: Callable[[int], list[FileStat]],
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> dict[PRKey, DiffStat]:
    """
    Sum additions and deletions over the changed files of every relevant PR.

    Freezes the relevant set; each PR's entry is written exactly once.

    Raises:
        LookupFailure: a file lookup failed; no stats are returned
    """
    relevant.freeze()
    stats: dict[PRKey, DiffStat] = {}

    def merge(key: PRKey, stat: DiffStat) -> None:
        if key not in relevant:
            raise IdentityInvariantError(f"Diff stat returned for unknown PR #{key.number}")
        if key in stats:
            raise IdentityInvariantError(f"Diff stat for PR #{key.number} reported twice")
        stats[key] = stat

    await _fan_out(
        "files", list(relevant.keys()), fetch_files, merge, max_concurrency,
        transform=DiffStat.total,
    )
    return stats


def order_results(relevant: Iterable[PullRequest], stats: Mapping[PRKey, DiffStat]) -> list[ResultRow]:
    """
    Join PRs with their diff stats and order them for display.

    Most recently updated first. PRs without a timestamp go last, and ties
    are broken by ascending PR number. Missing stats read as +0/-0.
    """
    rows = [ResultRow(pr, stats.get(PRKey.of(pr), DiffStat())) for pr in relevant]
    # Two stable passes: number ascending, then updated_at descending
    rows.sort(key=lambda row: row.pr.number)
    rows.sort(key=lambda row: row.pr.updated_at or _UNKNOWN_TIME, reverse=True)
    return rows


async def find_concerning_prs(
    client: GitHubClient,
    owner: str,
    repo: str,
    *,
    state: str = "open",
    last: int = 50,
    comments: bool = False,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    login: str | None = None,
) -> list[ResultRow]:
    """
    List the PRs in owner/repo that concern the authenticated user.

    Args:
        client: GitHub API client, shared by every lookup
        owner: Repository owner (also the organization whose teams count)
        repo: Repository name
        state: PR state filter (open, closed, all)
        last: Number of PRs to list
        comments: Also scan review comments for mentions
        max_concurrency: Maximum simultaneous per-PR lookups
        login: Viewer login, fetched when not given

    Returns:
        Ordered ResultRows

    Raises:
        GitHubAPIError: listing or identity lookups failed
        LookupFailure: a per-PR lookup failed
    """
    team_ids = await asyncio.to_thread(client.list_user_teams, owner)
    if login is None:
        login = await asyncio.to_thread(client.current_user)
    prs = await asyncio.to_thread(client.list_pulls, owner, repo, state, last)

    logger.info("Processing PRs...")
    relevant = RelevantSet(pr for pr in prs if is_relevant(pr, team_ids, login))
    logger.debug("%d of %d PRs match directly", len(relevant), len(prs))

    if comments:
        logger.info("Getting comments for PRs...")
        mentioned = await find_comment_mentions(
            prs,
            lambda number: client.list_review_comments(owner, repo, number),
            login,
            max_concurrency,
        )
        relevant.update(mentioned)
        logger.debug("%d PRs mention %s in comments", len(mentioned), login)

    logger.info("Getting additions and deletions for PRs...")
    stats = await collect_diff_stats(
        relevant,
        lambda number: client.list_pull_files(owner, repo, number),
        max_concurrency,
    )

    return order_results(relevant, stats)
