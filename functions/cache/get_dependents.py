"""
Cache-first access to a package's dependents.

Fresh entries are served directly. Stale entries are served while a refresh
runs under a lease: handed to the pipeline worker when a queue is set,
otherwise run on the background runner. Misses either queue a pipeline run
(and report pending) or run the pipeline inline when no queue is set.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ecosystems.strategy import EcosystemStrategy
from pipeline.limits import PAID_LIMITS, PipelineLimits
from pipeline.orchestrator import refresh_count_only, refresh_dependents
from pipeline.types import ScoredRepo
from shared.background import BackgroundTasks
from shared.constants import LOCK_TTL_SECONDS
from shared.errors import sanitize_error
from shared.kv_store import KVStore
from shared.logging_utils import PipelineTrace
from shared.metrics import emit_metric
from workers.queue_dispatch import PipelineQueue, build_message

from .cache import read_cache, touch_last_accessed, write_cache
from .history import append_snapshot
from .keys import build_cache_key, build_lock_key
from .types import CacheEntry, to_iso

logger = logging.getLogger(__name__)

ExistenceCheck = Callable[[], Awaitable[bool]]


@dataclass
class GetDependentsResult:
    # None means the package does not exist; [] means none found (or pending)
    repos: Optional[list[ScoredRepo]]
    from_cache: bool
    refreshing: bool
    dependent_count: Optional[int] = None
    pending: bool = False
    fetched_at: Optional[str] = None


@dataclass
class BadgeCountResult:
    count: Optional[int]
    from_cache: bool


def acquire_lock(store: KVStore, cache_key: str) -> bool:
    """Take the refresh lease for cache_key. False if someone holds it."""
    return store.put_if_absent(build_lock_key(cache_key), "1", LOCK_TTL_SECONDS)


def release_lock(store: KVStore, cache_key: str) -> None:
    store.delete(build_lock_key(cache_key))


def extract_count(entry: CacheEntry) -> Optional[int]:
    if entry.dependent_count is not None:
        return entry.dependent_count
    if not entry.count_only:
        return len(entry.repos)
    return None


async def try_background_refresh(
    strategy: EcosystemStrategy,
    package_name: str,
    store: KVStore,
    cache_key: str,
    stale_entry: CacheEntry,
    now: Optional[datetime] = None,
    limits: PipelineLimits = PAID_LIMITS,
) -> None:
    """
    Refresh a stale entry unless another refresh holds the lease.

    Never raises: a failure only bumps lastAccessedAt on the stale entry so
    it is not evicted while still being served.
    """
    if not acquire_lock(store, cache_key):
        logger.debug(f"Refresh for {cache_key} already in flight, skipping")
        return

    try:
        if stale_entry.count_only:
            entry = await refresh_count_only(strategy, package_name, now)
        else:
            entry = await refresh_dependents(strategy, package_name, now, limits)
        write_cache(store, cache_key, entry)
        append_snapshot(store, cache_key, entry, now)
    except Exception as e:
        logger.error(
            f"Background refresh failed for {cache_key}: {sanitize_error(str(e))}",
            extra={"cache_key": cache_key, "error_type": type(e).__name__},
        )
        emit_metric("BackgroundRefreshFailures", dimensions={"Platform": strategy.platform})
        touch_last_accessed(store, cache_key, stale_entry, now)
    finally:
        release_lock(store, cache_key)


def queue_refresh(
    strategy: EcosystemStrategy,
    package_name: str,
    store: KVStore,
    cache_key: str,
    stale_entry: CacheEntry,
    queue: PipelineQueue,
    now: Optional[datetime] = None,
) -> bool:
    """
    Hand a stale refresh to the pipeline worker under the lease.

    lastAccessedAt is bumped before the message is sent, so the worker's
    write always lands after it and a failed run cannot let a served entry
    be evicted. The worker releases the lease.

    Returns:
        True if a refresh was queued, False if one is in flight or the send
        failed
    """
    if not acquire_lock(store, cache_key):
        logger.debug(f"Refresh for {cache_key} already in flight, skipping")
        return False

    try:
        touch_last_accessed(store, cache_key, stale_entry, now)
        queue.send(
            build_message(strategy.platform, package_name, now, count_only=stale_entry.count_only)
        )
    except (BotoCoreError, ClientError) as e:
        logger.error(
            f"Could not queue refresh for {cache_key}: {sanitize_error(str(e))}",
            extra={"cache_key": cache_key, "error_type": type(e).__name__},
        )
        emit_metric("BackgroundRefreshFailures", dimensions={"Platform": strategy.platform})
        release_lock(store, cache_key)
        return False

    return True


def _refresh_stale(
    strategy: EcosystemStrategy,
    package_name: str,
    store: KVStore,
    cache_key: str,
    stale_entry: CacheEntry,
    background: BackgroundTasks,
    now: datetime,
    limits: PipelineLimits,
    queue: Optional[PipelineQueue],
) -> None:
    if queue is not None:
        queue_refresh(strategy, package_name, store, cache_key, stale_entry, queue, now)
        return

    # No queue: the runner is drained before the invocation ends
    background.submit(
        try_background_refresh(strategy, package_name, store, cache_key, stale_entry, now, limits),
        name=f"refresh {cache_key}",
    )


async def get_dependents(
    strategy: EcosystemStrategy,
    package_name: str,
    store: KVStore,
    background: BackgroundTasks,
    now: Optional[datetime] = None,
    limits: PipelineLimits = PAID_LIMITS,
    trace: Optional[PipelineTrace] = None,
    existence_check: Optional[ExistenceCheck] = None,
    queue: Optional[PipelineQueue] = None,
) -> GetDependentsResult:
    """
    Return the dependents of a package, cache first.

    Work that must not delay the response (touching lastAccessedAt, history,
    stale refreshes when no queue is set) is submitted to `background`.
    With a queue, stale refreshes go to the pipeline worker instead.
    """
    now = now or datetime.now(timezone.utc)
    key = build_cache_key(strategy.platform, package_name)
    cached = read_cache(store, key, now)
    entry = cached.entry

    if cached.status == "hit" and not entry.count_only:
        if trace:
            trace.log("cache", f"hit, {len(entry.repos)} repos")
        background.submit(
            asyncio.to_thread(touch_last_accessed, store, key, entry, now),
            name=f"touch {key}",
        )
        return GetDependentsResult(
            repos=entry.repos,
            from_cache=True,
            refreshing=False,
            dependent_count=entry.dependent_count,
            fetched_at=entry.fetched_at,
        )

    if cached.status == "stale" and not entry.count_only:
        if trace:
            trace.log("cache", f"stale, {len(entry.repos)} repos, refreshing in background")
        _refresh_stale(strategy, package_name, store, key, entry, background, now, limits, queue)
        return GetDependentsResult(
            repos=entry.repos,
            from_cache=True,
            refreshing=True,
            dependent_count=entry.dependent_count,
            fetched_at=entry.fetched_at,
        )

    # Count-only entries never held the full list, so they count as a miss here
    if trace:
        trace.log("cache", "count-only entry, upgrading" if entry else "miss")

    if existence_check is not None and not await existence_check():
        logger.info(f"Package {key} does not exist, skipping pipeline")
        return GetDependentsResult(repos=None, from_cache=False, refreshing=False)

    if queue is not None:
        if acquire_lock(store, key):
            iso_now = to_iso(now)
            write_cache(
                store,
                key,
                CacheEntry(
                    repos=[],
                    fetched_at=iso_now,
                    last_accessed_at=iso_now,
                    partial=True,
                    pending=True,
                ),
            )
            queue.send(build_message(strategy.platform, package_name, now))
        else:
            logger.debug(f"Pipeline run for {key} already queued")

        return GetDependentsResult(repos=[], from_cache=False, refreshing=False, pending=True)

    fresh = await refresh_dependents(strategy, package_name, now, limits, trace=trace)
    write_cache(store, key, fresh)
    background.submit(
        asyncio.to_thread(append_snapshot, store, key, fresh, now),
        name=f"history {key}",
    )

    return GetDependentsResult(
        repos=fresh.repos,
        from_cache=False,
        refreshing=False,
        dependent_count=fresh.dependent_count,
        fetched_at=fresh.fetched_at,
    )


async def get_dependent_count_for_badge(
    strategy: EcosystemStrategy,
    package_name: str,
    store: KVStore,
    background: BackgroundTasks,
    now: Optional[datetime] = None,
    limits: PipelineLimits = PAID_LIMITS,
    queue: Optional[PipelineQueue] = None,
) -> BadgeCountResult:
    """Dependent count for a badge; misses take the cheap count-only path."""
    now = now or datetime.now(timezone.utc)
    key = build_cache_key(strategy.platform, package_name)
    cached = read_cache(store, key, now)
    entry = cached.entry

    if cached.status == "hit":
        background.submit(
            asyncio.to_thread(touch_last_accessed, store, key, entry, now),
            name=f"touch {key}",
        )
        return BadgeCountResult(count=extract_count(entry), from_cache=True)

    if cached.status == "stale":
        _refresh_stale(strategy, package_name, store, key, entry, background, now, limits, queue)
        return BadgeCountResult(count=extract_count(entry), from_cache=True)

    fresh = await refresh_count_only(strategy, package_name, now)
    write_cache(store, key, fresh)
    return BadgeCountResult(count=fresh.dependent_count, from_cache=False)
