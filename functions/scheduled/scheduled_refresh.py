"""
Scheduled Refresh - periodic sweep of the dependents cache.

Triggered by EventBridge. Lists every cache key, evicts entries nobody has
read for 30 days, and refreshes the stalest entries (partial ones first),
a few per run so the sweep stays inside the GitHub rate limit.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from cache.cache import entry_age_seconds, write_cache
from cache.get_dependents import acquire_lock, release_lock
from cache.history import append_snapshot
from cache.keys import build_history_key, is_history_key, is_lock_key, parse_cache_key
from cache.types import CacheEntry, CacheMetadata
from ecosystems.registry import get_strategy, register_default_strategies
from ecosystems.strategy import EcosystemStrategy
from pipeline.limits import PAID_LIMITS, PipelineLimits, get_limits
from pipeline.orchestrator import refresh_count_only, refresh_dependents
from pipeline.rate_limit import is_rate_limited
from shared.constants import (
    EVICTION_TTL_SECONDS,
    FRESH_TTL_SECONDS,
    MAX_REFRESHES_PER_RUN,
    PARTIAL_FRESH_TTL_SECONDS,
    PIPELINE_TIER,
)
from shared.errors import sanitize_error
from shared.http_client import close_http_client
from shared.kv_store import KVStore
from shared.logging_utils import configure_structured_logging
from shared.metrics import emit_batch_metrics

logger = logging.getLogger(__name__)


@dataclass
class SweepSummary:
    keys_scanned: int = 0
    refreshed: int = 0
    skipped: int = 0
    evicted: int = 0
    errors: int = 0
    aborted_due_to_rate_limit: bool = False

    def to_dict(self) -> dict:
        return {
            "keysScanned": self.keys_scanned,
            "refreshed": self.refreshed,
            "skipped": self.skipped,
            "evicted": self.evicted,
            "errors": self.errors,
            "abortedDueToRateLimit": self.aborted_due_to_rate_limit,
        }


@dataclass
class _Candidate:
    key: str
    strategy: EcosystemStrategy
    package_name: str
    metadata: CacheMetadata
    age_seconds: float


def _load_metadata(store: KVStore, key: str, raw_metadata: Optional[dict]) -> Optional[CacheMetadata]:
    """List metadata when present, else read the value (entries from before metadata)."""
    metadata = CacheMetadata.from_dict(raw_metadata)
    if metadata is not None:
        return metadata

    raw = store.get(key)
    if raw is None:
        return None
    try:
        entry = CacheEntry.from_json(raw)
    except (ValueError, KeyError, TypeError) as e:
        logger.warning(f"Skipping unreadable entry {key}: {e}")
        return None

    return CacheMetadata(
        fetched_at=entry.fetched_at,
        last_accessed_at=entry.last_accessed_at,
        partial=entry.partial,
        count_only=entry.count_only,
        pending=entry.pending,
    )


def _stale_threshold(metadata: CacheMetadata) -> int:
    return PARTIAL_FRESH_TTL_SECONDS if metadata.partial else FRESH_TTL_SECONDS


async def _refresh_one(
    store: KVStore,
    candidate: _Candidate,
    now: datetime,
    limits: PipelineLimits,
) -> Optional[bool]:
    """
    Refresh one entry.

    Returns:
        True when the run came back rate limited and the sweep should stop,
        None when another refresh holds the lease
    """
    if not acquire_lock(store, candidate.key):
        logger.info(f"Refresh for {candidate.key} already in flight, skipping")
        return None

    try:
        if candidate.metadata.count_only:
            entry = await refresh_count_only(candidate.strategy, candidate.package_name, now)
        else:
            entry = await refresh_dependents(candidate.strategy, candidate.package_name, now, limits)

        # Cron refreshes must not reset the eviction clock
        entry.last_accessed_at = candidate.metadata.last_accessed_at
        write_cache(store, candidate.key, entry)
        append_snapshot(store, candidate.key, entry, now)
    finally:
        release_lock(store, candidate.key)

    return entry.partial and not entry.count_only


async def run_scheduled_refresh(
    store: Optional[KVStore] = None,
    now: Optional[datetime] = None,
    limits: PipelineLimits = PAID_LIMITS,
    max_refreshes: int = MAX_REFRESHES_PER_RUN,
) -> SweepSummary:
    store = store or KVStore()
    now = now or datetime.now(timezone.utc)
    summary = SweepSummary()
    candidates: list[_Candidate] = []

    cursor = None
    while True:
        page = store.list(cursor=cursor)

        for listed in page.keys:
            if is_history_key(listed.name) or is_lock_key(listed.name):
                continue
            summary.keys_scanned += 1

            metadata = _load_metadata(store, listed.name, listed.metadata)
            if metadata is None:
                continue

            last_access_age = entry_age_seconds(metadata.last_accessed_at, now)
            if last_access_age is not None and last_access_age >= EVICTION_TTL_SECONDS:
                store.delete(listed.name)
                store.delete(build_history_key(listed.name))
                summary.evicted += 1
                logger.info(f"Evicted inactive entry {listed.name}")
                continue

            age = entry_age_seconds(metadata.fetched_at, now)
            if age is None:
                age = float("inf")
            if age < _stale_threshold(metadata):
                continue

            parsed = parse_cache_key(listed.name)
            strategy = get_strategy(parsed[0]) if parsed else None
            if strategy is None:
                logger.warning(f"No strategy for cache key {listed.name}, skipping")
                continue
            candidates.append(_Candidate(listed.name, strategy, parsed[1], metadata, age))

        if page.list_complete or not page.cursor:
            break
        cursor = page.cursor

    summary.skipped = summary.keys_scanned - len(candidates) - summary.evicted

    # Partial entries first, then oldest first
    candidates.sort(key=lambda c: (not c.metadata.partial, -c.age_seconds))

    for candidate in candidates[:max_refreshes]:
        try:
            rate_limited = await _refresh_one(store, candidate, now, limits)
        except Exception as e:
            if is_rate_limited(e):
                logger.warning(f"Rate limited refreshing {candidate.key}, aborting sweep")
                summary.aborted_due_to_rate_limit = True
                break
            logger.error(
                f"Scheduled refresh failed for {candidate.key}: {sanitize_error(str(e))}",
                extra={"cache_key": candidate.key, "error_type": type(e).__name__},
            )
            summary.errors += 1
            continue

        if rate_limited is None:
            summary.skipped += 1
            continue

        summary.refreshed += 1
        if rate_limited:
            logger.warning(f"Refresh of {candidate.key} came back rate limited, aborting sweep")
            summary.aborted_due_to_rate_limit = True
            break

    return summary


def handler(event, context):
    """Lambda handler for the scheduled sweep."""
    configure_structured_logging()
    register_default_strategies()

    loop = asyncio.new_event_loop()
    try:
        summary = loop.run_until_complete(_run())
    finally:
        loop.close()

    logger.info("Scheduled refresh complete", extra=summary.to_dict())
    emit_batch_metrics([
        {"metric_name": "ScheduledRefreshed", "value": summary.refreshed},
        {"metric_name": "ScheduledErrors", "value": summary.errors},
        {
            "metric_name": "ScheduledRateLimitAborts",
            "value": 1 if summary.aborted_due_to_rate_limit else 0,
        },
    ])
    return summary.to_dict()


async def _run() -> SweepSummary:
    try:
        return await run_scheduled_refresh(limits=get_limits(PIPELINE_TIER))
    finally:
        await close_http_client()
