"""
Read/write helpers for cache entries in the KV store.
"""

import json
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from pipeline.score import parse_timestamp
from shared.constants import FRESH_TTL_SECONDS
from shared.kv_store import KVStore

from .types import CacheEntry, CacheMetadata, CacheResult, to_iso

logger = logging.getLogger(__name__)


def entry_age_seconds(fetched_at: str, now: datetime) -> Optional[float]:
    fetched = parse_timestamp(fetched_at)
    if fetched is None:
        return None
    return (now - fetched).total_seconds()


def read_cache(store: KVStore, key: str, now: Optional[datetime] = None) -> CacheResult:
    """
    Classify the entry under key.

    miss: absent, unreadable, or a pending placeholder.
    hit: fetched strictly less than 24h ago.
    stale: anything older, including exactly 24h and unparseable fetchedAt.
    """
    now = now or datetime.now(timezone.utc)
    raw = store.get(key)
    if raw is None:
        return CacheResult(status="miss")

    try:
        entry = CacheEntry.from_json(raw)
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        logger.warning(f"Unreadable cache entry {key}: {e}")
        return CacheResult(status="miss")

    if entry.pending:
        return CacheResult(status="miss")

    age = entry_age_seconds(entry.fetched_at, now)
    if age is not None and age < FRESH_TTL_SECONDS:
        return CacheResult(status="hit", entry=entry)

    return CacheResult(status="stale", entry=entry)


def build_metadata(entry: CacheEntry) -> dict:
    return CacheMetadata(
        fetched_at=entry.fetched_at,
        last_accessed_at=entry.last_accessed_at,
        partial=entry.partial,
        count_only=entry.count_only,
        pending=entry.pending,
    ).to_dict()


def write_cache(store: KVStore, key: str, entry: CacheEntry) -> None:
    store.put(key, entry.to_json(), metadata=build_metadata(entry))


def touch_last_accessed(
    store: KVStore,
    key: str,
    entry: CacheEntry,
    now: Optional[datetime] = None,
) -> None:
    """Rewrite entry with only lastAccessedAt moved to now."""
    now = now or datetime.now(timezone.utc)
    write_cache(store, key, replace(entry, last_accessed_at=to_iso(now)))
