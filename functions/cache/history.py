"""
Per-package dependent-count history, one snapshot per UTC day.
"""

import json
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Optional

from shared.constants import MAX_SNAPSHOTS
from shared.kv_store import KVStore

from .keys import build_history_key
from .types import CacheEntry, HistoryEntry, HistorySnapshot

logger = logging.getLogger(__name__)


def build_snapshot(entry: CacheEntry, now: Optional[datetime] = None) -> HistorySnapshot:
    now = now or datetime.now(timezone.utc)
    repo_count = len(entry.repos)
    versions = Counter(repo.version for repo in entry.repos if repo.version)

    return HistorySnapshot(
        date=now.astimezone(timezone.utc).strftime("%Y-%m-%d"),
        dependent_count=entry.dependent_count if entry.dependent_count is not None else repo_count,
        repo_count=repo_count,
        version_distribution=dict(versions) or None,
    )


def read_history(store: KVStore, cache_key: str) -> HistoryEntry:
    raw = store.get(build_history_key(cache_key))
    if raw is None:
        return HistoryEntry()
    try:
        return HistoryEntry.from_json(raw)
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        logger.warning(f"Discarding unreadable history for {cache_key}: {e}")
        return HistoryEntry()


def append_snapshot(
    store: KVStore,
    cache_key: str,
    entry: CacheEntry,
    now: Optional[datetime] = None,
) -> None:
    """Record today's snapshot, replacing any earlier one from the same day."""
    if entry.count_only:
        return

    history = read_history(store, cache_key)
    snapshot = build_snapshot(entry, now)

    for i, existing in enumerate(history.snapshots):
        if existing.date == snapshot.date:
            history.snapshots[i] = snapshot
            break
    else:
        history.snapshots.append(snapshot)

    if len(history.snapshots) > MAX_SNAPSHOTS:
        history.snapshots = history.snapshots[-MAX_SNAPSHOTS:]

    store.put(build_history_key(cache_key), history.to_json())
