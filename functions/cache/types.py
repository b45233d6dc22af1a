"""
Cache document types.

A CacheEntry is stored as JSON under `{platform}:{name}`; a small metadata
map is stored beside it so the sweep can judge freshness without reading
the value.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, Optional

from pipeline.types import ScoredRepo

CacheStatus = Literal["hit", "stale", "miss"]


def to_iso(dt: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class CacheEntry:
    repos: list[ScoredRepo]
    fetched_at: str
    last_accessed_at: str
    partial: bool = False
    dependent_count: Optional[int] = None
    count_only: bool = False
    pending: bool = False

    def to_dict(self) -> dict:
        data = {
            "repos": [repo.to_dict() for repo in self.repos],
            "fetchedAt": self.fetched_at,
            "lastAccessedAt": self.last_accessed_at,
            "partial": self.partial,
        }
        if self.dependent_count is not None:
            data["dependentCount"] = self.dependent_count
        if self.count_only:
            data["countOnly"] = True
        if self.pending:
            data["pending"] = True
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> "CacheEntry":
        dependent_count = data.get("dependentCount")
        return cls(
            repos=[ScoredRepo.from_dict(repo) for repo in data.get("repos") or []],
            fetched_at=data.get("fetchedAt", ""),
            last_accessed_at=data.get("lastAccessedAt") or data.get("fetchedAt", ""),
            partial=bool(data.get("partial", False)),
            dependent_count=int(dependent_count) if dependent_count is not None else None,
            count_only=bool(data.get("countOnly", False)),
            pending=bool(data.get("pending", False)),
        )

    @classmethod
    def from_json(cls, text: str) -> "CacheEntry":
        return cls.from_dict(json.loads(text))


@dataclass
class CacheMetadata:
    """List-time view of an entry. Stored as the item's metadata map."""

    fetched_at: str
    last_accessed_at: str
    partial: bool = False
    count_only: bool = False
    pending: bool = False

    def to_dict(self) -> dict:
        data = {
            "fetchedAt": self.fetched_at,
            "lastAccessedAt": self.last_accessed_at,
            "partial": self.partial,
        }
        if self.count_only:
            data["countOnly"] = True
        if self.pending:
            data["pending"] = True
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["CacheMetadata"]:
        if not data or not data.get("fetchedAt"):
            return None
        return cls(
            fetched_at=data["fetchedAt"],
            last_accessed_at=data.get("lastAccessedAt") or data["fetchedAt"],
            partial=bool(data.get("partial", False)),
            count_only=bool(data.get("countOnly", False)),
            pending=bool(data.get("pending", False)),
        )


@dataclass
class CacheResult:
    status: CacheStatus
    entry: Optional[CacheEntry] = None


@dataclass
class HistorySnapshot:
    date: str
    dependent_count: int
    repo_count: int
    version_distribution: Optional[dict[str, int]] = None

    def to_dict(self) -> dict:
        data = {
            "date": self.date,
            "dependentCount": self.dependent_count,
            "repoCount": self.repo_count,
        }
        if self.version_distribution:
            data["versionDistribution"] = self.version_distribution
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "HistorySnapshot":
        return cls(
            date=data["date"],
            dependent_count=int(data.get("dependentCount", 0)),
            repo_count=int(data.get("repoCount", 0)),
            version_distribution=data.get("versionDistribution"),
        )


@dataclass
class HistoryEntry:
    snapshots: list[HistorySnapshot] = field(default_factory=list)

    def to_json(self) -> str:
        return json.dumps({"snapshots": [s.to_dict() for s in self.snapshots]})

    @classmethod
    def from_json(cls, text: str) -> "HistoryEntry":
        data = json.loads(text)
        return cls(snapshots=[HistorySnapshot.from_dict(s) for s in data.get("snapshots") or []])
