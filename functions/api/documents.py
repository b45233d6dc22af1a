"""
JSON documents served by the public endpoints.

- shields.io endpoint documents for the "used by" badge
- the data.json document with the ranked dependents
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Optional

from cache.get_dependents import GetDependentsResult
from cache.types import to_iso
from ecosystems.strategy import EcosystemStrategy

SHIELD_LABEL = "used by"


def _one_decimal(value: int, unit: int) -> str:
    # Truncate, never round up: 1999 -> 1.9K
    tenths = value * 10 // unit
    whole, fraction = divmod(tenths, 10)
    return f"{whole}.{fraction}" if fraction else str(whole)


def format_badge_count(count: int) -> str:
    if count < 1_000:
        return str(count)
    if count < 10_000:
        return f"{_one_decimal(count, 1_000)}K+"
    if count < 1_000_000:
        return f"{count // 1_000}K+"
    if count < 10_000_000:
        return f"{_one_decimal(count, 1_000_000)}M+"
    return f"{count // 1_000_000}M+"


def build_shield_success(count: int) -> dict:
    noun = "project" if count == 1 else "projects"
    return {
        "schemaVersion": 1,
        "label": SHIELD_LABEL,
        "message": f"{format_badge_count(count)} {noun}",
        "color": "lightgrey" if count == 0 else "brightgreen",
    }


def build_shield_unavailable() -> dict:
    return {
        "schemaVersion": 1,
        "label": SHIELD_LABEL,
        "message": "unavailable",
        "color": "lightgrey",
    }


def build_shield_error() -> dict:
    return {
        "schemaVersion": 1,
        "label": SHIELD_LABEL,
        "message": "error",
        "color": "red",
        "isError": True,
    }


def build_data_document(
    strategy: EcosystemStrategy,
    package_name: str,
    result: GetDependentsResult,
    now: Optional[datetime] = None,
) -> dict:
    """data.json body for a resolved (non-pending, existing) package."""
    now = now or datetime.now(timezone.utc)
    repos = result.repos or []

    repo_docs = []
    for repo in repos:
        doc = {
            "fullName": repo.full_name,
            "owner": repo.owner,
            "name": repo.name,
            "stars": repo.stars,
            "lastPush": repo.last_push,
            "avatarUrl": repo.avatar_url,
            "score": repo.score,
        }
        if repo.version is not None:
            doc["version"] = repo.version
        repo_docs.append(doc)

    dependent_count = result.dependent_count
    return {
        "package": package_name,
        "platform": strategy.platform,
        "dependentCount": dependent_count if dependent_count is not None else len(repos),
        "fetchedAt": to_iso(now),
        "repos": repo_docs,
        "versionDistribution": dict(Counter(r.version for r in repos if r.version)),
    }
