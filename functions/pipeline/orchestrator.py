"""
Pipeline orchestrator: Search -> Enrich -> Filter -> Score, plus the live
dependent count, assembled into a CacheEntry.

Rate limits inside stages surface as the entry's `partial` flag. Any other
stage failure propagates; the cache layer decides what the caller sees.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from cache.types import CacheEntry, to_iso
from ecosystems.strategy import EcosystemStrategy
from shared.logging_utils import PipelineTrace
from shared.metrics import emit_metric

from .dependent_count import fetch_dependent_count
from .enrich import enrich_repos
from .filter import filter_dependents
from .github_client import GitHubClient
from .limits import FREE_LIMITS, PAID_LIMITS, PipelineLimits
from .score import score_dependents
from .search import search_dependents

logger = logging.getLogger(__name__)


async def resolve_dependent_count(
    strategy: EcosystemStrategy,
    package_name: str,
    trace: Optional[PipelineTrace] = None,
) -> Optional[int]:
    """Registry -> GitHub repo -> dependents page. None if any step fails."""
    if trace:
        trace.log("dependent-count", f"resolving {package_name}")

    repo_ref = await strategy.resolve_github_repo(package_name)
    if repo_ref is None:
        if trace:
            trace.log("dependent-count", "could not resolve GitHub repo")
        return None

    count = await fetch_dependent_count(repo_ref.owner, repo_ref.repo, trace)
    if trace:
        trace.log("dependent-count", str(count) if count is not None else "not found")
    return count


async def refresh_dependents(
    strategy: EcosystemStrategy,
    package_name: str,
    now: Optional[datetime] = None,
    limits: PipelineLimits = PAID_LIMITS,
    client: Optional[GitHubClient] = None,
    trace: Optional[PipelineTrace] = None,
) -> CacheEntry:
    """Run the full pipeline for one package."""
    now = now or datetime.now(timezone.utc)
    client = client or GitHubClient()

    if trace:
        mode = "free" if limits == FREE_LIMITS else "paid"
        trace.log(
            "limits",
            f"{mode} (max_pages={limits.max_pages}, enrich_cap={limits.enrich_cap}, "
            f"min_stars={limits.min_stars})",
        )
        trace.time_start("search")

    search_result, dependent_count = await asyncio.gather(
        search_dependents(strategy, package_name, limits, client=client, trace=trace),
        resolve_dependent_count(strategy, package_name, trace),
    )

    if trace:
        trace.time_end("search")

    # Fork status from search is reliable; star counts are not, so stars wait
    forks = [repo.full_name for repo in search_result.repos if repo.is_fork]
    candidates = [repo for repo in search_result.repos if not repo.is_fork]
    if forks:
        logger.debug(f"Dropping {len(forks)} forks before enrichment: {', '.join(forks)}")
    if trace:
        trace.log(
            "pre-filter",
            f"{len(search_result.repos)} → {len(candidates)} (removed {len(forks)} forks)",
        )

    capped = candidates[:limits.enrich_cap]

    if trace:
        trace.time_start("enrich")
    enrich_result = await enrich_repos(
        strategy, capped, package_name, limits, client=client, trace=trace
    )
    if trace:
        trace.time_end("enrich")

    filtered = filter_dependents(enrich_result.repos, limits.min_stars, trace)
    scored = score_dependents(filtered, now)
    if trace:
        trace.log("score", f"{len(scored)} repos")

    partial = search_result.rate_limited or enrich_result.rate_limited
    emit_metric(
        "PipelineRuns",
        dimensions={"Platform": strategy.platform, "Partial": str(partial).lower()},
    )
    logger.info(
        f"Pipeline finished for {strategy.platform}/{package_name}",
        extra={
            "platform": strategy.platform,
            "package": package_name,
            "repos": len(scored),
            "partial": partial,
            "capped": search_result.capped,
        },
    )

    iso_now = to_iso(now)
    return CacheEntry(
        repos=scored,
        fetched_at=iso_now,
        last_accessed_at=iso_now,
        partial=partial,
        dependent_count=dependent_count,
    )


async def refresh_count_only(
    strategy: EcosystemStrategy,
    package_name: str,
    now: Optional[datetime] = None,
    trace: Optional[PipelineTrace] = None,
) -> CacheEntry:
    """Cheap path for badges: only the live dependent count, no repo list."""
    now = now or datetime.now(timezone.utc)
    dependent_count = await resolve_dependent_count(strategy, package_name, trace)

    iso_now = to_iso(now)
    return CacheEntry(
        repos=[],
        fetched_at=iso_now,
        last_accessed_at=iso_now,
        partial=True,
        dependent_count=dependent_count,
        count_only=True,
    )
