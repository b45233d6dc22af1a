"""
Pipeline limit presets.

Every stage receives a PipelineLimits explicitly; nothing reads the active
preset from global state except get_limits().
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineLimits:
    # Code search pages to fetch (100 results per page)
    max_pages: int
    # Max repos sent through enrichment
    enrich_cap: int
    # Repos per GraphQL query; GitHub caps node count per query
    batch_size: int
    # GraphQL queries in flight at once
    concurrency: int
    # Pause between search pages to stay under secondary rate limits
    page_delay_ms: int
    # Minimum stars to survive filtering (inclusive)
    min_stars: int
    # Default number of dependents to display
    default_max: int


FREE_LIMITS = PipelineLimits(
    max_pages=5,
    enrich_cap=100,
    batch_size=50,
    concurrency=2,
    page_delay_ms=6_500,
    min_stars=5,
    default_max=35,
)

PAID_LIMITS = PipelineLimits(
    max_pages=10,
    enrich_cap=500,
    batch_size=50,
    concurrency=4,
    page_delay_ms=4_000,
    min_stars=5,
    default_max=100,
)

# Deprecated names kept for callers that still use them
PROD_LIMITS = PAID_LIMITS
DEV_LIMITS = PAID_LIMITS

_TIERS = {
    "free": FREE_LIMITS,
    "paid": PAID_LIMITS,
    "prod": PAID_LIMITS,
    "dev": PAID_LIMITS,
}


def get_limits(tier: str) -> PipelineLimits:
    """Map a tier name (PIPELINE_TIER) to its preset."""
    limits = _TIERS.get((tier or "").strip().lower())
    if limits is None:
        logger.warning(f"Unknown pipeline tier '{tier}', using paid limits")
        return PAID_LIMITS
    return limits
