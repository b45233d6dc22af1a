"""
Score stage: star count weighted by a 365-day half-life on the last push.
"""

from datetime import datetime, timezone
from typing import Optional

from .types import DependentRepo, ScoredRepo

HALF_LIFE_DAYS = 365
SECONDS_PER_DAY = 24 * 60 * 60


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (trailing Z allowed); None if unparseable."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def recency_multiplier(last_push: str, now: datetime) -> float:
    push_date = parse_timestamp(last_push)
    if push_date is None:
        return 0.0

    days_since_push = (now - push_date).total_seconds() / SECONDS_PER_DAY
    # Clock skew: a push "in the future" never boosts above raw stars
    if days_since_push < 0:
        return 1.0

    return 0.5 ** (days_since_push / HALF_LIFE_DAYS)


def score_dependents(repos: list[DependentRepo], now: Optional[datetime] = None) -> list[ScoredRepo]:
    """Score and sort descending. sorted() is stable, so ties keep input order."""
    now = now or datetime.now(timezone.utc)
    scored = [
        ScoredRepo.from_repo(repo, repo.stars * recency_multiplier(repo.last_push, now))
        for repo in repos
    ]
    return sorted(scored, key=lambda repo: repo.score, reverse=True)
