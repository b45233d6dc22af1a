"""
Filter stage: drop forks, archived repos and repos under the star threshold.
"""

import logging
from typing import Optional

from shared.logging_utils import PipelineTrace

from .types import DependentRepo

logger = logging.getLogger(__name__)


def filter_dependents(
    repos: list[DependentRepo],
    min_stars: int,
    trace: Optional[PipelineTrace] = None,
) -> list[DependentRepo]:
    kept = [
        repo
        for repo in repos
        if not repo.is_fork and not repo.archived and repo.stars >= min_stars
    ]

    if trace:
        trace.log("filter", f"{len(repos)} → {len(kept)} (min_stars={min_stars})")
    return kept
