"""
Search stage: find candidate dependents through GitHub code search.
"""

import logging
from typing import Optional

from ecosystems.strategy import EcosystemStrategy
from shared.errors import UpstreamError
from shared.logging_utils import PipelineTrace

from .github_client import SEARCH_PAGE_SIZE, GitHubClient
from .limits import PipelineLimits
from .rate_limit import is_rate_limited, sleep, with_rate_limit_retry
from .types import DependentRepo, SearchResult

logger = logging.getLogger(__name__)


def _repo_from_item(item: dict) -> Optional[DependentRepo]:
    repo = item.get("repository") or {}
    full_name = repo.get("full_name")
    if not full_name:
        return None

    owner = repo.get("owner") or {}
    return DependentRepo(
        owner=owner.get("login", ""),
        name=repo.get("name", ""),
        full_name=full_name,
        stars=repo.get("stargazers_count") or 0,
        last_push=repo.get("pushed_at") or "",
        avatar_url=owner.get("avatar_url", ""),
        is_fork=bool(repo.get("fork")),
        manifest_path=item.get("path"),
    )


async def search_dependents(
    strategy: EcosystemStrategy,
    package_name: str,
    limits: PipelineLimits,
    client: Optional[GitHubClient] = None,
    trace: Optional[PipelineTrace] = None,
) -> SearchResult:
    """
    Page through code search results for the package's manifest.

    Deduplicates by full name, keeping the first manifest seen per repo.
    A page shorter than SEARCH_PAGE_SIZE ends pagination. A rate limit that
    survives retries stops the stage and returns what was gathered.
    """
    client = client or GitHubClient()
    query = strategy.build_search_query(package_name)

    seen: set[str] = set()
    repos: list[DependentRepo] = []
    pages_fetched = 0

    for page in range(1, limits.max_pages + 1):
        if page > 1:
            await sleep(limits.page_delay_ms)

        try:
            data = await with_rate_limit_retry(
                lambda: client.search_code(query, page=page),
                label=f"search page {page}",
                trace=trace,
            )
        except UpstreamError as e:
            if not is_rate_limited(e):
                raise
            logger.warning(
                f"Search for {strategy.platform}/{package_name} rate limited on page {page}, "
                f"returning {len(repos)} repos"
            )
            if trace:
                trace.log("search", f"rate limited on page {page} after {len(repos)} repos")
            return SearchResult(repos=repos, partial=True, rate_limited=True, capped=False)

        pages_fetched += 1
        items = data.get("items") or []

        for item in items:
            repo = _repo_from_item(item)
            if repo is None or repo.full_name in seen:
                continue
            seen.add(repo.full_name)
            repos.append(repo)

        if len(items) < SEARCH_PAGE_SIZE:
            if trace:
                trace.log("search", f"{len(repos)} repos from {pages_fetched} pages")
            return SearchResult(repos=repos)

    if trace:
        trace.log("search", f"{len(repos)} repos from {pages_fetched} pages (capped)")
    return SearchResult(repos=repos, capped=True)
