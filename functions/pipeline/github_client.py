"""
Thin GitHub API client for code search (REST) and batched repository
lookups (GraphQL).

Failures are raised as shared.errors types so the stages can classify
them: RateLimitError for primary/secondary limits and GraphQL
RATE_LIMITED, NotFoundError for 404, UpstreamError for anything else.
"""

import logging
import time
from typing import Optional

import httpx

from shared.constants import GITHUB_API, GITHUB_GRAPHQL_API, GITHUB_TIMEOUT
from shared.errors import GraphQLError, NotFoundError, RateLimitError, UpstreamError
from shared.github_token import get_github_token
from shared.http_client import get_http_client
from shared.logging_utils import log_external_call

logger = logging.getLogger(__name__)

SEARCH_PAGE_SIZE = 100

# Per-node GraphQL errors that just mean "this repository is gone"
IGNORABLE_GRAPHQL_ERRORS = ("NOT_FOUND", "FORBIDDEN")


def _is_rate_limit_response(response: httpx.Response) -> bool:
    if response.status_code not in (403, 429):
        return False
    return (
        response.headers.get("x-ratelimit-remaining") == "0"
        or "retry-after" in response.headers
        or response.status_code == 429
    )


def raise_for_github_status(response: httpx.Response) -> None:
    """Raise the matching UpstreamError subclass for a non-2xx response."""
    if response.is_success:
        return

    if _is_rate_limit_response(response):
        raise RateLimitError.from_response(response)
    if response.status_code == 404:
        raise NotFoundError.from_response(response)
    raise UpstreamError.from_response(response)


class GitHubClient:
    """
    GitHub API client bound to one token.
    """

    def __init__(self, token: Optional[str] = None):
        self.token = token or get_github_token()
        self.headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.token:
            self.headers["Authorization"] = f"Bearer {self.token}"

    async def search_code(self, query: str, page: int, per_page: int = SEARCH_PAGE_SIZE) -> dict:
        """
        Fetch one page of code search results.

        Returns:
            Search response JSON ({"total_count", "items": [...]})
        """
        client = get_http_client()
        start = time.monotonic()
        try:
            response = await client.get(
                f"{GITHUB_API}/search/code",
                params={"q": query, "per_page": per_page, "page": page},
                headers=self.headers,
                timeout=GITHUB_TIMEOUT,
            )
        except httpx.HTTPError as e:
            log_external_call(
                logger, "github", "search_code", False,
                (time.monotonic() - start) * 1000, error=str(e),
            )
            raise UpstreamError(f"Code search request failed: {e}") from e

        latency_ms = (time.monotonic() - start) * 1000
        log_external_call(logger, "github", "search_code", response.is_success, latency_ms)

        raise_for_github_status(response)
        return response.json()

    async def graphql(self, query: str, variables: Optional[dict] = None) -> dict:
        """
        Run a GraphQL query and return its `data` object.

        Aliases whose lookup failed with NOT_FOUND come back as None inside
        data; any other top-level error raises.
        """
        client = get_http_client()
        payload: dict = {"query": query}
        if variables:
            payload["variables"] = variables

        start = time.monotonic()
        try:
            response = await client.post(
                GITHUB_GRAPHQL_API,
                json=payload,
                headers=self.headers,
                timeout=GITHUB_TIMEOUT,
            )
        except httpx.HTTPError as e:
            log_external_call(
                logger, "github", "graphql", False,
                (time.monotonic() - start) * 1000, error=str(e),
            )
            raise UpstreamError(f"GraphQL request failed: {e}") from e

        latency_ms = (time.monotonic() - start) * 1000
        log_external_call(logger, "github", "graphql", response.is_success, latency_ms)

        raise_for_github_status(response)

        try:
            body = response.json()
        except ValueError as e:
            raise GraphQLError(
                "Malformed GraphQL response", status_code=response.status_code
            ) from e

        errors = body.get("errors") or []
        if any(err.get("type") == "RATE_LIMITED" for err in errors):
            raise RateLimitError(
                "GraphQL rate limited",
                status_code=response.status_code,
                headers=response.headers,
            )

        hard_errors = [
            err for err in errors if err.get("type") not in IGNORABLE_GRAPHQL_ERRORS
        ]
        data = body.get("data")
        if hard_errors or data is None:
            message = "; ".join(err.get("message", "unknown error") for err in hard_errors)
            raise GraphQLError(
                f"GraphQL error: {message or 'no data'}",
                status_code=response.status_code,
            )

        return data
