"""
Live dependent count scraped from github.com/{owner}/{repo}/network/dependents.

The page shows "N Repositories" next to a link carrying
dependent_type=REPOSITORY. Any failure returns None.
"""

import logging
import re
from typing import Optional

import httpx

from shared.constants import GITHUB_WEB
from shared.http_client import get_http_client
from shared.logging_utils import PipelineTrace

logger = logging.getLogger(__name__)

ANCHOR = "dependent_type=REPOSITORY"
_COUNT_RE = re.compile(r"([\d,]+)\s+Repositories")


def parse_dependent_count(html: str) -> Optional[int]:
    anchor_index = html.find(ANCHOR)
    if anchor_index == -1:
        return None

    match = _COUNT_RE.search(html, anchor_index)
    if not match:
        return None

    digits = match.group(1).replace(",", "")
    return int(digits) if digits else None


async def fetch_dependent_count(
    owner: str,
    repo: str,
    trace: Optional[PipelineTrace] = None,
) -> Optional[int]:
    url = f"{GITHUB_WEB}/{owner}/{repo}/network/dependents"
    try:
        client = get_http_client()
        response = await client.get(url)
    except httpx.HTTPError as e:
        logger.debug(f"Dependents page fetch failed for {owner}/{repo}: {e}")
        return None

    if response.status_code != 200:
        if trace:
            trace.log("  dependents-page", f"{response.status_code}")
        return None

    count = parse_dependent_count(response.text)
    if trace:
        trace.log("  dependents-page", str(count) if count is not None else "no count found")
    return count
