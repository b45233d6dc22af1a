"""
Lightweight registry check that a package exists before a pipeline run is
queued for it. Uses HEAD requests where the registry supports them.

Only a confirmed negative (404/410) blocks. Unknown platforms, network
errors and registry outages count as "exists" so the pipeline decides.
"""

import logging
from typing import Callable, Optional

import httpx

from shared.constants import (
    CRATES_API,
    GO_PROXY,
    NPM_REGISTRY,
    PACKAGIST_API,
    PYPI_API,
    RUBYGEMS_API,
    USER_AGENT,
)
from shared.http_client import get_http_client

from .strategy import EcosystemStrategy

logger = logging.getLogger(__name__)

NOT_FOUND_STATUSES = (404, 410)


def _composer_url(name: str) -> str:
    vendor, _, pkg = name.partition("/")
    return f"{PACKAGIST_API}/{vendor}/{pkg}.json"


# platform -> (method, url builder, extra headers)
REGISTRY_CHECKS: dict[str, tuple[str, Callable[[str], str], Optional[dict]]] = {
    "npm": ("HEAD", lambda name: f"{NPM_REGISTRY}/{name}", None),
    "pypi": ("HEAD", lambda name: f"{PYPI_API}/{name}/json", None),
    "cargo": ("HEAD", lambda name: f"{CRATES_API}/{name}", {"User-Agent": USER_AGENT}),
    "composer": ("HEAD", _composer_url, None),
    "rubygems": ("HEAD", lambda name: f"{RUBYGEMS_API}/{name}.json", None),
    # The Go proxy does not answer HEAD on @v/list
    "go": ("GET", lambda name: f"{GO_PROXY}/github.com/{name}/@v/list", None),
}


async def check_package_exists(strategy: EcosystemStrategy, package_name: str) -> bool:
    check = REGISTRY_CHECKS.get(strategy.platform)
    if check is None:
        return True

    method, build_url, headers = check
    try:
        client = get_http_client()
        response = await client.request(method, build_url(package_name), headers=headers)
    except httpx.HTTPError as e:
        logger.warning(f"Existence check for {strategy.platform}/{package_name} failed: {e}")
        return True

    if response.status_code in NOT_FOUND_STATUSES:
        logger.info(f"Package {strategy.platform}/{package_name} not found in registry")
        return False

    return True
