"""
Ecosystem strategy interface.

A strategy captures everything platform-specific about finding dependents
of a package: the code-search query, how to recognise the package inside a
manifest, and how to map the package to its source repository on GitHub.
All methods are pure except resolve_github_repo, which calls the registry.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx

from shared.http_client import get_http_client

from .github_url import GitHubRepoRef, parse_github_url

logger = logging.getLogger(__name__)

DEP_TYPES = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
)


@dataclass(frozen=True)
class DependencyResult:
    """Outcome of checking one manifest for one package."""

    found: bool
    version: Optional[str] = None
    dep_type: Optional[str] = None


NOT_FOUND = DependencyResult(found=False)


class EcosystemStrategy(ABC):
    """Per-platform policy. Subclasses set the class attributes below."""

    platform: str
    manifest_filename: str
    package_name_pattern: re.Pattern

    def is_valid_name(self, package_name: str) -> bool:
        return bool(package_name) and self.package_name_pattern.fullmatch(package_name) is not None

    def build_search_query(self, package_name: str) -> str:
        return f'"{package_name}" filename:{self.manifest_filename}'

    @abstractmethod
    def is_dependency(self, manifest_text: str, package_name: str) -> DependencyResult:
        """Return whether manifest_text declares package_name."""

    @abstractmethod
    def registry_url(self, package_name: str) -> Optional[str]:
        """Registry metadata URL for package_name, or None if it cannot be built."""

    def extract_repository_url(self, data: dict, package_name: str) -> Optional[str]:
        """Pull the source repository URL out of registry metadata."""
        return None

    def request_headers(self) -> dict:
        return {}

    async def resolve_github_repo(self, package_name: str) -> Optional[GitHubRepoRef]:
        """
        Resolve package_name to its GitHub repository via the registry.

        Returns None on any failure (non-200, missing field, non-GitHub
        host, malformed JSON, network error). Never raises.
        """
        url = self.registry_url(package_name)
        if not url:
            return None

        try:
            client = get_http_client()
            response = await client.get(url, headers=self.request_headers())
            if response.status_code != 200:
                logger.debug(f"{self.platform} registry returned {response.status_code} for {package_name}")
                return None

            data = response.json()
            if not isinstance(data, dict):
                return None

            repo_url = self.extract_repository_url(data, package_name)
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"{self.platform} registry lookup failed for {package_name}: {e}")
            return None

        if not isinstance(repo_url, str):
            return None

        return parse_github_url(repo_url)
