"""
Go modules strategy: go.mod manifests.

Only GitHub-hosted modules are supported, and the package name is the
`owner/repo` path after `github.com/`, so resolution needs no registry.
"""

import re
from typing import Optional

from .github_url import GitHubRepoRef
from .strategy import NOT_FOUND, DependencyResult, EcosystemStrategy


class GoStrategy(EcosystemStrategy):
    platform = "go"
    manifest_filename = "go.mod"
    package_name_pattern = re.compile(r"^[a-zA-Z0-9_-]+/[a-zA-Z0-9._-]+$")

    def build_search_query(self, package_name: str) -> str:
        return f'"github.com/{package_name}" filename:go.mod'

    def is_dependency(self, manifest_text: str, package_name: str) -> DependencyResult:
        # Single-line `require` or an indented line inside a require block.
        # A `module` declaration is the package itself, not a dependent.
        pattern = re.compile(
            rf"^(?:require\s+|\s+)github\.com/{re.escape(package_name)}(?:/v\d+)?\s",
            re.MULTILINE,
        )
        match = pattern.search(manifest_text)
        if not match:
            return NOT_FOUND

        rest = manifest_text[match.end() - 1:].split("\n", 1)[0].split()
        version = rest[0] if rest and rest[0].startswith("v") else None
        return DependencyResult(found=True, version=version, dep_type="dependencies")

    def registry_url(self, package_name: str) -> Optional[str]:
        return None

    async def resolve_github_repo(self, package_name: str) -> Optional[GitHubRepoRef]:
        parts = package_name.split("/")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            return None
        return GitHubRepoRef(owner=parts[0], repo=parts[1])
