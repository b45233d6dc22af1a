"""
npm strategy: package.json manifests and the npm registry.
"""

import json
import re
from typing import Optional
from urllib.parse import quote

from shared.constants import NPM_REGISTRY

from .strategy import DEP_TYPES, NOT_FOUND, DependencyResult, EcosystemStrategy


class NpmStrategy(EcosystemStrategy):
    platform = "npm"
    manifest_filename = "package.json"
    package_name_pattern = re.compile(r"^(@[a-zA-Z0-9._-]+/)?[a-zA-Z0-9._-]+$")

    def is_dependency(self, manifest_text: str, package_name: str) -> DependencyResult:
        try:
            parsed = json.loads(manifest_text)
        except (json.JSONDecodeError, TypeError):
            return NOT_FOUND

        if not isinstance(parsed, dict):
            return NOT_FOUND

        for dep_type in DEP_TYPES:
            deps = parsed.get(dep_type)
            if isinstance(deps, dict) and package_name in deps:
                version = deps[package_name]
                return DependencyResult(
                    found=True,
                    version=version if isinstance(version, str) else None,
                    dep_type=dep_type,
                )

        return NOT_FOUND

    def registry_url(self, package_name: str) -> Optional[str]:
        # Scoped names keep the leading @ but need the slash encoded
        return f"{NPM_REGISTRY}/{quote(package_name, safe='@')}"

    def extract_repository_url(self, data: dict, package_name: str) -> Optional[str]:
        repository = data.get("repository")
        if isinstance(repository, dict):
            return repository.get("url")
        return None
