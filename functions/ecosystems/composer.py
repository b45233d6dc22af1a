"""
Composer strategy: composer.json manifests and the Packagist p2 API.
"""

import json
import re
from typing import Optional

from shared.constants import PACKAGIST_API

from .strategy import NOT_FOUND, DependencyResult, EcosystemStrategy

DEP_KEYS = {
    "require": "dependencies",
    "require-dev": "devDependencies",
}


class ComposerStrategy(EcosystemStrategy):
    platform = "composer"
    manifest_filename = "composer.json"
    package_name_pattern = re.compile(
        r"^[a-z0-9]([a-z0-9_.-]*[a-z0-9])?/[a-z0-9]([a-z0-9_.-]*[a-z0-9])?$"
    )

    def is_dependency(self, manifest_text: str, package_name: str) -> DependencyResult:
        try:
            parsed = json.loads(manifest_text)
        except (json.JSONDecodeError, TypeError):
            return NOT_FOUND

        if not isinstance(parsed, dict):
            return NOT_FOUND

        for key, dep_type in DEP_KEYS.items():
            deps = parsed.get(key)
            if isinstance(deps, dict) and package_name in deps:
                version = deps[package_name]
                return DependencyResult(
                    found=True,
                    version=version if isinstance(version, str) else None,
                    dep_type=dep_type,
                )

        return NOT_FOUND

    def registry_url(self, package_name: str) -> Optional[str]:
        vendor, _, name = package_name.partition("/")
        if not vendor or not name:
            return None
        return f"{PACKAGIST_API}/{vendor}/{name}.json"

    def extract_repository_url(self, data: dict, package_name: str) -> Optional[str]:
        packages = data.get("packages")
        versions = packages.get(package_name) if isinstance(packages, dict) else None
        if not isinstance(versions, list) or not versions:
            return None

        source = versions[0].get("source") if isinstance(versions[0], dict) else None
        if isinstance(source, dict):
            return source.get("url")
        return None
