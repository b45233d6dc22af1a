"""
RubyGems strategy: Gemfile manifests and the rubygems.org API.
"""

import re
from typing import Optional

from shared.constants import RUBYGEMS_API

from .strategy import NOT_FOUND, DependencyResult, EcosystemStrategy

_BLOCK_OPEN_RE = re.compile(r"\bdo\s*(\|[^|]*\|)?\s*$")
_GROUP_RE = re.compile(r"^\s*group\s+(.+?)\s+do\b")
_END_RE = re.compile(r"^\s*end\s*$")
_VERSION_ARG_RE = re.compile(r"""^\s*,\s*(['"])([^'"]*)\1""")

_DEV_GROUPS = (":development", ":test")


class RubygemsStrategy(EcosystemStrategy):
    platform = "rubygems"
    manifest_filename = "Gemfile"
    package_name_pattern = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_-]*$")

    def is_dependency(self, manifest_text: str, package_name: str) -> DependencyResult:
        gem_re = re.compile(rf"""^\s*gem\s+(['"]){re.escape(package_name)}\1(?=\s*,|\s*$)""")

        # One flag per open do...end block: True for development/test groups
        blocks: list[bool] = []

        for line in manifest_text.split("\n"):
            match = gem_re.match(line)
            if match:
                version_match = _VERSION_ARG_RE.match(line[match.end():])
                return DependencyResult(
                    found=True,
                    version=version_match.group(2) if version_match else None,
                    dep_type="devDependencies" if any(blocks) else "dependencies",
                )

            if _BLOCK_OPEN_RE.search(line):
                group = _GROUP_RE.match(line)
                blocks.append(bool(group) and any(g in group.group(1) for g in _DEV_GROUPS))
            elif _END_RE.match(line) and blocks:
                blocks.pop()

        return NOT_FOUND

    def registry_url(self, package_name: str) -> Optional[str]:
        return f"{RUBYGEMS_API}/{package_name}.json"

    def extract_repository_url(self, data: dict, package_name: str) -> Optional[str]:
        return data.get("source_code_uri") or data.get("homepage_uri")
