"""
Cargo strategy: Cargo.toml manifests and the crates.io API.

Manifests are scanned with line-anchored patterns rather than a TOML
parser, since code search returns fragments of files as often as whole
ones. Three declaration forms are recognised:

    serde = "1.0"
    serde = { version = "1.0", features = ["derive"] }
    serde.version = "1.0"
"""

import re
from typing import Optional

from shared.constants import CRATES_API, USER_AGENT

from .strategy import NOT_FOUND, DependencyResult, EcosystemStrategy

_SECTION_RE = re.compile(r"^\[([^\]]+)\]", re.MULTILINE)


def detect_dep_type(content: str, position: int) -> str:
    """Dependency category of the table enclosing position."""
    last_section = ""
    for match in _SECTION_RE.finditer(content, 0, position):
        last_section = match.group(1)

    if last_section == "dev-dependencies":
        return "devDependencies"
    return "dependencies"


class CargoStrategy(EcosystemStrategy):
    platform = "cargo"
    manifest_filename = "Cargo.toml"
    package_name_pattern = re.compile(r"^[a-zA-Z][a-zA-Z0-9_-]*$")

    def is_dependency(self, manifest_text: str, package_name: str) -> DependencyResult:
        escaped = re.escape(package_name)

        simple = re.search(rf'^\s*{escaped}\s*=\s*"([^"]*)"', manifest_text, re.MULTILINE)
        if simple:
            return DependencyResult(
                found=True,
                version=simple.group(1),
                dep_type=detect_dep_type(manifest_text, simple.start()),
            )

        table = re.search(
            rf'^\s*{escaped}\s*=\s*\{{[^}}]*version\s*=\s*"([^"]*)"',
            manifest_text,
            re.MULTILINE,
        )
        if table:
            return DependencyResult(
                found=True,
                version=table.group(1),
                dep_type=detect_dep_type(manifest_text, table.start()),
            )

        dotted = re.search(rf"^\s*{escaped}\.", manifest_text, re.MULTILINE)
        if dotted:
            dotted_version = re.search(
                rf'^\s*{escaped}\.version\s*=\s*"([^"]*)"', manifest_text, re.MULTILINE
            )
            return DependencyResult(
                found=True,
                version=dotted_version.group(1) if dotted_version else None,
                dep_type=detect_dep_type(manifest_text, dotted.start()),
            )

        return NOT_FOUND

    def registry_url(self, package_name: str) -> Optional[str]:
        return f"{CRATES_API}/{package_name}"

    def request_headers(self) -> dict:
        # crates.io rejects requests without an identifying User-Agent
        return {"User-Agent": USER_AGENT}

    def extract_repository_url(self, data: dict, package_name: str) -> Optional[str]:
        crate = data.get("crate")
        if isinstance(crate, dict):
            return crate.get("repository")
        return None
