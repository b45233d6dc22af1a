"""
PyPI strategy: requirements.txt manifests and the PyPI JSON API.

Names are compared after PEP 503 normalisation, so `Flask_Login`,
`flask-login` and `flask.login` are the same project.
"""

import re
from typing import Optional

from shared.constants import PYPI_API

from .github_url import parse_github_url
from .strategy import NOT_FOUND, DependencyResult, EcosystemStrategy

# Checked in order; the first one that points at GitHub wins
PROJECT_URL_KEYS = ("Repository", "Source", "Source Code", "GitHub", "Homepage")

# requirements.txt option lines (includes, constraints, editables, find-links)
_SKIP_PREFIXES = ("#", "-r", "-c", "-e", "-f", "--")

_NAME_RE = re.compile(r"^([a-zA-Z0-9]([a-zA-Z0-9._-]*[a-zA-Z0-9])?)")
_EXTRAS_RE = re.compile(r"^\[[^\]]*\]")
_VERSION_RE = re.compile(r"^([><=!~]+.+)")


def normalize_name(name: str) -> str:
    return re.sub(r"[-_.]", "-", name.lower())


class PypiStrategy(EcosystemStrategy):
    platform = "pypi"
    manifest_filename = "requirements.txt"
    package_name_pattern = re.compile(r"^[a-zA-Z0-9]([a-zA-Z0-9._-]*[a-zA-Z0-9])?$")

    def is_dependency(self, manifest_text: str, package_name: str) -> DependencyResult:
        target = normalize_name(package_name)

        for raw_line in manifest_text.split("\n"):
            line = raw_line.strip()
            if not line or line.startswith(_SKIP_PREFIXES):
                continue

            match = _NAME_RE.match(line)
            if not match or normalize_name(match.group(1)) != target:
                continue

            rest = _EXTRAS_RE.sub("", line[match.end():], count=1)
            version_match = _VERSION_RE.match(rest)
            version = version_match.group(1).strip() if version_match else None
            return DependencyResult(found=True, version=version)

        return NOT_FOUND

    def registry_url(self, package_name: str) -> Optional[str]:
        return f"{PYPI_API}/{package_name}/json"

    def extract_repository_url(self, data: dict, package_name: str) -> Optional[str]:
        info = data.get("info")
        project_urls = info.get("project_urls") if isinstance(info, dict) else None
        if not isinstance(project_urls, dict):
            return None

        for key in PROJECT_URL_KEYS:
            url = project_urls.get(key)
            if isinstance(url, str) and parse_github_url(url):
                return url

        return None
