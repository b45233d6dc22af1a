"""
GitHub repository URL parsing shared by the registry lookups.
"""

import re
from dataclasses import dataclass
from typing import Optional

_GITHUB_REPO_RE = re.compile(r"github\.com[/:]([^/]+)/([^/#?]+)")


@dataclass(frozen=True)
class GitHubRepoRef:
    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


def parse_github_url(url: str) -> Optional[GitHubRepoRef]:
    """
    Parse a repository URL into owner and repo.

    Handles the forms registries hand back:
    - https://github.com/owner/repo
    - git+https://github.com/owner/repo.git
    - git@github.com:owner/repo.git
    - https://github.com/owner/repo/tree/main/subdir
    - https://github.com/owner/repo#readme

    Returns:
        GitHubRepoRef, or None if the URL does not point at GitHub
    """
    if not url:
        return None

    match = _GITHUB_REPO_RE.search(url.strip())
    if not match:
        return None

    owner, repo = match.group(1), match.group(2)
    if repo.endswith(".git"):
        repo = repo[:-4]

    if not owner or not repo:
        return None

    return GitHubRepoRef(owner=owner, repo=repo)
