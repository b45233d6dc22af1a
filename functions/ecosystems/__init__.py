"""
Per-ecosystem manifest parsing and registry lookups.
"""

from .github_url import GitHubRepoRef, parse_github_url
from .package_exists import check_package_exists
from .registry import (
    clear_registry,
    get_strategy,
    get_supported_platforms,
    register_default_strategies,
    register_strategy,
)
from .strategy import DependencyResult, EcosystemStrategy

__all__ = [
    "DependencyResult",
    "EcosystemStrategy",
    "GitHubRepoRef",
    "check_package_exists",
    "clear_registry",
    "get_strategy",
    "get_supported_platforms",
    "parse_github_url",
    "register_default_strategies",
    "register_strategy",
]
