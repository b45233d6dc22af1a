"""
Path parameter handling shared by the public endpoints.

Routes are /{platform}/{name+}/data.json and /{platform}/{name+}/shield.json;
names may contain a slash (@scope/pkg, vendor/pkg, owner/repo).
"""

from urllib.parse import unquote

from ecosystems.registry import get_strategy, get_supported_platforms
from ecosystems.strategy import EcosystemStrategy
from shared.errors import InvalidPlatformError, PackageNotFoundError


def resolve_package(event: dict) -> tuple[EcosystemStrategy, str]:
    """
    Look up the strategy and validated package name for a request.

    Raises:
        InvalidPlatformError: platform is not supported
        PackageNotFoundError: name fails the platform's name pattern
    """
    path_params = event.get("pathParameters") or {}
    platform = path_params.get("platform") or ""
    name = unquote(path_params.get("name") or "").strip("/")

    strategy = get_strategy(platform)
    if strategy is None:
        raise InvalidPlatformError(platform, get_supported_platforms())

    if not strategy.is_valid_name(name):
        raise PackageNotFoundError(name, platform)

    return strategy, name
