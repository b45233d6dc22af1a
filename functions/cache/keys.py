"""
Cache key layout.

    {platform}:{name}           cache entry
    lock:{platform}:{name}      refresh lease
    history:{platform}:{name}   snapshot time series
"""

from typing import Optional

from shared.constants import HISTORY_KEY_PREFIX, LOCK_KEY_PREFIX


def build_cache_key(platform: str, package_name: str) -> str:
    return f"{platform}:{package_name}"


def parse_cache_key(key: str) -> Optional[tuple[str, str]]:
    """
    Split a cache key into (platform, package_name).

    Splits on the first colon only; the name may contain slashes or colons.
    Returns None when either part is empty.
    """
    platform, sep, package_name = key.partition(":")
    if not sep or not platform or not package_name:
        return None
    return platform, package_name


def build_lock_key(cache_key: str) -> str:
    return f"{LOCK_KEY_PREFIX}{cache_key}"


def build_history_key(cache_key: str) -> str:
    return f"{HISTORY_KEY_PREFIX}{cache_key}"


def is_lock_key(key: str) -> bool:
    return key.startswith(LOCK_KEY_PREFIX)


def is_history_key(key: str) -> bool:
    return key.startswith(HISTORY_KEY_PREFIX)
