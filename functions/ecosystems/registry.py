"""
Platform slug -> strategy registry.
"""

from typing import Optional

from .strategy import EcosystemStrategy

_strategies: dict[str, EcosystemStrategy] = {}


def register_strategy(strategy: EcosystemStrategy) -> None:
    if strategy.platform in _strategies:
        raise ValueError(f'Strategy already registered for platform "{strategy.platform}"')
    _strategies[strategy.platform] = strategy


def get_strategy(platform: str) -> Optional[EcosystemStrategy]:
    return _strategies.get(platform)


def get_supported_platforms() -> list[str]:
    return list(_strategies)


def clear_registry() -> None:
    _strategies.clear()


def register_default_strategies() -> None:
    """Register the built-in ecosystems. Safe to call more than once."""
    from .cargo import CargoStrategy
    from .composer import ComposerStrategy
    from .go import GoStrategy
    from .npm import NpmStrategy
    from .pypi import PypiStrategy
    from .rubygems import RubygemsStrategy

    for strategy_cls in (
        NpmStrategy,
        PypiStrategy,
        CargoStrategy,
        RubygemsStrategy,
        ComposerStrategy,
        GoStrategy,
    ):
        if strategy_cls.platform not in _strategies:
            register_strategy(strategy_cls())
