"""Strategy factory map, built by the host application at startup."""
from __future__ import annotations

from typing import Any, Callable

from ..errors import ConfigurationError
from . import autoborrow

StrategyFactory = Callable[..., Any]


class StrategyRegistry:
    """Maps strategy IDs to factories. Nothing is registered implicitly."""

    def __init__(self) -> None:
        self._factories: dict[str, StrategyFactory] = {}

    def register(self, strategy_id: str, factory: StrategyFactory) -> None:
        if strategy_id in self._factories:
            raise ValueError(f"Strategy '{strategy_id}' is already registered")
        self._factories[strategy_id] = factory

    def create(self, strategy_id: str, **kwargs: Any) -> Any:
        factory = self._factories.get(strategy_id)
        if factory is None:
            raise ConfigurationError(f"Unknown strategy '{strategy_id}'")
        return factory(**kwargs)

    def ids(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, strategy_id: object) -> bool:
        return strategy_id in self._factories


def build_registry() -> StrategyRegistry:
    """Registry with the strategies shipped in this package."""
    registry = StrategyRegistry()
    registry.register(autoborrow.ID, autoborrow.AutoBorrowStrategy)
    return registry
