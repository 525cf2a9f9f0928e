"""Margin borrow/repay capability — the action executor interface."""
from decimal import Decimal
from typing import Protocol, runtime_checkable

from ..errors import ConfigurationError


@runtime_checkable
class MarginBorrowRepay(Protocol):
    """Exchange client capable of borrowing and repaying margin assets."""

    async def borrow(self, asset: str, amount: Decimal) -> None: ...

    async def repay(self, asset: str, amount: Decimal) -> None: ...


def ensure_margin_capability(client: object) -> MarginBorrowRepay:
    """Return ``client`` if it can borrow and repay, else fail fast."""
    if not isinstance(client, MarginBorrowRepay):
        raise ConfigurationError(
            f"{type(client).__name__} does not implement margin borrow/repay"
        )
    return client
