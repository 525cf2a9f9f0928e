"""Data models — all frozen (immutable)."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Mapping

ZERO = Decimal("0")


class MarginAction(str, Enum):
    BORROW = "Borrow"
    REPAY = "Repay"


@dataclass(frozen=True)
class Balance:
    """Margin wallet balance of a single asset."""

    currency: str
    available: Decimal = ZERO
    locked: Decimal = ZERO
    borrowed: Decimal = ZERO
    interest: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        """Wallet total (available + locked). Debt is tracked in ``borrowed``."""
        return self.available + self.locked

    @property
    def net_asset(self) -> Decimal:
        return self.total - self.borrowed - self.interest


@dataclass(frozen=True)
class AccountSnapshot:
    """Point-in-time view of a margin account."""

    margin_level: Decimal = ZERO
    margin_ratio: Decimal = ZERO
    margin_tolerance: Decimal = ZERO
    balances: Mapping[str, Balance] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Freeze the mapping so concurrent readers never see a partial update.
        object.__setattr__(self, "balances", MappingProxyType(dict(self.balances)))

    def balance(self, asset: str) -> Balance | None:
        return self.balances.get(asset)


@dataclass(frozen=True)
class BalanceChange:
    """Normalized balance-update event: an asset and its signed delta."""

    asset: str
    delta: Decimal

    @property
    def is_inflow(self) -> bool:
        return self.delta > 0


@dataclass(frozen=True)
class Decision:
    """A borrow or repay the controller decided to dispatch."""

    action: MarginAction
    asset: str
    amount: Decimal
    margin_level: Decimal
    min_margin_level: Decimal

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError(f"Decision amount must be positive, got {self.amount}")
