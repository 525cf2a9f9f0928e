"""Balance change normalization.

Exchanges report balance updates either as per-asset deltas or as full
balance maps. Both shapes are reduced to ``BalanceChange`` events here so the
repay trigger has exactly one input type.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from .errors import ExchangeError
from .interfaces.balance_stream import BalanceChangeHandler
from .models import Balance, BalanceChange

logger = logging.getLogger(__name__)


class BalanceChangeEmitter:
    """Delivers ``BalanceChange`` events to registered handlers.

    Coroutine handlers are scheduled as tasks so a slow handler never stalls
    the source that produced the event.
    """

    def __init__(self) -> None:
        self._handlers: list[BalanceChangeHandler] = []
        self._pending: set[asyncio.Future[Any]] = set()

    def on_balance_change(self, handler: BalanceChangeHandler) -> None:
        self._handlers.append(handler)

    def emit(self, change: BalanceChange) -> None:
        for handler in self._handlers:
            try:
                result = handler(change)
            except Exception as e:
                logger.error("Balance change handler failed for %s: %s", change.asset, e)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._on_handler_done)

    def _on_handler_done(self, task: asyncio.Future[Any]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Balance change handler failed: %s", task.exception())

    async def wait_pending(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)


class BalanceMapSource(BalanceChangeEmitter):
    """Adapter for exchanges that only publish full balance maps."""

    def __init__(self) -> None:
        super().__init__()
        self._normalizer = BalanceMapNormalizer()

    def feed(self, balances: Mapping[str, Balance]) -> list[BalanceChange]:
        changes = self._normalizer.update(balances)
        for change in changes:
            self.emit(change)
        return changes


class BalanceMapNormalizer:
    """Turns successive full balance maps into per-asset ``BalanceChange`` events."""

    def __init__(self) -> None:
        self._last: dict[str, Decimal] | None = None

    def update(self, balances: Mapping[str, Balance]) -> list[BalanceChange]:
        current = {asset: b.available for asset, b in balances.items()}
        previous, self._last = self._last, current
        if previous is None:
            return []

        changes: list[BalanceChange] = []
        for asset, available in current.items():
            delta = available - previous.get(asset, Decimal("0"))
            if delta != 0:
                changes.append(BalanceChange(asset=asset, delta=delta))
        return changes


def _decimal(value: Any, field: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ExchangeError(f"Malformed decimal in field '{field}': {value!r}") from None


# ---------------------------------------------------------------------------
# Binance user data stream payloads
# ---------------------------------------------------------------------------


def parse_balance_update(payload: Mapping[str, Any]) -> BalanceChange:
    """Parse a Binance ``balanceUpdate`` event.

    Example::

        {"e": "balanceUpdate", "E": 1573200697110, "a": "BTC",
         "d": "100.00000000", "T": 1573200697068}
    """
    if payload.get("e") != "balanceUpdate":
        raise ExchangeError(f"Not a balanceUpdate event: {payload.get('e')!r}")
    return BalanceChange(asset=str(payload["a"]), delta=_decimal(payload["d"], "d"))


def parse_account_position(payload: Mapping[str, Any]) -> dict[str, Balance]:
    """Parse a Binance ``outboundAccountPosition`` event into a balance map.

    The event carries free/locked amounts only; borrowed and interest are
    left at zero for the caller to merge from its last account snapshot.
    """
    if payload.get("e") != "outboundAccountPosition":
        raise ExchangeError(
            f"Not an outboundAccountPosition event: {payload.get('e')!r}"
        )
    balances: dict[str, Balance] = {}
    for entry in payload.get("B", []):
        asset = str(entry["a"])
        balances[asset] = Balance(
            currency=asset,
            available=_decimal(entry.get("f", "0"), "f"),
            locked=_decimal(entry.get("l", "0"), "l"),
        )
    return balances
