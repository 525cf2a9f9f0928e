"""Margin account session — caches the latest account snapshot."""
from __future__ import annotations

import dataclasses
import logging
from typing import Mapping

from ...models import AccountSnapshot, Balance
from .client import BinanceMarginClient

logger = logging.getLogger(__name__)


class MarginAccountSession:
    """Account snapshot provider backed by the Binance margin account endpoint.

    The snapshot is frozen and swapped in a single assignment, so readers on
    the event loop always see a complete account view.
    """

    def __init__(self, client: BinanceMarginClient) -> None:
        self._client = client
        self._snapshot = AccountSnapshot()

    async def refresh(self) -> None:
        self._snapshot = await self._client.get_margin_account()
        logger.debug(
            "Margin account refreshed: level %s, %d balances",
            self._snapshot.margin_level,
            len(self._snapshot.balances),
        )

    def current_snapshot(self) -> AccountSnapshot:
        return self._snapshot

    def apply_balances(self, balances: Mapping[str, Balance]) -> None:
        """Merge streamed free/locked amounts, keeping known debt figures."""
        current = self._snapshot
        merged = dict(current.balances)
        for asset, update in balances.items():
            known = merged.get(asset)
            if known is not None:
                update = dataclasses.replace(
                    update, borrowed=known.borrowed, interest=known.interest
                )
            merged[asset] = update
        self._snapshot = dataclasses.replace(current, balances=merged)
