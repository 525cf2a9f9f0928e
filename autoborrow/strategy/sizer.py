"""Borrow sizing — how much of an asset to borrow to reach its low-balance floor."""
from __future__ import annotations

import logging
from decimal import Decimal

from ..config import MarginAssetConfig
from ..models import ZERO, Balance

logger = logging.getLogger(__name__)


def compute_borrow_amount(asset: MarginAssetConfig, balance: Balance | None) -> Decimal:
    """Return the amount of ``asset`` to borrow, or zero for no action.

    With an existing balance the deficit ``low - total`` is clamped to
    ``max_quantity_per_borrow`` and then to the headroom left under
    ``max_total_borrow``. Without a balance record the full ``low`` is
    requested, clamped only per borrow; the total-borrow ceiling cannot be
    checked against a missing record and is not applied there.
    """
    if balance is None:
        amount = asset.low
        if asset.max_quantity_per_borrow > 0:
            amount = min(amount, asset.max_quantity_per_borrow)
        return max(amount, ZERO)

    amount = asset.low - balance.total
    if amount <= 0:
        logger.info(
            "balance %s >= low %s, no need to borrow %s",
            balance.total,
            asset.low,
            asset.asset,
        )
        return ZERO

    if asset.max_quantity_per_borrow > 0:
        amount = min(amount, asset.max_quantity_per_borrow)

    if asset.max_total_borrow > 0:
        projected = amount + balance.borrowed
        if projected > asset.max_total_borrow:
            amount -= projected - asset.max_total_borrow
            if amount <= 0:
                logger.warning("margin asset %s is over borrowed, skip", asset.asset)
                return ZERO
        amount = min(amount + balance.borrowed, asset.max_total_borrow) - balance.borrowed

    return amount
