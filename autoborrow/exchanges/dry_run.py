"""Dry-run executor — logs borrow/repay requests instead of sending them."""
import logging
from decimal import Decimal

logger = logging.getLogger(__name__)


class DryRunMarginExecutor:
    """Margin executor that never touches the exchange."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, Decimal]] = []

    async def borrow(self, asset: str, amount: Decimal) -> None:
        self.calls.append(("borrow", asset, amount))
        logger.warning("[DRY-RUN] Would borrow %s %s", amount, asset)

    async def repay(self, asset: str, amount: Decimal) -> None:
        self.calls.append(("repay", asset, amount))
        logger.warning("[DRY-RUN] Would repay %s %s", amount, asset)
