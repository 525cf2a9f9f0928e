"""Exchange integrations."""
from .binance import BinanceMarginClient, BinanceUserDataStream, MarginAccountSession
from .dry_run import DryRunMarginExecutor

__all__ = [
    "BinanceMarginClient",
    "BinanceUserDataStream",
    "DryRunMarginExecutor",
    "MarginAccountSession",
]
