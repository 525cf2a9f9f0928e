"""Binance cross-margin integration."""
from .client import BinanceMarginClient
from .session import MarginAccountSession
from .stream import BinanceUserDataStream

__all__ = ["BinanceMarginClient", "BinanceUserDataStream", "MarginAccountSession"]
