"""Automated margin borrow/repay controller."""

__version__ = "0.1.0"
