"""Exception hierarchy."""
from __future__ import annotations


class AutoBorrowError(Exception):
    """Base class for all margin-autoborrow errors."""


class ConfigurationError(AutoBorrowError, ValueError):
    """Invalid configuration or a missing exchange capability."""


class ExchangeError(AutoBorrowError):
    """The exchange rejected a request or returned an unusable response."""

    def __init__(self, message: str, status: int | None = None, code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code

    def __str__(self) -> str:
        parts = []
        if self.status is not None:
            parts.append(f"HTTP {self.status}")
        if self.code is not None:
            parts.append(f"code {self.code}")
        prefix = f"[{', '.join(parts)}] " if parts else ""
        return f"{prefix}{self.message}"
