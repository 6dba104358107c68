"""
Error taxonomy for the trading core.

Rejections (InvalidArgument, NotFound, InsufficientFunds, InsufficientShares) are
raised before any state change. QuoteUnavailable is non-fatal to order execution.
ConcurrentConflict is retryable.
"""

from __future__ import annotations

from decimal import Decimal


class TradingError(Exception):
    """Base class for all errors raised by stocktrade."""

    retryable = False


class InvalidArgument(TradingError, ValueError):
    """Non-positive quantity or price, malformed symbol, bad configuration."""


class NotFound(TradingError, LookupError):
    """Unknown user account, or unknown/inactive symbol."""


class InsufficientFunds(TradingError):
    """Cash balance cannot cover the order."""

    def __init__(self, required: Decimal, available: Decimal, message: str | None = None) -> None:
        self.required = required
        self.available = available
        super().__init__(
            message or f"Insufficient cash balance. Required: ${required}, Available: ${available}"
        )


class InsufficientShares(TradingError):
    """Sell quantity exceeds held quantity."""

    def __init__(self, requested: int, owned: int, symbol: str | None = None) -> None:
        self.requested = requested
        self.owned = owned
        self.symbol = symbol
        super().__init__(f"Insufficient shares to sell. Owned: {owned}, Requested: {requested}")


class QuoteUnavailable(TradingError):
    """The price oracle could not produce a quote."""

    def __init__(self, symbol: str, reason: str) -> None:
        self.symbol = symbol
        self.reason = reason
        super().__init__(f"Quote unavailable for {symbol}: {reason}")


class ConcurrentConflict(TradingError):
    """Account or position changed between read and commit (optimistic check failed)."""

    retryable = True
