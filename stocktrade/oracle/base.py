"""
Price oracle abstraction.

PriceOracle ABC: get_quote, refresh, is_stale. The in-memory adapter implements it
for simulation and tests; a real quote-provider adapter would implement the same
interface.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from stocktrade.errors import InvalidArgument, QuoteUnavailable
from stocktrade.money import round2, to_decimal

logger = logging.getLogger(__name__)


def to_naive_local(value: datetime) -> datetime:
    """Aware datetimes become naive local time; naive ones are returned unchanged."""
    if value.tzinfo is None or value.utcoffset() is None:
        return value
    return value.astimezone().replace(tzinfo=None)


@dataclass(frozen=True)
class Quote:
    """
    Last known price of a symbol and when it was observed.

    as_of is stored as naive local time, like the clocks; timezone-aware
    timestamps from a data source are converted on construction.
    """

    symbol: str
    price: Decimal
    as_of: datetime

    def __post_init__(self) -> None:
        price = to_decimal(self.price)
        if not price.is_finite() or round2(price) <= 0:
            raise InvalidArgument(f"Quote price must be positive, got {self.price}")
        object.__setattr__(self, "price", round2(price))
        object.__setattr__(self, "as_of", to_naive_local(self.as_of))

    def age(self, now: datetime) -> timedelta:
        return now - self.as_of

    def is_stale(self, now: datetime, threshold_minutes: int) -> bool:
        """True when as_of is older than threshold_minutes before now."""
        return self.as_of < now - timedelta(minutes=threshold_minutes)


class PriceOracle(ABC):
    """Source of current prices. Quotes may be stale."""

    @abstractmethod
    def get_quote(self, symbol: str) -> Quote:
        """Return the last known quote. Raises QuoteUnavailable if none is known."""
        ...

    @abstractmethod
    def refresh(self, symbol: str) -> Quote:
        """Fetch a new quote from upstream. Raises QuoteUnavailable on any upstream error."""
        ...

    @abstractmethod
    def is_stale(self, symbol: str, threshold_minutes: int) -> bool:
        """True if the last quote is older than threshold_minutes, or no quote is known."""
        ...

    def refresh_stale(self, symbols: Iterable[str], threshold_minutes: int) -> list[str]:
        """
        Refresh every stale symbol; failures are logged and skipped.
        Returns the symbols that were stale.
        """
        stale = [s for s in symbols if self.is_stale(s, threshold_minutes)]
        for sym in stale:
            try:
                self.refresh(sym)
            except QuoteUnavailable as e:
                logger.warning("Failed to refresh stock data for %s: %s", sym, e.reason)
        return stale
