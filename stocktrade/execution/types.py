"""
Execution-layer types: quote resolution, rejected-order log entries, portfolio snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from stocktrade.errors import QuoteUnavailable
from stocktrade.oracle.base import Quote
from stocktrade.positions import Position
from stocktrade.trade import Side


@dataclass(frozen=True)
class QuoteResolution:
    """
    Quote the engine will price with. refresh_error is set when the quote was
    stale and the refresh failed; the stale quote is still usable.
    """

    quote: Quote
    refreshed: bool = False
    refresh_error: QuoteUnavailable | None = None

    @property
    def degraded(self) -> bool:
        return self.refresh_error is not None


@dataclass(frozen=True)
class RejectedOrderLog:
    """One entry for a rejected order."""

    reason: str
    timestamp: datetime
    user_id: str
    symbol: str
    side: Side
    quantity: int
    message: str = ""


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Balance and positions of one user read together under the user's lock."""

    user_id: str
    cash_balance: Decimal
    positions: list[Position] = field(default_factory=list)

    def position(self, symbol: str) -> int:
        """Quantity held in symbol. 0 if not present."""
        for pos in self.positions:
            if pos.symbol == symbol:
                return pos.quantity
        return 0
