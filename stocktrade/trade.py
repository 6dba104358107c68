"""
Trade: immutable record of an executed order.

Side and TradeStatus are plain enums; Trade is frozen. The ledger assigns id and
timestamp on append when they are absent.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum

from stocktrade.money import ZERO, round2


class Side(Enum):
    BUY = "BUY"
    SELL = "SELL"


class TradeStatus(Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class Trade:
    """
    One executed order. total_amount is gross + commission for BUY
    and gross - commission for SELL.
    """

    user_id: str
    symbol: str
    side: Side
    quantity: int
    execution_price: Decimal
    commission: Decimal = ZERO
    status: TradeStatus = TradeStatus.PENDING
    executed_at: datetime | None = None
    trade_id: str | None = None
    notes: str | None = None

    @property
    def gross_amount(self) -> Decimal:
        return round2(self.execution_price * self.quantity)

    @property
    def total_amount(self) -> Decimal:
        if self.side == Side.BUY:
            return self.gross_amount + self.commission
        return self.gross_amount - self.commission

    @property
    def is_buy(self) -> bool:
        return self.side == Side.BUY

    @property
    def is_completed(self) -> bool:
        return self.status == TradeStatus.COMPLETED

    def with_fields(self, **changes) -> Trade:
        """Copy with changes applied (used by the ledger to stamp id/time)."""
        return replace(self, **changes)

    def describe(self) -> str:
        return f"{self.side.value} {self.quantity} shares of {self.symbol} at ${self.execution_price:.2f}"
