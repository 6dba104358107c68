"""
Trade ledger: append-only record of executed trades.

Entries are immutable Trade instances; the ledger never edits or deletes them.
Aggregates over zero rows are zero, never None.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime
from decimal import Decimal

import pandas as pd

from stocktrade.clock import Clock, SystemClock
from stocktrade.errors import InvalidArgument
from stocktrade.instruments import normalize_symbol
from stocktrade.money import ZERO, round2
from stocktrade.trade import Side, Trade, TradeStatus

logger = logging.getLogger(__name__)

FRAME_COLUMNS = [
    "trade_id",
    "user_id",
    "symbol",
    "side",
    "quantity",
    "execution_price",
    "commission",
    "total_amount",
    "status",
    "executed_at",
]


def _newest_first(trades: list[Trade]) -> list[Trade]:
    return sorted(trades, key=lambda t: t.executed_at, reverse=True)


class TradeLedger:
    """In-memory append-only trade store."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._trades: list[Trade] = []
        self._ids: set[str] = set()

    def __len__(self) -> int:
        return len(self._trades)

    def append(self, trade: Trade) -> Trade:
        """Store a COMPLETED trade, stamping id and execution time when absent."""
        if trade.status != TradeStatus.COMPLETED:
            raise InvalidArgument(f"Only completed trades can be recorded, got {trade.status.value}")
        changes: dict[str, object] = {}
        if trade.trade_id is None:
            changes["trade_id"] = f"trd-{uuid.uuid4().hex[:12]}"
        if trade.executed_at is None:
            changes["executed_at"] = self._clock.now()
        if changes:
            trade = trade.with_fields(**changes)
        with self._lock:
            if trade.trade_id in self._ids:
                raise InvalidArgument(f"Duplicate trade id: {trade.trade_id}")
            self._ids.add(trade.trade_id)
            self._trades.append(trade)
        logger.debug("Ledger append %s: %s", trade.trade_id, trade.describe())
        return trade

    def all(self) -> list[Trade]:
        with self._lock:
            return list(self._trades)

    # --- Queries ---

    def by_user(self, user_id: str) -> list[Trade]:
        return _newest_first([t for t in self.all() if t.user_id == user_id])

    def by_user_and_symbol(self, user_id: str, symbol: str) -> list[Trade]:
        sym = normalize_symbol(symbol)
        return _newest_first([t for t in self.all() if t.user_id == user_id and t.symbol == sym])

    def by_symbol(self, symbol: str) -> list[Trade]:
        sym = normalize_symbol(symbol)
        return _newest_first([t for t in self.all() if t.symbol == sym])

    def between(self, user_id: str, start: datetime, end: datetime | None = None) -> list[Trade]:
        """User's trades executed in [start, end]; open-ended when end is None."""
        return _newest_first(
            [
                t
                for t in self.all()
                if t.user_id == user_id and t.executed_at >= start and (end is None or t.executed_at <= end)
            ]
        )

    def symbol_since(self, symbol: str, start: datetime) -> list[Trade]:
        sym = normalize_symbol(symbol)
        return _newest_first([t for t in self.all() if t.symbol == sym and t.executed_at >= start])

    def total_amount(self, user_id: str, side: Side) -> Decimal:
        """Sum of total_amount over the user's completed trades on one side."""
        total = ZERO
        for t in self.all():
            if t.user_id == user_id and t.side == side and t.is_completed:
                total += t.total_amount
        return total

    def total_quantity(self, user_id: str, symbol: str, side: Side) -> int:
        sym = normalize_symbol(symbol)
        return sum(
            t.quantity for t in self.all() if t.user_id == user_id and t.symbol == sym and t.side == side and t.is_completed
        )

    def count_for_user(self, user_id: str) -> int:
        return sum(1 for t in self.all() if t.user_id == user_id and t.is_completed)

    def count_for_symbol(self, symbol: str) -> int:
        sym = normalize_symbol(symbol)
        return sum(1 for t in self.all() if t.symbol == sym and t.is_completed)

    def average_price(self, symbol: str, since: datetime) -> Decimal:
        """Unweighted mean execution price since a point in time; 0 if no trades."""
        prices = [t.execution_price for t in self.symbol_since(symbol, since) if t.is_completed]
        if not prices:
            return ZERO
        return round2(sum(prices, ZERO) / len(prices))

    def total_volume(self, symbol: str, since: datetime) -> int:
        return sum(t.quantity for t in self.symbol_since(symbol, since) if t.is_completed)

    def traded_symbols(self, user_id: str) -> list[str]:
        return sorted({t.symbol for t in self.all() if t.user_id == user_id})

    def to_frame(self, user_id: str | None = None) -> pd.DataFrame:
        """Ledger as a DataFrame (one row per trade, oldest first)."""
        trades = self.all() if user_id is None else [t for t in self.all() if t.user_id == user_id]
        rows = [
            {
                "trade_id": t.trade_id,
                "user_id": t.user_id,
                "symbol": t.symbol,
                "side": t.side.value,
                "quantity": t.quantity,
                "execution_price": t.execution_price,
                "commission": t.commission,
                "total_amount": t.total_amount,
                "status": t.status.value,
                "executed_at": t.executed_at,
            }
            for t in trades
        ]
        return pd.DataFrame(rows, columns=FRAME_COLUMNS)
