"""
Execution layer: trade execution engine and per-user locking.

Market orders only; every order commits cash, position and ledger changes together
or not at all. Observers are called after each commit.
"""

from stocktrade.execution.engine import TradeExecutionEngine, TradeObserver
from stocktrade.execution.locks import UserLockRegistry
from stocktrade.execution.types import PortfolioSnapshot, QuoteResolution, RejectedOrderLog

__all__ = [
    "TradeExecutionEngine",
    "TradeObserver",
    "UserLockRegistry",
    "PortfolioSnapshot",
    "QuoteResolution",
    "RejectedOrderLog",
]
