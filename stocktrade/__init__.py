"""
stocktrade: trade execution and portfolio accounting core.

Cash balances, positions with average cost basis, and an append-only trade ledger,
reconciled per order against a possibly stale price oracle. No HTTP, auth or
persistence layers.
"""

__version__ = "0.1.0"

from stocktrade.accounts import Account, AccountLedger
from stocktrade.clock import FixedClock, SystemClock
from stocktrade.config import EngineSettings
from stocktrade.errors import (
    ConcurrentConflict,
    InsufficientFunds,
    InsufficientShares,
    InvalidArgument,
    NotFound,
    QuoteUnavailable,
    TradingError,
)
from stocktrade.instruments import Instrument, SymbolRegistry
from stocktrade.ledger import TradeLedger
from stocktrade.positions import Position, PositionBook
from stocktrade.trade import Side, Trade, TradeStatus

__all__ = [
    "Account",
    "AccountLedger",
    "FixedClock",
    "SystemClock",
    "EngineSettings",
    "TradingError",
    "InvalidArgument",
    "NotFound",
    "InsufficientFunds",
    "InsufficientShares",
    "QuoteUnavailable",
    "ConcurrentConflict",
    "Instrument",
    "SymbolRegistry",
    "TradeLedger",
    "Position",
    "PositionBook",
    "Side",
    "Trade",
    "TradeStatus",
]
