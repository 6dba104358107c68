"""
In-memory price oracle: keeps last known quotes and refreshes them from an
injected market data source.

The source is a callable symbols -> DataFrame (columns: symbol, close, optional
timestamp), or a dict of symbol -> price. Without a source, refresh always fails
and quotes only change through set_quote.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal

import pandas as pd

from stocktrade.clock import Clock, SystemClock
from stocktrade.errors import InvalidArgument, QuoteUnavailable
from stocktrade.instruments import normalize_symbol
from stocktrade.money import to_decimal
from stocktrade.oracle.base import PriceOracle, Quote

logger = logging.getLogger(__name__)

MarketDataSource = Callable[[list[str]], pd.DataFrame]


def _prices_to_dataframe(symbols: list[str], prices: dict[str, Decimal | float | str]) -> pd.DataFrame:
    """Build a one-row-per-symbol DataFrame with close from prices dict."""
    rows = [{"symbol": s, "close": p} for s, p in prices.items() if s in symbols]
    return pd.DataFrame(rows) if rows else pd.DataFrame(columns=["symbol", "close"])


class InMemoryPriceOracle(PriceOracle):
    """
    Quote cache with pluggable refresh. Pass market_data_source(symbols -> DataFrame)
    or latest_prices (dict symbol -> price); seed initial quotes with quotes= or set_quote.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        *,
        quotes: dict[str, Decimal | float | str] | None = None,
        market_data_source: MarketDataSource | None = None,
        latest_prices: dict[str, Decimal | float | str] | None = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._quotes: dict[str, Quote] = {}
        if market_data_source is not None:
            self._market_data_source: MarketDataSource | None = market_data_source
        elif latest_prices is not None:
            self._market_data_source = lambda syms: _prices_to_dataframe(syms, latest_prices)
        else:
            self._market_data_source = None
        for sym, price in (quotes or {}).items():
            self.set_quote(sym, price)

    def set_quote(self, symbol: str, price: Decimal | float | str, as_of: datetime | None = None) -> Quote:
        sym = normalize_symbol(symbol)
        quote = Quote(symbol=sym, price=to_decimal(price), as_of=as_of or self._clock.now())
        with self._lock:
            self._quotes[sym] = quote
        return quote

    def get_quote(self, symbol: str) -> Quote:
        sym = normalize_symbol(symbol)
        quote = self._quotes.get(sym)
        if quote is None:
            raise QuoteUnavailable(sym, "no quote known")
        return quote

    def is_stale(self, symbol: str, threshold_minutes: int) -> bool:
        quote = self._quotes.get(normalize_symbol(symbol))
        if quote is None:
            return True
        return quote.is_stale(self._clock.now(), threshold_minutes)

    def refresh(self, symbol: str) -> Quote:
        """Pull the latest close for symbol from the market data source."""
        sym = normalize_symbol(symbol)
        if self._market_data_source is None:
            raise QuoteUnavailable(sym, "no market data source configured")
        try:
            df = self._market_data_source([sym])
        except Exception as e:  # noqa: BLE001
            raise QuoteUnavailable(sym, f"market data source error: {e!s}") from e

        if df is None or df.empty or "close" not in df.columns:
            raise QuoteUnavailable(sym, "no market data for symbol")
        if "symbol" in df.columns:
            df = df[df["symbol"].astype(str).str.upper() == sym]
            if df.empty:
                raise QuoteUnavailable(sym, "no market data for symbol")
        row = df.iloc[-1]

        as_of = self._clock.now()
        if "timestamp" in df.columns and pd.notna(row["timestamp"]):
            as_of = pd.Timestamp(row["timestamp"]).to_pydatetime()
        try:
            quote = Quote(symbol=sym, price=to_decimal(row["close"]), as_of=as_of)
        except InvalidArgument as e:
            raise QuoteUnavailable(sym, f"invalid price: {e}") from e

        with self._lock:
            self._quotes[sym] = quote
        logger.debug("Refreshed %s: %s as of %s", sym, quote.price, quote.as_of)
        return quote
