"""
Trading session example: buy and sell through the execution engine.

Shows: in-memory price oracle with a market data source, stale-quote refresh,
observers, rejected-order log, and the account report.
"""

from __future__ import annotations

import logging
from decimal import Decimal

import pandas as pd

from reporting import print_report
from stocktrade import AccountLedger, FixedClock, InsufficientFunds, PositionBook, SymbolRegistry, TradeLedger
from stocktrade.execution import PortfolioSnapshot, TradeExecutionEngine
from stocktrade.oracle import InMemoryPriceOracle
from stocktrade.trade import Trade


def print_fill_observer(trade: Trade, snapshot: PortfolioSnapshot) -> None:
    """Observer: post-trade log."""
    print(f"  [Observer] {trade.describe()} -> cash {snapshot.cash_balance:,.2f}")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    clock = FixedClock()
    # Simulated upstream prices (in real use, a quote provider)
    upstream: dict[str, float] = {"ACME": 100.0, "GLOBEX": 42.5}

    def market_data_source(symbols: list[str]) -> pd.DataFrame:
        return pd.DataFrame([{"symbol": s, "close": upstream[s]} for s in symbols if s in upstream])

    oracle = InMemoryPriceOracle(clock, market_data_source=market_data_source)
    registry = SymbolRegistry(["ACME", "GLOBEX"])
    accounts = AccountLedger()
    positions = PositionBook()
    trades = TradeLedger(clock)
    accounts.open_account("alice", Decimal("1000.00"))

    engine = TradeExecutionEngine(
        accounts,
        positions,
        trades,
        oracle,
        registry,
        clock=clock,
        observers=[print_fill_observer],
    )

    print("--- Buy 5 ACME (no quote yet: refreshed from source) ---")
    engine.execute_buy("alice", "ACME", 5, Decimal("100.00"))

    print("\n--- Ten minutes later ACME trades at 120: buying 5 more no longer fits ---")
    clock.advance(minutes=10)
    upstream["ACME"] = 120.0
    try:
        engine.execute_buy("alice", "ACME", 5, Decimal("100.00"))
    except InsufficientFunds as e:
        print(f"  Rejected: {e}")

    print("\n--- Sell 2 ACME at market ---")
    engine.execute_sell("alice", "ACME", 2, Decimal("120.00"))

    print("\n--- Rejected log ---")
    for entry in engine.get_rejected_log():
        print(f"  {entry.reason}: {entry.side.value} {entry.quantity} {entry.symbol} ({entry.message})")

    print()
    print_report(accounts, positions, trades, oracle, "alice")


if __name__ == "__main__":
    main()
