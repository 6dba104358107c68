"""
Account-level summaries: realized results from the trade ledger and unrealized
results from open positions at last known quotes.

Percentages are 4-decimal ratios x 100 and are zero when the base is zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from stocktrade.accounts import AccountLedger
from stocktrade.errors import QuoteUnavailable
from stocktrade.ledger import TradeLedger
from stocktrade.money import ZERO, percent
from stocktrade.oracle.base import PriceOracle
from stocktrade.positions import Position, PositionBook
from stocktrade.trade import Side


def last_price(oracle: PriceOracle, symbol: str) -> Decimal | None:
    """Last known quote price, or None when the oracle has none."""
    try:
        return oracle.get_quote(symbol).price
    except QuoteUnavailable:
        return None


def market_value(position: Position, oracle: PriceOracle) -> Decimal:
    """Position value at the last known price; zero without a quote."""
    price = last_price(oracle, position.symbol)
    return position.market_value(price) if price is not None else ZERO


@dataclass(frozen=True)
class TradeSummary:
    """Realized totals for one user."""

    total_buy_amount: Decimal
    total_sell_amount: Decimal
    realized_gain_loss: Decimal
    total_trade_count: int
    unique_symbols_traded: int

    @property
    def realized_gain_loss_pct(self) -> Decimal:
        return percent(self.realized_gain_loss, self.total_buy_amount)


@dataclass(frozen=True)
class PortfolioSummary:
    """Cash, holdings and unrealized results for one user."""

    cash_balance: Decimal
    portfolio_value: Decimal
    total_invested: Decimal
    unrealized_gain_loss: Decimal
    unrealized_gain_loss_pct: Decimal
    total_account_value: Decimal
    holdings_count: int

    @property
    def cash_pct(self) -> Decimal:
        return percent(self.cash_balance, self.total_account_value)

    @property
    def invested_pct(self) -> Decimal:
        return percent(self.portfolio_value, self.total_account_value)


def trade_summary(trades: TradeLedger, user_id: str) -> TradeSummary:
    """Totals over the user's completed trades. realized = sells - buys."""
    total_buy = trades.total_amount(user_id, Side.BUY)
    total_sell = trades.total_amount(user_id, Side.SELL)
    return TradeSummary(
        total_buy_amount=total_buy,
        total_sell_amount=total_sell,
        realized_gain_loss=total_sell - total_buy,
        total_trade_count=trades.count_for_user(user_id),
        unique_symbols_traded=len(trades.traded_symbols(user_id)),
    )


def portfolio_summary(
    accounts: AccountLedger,
    positions: PositionBook,
    oracle: PriceOracle,
    user_id: str,
) -> PortfolioSummary:
    """Cash plus holdings valued at last known quotes."""
    cash = accounts.get_balance(user_id)
    held = positions.positions_for(user_id)
    value = sum((market_value(p, oracle) for p in held), ZERO)
    invested = sum((p.total_cost for p in held), ZERO)
    gain_loss = value - invested
    return PortfolioSummary(
        cash_balance=cash,
        portfolio_value=value,
        total_invested=invested,
        unrealized_gain_loss=gain_loss,
        unrealized_gain_loss_pct=percent(gain_loss, invested),
        total_account_value=cash + value,
        holdings_count=len(held),
    )


def profitable_positions(positions: PositionBook, oracle: PriceOracle, user_id: str) -> list[Position]:
    """Positions whose last known price is above average cost."""
    out = []
    for p in positions.positions_for(user_id):
        price = last_price(oracle, p.symbol)
        if price is not None and price > p.average_cost:
            out.append(p)
    return out


def losing_positions(positions: PositionBook, oracle: PriceOracle, user_id: str) -> list[Position]:
    """Positions whose last known price is below average cost."""
    out = []
    for p in positions.positions_for(user_id):
        price = last_price(oracle, p.symbol)
        if price is not None and price < p.average_cost:
            out.append(p)
    return out
