"""
Account report: print trade and portfolio summaries plus the holdings table.
"""

from __future__ import annotations

from stocktrade.accounts import AccountLedger
from stocktrade.ledger import TradeLedger
from stocktrade.oracle.base import PriceOracle
from stocktrade.positions import PositionBook

from reporting.holdings import concentration, holdings_frame
from reporting.summary import PortfolioSummary, TradeSummary, portfolio_summary, trade_summary


def print_report(
    accounts: AccountLedger,
    positions: PositionBook,
    trades: TradeLedger,
    oracle: PriceOracle,
    user_id: str,
) -> tuple[TradeSummary, PortfolioSummary]:
    """
    Compute summaries for user_id and print them.

    Returns
    -------
    (TradeSummary, PortfolioSummary)
        The computed summaries (e.g. for programmatic use).
    """
    ts = trade_summary(trades, user_id)
    ps = portfolio_summary(accounts, positions, oracle, user_id)
    holdings = holdings_frame(positions, oracle, user_id)

    print(f"--- Account {user_id} ---")
    print(f"Cash:              {ps.cash_balance:,.2f} ({ps.cash_pct:.2f}%)")
    print(f"Holdings value:    {ps.portfolio_value:,.2f} ({ps.invested_pct:.2f}%)")
    print(f"Total value:       {ps.total_account_value:,.2f}")
    print(f"Invested (cost):   {ps.total_invested:,.2f}")
    print(f"Unrealized P/L:    {ps.unrealized_gain_loss:,.2f} ({ps.unrealized_gain_loss_pct:.2f}%)")
    print(f"Bought / sold:     {ts.total_buy_amount:,.2f} / {ts.total_sell_amount:,.2f}")
    print(f"Realized P/L:      {ts.realized_gain_loss:,.2f} ({ts.realized_gain_loss_pct:.2f}%)")
    print(f"Trades:            {ts.total_trade_count} in {ts.unique_symbols_traded} symbol(s)")
    if not holdings.empty:
        print(f"Concentration:     {concentration(holdings['weight_pct']):.3f}")
        print(holdings.to_string(index=False))
    print("---------------------------")
    return ts, ps
