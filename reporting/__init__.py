"""
Read-only reporting on top of stocktrade: trade and portfolio summaries,
holdings table and printed account report.
"""

from reporting.holdings import concentration, holdings_frame, portfolio_weights
from reporting.report import print_report
from reporting.summary import (
    PortfolioSummary,
    TradeSummary,
    losing_positions,
    portfolio_summary,
    profitable_positions,
    trade_summary,
)

__all__ = [
    "PortfolioSummary",
    "TradeSummary",
    "trade_summary",
    "portfolio_summary",
    "profitable_positions",
    "losing_positions",
    "holdings_frame",
    "portfolio_weights",
    "concentration",
    "print_report",
]
