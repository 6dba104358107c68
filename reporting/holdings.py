"""
Holdings frame: one row per open position with value, unrealized result and
portfolio weight. Sorted by market value, largest first (diversification view).

Frame values are floats for display and analysis; authoritative amounts stay
Decimal in the ledgers.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import pandas as pd

from stocktrade.oracle.base import PriceOracle
from stocktrade.positions import PositionBook

from reporting.summary import last_price

HOLDINGS_COLUMNS = [
    "symbol",
    "quantity",
    "average_cost",
    "last_price",
    "total_cost",
    "market_value",
    "unrealized_gain_loss",
    "unrealized_gain_loss_pct",
    "weight_pct",
]


def holdings_frame(positions: PositionBook, oracle: PriceOracle, user_id: str) -> pd.DataFrame:
    """
    Build the holdings table for a user.

    Parameters
    ----------
    positions : PositionBook
        Source of open positions.
    oracle : PriceOracle
        Last known prices; symbols without a quote get NaN price and zero value.
    user_id : str
        Account owner.

    Returns
    -------
    pd.DataFrame
        Columns as in HOLDINGS_COLUMNS, sorted by market_value descending.
    """
    rows = []
    for p in positions.positions_for(user_id):
        price = last_price(oracle, p.symbol)
        value = p.market_value(price) if price is not None else None
        rows.append(
            {
                "symbol": p.symbol,
                "quantity": p.quantity,
                "average_cost": float(p.average_cost),
                "last_price": float(price) if price is not None else np.nan,
                "total_cost": float(p.total_cost),
                "market_value": float(value) if value is not None else 0.0,
                "unrealized_gain_loss": float(value - p.total_cost) if value is not None else np.nan,
                "unrealized_gain_loss_pct": float(p.unrealized_gain_loss_pct(price)) if price is not None else np.nan,
            }
        )
    if not rows:
        return pd.DataFrame(columns=HOLDINGS_COLUMNS)

    df = pd.DataFrame(rows)
    df["weight_pct"] = portfolio_weights(df["market_value"].to_numpy(dtype=float))
    df = df.sort_values("market_value", ascending=False, kind="stable").reset_index(drop=True)
    return df[HOLDINGS_COLUMNS]


def portfolio_weights(values: Sequence[float] | np.ndarray) -> np.ndarray:
    """Each value as a percentage of the total; all zeros when the total is not positive."""
    arr = np.asarray(values, dtype=float)
    total = arr.sum()
    if total <= 0:
        return np.zeros_like(arr)
    return arr / total * 100.0


def concentration(weights_pct: Sequence[float] | np.ndarray) -> float:
    """
    Herfindahl index of portfolio weights given in percent.
    1.0 for a single holding, 1/n for n equal holdings, 0.0 when empty.
    """
    w = np.asarray(weights_pct, dtype=float) / 100.0
    if w.size == 0:
        return 0.0
    return float(np.sum(w**2))
