"""
Price oracle layer: quote interface and an in-memory adapter.
"""

from stocktrade.oracle.base import PriceOracle, Quote
from stocktrade.oracle.memory import InMemoryPriceOracle

__all__ = [
    "PriceOracle",
    "Quote",
    "InMemoryPriceOracle",
]
