"""
Symbol registry: which symbols exist and which are active for trading.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, replace

from stocktrade.errors import InvalidArgument, NotFound

logger = logging.getLogger(__name__)

_SYMBOL_RE = re.compile(r"^[A-Z][A-Z0-9.\-]{0,9}$")


def normalize_symbol(symbol: str) -> str:
    """Upper-case and validate a ticker symbol."""
    if not isinstance(symbol, str):
        raise InvalidArgument(f"Symbol must be a string, got {type(symbol).__name__}")
    sym = symbol.strip().upper()
    if not _SYMBOL_RE.match(sym):
        raise InvalidArgument(f"Malformed symbol: {symbol!r}")
    return sym


@dataclass(frozen=True)
class Instrument:
    symbol: str
    name: str = ""
    active: bool = True


class SymbolRegistry:
    """Known instruments keyed by normalized symbol. Thread-safe."""

    def __init__(self, symbols: list[str] | None = None) -> None:
        self._lock = threading.Lock()
        self._instruments: dict[str, Instrument] = {}
        for sym in symbols or []:
            self.register(sym)

    def register(self, symbol: str, name: str = "") -> Instrument:
        sym = normalize_symbol(symbol)
        with self._lock:
            if sym in self._instruments:
                raise InvalidArgument(f"Stock already exists with symbol: {sym}")
            inst = Instrument(symbol=sym, name=name)
            self._instruments[sym] = inst
        logger.debug("Registered instrument %s", sym)
        return inst

    def get(self, symbol: str) -> Instrument | None:
        return self._instruments.get(normalize_symbol(symbol))

    def require_active(self, symbol: str) -> Instrument:
        """Return the active instrument or raise NotFound."""
        inst = self.get(symbol)
        if inst is None or not inst.active:
            raise NotFound(f"Active stock not found with symbol: {symbol}")
        return inst

    def _set_active(self, symbol: str, active: bool) -> Instrument:
        sym = normalize_symbol(symbol)
        with self._lock:
            inst = self._instruments.get(sym)
            if inst is None:
                raise NotFound(f"Stock not found with symbol: {symbol}")
            inst = replace(inst, active=active)
            self._instruments[sym] = inst
        return inst

    def deactivate(self, symbol: str) -> Instrument:
        return self._set_active(symbol, False)

    def reactivate(self, symbol: str) -> Instrument:
        return self._set_active(symbol, True)

    def active_symbols(self) -> list[str]:
        return sorted(s for s, inst in self._instruments.items() if inst.active)
