"""
Position book: per (user, symbol) holdings with weighted average cost.

A position exists iff quantity > 0. Average cost is recomputed on buys
(rounded to cents, half up) and left unchanged on sells. Positions are frozen;
every change stores a new instance. Versions are tracked per key and survive
deletion, so a re-opened position never reuses an old version.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from decimal import Decimal

from stocktrade.errors import ConcurrentConflict, InsufficientShares
from stocktrade.instruments import normalize_symbol
from stocktrade.money import ZERO, percent, positive_money, positive_quantity, round2

logger = logging.getLogger(__name__)


def weighted_average_cost(
    old_quantity: int,
    old_average_cost: Decimal,
    quantity: int,
    price: Decimal,
) -> Decimal:
    """round2(((old_qty * old_avg) + (qty * price)) / (old_qty + qty))."""
    total_cost = old_average_cost * old_quantity + price * quantity
    return round2(total_cost / (old_quantity + quantity))


@dataclass(frozen=True)
class Position:
    user_id: str
    symbol: str
    quantity: int
    average_cost: Decimal
    version: int = 1

    @property
    def total_cost(self) -> Decimal:
        return round2(self.average_cost * self.quantity)

    def market_value(self, price: Decimal) -> Decimal:
        return round2(price * self.quantity)

    def unrealized_gain_loss(self, price: Decimal) -> Decimal:
        return self.market_value(price) - self.total_cost

    def unrealized_gain_loss_pct(self, price: Decimal) -> Decimal:
        return percent(self.unrealized_gain_loss(price), self.total_cost)


class PositionBook:
    """Holdings keyed by (user_id, symbol), guarded by one lock."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._positions: dict[tuple[str, str], Position] = {}
        self._versions: dict[tuple[str, str], int] = {}

    def version(self, user_id: str, symbol: str) -> int:
        """Mutation counter for the key; 0 if it was never touched."""
        return self._versions.get((user_id, normalize_symbol(symbol)), 0)

    def _check_version(self, key: tuple[str, str], expected_version: int | None) -> None:
        current = self._versions.get(key, 0)
        if expected_version is not None and current != expected_version:
            raise ConcurrentConflict(
                f"Position {key[0]}/{key[1]} changed: expected version {expected_version}, found {current}"
            )

    def get_position(self, user_id: str, symbol: str) -> Position | None:
        return self._positions.get((user_id, normalize_symbol(symbol)))

    def get_quantity(self, user_id: str, symbol: str) -> int:
        pos = self.get_position(user_id, symbol)
        return pos.quantity if pos else 0

    def get_average_cost(self, user_id: str, symbol: str) -> Decimal:
        pos = self.get_position(user_id, symbol)
        return pos.average_cost if pos else ZERO

    def add_shares(
        self,
        user_id: str,
        symbol: str,
        quantity: int,
        price: Decimal | int | str,
        *,
        expected_version: int | None = None,
    ) -> Position:
        """Buy side: open or grow a position, recomputing average cost."""
        qty = positive_quantity(quantity)
        px = positive_money(price, "Purchase price")
        key = (user_id, normalize_symbol(symbol))
        with self._lock:
            self._check_version(key, expected_version)
            version = self._versions.get(key, 0) + 1
            existing = self._positions.get(key)
            if existing is None:
                pos = Position(user_id=user_id, symbol=key[1], quantity=qty, average_cost=px, version=version)
            else:
                pos = Position(
                    user_id=user_id,
                    symbol=key[1],
                    quantity=existing.quantity + qty,
                    average_cost=weighted_average_cost(existing.quantity, existing.average_cost, qty, px),
                    version=version,
                )
            self._positions[key] = pos
            self._versions[key] = version
        logger.debug("Position %s/%s: qty=%s avg=%s", user_id, key[1], pos.quantity, pos.average_cost)
        return pos

    def remove_shares(
        self,
        user_id: str,
        symbol: str,
        quantity: int,
        *,
        expected_version: int | None = None,
    ) -> Position | None:
        """Sell side: shrink a position. Deletes it at zero and returns None."""
        qty = positive_quantity(quantity)
        key = (user_id, normalize_symbol(symbol))
        with self._lock:
            self._check_version(key, expected_version)
            existing = self._positions.get(key)
            owned = existing.quantity if existing else 0
            if qty > owned:
                raise InsufficientShares(requested=qty, owned=owned, symbol=key[1])
            version = self._versions.get(key, 0) + 1
            self._versions[key] = version
            remaining = owned - qty
            if remaining == 0:
                del self._positions[key]
                logger.debug("Position %s/%s closed", user_id, key[1])
                return None
            # average cost basis is carried over unchanged
            pos = Position(
                user_id=user_id,
                symbol=key[1],
                quantity=remaining,
                average_cost=existing.average_cost,
                version=version,
            )
            self._positions[key] = pos
        return pos

    def restore(self, user_id: str, symbol: str, previous: Position | None) -> None:
        """Put back a previously read position (None removes it). Used to undo a failed commit."""
        key = (user_id, normalize_symbol(symbol))
        with self._lock:
            version = self._versions.get(key, 0) + 1
            self._versions[key] = version
            if previous is None:
                self._positions.pop(key, None)
            else:
                self._positions[key] = replace(previous, version=version)

    def positions_for(self, user_id: str) -> list[Position]:
        """All open positions of a user, ordered by symbol."""
        with self._lock:
            items = [p for (uid, _), p in self._positions.items() if uid == user_id]
        return sorted(items, key=lambda p: p.symbol)

    def holders_of(self, symbol: str) -> list[Position]:
        sym = normalize_symbol(symbol)
        with self._lock:
            items = [p for (_, s), p in self._positions.items() if s == sym]
        return sorted(items, key=lambda p: p.user_id)

    def holdings_count(self, user_id: str) -> int:
        return len(self.positions_for(user_id))

    def has_position(self, user_id: str, symbol: str) -> bool:
        return self.get_position(user_id, symbol) is not None
