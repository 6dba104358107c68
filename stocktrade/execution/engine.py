"""
Trade execution engine: validates an order, resolves the market price, and
commits cash + position + ledger changes as one unit per user.

Flow: validate → account/symbol lookup → early check → quote (refresh if stale,
outside the lock) → per-user lock: re-read state, re-check at market price,
versioned commit → observers.

Orders execute at the oracle's current price (market-order semantics). The
caller's price is only used for the early affordability check on buys.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable, Sequence
from decimal import Decimal
from typing import Protocol

from stocktrade.accounts import AccountLedger
from stocktrade.clock import Clock, SystemClock
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
from stocktrade.execution.locks import UserLockRegistry
from stocktrade.execution.types import PortfolioSnapshot, QuoteResolution, RejectedOrderLog
from stocktrade.instruments import SymbolRegistry, normalize_symbol
from stocktrade.ledger import TradeLedger
from stocktrade.money import positive_money, positive_quantity, round2
from stocktrade.oracle.base import PriceOracle
from stocktrade.positions import PositionBook
from stocktrade.trade import Side, Trade, TradeStatus

logger = logging.getLogger(__name__)

_REJECTION_REASONS: dict[type[TradingError], str] = {
    InvalidArgument: "invalid_argument",
    NotFound: "not_found",
    InsufficientFunds: "insufficient_funds",
    InsufficientShares: "insufficient_shares",
    QuoteUnavailable: "quote_unavailable",
    ConcurrentConflict: "concurrent_conflict",
}


class TradeObserver(Protocol):
    """Post-trade callback, called after commit with the user's state at that point."""

    def __call__(self, trade: Trade, snapshot: PortfolioSnapshot) -> None:
        ...


class TradeExecutionEngine:
    """
    Executes market buy/sell orders against the account ledger, position book and
    trade ledger. Orders for the same user are serialized by a per-user lock;
    different users run in parallel.

    Conflict policy: account and position are re-read inside the lock and their
    versions are passed to the writes, so only a writer that bypasses the engine
    lock (e.g. a direct AccountLedger.credit) can cause a ConcurrentConflict.
    The whole order is then retried once (settings.retry_on_conflict); a second
    conflict is raised to the caller, who may retry.
    """

    def __init__(
        self,
        accounts: AccountLedger,
        positions: PositionBook,
        trades: TradeLedger,
        oracle: PriceOracle,
        registry: SymbolRegistry,
        *,
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
        observers: Sequence[TradeObserver] = (),
    ) -> None:
        self.accounts = accounts
        self.positions = positions
        self.trades = trades
        self.oracle = oracle
        self.registry = registry
        self.settings = settings or EngineSettings()
        self._clock = clock or SystemClock()
        self.observers: list[TradeObserver] = list(observers)
        self.locks = UserLockRegistry()
        self._log_lock = threading.Lock()
        # Bounded: oldest entries drop off once settings.log_capacity is reached.
        self._rejected_log: deque[RejectedOrderLog] = deque(maxlen=self.settings.log_capacity)
        self._refresh_failures: deque[QuoteUnavailable] = deque(maxlen=self.settings.log_capacity)

    # --- Caller-facing operations ---

    def execute_buy(self, user_id: str, symbol: str, quantity: int, price: Decimal | int | str) -> Trade:
        """Buy quantity shares at the current market price. Returns the completed trade."""
        return self._execute(Side.BUY, user_id, symbol, quantity, price)

    def execute_sell(self, user_id: str, symbol: str, quantity: int, price: Decimal | int | str) -> Trade:
        """Sell quantity shares at the current market price. Returns the completed trade."""
        return self._execute(Side.SELL, user_id, symbol, quantity, price)

    def quote_for(self, symbol: str) -> QuoteResolution:
        """
        The quote an order for symbol would execute at. Refreshes first when the
        quote is older than settings.stale_after_minutes; a failed refresh is
        logged and the last known quote is used.
        """
        sym = normalize_symbol(symbol)
        if self.oracle.is_stale(sym, self.settings.stale_after_minutes):
            try:
                return QuoteResolution(quote=self.oracle.refresh(sym), refreshed=True)
            except QuoteUnavailable as e:
                logger.warning("Could not refresh stock data for %s: %s; using last known quote", sym, e.reason)
                with self._log_lock:
                    self._refresh_failures.append(e)
                return QuoteResolution(quote=self.oracle.get_quote(sym), refresh_error=e)
        return QuoteResolution(quote=self.oracle.get_quote(sym))

    def can_afford(self, user_id: str, symbol: str, quantity: int) -> bool:
        """Whether a buy of quantity shares fits the balance at the market price."""
        try:
            qty = positive_quantity(quantity)
            account = self.accounts.get_account(user_id)
            self.registry.require_active(symbol)
            resolution = self.quote_for(symbol)
        except TradingError as e:
            logger.debug("can_afford(%s, %s, %s): %s", user_id, symbol, quantity, e)
            return False
        cost = round2(resolution.quote.price * qty) + self.settings.commission
        return account.has_sufficient_cash(cost)

    def can_sell(self, user_id: str, symbol: str, quantity: int) -> bool:
        """Whether the user holds at least quantity shares of symbol."""
        try:
            qty = positive_quantity(quantity)
            return self.get_quantity(user_id, symbol) >= qty
        except InvalidArgument:
            return False

    # Reads take the user lock so an in-flight commit (or its rollback) is never seen.

    def get_balance(self, user_id: str) -> Decimal:
        with self.locks.hold(user_id):
            return self.accounts.get_balance(user_id)

    def get_quantity(self, user_id: str, symbol: str) -> int:
        with self.locks.hold(user_id):
            return self.positions.get_quantity(user_id, symbol)

    def get_average_cost(self, user_id: str, symbol: str) -> Decimal:
        with self.locks.hold(user_id):
            return self.positions.get_average_cost(user_id, symbol)

    def snapshot(self, user_id: str) -> PortfolioSnapshot:
        """Balance and positions read together, never mid-commit."""
        with self.locks.hold(user_id):
            return PortfolioSnapshot(
                user_id=user_id,
                cash_balance=self.accounts.get_balance(user_id),
                positions=self.positions.positions_for(user_id),
            )

    def get_rejected_log(self) -> list[RejectedOrderLog]:
        """Return log of rejected orders (most recent settings.log_capacity) for debugging and reporting."""
        with self._log_lock:
            return list(self._rejected_log)

    def get_refresh_failures(self) -> list[QuoteUnavailable]:
        """Quote refreshes that failed and were degraded to the last known price."""
        with self._log_lock:
            return list(self._refresh_failures)

    # --- Internals ---

    def _execute(self, side: Side, user_id: str, symbol: str, quantity: int, price: Decimal | int | str) -> Trade:
        attempt = self._attempt_buy if side == Side.BUY else self._attempt_sell
        try:
            try:
                trade, snapshot = attempt(user_id, symbol, quantity, price)
            except ConcurrentConflict as e:
                if not self.settings.retry_on_conflict:
                    raise
                logger.warning("Concurrent update during %s %s %s for %s; retrying once: %s", side.value, quantity, symbol, user_id, e)
                trade, snapshot = attempt(user_id, symbol, quantity, price)
        except TradingError as e:
            self._record_rejection(side, user_id, symbol, quantity, e)
            raise

        logger.info("Executed %s for %s: %s (total %s)", trade.trade_id, user_id, trade.describe(), trade.total_amount)
        for obs in self.observers:
            obs(trade, snapshot)
        return trade

    def _record_rejection(self, side: Side, user_id: str, symbol: str, quantity: int, error: TradingError) -> None:
        reason = _REJECTION_REASONS.get(type(error), "rejected")
        entry = RejectedOrderLog(
            reason=reason,
            timestamp=self._clock.now(),
            user_id=user_id,
            symbol=str(symbol),
            side=side,
            quantity=quantity,
            message=str(error),
        )
        with self._log_lock:
            self._rejected_log.append(entry)
        logger.info("Order rejected (%s): %s %s %s for %s: %s", reason, side.value, quantity, symbol, user_id, error)

    def _validate(self, user_id: str, symbol: str, quantity: int, price: Decimal | int | str) -> tuple[str, int, Decimal]:
        """Argument checks, then account and active-symbol lookups."""
        qty = positive_quantity(quantity)
        requested_price = positive_money(price, "Price")
        sym = normalize_symbol(symbol)
        self.accounts.get_account(user_id)
        self.registry.require_active(sym)
        return sym, qty, requested_price

    def _build_trade(self, side: Side, user_id: str, symbol: str, quantity: int, resolution: QuoteResolution) -> Trade:
        notes = None
        if resolution.degraded:
            notes = (
                f"Executed at last known price as of {resolution.quote.as_of:%Y-%m-%d %H:%M:%S}; "
                f"refresh failed: {resolution.refresh_error.reason}"
            )
        return Trade(
            user_id=user_id,
            symbol=symbol,
            side=side,
            quantity=quantity,
            execution_price=resolution.quote.price,
            commission=self.settings.commission,
            status=TradeStatus.COMPLETED,
            executed_at=self._clock.now(),
            notes=notes,
        )

    def _attempt_buy(self, user_id: str, symbol: str, quantity: int, price: Decimal | int | str) -> tuple[Trade, PortfolioSnapshot]:
        sym, qty, requested_price = self._validate(user_id, symbol, quantity, price)
        balance = self.accounts.get_balance(user_id)

        # Early rejection at the requested price; not authoritative.
        provisional = round2(requested_price * qty) + self.settings.commission
        if provisional > balance:
            raise InsufficientFunds(required=provisional, available=balance)

        resolution = self.quote_for(sym)

        with self.locks.hold(user_id):
            # Re-read under the lock; versions guard against writers that bypass it.
            account = self.accounts.get_account(user_id)
            position_version = self.positions.version(user_id, sym)
            trade = self._build_trade(Side.BUY, user_id, sym, qty, resolution)
            cost = trade.total_amount
            if cost > account.cash_balance:
                raise InsufficientFunds(
                    required=cost,
                    available=account.cash_balance,
                    message=(
                        f"Insufficient cash balance at market price. "
                        f"Required: ${cost}, Available: ${account.cash_balance}"
                    ),
                )
            recorded = self._commit(
                trade,
                [
                    (
                        lambda: self.accounts.debit(user_id, cost, expected_version=account.version),
                        lambda: self.accounts.credit(user_id, cost),
                    ),
                    self._position_step(
                        user_id,
                        sym,
                        lambda: self.positions.add_shares(
                            user_id, sym, qty, trade.execution_price, expected_version=position_version
                        ),
                    ),
                ],
            )
            return recorded, self.snapshot(user_id)

    def _attempt_sell(self, user_id: str, symbol: str, quantity: int, price: Decimal | int | str) -> tuple[Trade, PortfolioSnapshot]:
        sym, qty, _requested_price = self._validate(user_id, symbol, quantity, price)

        owned = self.positions.get_quantity(user_id, sym)
        if owned < qty:
            raise InsufficientShares(requested=qty, owned=owned, symbol=sym)

        resolution = self.quote_for(sym)

        with self.locks.hold(user_id):
            account = self.accounts.get_account(user_id)
            position_version = self.positions.version(user_id, sym)
            owned = self.positions.get_quantity(user_id, sym)
            if owned < qty:
                raise InsufficientShares(requested=qty, owned=owned, symbol=sym)
            trade = self._build_trade(Side.SELL, user_id, sym, qty, resolution)
            proceeds = trade.total_amount
            if proceeds <= 0:
                raise InvalidArgument(f"Commission {trade.commission} exceeds sale proceeds {trade.gross_amount}")
            recorded = self._commit(
                trade,
                [
                    self._position_step(
                        user_id,
                        sym,
                        lambda: self.positions.remove_shares(user_id, sym, qty, expected_version=position_version),
                    ),
                    (
                        lambda: self.accounts.credit(user_id, proceeds, expected_version=account.version),
                        lambda: self.accounts.debit(user_id, proceeds),
                    ),
                ],
            )
            return recorded, self.snapshot(user_id)

    def _position_step(
        self,
        user_id: str,
        symbol: str,
        apply: Callable[[], object],
    ) -> tuple[Callable[[], object], Callable[[], object]]:
        previous = self.positions.get_position(user_id, symbol)
        return apply, lambda: self.positions.restore(user_id, symbol, previous)

    def _commit(
        self,
        trade: Trade,
        steps: list[tuple[Callable[[], object], Callable[[], object]]],
    ) -> Trade:
        """
        Apply (do, undo) steps in order, then append the trade. If anything fails,
        already-applied steps are undone in reverse before the error propagates.
        Must be called with the user's lock held.
        """
        applied: list[Callable[[], object]] = []
        try:
            for do, undo in steps:
                do()
                applied.append(undo)
            return self.trades.append(trade)
        except Exception:
            for undo in reversed(applied):
                undo()
            if applied:
                logger.warning("Rolled back %d step(s) of %s %s for %s", len(applied), trade.side.value, trade.symbol, trade.user_id)
            raise
