"""
Account ledger: per-user cash balance.

Balances never go negative. Each mutation replaces the Account with a new frozen
instance carrying version + 1; callers may pass expected_version to make the
write conditional (optimistic check).
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from decimal import Decimal

from stocktrade.errors import ConcurrentConflict, InsufficientFunds, InvalidArgument, NotFound
from stocktrade.money import ZERO, positive_money, round2

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Account:
    user_id: str
    cash_balance: Decimal = ZERO
    version: int = 0

    def has_sufficient_cash(self, amount: Decimal) -> bool:
        return self.cash_balance >= amount


class AccountLedger:
    """Owns cash balances. All reads and writes go through a single lock."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._accounts: dict[str, Account] = {}

    def open_account(self, user_id: str, initial_cash: Decimal | int | str = ZERO) -> Account:
        cash = round2(initial_cash)
        if cash < 0:
            raise InvalidArgument("Cash balance cannot be negative")
        with self._lock:
            if user_id in self._accounts:
                raise InvalidArgument(f"Account already exists for user: {user_id}")
            account = Account(user_id=user_id, cash_balance=cash)
            self._accounts[user_id] = account
        logger.info("Opened account %s with %s", user_id, cash)
        return account

    def has_account(self, user_id: str) -> bool:
        return user_id in self._accounts

    def get_account(self, user_id: str) -> Account:
        account = self._accounts.get(user_id)
        if account is None:
            raise NotFound(f"User not found with id: {user_id}")
        return account

    def get_balance(self, user_id: str) -> Decimal:
        return self.get_account(user_id).cash_balance

    def has_sufficient_cash(self, user_id: str, amount: Decimal) -> bool:
        return self.get_account(user_id).has_sufficient_cash(amount)

    def _check_version(self, account: Account, expected_version: int | None) -> None:
        if expected_version is not None and account.version != expected_version:
            raise ConcurrentConflict(
                f"Account {account.user_id} changed: expected version {expected_version}, found {account.version}"
            )

    def credit(
        self,
        user_id: str,
        amount: Decimal | int | str,
        *,
        expected_version: int | None = None,
    ) -> Account:
        """Increase balance by amount (> 0)."""
        value = positive_money(amount)
        with self._lock:
            account = self.get_account(user_id)
            self._check_version(account, expected_version)
            account = replace(account, cash_balance=account.cash_balance + value, version=account.version + 1)
            self._accounts[user_id] = account
        logger.debug("Credited %s to %s; balance %s", value, user_id, account.cash_balance)
        return account

    def debit(
        self,
        user_id: str,
        amount: Decimal | int | str,
        *,
        expected_version: int | None = None,
    ) -> Account:
        """Decrease balance by exactly amount (> 0). InsufficientFunds if amount > balance."""
        value = positive_money(amount)
        with self._lock:
            account = self.get_account(user_id)
            self._check_version(account, expected_version)
            if value > account.cash_balance:
                raise InsufficientFunds(required=value, available=account.cash_balance)
            account = replace(account, cash_balance=account.cash_balance - value, version=account.version + 1)
            self._accounts[user_id] = account
        logger.debug("Debited %s from %s; balance %s", value, user_id, account.cash_balance)
        return account
