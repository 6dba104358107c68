"""
Tests for stocktrade core: money helpers, AccountLedger, PositionBook, Trade,
TradeLedger, SymbolRegistry, EngineSettings.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from stocktrade import (
    AccountLedger,
    ConcurrentConflict,
    EngineSettings,
    FixedClock,
    InsufficientFunds,
    InsufficientShares,
    InvalidArgument,
    NotFound,
    PositionBook,
    Side,
    SymbolRegistry,
    Trade,
    TradeLedger,
    TradeStatus,
)
from stocktrade.instruments import normalize_symbol
from stocktrade.money import percent, positive_money, positive_quantity, round2, to_decimal
from stocktrade.positions import weighted_average_cost


# --- Money ---


def test_round2_half_up():
    assert round2(Decimal("10.105")) == Decimal("10.11")
    assert round2("2.675") == Decimal("2.68")
    assert round2(Decimal("10.104")) == Decimal("10.10")


def test_to_decimal_float_goes_through_str():
    assert to_decimal(0.1) == Decimal("0.1")


def test_to_decimal_rejects_garbage():
    with pytest.raises(InvalidArgument):
        to_decimal("abc")
    with pytest.raises(InvalidArgument):
        to_decimal(True)


def test_positive_quantity_rejects_fractions_and_zero():
    assert positive_quantity(3) == 3
    with pytest.raises(InvalidArgument):
        positive_quantity(0)
    with pytest.raises(InvalidArgument):
        positive_quantity(2.5)


def test_percent_zero_base():
    assert percent(Decimal("50"), Decimal("200")) == Decimal("25")
    assert percent(Decimal("50"), Decimal("0")) == 0


def test_positive_money_requires_a_cent_after_rounding():
    assert positive_money("0.005") == Decimal("0.01")
    assert positive_money(Decimal("10.104")) == Decimal("10.10")
    with pytest.raises(InvalidArgument):
        positive_money(Decimal("0.004"))
    with pytest.raises(InvalidArgument):
        positive_money(Decimal("NaN"))


# --- AccountLedger ---


def test_account_credit_and_debit_exact():
    ledger = AccountLedger()
    ledger.open_account("u1", Decimal("1000.00"))
    ledger.debit("u1", Decimal("333.33"))
    ledger.credit("u1", Decimal("0.01"))
    assert ledger.get_balance("u1") == Decimal("666.68")


def test_account_debit_insufficient_funds_leaves_balance():
    ledger = AccountLedger()
    ledger.open_account("u1", Decimal("100.00"))
    with pytest.raises(InsufficientFunds) as exc:
        ledger.debit("u1", Decimal("100.01"))
    assert exc.value.required == Decimal("100.01")
    assert exc.value.available == Decimal("100.00")
    assert ledger.get_balance("u1") == Decimal("100.00")


def test_account_debit_whole_balance_allowed():
    ledger = AccountLedger()
    ledger.open_account("u1", Decimal("500.00"))
    ledger.debit("u1", Decimal("500.00"))
    assert ledger.get_balance("u1") == Decimal("0.00")


def test_account_rejects_non_positive_amounts():
    ledger = AccountLedger()
    ledger.open_account("u1", Decimal("10"))
    with pytest.raises(InvalidArgument):
        ledger.credit("u1", Decimal("0"))
    with pytest.raises(InvalidArgument):
        ledger.debit("u1", Decimal("-1"))


def test_account_unknown_user():
    ledger = AccountLedger()
    with pytest.raises(NotFound):
        ledger.get_balance("ghost")
    with pytest.raises(NotFound):
        ledger.credit("ghost", Decimal("1"))


def test_account_open_validation():
    ledger = AccountLedger()
    with pytest.raises(InvalidArgument):
        ledger.open_account("u1", Decimal("-1"))
    ledger.open_account("u1")
    with pytest.raises(InvalidArgument):
        ledger.open_account("u1")


def test_account_version_check():
    ledger = AccountLedger()
    account = ledger.open_account("u1", Decimal("100"))
    assert account.version == 0
    ledger.credit("u1", Decimal("1"), expected_version=0)
    with pytest.raises(ConcurrentConflict):
        ledger.debit("u1", Decimal("1"), expected_version=0)
    assert ledger.get_account("u1").version == 1
    assert ledger.get_balance("u1") == Decimal("101.00")


def test_sub_cent_amounts_are_rejected_without_side_effects():
    ledger = AccountLedger()
    ledger.open_account("u1", Decimal("10.00"))
    with pytest.raises(InvalidArgument):
        ledger.debit("u1", Decimal("0.004"))
    with pytest.raises(InvalidArgument):
        ledger.credit("u1", Decimal("0.004"))
    account = ledger.get_account("u1")
    assert account.cash_balance == Decimal("10.00")
    assert account.version == 0

    book = PositionBook()
    with pytest.raises(InvalidArgument):
        book.add_shares("u1", "ABC", 1, Decimal("0.004"))
    assert book.get_position("u1", "ABC") is None
    assert book.version("u1", "ABC") == 0


# --- PositionBook ---


def test_first_buy_sets_average_cost():
    book = PositionBook()
    pos = book.add_shares("u1", "ABC", 5, Decimal("100.00"))
    assert pos.quantity == 5
    assert pos.average_cost == Decimal("100.00")
    assert book.get_average_cost("u1", "ABC") == Decimal("100.00")


def test_second_buy_weighted_average_half_up():
    book = PositionBook()
    book.add_shares("u1", "ABC", 3, Decimal("10.00"))
    pos = book.add_shares("u1", "ABC", 7, Decimal("10.15"))
    # (30.00 + 71.05) / 10 = 10.105 -> 10.11
    assert pos.quantity == 10
    assert pos.average_cost == Decimal("10.11")


def test_weighted_average_cost_function():
    assert weighted_average_cost(5, Decimal("100.00"), 5, Decimal("120.00")) == Decimal("110.00")
    assert weighted_average_cost(1, Decimal("1.00"), 2, Decimal("1.00")) == Decimal("1.00")
    assert weighted_average_cost(2, Decimal("1.00"), 1, Decimal("2.00")) == Decimal("1.33")


def test_partial_sell_keeps_average_cost():
    book = PositionBook()
    book.add_shares("u1", "ABC", 5, Decimal("100.00"))
    book.add_shares("u1", "ABC", 5, Decimal("120.00"))
    pos = book.remove_shares("u1", "ABC", 3)
    assert pos.quantity == 7
    assert pos.average_cost == Decimal("110.00")


def test_selling_everything_deletes_position():
    book = PositionBook()
    book.add_shares("u1", "ABC", 5, Decimal("100.00"))
    assert book.remove_shares("u1", "ABC", 5) is None
    assert book.get_position("u1", "ABC") is None
    assert book.get_quantity("u1", "ABC") == 0
    assert book.get_average_cost("u1", "ABC") == Decimal("0")
    assert book.positions_for("u1") == []


def test_remove_more_than_held():
    book = PositionBook()
    book.add_shares("u1", "ABC", 5, Decimal("100.00"))
    with pytest.raises(InsufficientShares) as exc:
        book.remove_shares("u1", "ABC", 6)
    assert exc.value.owned == 5
    assert book.get_quantity("u1", "ABC") == 5
    with pytest.raises(InsufficientShares):
        book.remove_shares("u1", "XYZ", 1)


def test_add_shares_validation():
    book = PositionBook()
    with pytest.raises(InvalidArgument):
        book.add_shares("u1", "ABC", 0, Decimal("1"))
    with pytest.raises(InvalidArgument):
        book.add_shares("u1", "ABC", 1, Decimal("0"))


def test_position_versions_survive_deletion():
    book = PositionBook()
    assert book.version("u1", "ABC") == 0
    book.add_shares("u1", "ABC", 1, Decimal("1"))
    book.remove_shares("u1", "ABC", 1)
    assert book.version("u1", "ABC") == 2
    pos = book.add_shares("u1", "ABC", 1, Decimal("1"), expected_version=2)
    assert pos.version == 3
    with pytest.raises(ConcurrentConflict):
        book.add_shares("u1", "ABC", 1, Decimal("1"), expected_version=2)


def test_symbols_are_normalized():
    book = PositionBook()
    book.add_shares("u1", "abc", 2, Decimal("5"))
    assert book.get_quantity("u1", "ABC") == 2
    assert book.positions_for("u1")[0].symbol == "ABC"


def test_positions_for_and_holders():
    book = PositionBook()
    book.add_shares("u1", "ZZZ", 1, Decimal("1"))
    book.add_shares("u1", "AAA", 1, Decimal("1"))
    book.add_shares("u2", "AAA", 1, Decimal("1"))
    assert [p.symbol for p in book.positions_for("u1")] == ["AAA", "ZZZ"]
    assert [p.user_id for p in book.holders_of("AAA")] == ["u1", "u2"]
    assert book.holdings_count("u1") == 2


def test_position_unrealized_gain_loss():
    book = PositionBook()
    pos = book.add_shares("u1", "ABC", 4, Decimal("25.00"))
    assert pos.total_cost == Decimal("100.00")
    assert pos.market_value(Decimal("30.00")) == Decimal("120.00")
    assert pos.unrealized_gain_loss(Decimal("30.00")) == Decimal("20.00")
    assert pos.unrealized_gain_loss_pct(Decimal("30.00")) == Decimal("20")


# --- Trade ---


def test_trade_total_amount_includes_commission():
    buy = Trade("u1", "ABC", Side.BUY, 5, Decimal("100.00"), commission=Decimal("1.50"))
    sell = Trade("u1", "ABC", Side.SELL, 5, Decimal("110.00"), commission=Decimal("1.50"))
    assert buy.total_amount == Decimal("501.50")
    assert sell.total_amount == Decimal("548.50")
    assert sell.gross_amount == Decimal("550.00")


def test_trade_is_immutable():
    t = Trade("u1", "ABC", Side.BUY, 1, Decimal("1.00"))
    with pytest.raises(AttributeError):
        t.quantity = 2


def test_trade_describe():
    t = Trade("u1", "ABC", Side.BUY, 5, Decimal("100"))
    assert t.describe() == "BUY 5 shares of ABC at $100.00"


# --- TradeLedger ---


def _completed(user_id="u1", symbol="ABC", side=Side.BUY, quantity=1, price="10.00", executed_at=None):
    return Trade(
        user_id=user_id,
        symbol=symbol,
        side=side,
        quantity=quantity,
        execution_price=Decimal(price),
        status=TradeStatus.COMPLETED,
        executed_at=executed_at,
    )


def test_ledger_append_stamps_id_and_time():
    clock = FixedClock(datetime(2024, 3, 1, 12, 0))
    ledger = TradeLedger(clock)
    t = ledger.append(_completed())
    assert t.trade_id.startswith("trd-")
    assert t.executed_at == datetime(2024, 3, 1, 12, 0)
    assert len(ledger) == 1


def test_ledger_rejects_non_completed_and_duplicates():
    ledger = TradeLedger(FixedClock())
    with pytest.raises(InvalidArgument):
        ledger.append(Trade("u1", "ABC", Side.BUY, 1, Decimal("1")))
    t = ledger.append(_completed())
    with pytest.raises(InvalidArgument):
        ledger.append(t)
    assert len(ledger) == 1


def test_ledger_queries_newest_first():
    t0 = datetime(2024, 1, 1, 10, 0)
    ledger = TradeLedger(FixedClock())
    ledger.append(_completed(executed_at=t0))
    ledger.append(_completed(symbol="XYZ", executed_at=t0 + timedelta(days=1)))
    ledger.append(_completed(user_id="u2", executed_at=t0 + timedelta(days=2)))
    assert [t.symbol for t in ledger.by_user("u1")] == ["XYZ", "ABC"]
    assert [t.user_id for t in ledger.by_symbol("abc")] == ["u2", "u1"]
    assert len(ledger.by_user_and_symbol("u1", "ABC")) == 1
    assert len(ledger.between("u1", t0 + timedelta(hours=1))) == 1
    assert len(ledger.between("u1", t0, t0 + timedelta(days=1))) == 2
    assert ledger.traded_symbols("u1") == ["ABC", "XYZ"]


def test_ledger_aggregates_zero_when_empty():
    ledger = TradeLedger(FixedClock())
    since = datetime(2024, 1, 1)
    assert ledger.total_amount("u1", Side.BUY) == Decimal("0")
    assert ledger.total_quantity("u1", "ABC", Side.SELL) == 0
    assert ledger.average_price("ABC", since) == Decimal("0")
    assert ledger.total_volume("ABC", since) == 0
    assert ledger.count_for_user("u1") == 0


def test_ledger_aggregates():
    t0 = datetime(2024, 1, 1, 10, 0)
    ledger = TradeLedger(FixedClock())
    ledger.append(_completed(quantity=2, price="10.00", executed_at=t0))
    ledger.append(_completed(quantity=3, price="20.00", executed_at=t0))
    ledger.append(_completed(side=Side.SELL, quantity=1, price="15.00", executed_at=t0))
    assert ledger.total_amount("u1", Side.BUY) == Decimal("80.00")
    assert ledger.total_amount("u1", Side.SELL) == Decimal("15.00")
    assert ledger.total_quantity("u1", "ABC", Side.BUY) == 5
    assert ledger.average_price("ABC", t0) == Decimal("15.00")
    assert ledger.total_volume("ABC", t0) == 6
    assert ledger.count_for_symbol("ABC") == 3


def test_ledger_to_frame():
    ledger = TradeLedger(FixedClock())
    ledger.append(_completed())
    ledger.append(_completed(user_id="u2"))
    df = ledger.to_frame("u1")
    assert list(df.columns)[:3] == ["trade_id", "user_id", "symbol"]
    assert len(df) == 1
    assert df.iloc[0]["side"] == "BUY"
    assert ledger.to_frame("nobody").empty


# --- SymbolRegistry ---


def test_normalize_symbol():
    assert normalize_symbol(" brk.b ") == "BRK.B"
    with pytest.raises(InvalidArgument):
        normalize_symbol("bad symbol!")
    with pytest.raises(InvalidArgument):
        normalize_symbol("")


def test_registry_active_lifecycle():
    registry = SymbolRegistry(["ABC"])
    assert registry.require_active("abc").symbol == "ABC"
    registry.deactivate("ABC")
    with pytest.raises(NotFound):
        registry.require_active("ABC")
    registry.reactivate("ABC")
    assert registry.active_symbols() == ["ABC"]
    with pytest.raises(NotFound):
        registry.require_active("XYZ")
    with pytest.raises(InvalidArgument):
        registry.register("abc")


# --- EngineSettings ---


def test_settings_defaults():
    s = EngineSettings()
    assert s.stale_after_minutes == 5
    assert s.commission == Decimal("0.00")
    assert s.retry_on_conflict is True


def test_settings_from_env():
    s = EngineSettings.from_env(
        {
            "STOCKTRADE_STALE_MINUTES": "15",
            "STOCKTRADE_COMMISSION": "4.95",
            "STOCKTRADE_RETRY_ON_CONFLICT": "false",
        }
    )
    assert s.stale_after_minutes == 15
    assert s.commission == Decimal("4.95")
    assert s.retry_on_conflict is False
    assert EngineSettings.from_env({}) == EngineSettings()


def test_settings_from_env_invalid():
    with pytest.raises(InvalidArgument):
        EngineSettings.from_env({"STOCKTRADE_STALE_MINUTES": "soon"})
    with pytest.raises(InvalidArgument):
        EngineSettings.from_env({"STOCKTRADE_RETRY_ON_CONFLICT": "maybe"})
    with pytest.raises(InvalidArgument):
        EngineSettings(commission=Decimal("-1"))


def test_settings_log_capacity():
    assert EngineSettings().log_capacity == 1000
    assert EngineSettings.from_env({"STOCKTRADE_LOG_CAPACITY": "50"}).log_capacity == 50
    with pytest.raises(InvalidArgument):
        EngineSettings(log_capacity=0)
    with pytest.raises(InvalidArgument):
        EngineSettings.from_env({"STOCKTRADE_LOG_CAPACITY": "lots"})
