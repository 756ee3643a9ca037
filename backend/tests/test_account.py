"""Single-writer account container."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from margin_ledger.account import (
    AccountContainer,
    AddRateTier,
    AddTrade,
    ApplyCashActivity,
    DeleteRateTier,
    EditTrade,
    RecomputeLedger,
    RemoveTrade,
    ReplaceRateTiers,
    ResetBrokerSettings,
    SetManualAPR,
    SetTrades,
    UpdateAccountSettings,
    UpdateBrokerSettings,
    UpdateRateTier,
)
from margin_ledger.errors import InsufficientLotQuantity, InvalidRateSchedule, ValidationError
from margin_ledger.models import MatchPolicy

TODAY = date(2024, 1, 20)


def container() -> AccountContainer:
    return AccountContainer(clock=lambda: TODAY)


def trade(trade_id: str, day: str, side: str, qty: str, price: str, ticker: str = "AAPL") -> dict[str, str]:
    return {"id": trade_id, "date": day, "ticker": ticker, "side": side, "qty": qty, "price": price}


def seeded() -> AccountContainer:
    account = container()
    assert account.dispatch(AddTrade(trade("b1", "2024-01-15", "BUY", "100", "150.25"))).ok
    assert account.dispatch(AddTrade(trade("b2", "2024-01-16", "BUY", "50", "152.50"))).ok
    return account


def test_add_trade_builds_lots_and_ledger():
    account = seeded()
    state = account.state
    assert [lot.id for lot in state.lots] == ["lot_b1", "lot_b2"]
    assert state.ledger[0].date == date(2024, 1, 15)
    assert state.ledger[-1].date == TODAY
    for previous, current in zip(state.ledger, state.ledger[1:]):
        assert current.opening_debit == previous.closing_debit


def test_sell_reports_realized_pnl():
    account = seeded()
    result = account.dispatch(AddTrade(trade("s1", "2024-01-17", "SELL", "75", "160.00")))
    assert result.ok
    assert result.realized_pnl == Decimal("731.25")
    assert account.state.realized_pnl == Decimal("731.25")
    assert {lot.id: lot.qty_open for lot in account.state.lots} == {
        "lot_b1": Decimal("25"),
        "lot_b2": Decimal("50"),
    }


def test_same_day_close_follows_entry_order_not_id():
    account = container()
    assert account.dispatch(AddTrade(trade("t2", "2024-01-15", "BUY", "10", "100"))).ok
    result = account.dispatch(AddTrade(trade("t10", "2024-01-15", "SELL", "10", "105")))
    assert result.ok
    assert result.realized_pnl == Decimal("50")
    assert account.state.lots == ()
    assert [t.id for t in account.state.trades] == ["t2", "t10"]


def test_oversell_keeps_previous_state():
    account = seeded()
    before = account.state
    result = account.dispatch(AddTrade(trade("s1", "2024-01-17", "SELL", "200", "160.00")))
    assert not result.ok
    assert isinstance(result.error, InsufficientLotQuantity)
    assert result.error.available_qty == Decimal("150")
    assert account.state is before


def test_invalid_trade_is_rejected():
    account = container()
    result = account.dispatch(AddTrade(trade("b1", "2024-01-15", "BUY", "-1", "10")))
    assert isinstance(result.error, ValidationError)
    assert account.state.trades == ()


def test_duplicate_trade_id_is_rejected():
    account = seeded()
    result = account.dispatch(AddTrade(trade("b1", "2024-01-18", "BUY", "1", "1")))
    assert isinstance(result.error, ValidationError)


def test_edit_and_remove_trade_replay_lots():
    account = seeded()
    assert account.dispatch(EditTrade("b2", {"qty": "20"})).ok
    assert account.state.lots[1].qty_open == Decimal("20")
    assert account.dispatch(RemoveTrade("b1")).ok
    assert [lot.id for lot in account.state.lots] == ["lot_b2"]
    missing = account.dispatch(RemoveTrade("nope"))
    assert isinstance(missing.error, ValidationError)


def test_removing_buy_that_backs_a_sell_is_rejected():
    account = seeded()
    account.dispatch(AddTrade(trade("s1", "2024-01-17", "SELL", "120", "160.00")))
    result = account.dispatch(RemoveTrade("b1"))
    assert isinstance(result.error, InsufficientLotQuantity)
    assert len(account.state.trades) == 3


def test_switching_policy_replays_trades():
    account = seeded()
    account.dispatch(AddTrade(trade("s1", "2024-01-17", "SELL", "30", "160.00")))
    assert account.state.realized_pnl == Decimal("292.50")
    assert account.dispatch(UpdateAccountSettings({"match_policy": "LIFO"})).ok
    assert account.state.settings.match_policy == MatchPolicy.LIFO
    assert account.state.realized_pnl == Decimal("225.00")


def test_set_trades_replaces_book():
    account = seeded()
    assert account.dispatch(SetTrades([trade("x1", "2024-01-18", "BUY", "5", "10", ticker="MSFT")])).ok
    assert [t.id for t in account.state.trades] == ["x1"]
    assert account.state.ledger[0].date == date(2024, 1, 18)


def test_rate_tier_commands():
    account = container()
    assert account.dispatch(ReplaceRateTiers([{"min_balance": "0", "apr": "0.08"}])).ok
    assert len(account.state.broker.tiers) == 1
    last = account.dispatch(DeleteRateTier(0))
    assert isinstance(last.error, InvalidRateSchedule)
    assert account.dispatch(AddRateTier({"min_balance": "50000", "apr": "0.07"})).ok
    assert account.dispatch(UpdateRateTier(1, {"min_balance": "60000", "apr": "0.06"})).ok
    assert account.state.broker.tiers[1].min_balance == Decimal("60000")
    assert account.dispatch(DeleteRateTier(0)).ok
    assert isinstance(account.dispatch(UpdateRateTier(5, {"min_balance": "0", "apr": "0.1"})).error, ValidationError)
    assert isinstance(account.dispatch(ReplaceRateTiers([])).error, InvalidRateSchedule)


def test_broker_update_validation_keeps_previous_value():
    account = container()
    before = account.state.broker
    result = account.dispatch(UpdateBrokerSettings({"day_count_basis": 300}))
    assert isinstance(result.error, ValidationError)
    assert account.state.broker == before
    assert account.dispatch(UpdateBrokerSettings({"day_count_basis": 365, "broker_name": "IBKR"})).ok
    assert account.state.broker.day_count_basis == 365
    assert account.state.broker.tiers == before.tiers
    assert account.dispatch(ResetBrokerSettings()).ok
    assert account.state.broker == before


def test_cash_activity_and_manual_apr():
    account = seeded()
    prior = account.state.ledger
    assert account.dispatch(ApplyCashActivity(date(2024, 1, 18), Decimal("250"), "wire")).ok
    ledger = account.state.ledger
    entry = next(e for e in ledger if e.date == date(2024, 1, 18))
    assert entry.cash_activity == Decimal("250")
    assert [e for e in ledger if e.date < date(2024, 1, 18)] == [e for e in prior if e.date < date(2024, 1, 18)]
    future = account.dispatch(ApplyCashActivity(date(2024, 2, 1), Decimal("1")))
    assert isinstance(future.error, ValidationError)

    assert account.dispatch(SetManualAPR(date(2024, 1, 19), Decimal("0.05"))).ok
    override = next(e for e in account.state.ledger if e.date == date(2024, 1, 19))
    assert override.apr_used == Decimal("0.05")

    # Cash adjustments survive a trade-driven recompute.
    assert account.dispatch(AddTrade(trade("b3", "2024-01-17", "BUY", "1", "1"))).ok
    entry = next(e for e in account.state.ledger if e.date == date(2024, 1, 18))
    assert entry.cash_activity == Decimal("250")


def test_recompute_ledger_is_stable():
    account = seeded()
    before = account.state.ledger
    assert account.dispatch(RecomputeLedger(date(2024, 1, 15))).ok
    assert account.state.ledger == before
