"""CSV and JSON interchange."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from app.services.interchange import (
    LEDGER_COLUMNS,
    export_state_json,
    import_state_json,
    ledger_from_csv,
    ledger_to_csv,
    state_from_dict,
    state_to_dict,
    trades_from_csv,
    trades_to_csv,
)
from margin_ledger.account import AccountContainer, AddTrade, ApplyCashActivity, SetManualAPR
from margin_ledger.errors import ValidationError
from margin_ledger.models import TradeSide

TRADES_CSV = """date,ticker,side,qty,price,fees,notes
2024-01-15,aapl,buy,100,150.25,1.00,first
2024-01-16,AAPL,SELL,40,155,0,
2024-01-17,AAPL,HOLD,10,150,0,
2024-01-18,,BUY,10,150,0,
"""


def _account() -> AccountContainer:
    account = AccountContainer(clock=lambda: date(2024, 1, 20))
    account.dispatch(AddTrade({"id": "b1", "date": "2024-01-15", "ticker": "AAPL", "side": "BUY", "qty": "100", "price": "150.25"}))
    account.dispatch(AddTrade({"id": "s1", "date": "2024-01-16", "ticker": "AAPL", "side": "SELL", "qty": "40", "price": "155"}))
    account.dispatch(ApplyCashActivity(date(2024, 1, 17), Decimal("500"), "deposit"))
    account.dispatch(SetManualAPR(date(2024, 1, 18), Decimal("0.09")))
    return account


def test_trades_csv_reports_bad_rows_by_number():
    parsed = trades_from_csv(TRADES_CSV)
    assert [t.id for t in parsed.trades] == ["trade_1", "trade_2"]
    first = parsed.trades[0]
    assert (first.ticker, first.side, first.fees, first.notes) == ("AAPL", TradeSide.BUY, Decimal("1.00"), "first")
    assert parsed.trades[1].notes is None
    fields = {error.field for error in parsed.errors}
    assert "row 3.side" in fields
    assert "row 4.ticker" in fields


def test_trades_csv_round_trip_keeps_ids():
    trades = _account().state.trades
    parsed = trades_from_csv(trades_to_csv(trades))
    assert not parsed.errors
    assert parsed.trades == list(trades)


def test_empty_csv_imports_nothing():
    parsed = trades_from_csv("")
    assert parsed.trades == [] and parsed.errors == []


def test_ledger_csv_header_and_round_trip():
    ledger = _account().state.ledger
    text = ledger_to_csv(ledger)
    assert text.splitlines()[0] == ",".join(LEDGER_COLUMNS)
    parsed = ledger_from_csv(text)
    assert not parsed.errors
    assert parsed.entries == list(ledger)


def test_state_snapshot_round_trip():
    state = _account().state
    payload = state_to_dict(state, exported_at=datetime(2024, 1, 20, tzinfo=timezone.utc))
    assert payload["exportedAt"].startswith("2024-01-20")
    assert payload["manualAprs"] == {"2024-01-18": "0.09"}
    restored = import_state_json(json.dumps(payload))
    assert restored.trades == state.trades
    assert restored.lots == state.lots
    assert restored.ledger == state.ledger
    assert restored.realized_pnl == state.realized_pnl
    assert restored.cash_adjustments == state.cash_adjustments
    assert restored.broker == state.broker


def test_export_state_json_is_json():
    text = export_state_json(_account().state)
    assert json.loads(text)["version"] == 1


def test_snapshot_lots_are_replayed_not_trusted():
    payload = state_to_dict(_account().state)
    payload["lots"] = []
    restored = state_from_dict(payload)
    assert [lot.qty_open for lot in restored.lots] == [Decimal("60")]
    assert restored.realized_pnl == Decimal("190.00")


def test_legacy_trades_are_migrated_on_import():
    restored = state_from_dict(
        {
            "trades": [
                {
                    "id": "1",
                    "ticker": "AAPL",
                    "buyDate": "2024-01-02",
                    "buyPrice": 100,
                    "quantity": 10,
                    "sellDate": "2024-01-05",
                    "sellPrice": 110,
                }
            ]
        }
    )
    assert [t.id for t in restored.trades] == ["1_buy", "1_sell"]
    assert restored.lots == ()
    assert restored.realized_pnl == Decimal("100")


def test_invalid_snapshot_lists_fields():
    with pytest.raises(ValidationError) as excinfo:
        state_from_dict(
            {
                "broker": {"broker_name": "X", "tiers": []},
                "trades": [{"id": "t", "date": "2024-01-02", "ticker": "aapl1", "side": "BUY", "qty": 1, "price": 1}],
            }
        )
    fields = {error.field for error in excinfo.value.errors}
    assert "broker.tiers" in fields
    assert "trades[0].ticker" in fields


@pytest.mark.parametrize("text", ["not json", "[1, 2]"])
def test_import_rejects_malformed_json(text):
    with pytest.raises(ValidationError):
        import_state_json(text)
