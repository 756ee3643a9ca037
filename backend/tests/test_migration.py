"""Legacy trade record migration."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from margin_ledger.migration import is_legacy_record, migrate_trade_records
from margin_ledger.models import TradeSide


def test_round_trip_record_splits_into_buy_and_sell():
    records = [
        {
            "id": "7",
            "ticker": "AAPL",
            "buyDate": "2024-01-02",
            "buyPrice": 150,
            "quantity": 10,
            "sellDate": "2024-02-01",
            "sellPrice": 160,
            "interestRate": 11.9,
        }
    ]
    result = migrate_trade_records(records)
    assert result.migrated == 1
    assert not result.errors
    buy, sell = result.trades
    assert (buy.id, buy.side, buy.date) == ("7_buy", TradeSide.BUY, date(2024, 1, 2))
    assert (sell.id, sell.side, sell.price) == ("7_sell", TradeSide.SELL, Decimal("160"))
    assert "11.9" in (buy.notes or "")


def test_open_legacy_record_yields_only_buy():
    result = migrate_trade_records(
        [{"id": "8", "ticker": "MSFT", "buyDate": "2024-01-02", "buyPrice": 300, "quantity": 5}]
    )
    assert [t.id for t in result.trades] == ["8_buy"]


def test_hybrid_record_prefers_canonical_fields():
    record = {
        "id": "9",
        "ticker": "NVDA",
        "date": "2024-03-01",
        "side": "SELL",
        "qty": 2,
        "price": 900,
        "buyDate": "2024-01-01",
        "buyPrice": 500,
    }
    assert is_legacy_record(record)
    result = migrate_trade_records([record])
    assert len(result.trades) == 1
    assert result.trades[0].side == TradeSide.SELL
    assert result.trades[0].id == "9"


def test_canonical_records_pass_through_and_errors_are_indexed():
    records = [
        {"id": "a", "date": "2024-01-02", "ticker": "AAPL", "side": "BUY", "quantity": "1", "price": "1"},
        {"id": "b", "date": "2024-01-02", "ticker": "aapl", "side": "BUY", "quantity": "1", "price": "1"},
    ]
    result = migrate_trade_records(records)
    assert result.migrated == 0
    assert [t.id for t in result.trades] == ["a"]
    assert result.errors[0].field == "[1].ticker"
