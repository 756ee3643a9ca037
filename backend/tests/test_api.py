"""HTTP surface of the margin ledger service."""

from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal

import httpx
import pytest
from fastapi import HTTPException
from httpx import ASGITransport

from app.api.routes.trades import _stored_trade
from app.config import AppSettings
from app.db import Database
from app.main import create_app
from app.services.account_service import MarginAccountService
from app.services.persistence import AccountStateRepository
from margin_ledger.account import AccountState

TODAY = date(2024, 1, 20)

BUY = {"id": "b1", "date": "2024-01-15", "ticker": "aapl", "side": "BUY", "qty": "100", "price": "150.25"}


def _run(tmp_path, scenario):
    url = f"sqlite+aiosqlite:///{tmp_path / 'api.db'}"
    settings = AppSettings(database_url=url, quote_service_url=None)
    database = Database(url)
    service = MarginAccountService(AccountStateRepository(database), settings=settings, clock=lambda: TODAY)
    app = create_app(database, settings=settings, service=service, start_refresher=False)

    async def runner():
        try:
            async with app.router.lifespan_context(app):
                transport = ASGITransport(app=app)
                async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
                    return await scenario(client, service)
        finally:
            await database.dispose()

    return asyncio.run(runner())


def test_health(tmp_path):
    async def scenario(client, service):
        return await client.get("/health")

    response = _run(tmp_path, scenario)
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_trade_lifecycle(tmp_path):
    async def scenario(client, service):
        created = await client.post("/trades", json=BUY)
        generated = await client.post(
            "/trades",
            json={"date": "2024-01-16", "ticker": "MSFT", "side": "BUY", "qty": 5, "price": 400},
        )
        sold = await client.post(
            "/trades",
            json={"id": "s1", "date": "2024-01-15", "ticker": "AAPL", "side": "SELL", "qty": 40, "price": "160"},
        )
        oversold = await client.post(
            "/trades",
            json={"id": "s2", "date": "2024-01-17", "ticker": "AAPL", "side": "SELL", "qty": 500, "price": "160"},
        )
        bad = await client.post("/trades", json={**BUY, "id": "b9", "ticker": "AAPL1"})
        edited = await client.patch("/trades/s1", json={"qty": 20})
        listed = await client.get("/trades")
        removed = await client.delete(f"/trades/{generated.json()['trade']['id']}")
        missing = await client.delete("/trades/nope")
        after = await client.get("/trades")
        return created, generated, sold, oversold, bad, edited, listed, removed, missing, after

    created, generated, sold, oversold, bad, edited, listed, removed, missing, after = _run(tmp_path, scenario)

    assert created.status_code == 201
    body = created.json()
    assert body["trade"]["ticker"] == "AAPL"
    assert Decimal(body["trade"]["notional_value"]) == Decimal("15025.00")
    assert generated.json()["trade"]["id"].startswith("trade_")

    assert sold.status_code == 201
    assert Decimal(sold.json()["realized_pnl"]) == Decimal("390.00")
    assert sold.json()["is_day_trade"] is True

    assert oversold.status_code == 409
    detail = oversold.json()["detail"]
    assert detail["code"] == "INSUFFICIENT_LOT_QUANTITY"
    assert Decimal(detail["available_qty"]) == Decimal("60")

    assert bad.status_code == 422

    assert edited.status_code == 200
    assert Decimal(edited.json()["trade"]["quantity"]) == Decimal("20")
    assert len(listed.json()) == 3

    assert removed.status_code == 204
    assert missing.status_code == 422
    assert [t["id"] for t in after.json()] == ["b1", "s1"]


def test_ledger_endpoints(tmp_path):
    async def scenario(client, service):
        await client.post("/trades", json=BUY)
        ledger = await client.get("/ledger")
        cash = await client.post(
            "/ledger/cash-activity", json={"date": "2024-01-16", "amount": "20000", "description": "wire"}
        )
        manual = await client.put("/ledger/manual-apr", json={"date": "2024-01-18", "apr": "0.05"})
        interest = await client.get("/ledger/interest")
        reversed_range = await client.get("/ledger/interest", params={"start": "2024-01-19", "end": "2024-01-18"})
        recomputed = await client.post("/ledger/recompute", json={"from_date": "2024-01-15"})
        exported = await client.get("/ledger/export")
        return ledger, cash, manual, interest, reversed_range, recomputed, exported

    ledger, cash, manual, interest, reversed_range, recomputed, exported = _run(tmp_path, scenario)

    dates = [entry["date"] for entry in ledger.json()]
    assert dates[0] == "2024-01-15" and dates[-1] == "2024-01-20"
    assert len(dates) == 6

    entries = {entry["date"]: entry for entry in cash.json()}
    assert Decimal(entries["2024-01-16"]["cash_activity"]) == Decimal("20000")
    assert Decimal(entries["2024-01-16"]["daily_interest"]) > 0

    overridden = {entry["date"]: entry for entry in manual.json()}["2024-01-18"]
    assert Decimal(overridden["apr_used"]) == Decimal("0.05")

    assert interest.status_code == 200
    assert Decimal(interest.json()["total_interest"]) > 0
    assert reversed_range.status_code == 422

    # The cash adjustment and APR override survive a full recompute.
    after = {entry["date"]: entry for entry in recomputed.json()}
    assert Decimal(after["2024-01-16"]["cash_activity"]) == Decimal("20000")
    assert Decimal(after["2024-01-18"]["apr_used"]) == Decimal("0.05")

    assert exported.headers["content-type"].startswith("text/csv")
    assert exported.text.splitlines()[0] == "date,openingDebit,cashActivity,dailyInterest,closingDebit,aprUsed"


def test_broker_endpoints(tmp_path):
    async def scenario(client, service):
        initial = await client.get("/broker")
        patched = await client.patch("/broker", json={"day_count_basis": 365})
        invalid = await client.patch("/broker", json={"initial_margin_pct": "1.5"})
        single = await client.patch("/broker", json={"tiers": [{"min_balance": "0", "apr": "0.09"}]})
        last = await client.delete("/broker/tiers/0")
        added = await client.post("/broker/tiers", json={"min_balance": "100000", "apr": "0.07"})
        updated = await client.put("/broker/tiers/1", json={"min_balance": "50000", "apr": "0.075"})
        reset = await client.post("/broker/reset")
        return initial, patched, invalid, single, last, added, updated, reset

    initial, patched, invalid, single, last, added, updated, reset = _run(tmp_path, scenario)

    assert initial.json()["broker_name"] == "Charles Schwab"
    assert initial.json()["tiers"][0]["apr_display"].endswith("%")
    assert patched.json()["day_count_basis"] == 365
    assert invalid.status_code == 422
    assert len(single.json()["tiers"]) == 1
    assert last.status_code == 422
    assert last.json()["detail"]["code"] == "INVALID_RATE_SCHEDULE"
    assert added.status_code == 201
    assert Decimal(updated.json()["tiers"][1]["apr"]) == Decimal("0.075")
    assert reset.json() == initial.json()


def test_account_reports_and_pdt(tmp_path):
    async def scenario(client, service):
        await client.post("/trades", json=BUY)
        service.set_price("AAPL", Decimal("160"))
        summary = await client.get("/account/summary")
        positions = await client.get("/account/positions")
        settings = await client.patch("/account/settings", json={"match_policy": "LIFO"})
        check = await client.post(
            "/pdt/check",
            json={"date": "2024-01-15", "ticker": "AAPL", "side": "SELL", "qty": 10, "price": 160},
        )
        status = await client.get("/pdt/status", params={"as_of": "2024-01-19"})
        return summary, positions, settings, check, status

    summary, positions, settings, check, status = _run(tmp_path, scenario)

    body = summary.json()
    assert Decimal(body["total_market_value"]) == Decimal("16000")
    assert Decimal(body["total_equity"]) == Decimal(body["total_market_value"]) - Decimal(body["total_debit"])
    assert body["as_of"] == "2024-01-20"

    (position,) = positions.json()
    assert position["ticker"] == "AAPL"
    assert Decimal(position["total_unrealized_pnl"]) == Decimal("975.00")

    assert settings.json()["match_policy"] == "LIFO"
    assert check.json() == {"would_create_day_trade": True, "day_trades_last_5_days": 0}
    assert status.json()["day_trades_last_5_days"] == 0
    assert status.json()["is_pdt_risk"] is False
    assert len(status.json()["last_5_business_days"]) == 5


def test_csv_and_snapshot_exchange(tmp_path):
    csv_text = "date,ticker,side,qty,price,fees,notes\n2024-01-10,MSFT,BUY,3,390,0,\n2024-01-11,MSFT,NOPE,1,1,0,\n"

    async def scenario(client, service):
        await client.post("/trades", json=BUY)
        imported = await client.post("/trades/import", json={"csv": csv_text})
        rejected = await client.post("/trades/import", json={"csv": "date,ticker,side,qty,price\n2024-01-10,,BUY,1,1\n"})
        exported = await client.get("/trades/export")
        snapshot = await client.get("/account/export")
        replaced = await client.post("/trades/import", json={"csv": csv_text, "replace": True})
        after_replace = await client.get("/trades")
        restored = await client.post("/account/import", json=snapshot.json())
        after_restore = await client.get("/trades")
        broken = await client.post("/account/import", json={"trades": [{"id": "x", "ticker": "1"}]})
        return imported, rejected, exported, replaced, after_replace, restored, after_restore, broken

    imported, rejected, exported, replaced, after_replace, restored, after_restore, broken = _run(tmp_path, scenario)

    assert imported.json()["imported"] == 1
    assert [e["field"] for e in imported.json()["errors"]] == ["row 2.side"]
    assert rejected.status_code == 422

    lines = exported.text.splitlines()
    assert lines[0] == "id,date,ticker,side,qty,price,fees,notes"
    assert len(lines) == 3

    assert replaced.json()["imported"] == 1
    assert [t["ticker"] for t in after_replace.json()] == ["MSFT"]

    assert restored.status_code == 200
    assert sorted(t["ticker"] for t in after_restore.json()) == ["AAPL", "MSFT"]
    assert broken.status_code == 422


def test_state_survives_restart(tmp_path):
    created = _run(tmp_path, lambda client, service: client.post("/trades", json=BUY))
    assert created.status_code == 201

    async def scenario(client, service):
        return await client.get("/trades")

    listed = _run(tmp_path, scenario)
    assert [t["id"] for t in listed.json()] == ["b1"]


def test_missing_trade_after_commit_is_not_found():
    with pytest.raises(HTTPException) as excinfo:
        _stored_trade(AccountState(), "ghost")
    assert excinfo.value.status_code == 404


def test_reports_use_account_rounding(tmp_path):
    async def scenario(client, service):
        await client.post("/trades", json=BUY)
        service.set_price("AAPL", Decimal("160"))
        default = await client.get("/account/summary")
        await client.patch("/account/settings", json={"rounding": 0})
        summary = await client.get("/account/summary")
        positions = await client.get("/account/positions")
        return default, summary, positions

    default, summary, positions = _run(tmp_path, scenario)

    for key in ("total_debit", "daily_interest", "maintenance_requirement"):
        assert Decimal(default.json()[key]).as_tuple().exponent == -2
        assert "." not in summary.json()[key]
    (position,) = positions.json()
    assert position["total_cost_basis"] == "15025"
    assert position["total_unrealized_pnl"] == "975"
