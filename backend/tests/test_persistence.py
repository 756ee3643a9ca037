"""SQLite-backed account snapshot storage."""

from __future__ import annotations

import asyncio
import json
from datetime import date
from decimal import Decimal

from app.db import Database
from app.models.account_state import AccountStateRecord
from app.services.persistence import AccountStateRepository
from margin_ledger.account import AccountContainer, AddTrade


def _state():
    account = AccountContainer(clock=lambda: date(2024, 1, 18))
    account.dispatch(
        AddTrade({"id": "b1", "date": "2024-01-15", "ticker": "AAPL", "side": "BUY", "qty": "10", "price": "100"})
    )
    return account.state


def test_round_trip_and_delete(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}"

    async def scenario():
        database = Database(url)
        await database.create_all()
        repository = AccountStateRepository(database)
        try:
            assert await repository.get("app_state") is None
            state = _state()
            await repository.set("app_state", state)
            await repository.set("app_state", state)
            loaded = await repository.get("app_state")
            keys = await repository.keys()
            deleted = await repository.delete("app_state")
            deleted_again = await repository.delete("app_state")
            return state, loaded, keys, deleted, deleted_again
        finally:
            await database.dispose()

    state, loaded, keys, deleted, deleted_again = asyncio.run(scenario())
    assert keys == ["app_state"]
    assert loaded is not None
    assert loaded.trades == state.trades
    assert loaded.lots == state.lots
    assert loaded.ledger == state.ledger
    assert deleted is True
    assert deleted_again is False


def test_legacy_snapshot_is_migrated_on_load(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'legacy.db'}"
    legacy = {
        "trades": [
            {"id": "3", "ticker": "MSFT", "buyDate": "2024-01-02", "buyPrice": 300, "quantity": 2},
        ]
    }

    async def scenario():
        database = Database(url)
        await database.create_all()
        try:
            async with database.session() as session:
                session.add(AccountStateRecord(key="old", payload=json.dumps(legacy)))
                await session.commit()
            return await AccountStateRepository(database).get("old")
        finally:
            await database.dispose()

    state = asyncio.run(scenario())
    assert state is not None
    assert [t.id for t in state.trades] == ["3_buy"]
    assert state.lots[0].qty_open == Decimal("2")
