"""Key-value persistence of account snapshots."""

from __future__ import annotations

import json
import logging

from sqlalchemy import delete, select

from app.db import Database
from app.models.account_state import AccountStateRecord
from app.services.interchange import state_from_dict, state_to_dict
from margin_ledger.account import AccountState

logger = logging.getLogger(__name__)


class AccountStateRepository:
    """Store serialized :class:`AccountState` snapshots by key.

    Loading goes through :func:`state_from_dict`, so legacy trade rows are
    migrated the first time an old snapshot is read.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    async def get(self, key: str) -> AccountState | None:
        async with self._database.session() as session:
            record = await session.get(AccountStateRecord, key)
            if record is None:
                return None
            payload = json.loads(record.payload)
        state = state_from_dict(payload)
        logger.debug("Loaded account state %s with %d trades", key, len(state.trades))
        return state

    async def set(self, key: str, state: AccountState) -> None:
        payload = json.dumps(state_to_dict(state))
        async with self._database.session() as session:
            record = await session.get(AccountStateRecord, key)
            if record is None:
                session.add(AccountStateRecord(key=key, payload=payload))
            else:
                record.payload = payload
            await session.commit()
        logger.debug("Saved account state %s", key)

    async def delete(self, key: str) -> bool:
        async with self._database.session() as session:
            result = await session.execute(delete(AccountStateRecord).where(AccountStateRecord.key == key))
            await session.commit()
        return bool(result.rowcount)

    async def keys(self) -> list[str]:
        async with self._database.session() as session:
            result = await session.execute(select(AccountStateRecord.key).order_by(AccountStateRecord.key))
            return list(result.scalars())


__all__ = ["AccountStateRepository"]
