"""Recompute the interest ledger from a trades CSV or a stored account."""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import replace
from datetime import date
from pathlib import Path

from app.config import get_settings
from app.db import Database
from app.services.account_service import initial_state
from app.services.interchange import ledger_to_csv, trades_from_csv
from app.services.persistence import AccountStateRepository
from margin_ledger.ledger import get_total_interest, recompute_ledger
from margin_ledger.models import BrokerSettings


def _from_csv(path: Path, through: date, basis: int | None) -> int:
    parsed = trades_from_csv(path.read_text(encoding="utf-8"))
    for error in parsed.errors:
        print(f"skipped {error.field}: {error.message}", file=sys.stderr)
    if not parsed.trades:
        print("No valid trades found", file=sys.stderr)
        return 1
    broker: BrokerSettings = initial_state(get_settings()).broker
    if basis is not None:
        broker = replace(broker, day_count_basis=basis)
    start = min(t.date for t in parsed.trades)
    ledger = recompute_ledger(start, parsed.trades, broker, through=through)
    sys.stdout.write(ledger_to_csv(ledger))
    total = get_total_interest(start, through, ledger)
    print(f"Computed {len(ledger)} ledger days, total interest {total:.2f}", file=sys.stderr)
    return 0


async def _from_database(key: str, through: date) -> int:
    database = Database(get_settings().database_url)
    try:
        await database.create_all()
        repository = AccountStateRepository(database)
        state = await repository.get(key)
        if state is None:
            print(f"No stored account under {key!r}", file=sys.stderr)
            return 1
        if not state.trades:
            sys.stdout.write(ledger_to_csv(()))
            return 0
        start = min(t.date for t in state.trades)
        ledger = recompute_ledger(
            start,
            state.trades,
            state.broker,
            through=through,
            manual_aprs=state.manual_aprs,
            cash_adjustments=state.adjustments_by_date(),
        )
        await repository.set(key, replace(state, ledger=tuple(ledger)))
        sys.stdout.write(ledger_to_csv(ledger))
        print(f"Recomputed {len(ledger)} ledger days for {key}", file=sys.stderr)
        return 0
    finally:
        await database.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Recompute the daily margin interest ledger")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--trades", type=Path, help="Trades CSV (date,ticker,side,qty,price,fees,notes)")
    source.add_argument("--account-key", help="Recompute and save the stored account with this key")
    parser.add_argument("--through", type=date.fromisoformat, default=date.today(), help="Last day to post")
    parser.add_argument("--basis", type=int, choices=[360, 365], default=None, help="Day-count basis")
    args = parser.parse_args()
    if args.trades is not None:
        code = _from_csv(args.trades, args.through, args.basis)
    else:
        code = asyncio.run(_from_database(args.account_key, args.through))
    raise SystemExit(code)


if __name__ == "__main__":
    main()
