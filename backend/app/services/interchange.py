"""CSV and JSON interchange for trades, the interest ledger and full snapshots."""

from __future__ import annotations

import io
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Sequence

import pandas as pd

from margin_ledger.account import AccountState, CashAdjustment
from margin_ledger.errors import FieldError, ValidationError
from margin_ledger.lots import replay_trades
from margin_ledger.migration import migrate_trade_records
from margin_ledger.models import InterestLedgerEntry, Trade, sort_trades
from margin_ledger.validation import (
    AccountSettingsInput,
    BrokerSettingsInput,
    LedgerEntryInput,
    LotInput,
    TradeInput,
    validate_account_settings,
    validate_broker_settings,
    validate_ledger_entry,
    validate_trade,
)

logger = logging.getLogger(__name__)

TRADE_COLUMNS = ["id", "date", "ticker", "side", "qty", "price", "fees", "notes"]
LEDGER_COLUMNS = ["date", "openingDebit", "cashActivity", "dailyInterest", "closingDebit", "aprUsed"]
STATE_FORMAT_VERSION = 1


@dataclass
class TradeImport:
    trades: list[Trade] = field(default_factory=list)
    errors: list[FieldError] = field(default_factory=list)


@dataclass
class LedgerImport:
    entries: list[InterestLedgerEntry] = field(default_factory=list)
    errors: list[FieldError] = field(default_factory=list)


def _text(value: Decimal | None) -> str:
    return "" if value is None else str(value)


def _read_frame(text: str) -> pd.DataFrame:
    if not text.strip():
        return pd.DataFrame()
    df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False)
    df.columns = [str(column).strip() for column in df.columns]
    return df


def _row_errors(row_number: int, errors: Iterable[FieldError]) -> list[FieldError]:
    return [FieldError(field=f"row {row_number}.{e.field}", message=e.message) for e in errors]


def trades_to_csv(trades: Sequence[Trade]) -> str:
    rows = [
        {
            "id": t.id,
            "date": t.date.isoformat(),
            "ticker": t.ticker,
            "side": t.side.value,
            "qty": str(t.quantity),
            "price": str(t.price),
            "fees": str(t.fees),
            "notes": t.notes or "",
        }
        for t in sort_trades(trades)
    ]
    return pd.DataFrame(rows, columns=TRADE_COLUMNS).to_csv(index=False)


def trades_from_csv(text: str, *, id_prefix: str = "trade") -> TradeImport:
    """Parse a trades CSV, validating each row independently.

    Rows without an ``id`` column get ``{id_prefix}_{row}``. Invalid rows are
    skipped and reported with their 1-based row number.
    """

    result = TradeImport()
    df = _read_frame(text)
    for index, record in enumerate(df.to_dict(orient="records"), start=1):
        payload: dict[str, Any] = {
            "id": record.get("id") or f"{id_prefix}_{index}",
            "date": record.get("date"),
            "ticker": (record.get("ticker") or "").upper(),
            "side": (record.get("side") or "").upper(),
            "quantity": record.get("qty", record.get("quantity")),
            "price": record.get("price"),
            "fees": record.get("fees") or "0",
            "notes": record.get("notes") or None,
        }
        validated = validate_trade(payload)
        if validated.ok:
            result.trades.append(validated.unwrap())
        else:
            result.errors.extend(_row_errors(index, validated.errors))
    if result.errors:
        logger.warning("Trade CSV import skipped %d invalid fields", len(result.errors))
    return result


def ledger_to_csv(ledger: Sequence[InterestLedgerEntry]) -> str:
    rows = [
        {
            "date": entry.date.isoformat(),
            "openingDebit": str(entry.opening_debit),
            "cashActivity": str(entry.cash_activity),
            "dailyInterest": str(entry.daily_interest),
            "closingDebit": str(entry.closing_debit),
            "aprUsed": _text(entry.apr_used),
        }
        for entry in sorted(ledger, key=lambda e: e.date)
    ]
    return pd.DataFrame(rows, columns=LEDGER_COLUMNS).to_csv(index=False)


def ledger_from_csv(text: str) -> LedgerImport:
    result = LedgerImport()
    df = _read_frame(text)
    for index, record in enumerate(df.to_dict(orient="records"), start=1):
        payload = {
            "date": record.get("date"),
            "opening_debit": record.get("openingDebit"),
            "cash_activity": record.get("cashActivity"),
            "daily_interest": record.get("dailyInterest"),
            "closing_debit": record.get("closingDebit"),
            "apr_used": record.get("aprUsed") or None,
        }
        validated = validate_ledger_entry(payload)
        if validated.ok:
            result.entries.append(validated.unwrap())
        else:
            result.errors.extend(_row_errors(index, validated.errors))
    result.entries.sort(key=lambda e: e.date)
    return result


# ---- Full snapshots ----


def state_to_dict(state: AccountState, *, exported_at: datetime | None = None) -> dict[str, Any]:
    stamp = exported_at or datetime.now(timezone.utc)
    return {
        "version": STATE_FORMAT_VERSION,
        "exportedAt": stamp.isoformat(),
        "broker": BrokerSettingsInput.from_domain(state.broker).model_dump(mode="json"),
        "settings": AccountSettingsInput.from_domain(state.settings).model_dump(mode="json"),
        "trades": [TradeInput.from_domain(t).model_dump(mode="json") for t in state.trades],
        "lots": [LotInput.from_domain(lot).model_dump(mode="json") for lot in state.lots],
        "ledger": [LedgerEntryInput.from_domain(e).model_dump(mode="json") for e in state.ledger],
        "manualAprs": {day.isoformat(): str(apr) for day, apr in sorted(state.manual_aprs.items())},
        "cashAdjustments": [
            {"date": a.date.isoformat(), "amount": str(a.amount), "description": a.description}
            for a in state.cash_adjustments
        ],
    }


def _manual_aprs(raw: dict[str, Any]) -> dict[date, Decimal]:
    aprs: dict[date, Decimal] = {}
    errors: list[FieldError] = []
    for key, value in raw.items():
        try:
            aprs[date.fromisoformat(key)] = Decimal(str(value))
        except (ValueError, InvalidOperation):
            errors.append(FieldError(field=f"manualAprs.{key}", message="invalid date or rate"))
    if errors:
        raise ValidationError(errors)
    return aprs


def _cash_adjustments(raw: list[dict[str, Any]]) -> tuple[CashAdjustment, ...]:
    adjustments: list[CashAdjustment] = []
    for index, item in enumerate(raw):
        try:
            adjustments.append(
                CashAdjustment(
                    date=date.fromisoformat(str(item["date"])),
                    amount=Decimal(str(item["amount"])),
                    description=item.get("description"),
                )
            )
        except (KeyError, ValueError, InvalidOperation) as exc:
            raise ValidationError(
                [FieldError(field=f"cashAdjustments.{index}", message="invalid cash adjustment")]
            ) from exc
    return tuple(adjustments)


def state_from_dict(payload: dict[str, Any]) -> AccountState:
    """Rebuild an :class:`AccountState` from :func:`state_to_dict` output.

    Trade rows in the legacy round-trip shape are migrated. Lots and realized
    P&L are always replayed from the trades rather than trusted from the
    payload.
    """

    errors: list[FieldError] = []
    base = AccountState()

    broker = base.broker
    if payload.get("broker"):
        validated_broker = validate_broker_settings(payload["broker"])
        if validated_broker.ok:
            broker = validated_broker.unwrap()
        else:
            errors.extend(FieldError(f"broker.{e.field}", e.message) for e in validated_broker.errors)

    settings = base.settings
    if payload.get("settings"):
        validated_settings = validate_account_settings(payload["settings"])
        if validated_settings.ok:
            settings = validated_settings.unwrap()
        else:
            errors.extend(FieldError(f"settings.{e.field}", e.message) for e in validated_settings.errors)

    migration = migrate_trade_records(payload.get("trades") or [])
    errors.extend(FieldError(f"trades{e.field}", e.message) for e in migration.errors)

    ledger: list[InterestLedgerEntry] = []
    for index, raw in enumerate(payload.get("ledger") or []):
        validated_entry = validate_ledger_entry(raw)
        if validated_entry.ok:
            ledger.append(validated_entry.unwrap())
        else:
            errors.extend(FieldError(f"ledger[{index}].{e.field}", e.message) for e in validated_entry.errors)

    if errors:
        raise ValidationError(errors, message="Invalid account snapshot")

    trades = sort_trades(migration.trades)
    replay = replay_trades(trades, settings.match_policy)
    return AccountState(
        broker=broker,
        settings=settings,
        trades=tuple(trades),
        lots=tuple(replay.lots),
        ledger=tuple(sorted(ledger, key=lambda e: e.date)),
        realized_pnl=replay.realized_pnl,
        manual_aprs=_manual_aprs(payload.get("manualAprs") or {}),
        cash_adjustments=_cash_adjustments(payload.get("cashAdjustments") or []),
    )


def export_state_json(state: AccountState, *, exported_at: datetime | None = None) -> str:
    return json.dumps(state_to_dict(state, exported_at=exported_at), indent=2)


def import_state_json(text: str) -> AccountState:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValidationError([FieldError(field="__root__", message=f"invalid JSON: {exc.msg}")]) from exc
    if not isinstance(payload, dict):
        raise ValidationError([FieldError(field="__root__", message="expected a JSON object")])
    return state_from_dict(payload)


__all__ = [
    "LEDGER_COLUMNS",
    "LedgerImport",
    "TRADE_COLUMNS",
    "TradeImport",
    "export_state_json",
    "import_state_json",
    "ledger_from_csv",
    "ledger_to_csv",
    "state_from_dict",
    "state_to_dict",
    "trades_from_csv",
    "trades_to_csv",
]
