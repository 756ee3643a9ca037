"""One-time migration of persisted trade records into the canonical shape.

Older records described a round trip in a single row (``buyDate``,
``buyPrice``, ``quantity`` and optionally ``sellDate``/``sellPrice``), some
of them also carrying the newer ``date``/``side``/``qty``/``price`` fields.
Records are split into canonical BUY/SELL trades here, at the persistence
boundary, so the engine only ever sees :class:`~margin_ledger.models.Trade`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from .errors import FieldError
from .models import Trade
from .validation import validate_trade

logger = logging.getLogger(__name__)

LEGACY_MARKERS = ("buyDate", "buyPrice")


@dataclass
class MigrationResult:
    trades: list[Trade] = field(default_factory=list)
    errors: list[FieldError] = field(default_factory=list)
    migrated: int = 0


def is_legacy_record(record: Mapping[str, Any]) -> bool:
    return any(marker in record for marker in LEGACY_MARKERS)


def _canonical_payload(record: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": record.get("id"),
        "date": record.get("date"),
        "ticker": record.get("ticker"),
        "side": record.get("side"),
        "quantity": record.get("quantity", record.get("qty")),
        "price": record.get("price"),
        "fees": record.get("fees") or 0,
        "notes": record.get("notes"),
    }


def _legacy_payloads(record: Mapping[str, Any]) -> list[dict[str, Any]]:
    if record.get("side") and record.get("date") and record.get("price") is not None:
        return [_canonical_payload(record)]

    base_id = str(record.get("id", ""))
    quantity = record.get("quantity", record.get("qty"))
    notes = record.get("notes")
    rate = record.get("interestRate")
    if rate is not None and not notes:
        notes = f"migrated; legacy margin rate {rate}%"
    payloads = [
        {
            "id": f"{base_id}_buy",
            "date": record.get("buyDate"),
            "ticker": record.get("ticker"),
            "side": "BUY",
            "quantity": quantity,
            "price": record.get("buyPrice"),
            "fees": 0,
            "notes": notes,
        }
    ]
    if record.get("sellDate") and record.get("sellPrice") is not None:
        payloads.append(
            {
                "id": f"{base_id}_sell",
                "date": record.get("sellDate"),
                "ticker": record.get("ticker"),
                "side": "SELL",
                "quantity": quantity,
                "price": record.get("sellPrice"),
                "fees": 0,
                "notes": None,
            }
        )
    return payloads


def migrate_trade_records(records: Iterable[Mapping[str, Any]]) -> MigrationResult:
    """Convert persisted trade rows (legacy or canonical) into trades.

    Rows that fail validation are reported in ``errors`` with the row index
    prefixed to the field name and are otherwise skipped.
    """

    result = MigrationResult()
    for index, record in enumerate(records):
        legacy = is_legacy_record(record)
        payloads = _legacy_payloads(record) if legacy else [_canonical_payload(record)]
        for payload in payloads:
            validated = validate_trade(payload)
            if not validated.ok:
                result.errors.extend(
                    FieldError(field=f"[{index}].{e.field}", message=e.message) for e in validated.errors
                )
                continue
            result.trades.append(validated.unwrap())
        if legacy:
            result.migrated += 1
    if result.migrated:
        logger.info("Migrated %d legacy trade records into %d trades", result.migrated, len(result.trades))
    return result


__all__ = ["MigrationResult", "is_legacy_record", "migrate_trade_records"]
