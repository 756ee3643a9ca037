"""Error kinds raised or reported by the margin accounting engine."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Sequence


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


class MarginLedgerError(Exception):
    """Base class for recoverable engine errors.

    Every subclass describes a rejected operation; the caller keeps its
    previous state and may re-prompt or discard the attempted change.
    """

    code = "MARGIN_LEDGER_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_error_payload(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationError(MarginLedgerError):
    """Malformed trade, lot or settings fields."""

    code = "VALIDATION_ERROR"

    def __init__(self, errors: Sequence[FieldError], message: str | None = None) -> None:
        self.errors = list(errors)
        if message is None:
            message = "; ".join(f"{e.field}: {e.message}" for e in self.errors) or "invalid input"
        super().__init__(message)

    def to_error_payload(self) -> dict[str, Any]:
        payload = super().to_error_payload()
        payload["errors"] = [{"field": e.field, "message": e.message} for e in self.errors]
        return payload


class InsufficientLotQuantity(MarginLedgerError):
    """A closing trade asks for more shares than are open for the ticker."""

    code = "INSUFFICIENT_LOT_QUANTITY"

    def __init__(self, ticker: str, available_qty: Decimal, requested_qty: Decimal) -> None:
        self.ticker = ticker
        self.available_qty = available_qty
        self.requested_qty = requested_qty
        super().__init__(
            f"Insufficient quantity. Available: {available_qty}, Requested: {requested_qty}"
        )

    def to_error_payload(self) -> dict[str, Any]:
        payload = super().to_error_payload()
        payload.update(
            ticker=self.ticker,
            available_qty=str(self.available_qty),
            requested_qty=str(self.requested_qty),
        )
        return payload


class InvalidRateSchedule(MarginLedgerError):
    """Empty tier list, or an attempt to delete the last remaining tier."""

    code = "INVALID_RATE_SCHEDULE"


__all__ = [
    "FieldError",
    "InsufficientLotQuantity",
    "InvalidRateSchedule",
    "MarginLedgerError",
    "ValidationError",
]
