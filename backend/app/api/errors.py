"""Translate engine errors into HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException, status

from margin_ledger.account import CommandResult
from margin_ledger.errors import InsufficientLotQuantity, InvalidRateSchedule, MarginLedgerError, ValidationError

ERROR_STATUS: dict[type[MarginLedgerError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidRateSchedule: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InsufficientLotQuantity: status.HTTP_409_CONFLICT,
}


def http_error(exc: MarginLedgerError) -> HTTPException:
    code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=code, detail=exc.to_error_payload())


def ensure_ok(result: CommandResult) -> CommandResult:
    if result.error is not None:
        raise http_error(result.error)
    return result


__all__ = ["ERROR_STATUS", "ensure_ok", "http_error"]
