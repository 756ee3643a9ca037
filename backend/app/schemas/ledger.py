"""Pydantic schemas for the interest ledger."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, Field

from margin_ledger.models import InterestLedgerEntry


class LedgerEntrySchema(BaseModel):
    date: dt.date
    opening_debit: Decimal
    cash_activity: Decimal
    daily_interest: Decimal
    closing_debit: Decimal
    apr_used: Decimal | None = None

    @classmethod
    def from_entry(cls, entry: InterestLedgerEntry) -> "LedgerEntrySchema":
        return cls(**entry.__dict__)


class RecomputeRequest(BaseModel):
    from_date: dt.date | None = Field(default=None, description="First day to re-post; defaults to the earliest needed")


class CashActivityRequest(BaseModel):
    date: dt.date
    amount: Decimal = Field(..., description="Positive adds to the debit, negative pays it down")
    description: str | None = None


class ManualAPRRequest(BaseModel):
    date: dt.date
    apr: Decimal | None = Field(default=None, ge=0, le=1, description="Omit to clear the override")


class InterestTotalResponse(BaseModel):
    start: dt.date
    end: dt.date
    total_interest: Decimal


__all__ = [
    "CashActivityRequest",
    "InterestTotalResponse",
    "LedgerEntrySchema",
    "ManualAPRRequest",
    "RecomputeRequest",
]
