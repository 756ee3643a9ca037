"""Pydantic schemas for account reports, settings and PDT status."""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel

from margin_ledger.margin import AccountSummary, PositionSummary
from margin_ledger.models import MatchPolicy, PDTStatus

SUMMARY_AMOUNTS = (
    "total_equity",
    "total_debit",
    "total_market_value",
    "available_buying_power",
    "maintenance_requirement",
    "daily_interest",
)
POSITION_AMOUNTS = (
    "total_market_value",
    "total_cost_basis",
    "total_unrealized_pnl",
    "total_required_margin",
    "equity_impact",
)


def round_amount(value: Decimal, places: int) -> Decimal:
    """Quantize a currency amount to the account's display precision."""

    return value.quantize(Decimal("1").scaleb(-places), rounding=ROUND_HALF_UP)


def _rounded(values: dict, fields: tuple[str, ...], places: int | None) -> dict:
    if places is None:
        return values
    return {key: round_amount(value, places) if key in fields else value for key, value in values.items()}


class AccountSummarySchema(BaseModel):
    as_of: date
    total_equity: Decimal
    total_debit: Decimal
    total_market_value: Decimal
    available_buying_power: Decimal
    maintenance_requirement: Decimal
    daily_interest: Decimal
    is_margin_call: bool
    realized_pnl: Decimal

    @classmethod
    def from_summary(
        cls,
        summary: AccountSummary,
        *,
        as_of: date,
        realized_pnl: Decimal,
        places: int | None = None,
    ) -> "AccountSummarySchema":
        if places is not None:
            realized_pnl = round_amount(realized_pnl, places)
        return cls(as_of=as_of, realized_pnl=realized_pnl, **_rounded(summary.__dict__, SUMMARY_AMOUNTS, places))


class PositionSummarySchema(BaseModel):
    ticker: str
    total_qty: Decimal
    market_price: Decimal | None = None
    total_market_value: Decimal
    total_cost_basis: Decimal
    total_unrealized_pnl: Decimal
    total_required_margin: Decimal
    equity_impact: Decimal

    @classmethod
    def from_summary(
        cls,
        summary: PositionSummary,
        market_price: Decimal | None,
        *,
        places: int | None = None,
    ) -> "PositionSummarySchema":
        return cls(market_price=market_price, **_rounded(summary.__dict__, POSITION_AMOUNTS, places))


class AccountSettingsSchema(BaseModel):
    match_policy: MatchPolicy
    default_fees_per_trade: Decimal | None = None
    rounding: int


class AccountSettingsUpdateRequest(BaseModel):
    match_policy: MatchPolicy | None = None
    default_fees_per_trade: Decimal | None = None
    rounding: int | None = None


class PDTStatusSchema(BaseModel):
    as_of: date
    day_trades_last_5_days: int
    is_pdt_risk: bool
    last_5_business_days: list[date]
    day_trades_by_date: dict[date, int]
    warning: str

    @classmethod
    def from_status(cls, status: PDTStatus, *, as_of: date, warning: str) -> "PDTStatusSchema":
        return cls(
            as_of=as_of,
            day_trades_last_5_days=status.day_trades_last_5_days,
            is_pdt_risk=status.is_pdt_risk,
            last_5_business_days=list(status.last_5_business_days),
            day_trades_by_date=dict(status.day_trades_by_date),
            warning=warning,
        )


class DayTradeCheckResponse(BaseModel):
    would_create_day_trade: bool
    day_trades_last_5_days: int


class HealthResponse(BaseModel):
    status: str
    service: str
    database_url: str
    timezone: str


__all__ = [
    "AccountSettingsSchema",
    "AccountSettingsUpdateRequest",
    "AccountSummarySchema",
    "DayTradeCheckResponse",
    "HealthResponse",
    "PDTStatusSchema",
    "PositionSummarySchema",
    "round_amount",
]
