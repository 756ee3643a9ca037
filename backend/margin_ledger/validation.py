"""Field validation for trades, lots, rate schedules and broker settings.

Validators return a :class:`Result` carrying either the validated domain
object or the list of failing fields, so callers branch explicitly instead
of catching exceptions.
"""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Generic, Literal, Mapping, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import FieldError, ValidationError
from .models import (
    AccountSettings,
    BrokerSettings,
    InterestLedgerEntry,
    Lot,
    LotSide,
    MatchPolicy,
    RateTier,
    Trade,
    TradeSide,
)

T = TypeVar("T")

TICKER_PATTERN = r"^[A-Z]+$"


@dataclass(frozen=True)
class Result(Generic[T]):
    value: T | None = None
    errors: tuple[FieldError, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors

    def unwrap(self) -> T:
        if self.errors:
            raise ValidationError(self.errors)
        if self.value is None:
            raise ValidationError([FieldError("value", "missing")])
        return self.value

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, errors: list[FieldError] | tuple[FieldError, ...]) -> "Result[T]":
        return cls(errors=tuple(errors))


class TradeInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    date: dt.date
    ticker: str = Field(..., min_length=1, max_length=10, pattern=TICKER_PATTERN)
    side: TradeSide
    quantity: Decimal = Field(..., gt=0, validation_alias=AliasChoices("quantity", "qty"))
    price: Decimal = Field(..., ge=0)
    fees: Decimal = Field(default=Decimal("0"), ge=0)
    notes: str | None = None

    def to_domain(self) -> Trade:
        return Trade(**self.model_dump())

    @classmethod
    def from_domain(cls, trade: Trade) -> "TradeInput":
        return cls.model_validate(trade.__dict__)


class LotInput(BaseModel):
    id: str = Field(..., min_length=1)
    ticker: str = Field(..., min_length=1, max_length=10)
    open_date: dt.date
    side: LotSide
    qty_open: Decimal = Field(..., ge=0)
    qty_init: Decimal = Field(..., gt=0)
    cost_basis_per_share: Decimal = Field(..., ge=0)
    fees_total: Decimal = Field(default=Decimal("0"), ge=0)
    maintenance_margin_pct: Decimal | None = Field(default=None, ge=0, le=1)

    @model_validator(mode="after")
    def _open_within_initial(self) -> "LotInput":
        if self.qty_open > self.qty_init:
            raise ValueError("qty_open cannot exceed qty_init")
        return self

    def to_domain(self) -> Lot:
        return Lot(**self.model_dump())

    @classmethod
    def from_domain(cls, lot: Lot) -> "LotInput":
        return cls.model_validate(lot.__dict__)


class RateTierInput(BaseModel):
    min_balance: Decimal = Field(..., ge=0)
    max_balance: Decimal | None = Field(default=None, ge=0)
    apr: Decimal = Field(..., ge=0, le=1)

    @model_validator(mode="after")
    def _ordered_bounds(self) -> "RateTierInput":
        if self.max_balance is not None and self.max_balance < self.min_balance:
            raise ValueError("max_balance cannot be below min_balance")
        return self

    def to_domain(self) -> RateTier:
        return RateTier(min_balance=self.min_balance, max_balance=self.max_balance, apr=self.apr)

    @classmethod
    def from_domain(cls, tier: RateTier) -> "RateTierInput":
        return cls.model_validate(tier.__dict__)


class BrokerSettingsInput(BaseModel):
    broker_name: str = Field(..., min_length=1)
    base_rate_name: str | None = None
    tiers: list[RateTierInput] = Field(..., min_length=1)
    day_count_basis: Literal[360, 365] = 360
    initial_margin_pct: Decimal = Field(default=Decimal("0.50"), ge=0, le=1)
    maintenance_margin_pct: Decimal = Field(default=Decimal("0.30"), ge=0, le=1)

    def to_domain(self) -> BrokerSettings:
        return BrokerSettings(
            broker_name=self.broker_name,
            base_rate_name=self.base_rate_name,
            tiers=tuple(tier.to_domain() for tier in self.tiers),
            day_count_basis=self.day_count_basis,
            initial_margin_pct=self.initial_margin_pct,
            maintenance_margin_pct=self.maintenance_margin_pct,
        )

    @classmethod
    def from_domain(cls, broker: BrokerSettings) -> "BrokerSettingsInput":
        payload = dict(broker.__dict__)
        payload["tiers"] = [dict(t.__dict__) for t in broker.tiers]
        return cls.model_validate(payload)


class LedgerEntryInput(BaseModel):
    date: dt.date
    opening_debit: Decimal
    cash_activity: Decimal
    daily_interest: Decimal = Field(..., ge=0)
    closing_debit: Decimal
    apr_used: Decimal | None = Field(default=None, ge=0)

    def to_domain(self) -> InterestLedgerEntry:
        return InterestLedgerEntry(**self.model_dump())

    @classmethod
    def from_domain(cls, entry: InterestLedgerEntry) -> "LedgerEntryInput":
        return cls.model_validate(entry.__dict__)


class AccountSettingsInput(BaseModel):
    match_policy: MatchPolicy = MatchPolicy.FIFO
    default_fees_per_trade: Decimal | None = Field(default=Decimal("0"), ge=0)
    rounding: int = Field(default=2, ge=0, le=10)

    def to_domain(self) -> AccountSettings:
        return AccountSettings(**self.model_dump())

    @classmethod
    def from_domain(cls, settings: AccountSettings) -> "AccountSettingsInput":
        return cls.model_validate(settings.__dict__)


def field_errors(exc: PydanticValidationError) -> list[FieldError]:
    errors: list[FieldError] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "__root__"
        errors.append(FieldError(field=location, message=error.get("msg", "invalid value")))
    return errors


def _validate(
    schema: type[BaseModel],
    data: Any,
    from_domain: Callable[[Any], BaseModel] | None = None,
) -> Result[Any]:
    try:
        if isinstance(data, Mapping):
            model = schema.model_validate(dict(data))
        elif isinstance(data, schema):
            model = schema.model_validate(data.model_dump())
        elif from_domain is not None:
            model = from_domain(data)
        else:
            model = schema.model_validate(data)
    except PydanticValidationError as exc:
        return Result.failure(field_errors(exc))
    return Result.success(model.to_domain())  # type: ignore[attr-defined]


def validate_trade(data: Mapping[str, Any] | Trade | TradeInput) -> Result[Trade]:
    return _validate(TradeInput, data, TradeInput.from_domain)


def validate_lot(data: Mapping[str, Any] | Lot | LotInput) -> Result[Lot]:
    return _validate(LotInput, data, LotInput.from_domain)


def validate_rate_tier(data: Mapping[str, Any] | RateTier | RateTierInput) -> Result[RateTier]:
    return _validate(RateTierInput, data, RateTierInput.from_domain)


def validate_broker_settings(
    data: Mapping[str, Any] | BrokerSettings | BrokerSettingsInput,
) -> Result[BrokerSettings]:
    return _validate(BrokerSettingsInput, data, BrokerSettingsInput.from_domain)


def validate_ledger_entry(
    data: Mapping[str, Any] | InterestLedgerEntry | LedgerEntryInput,
) -> Result[InterestLedgerEntry]:
    return _validate(LedgerEntryInput, data, LedgerEntryInput.from_domain)


def validate_account_settings(
    data: Mapping[str, Any] | AccountSettings | AccountSettingsInput,
) -> Result[AccountSettings]:
    return _validate(AccountSettingsInput, data, AccountSettingsInput.from_domain)


__all__ = [
    "AccountSettingsInput",
    "BrokerSettingsInput",
    "LedgerEntryInput",
    "LotInput",
    "RateTierInput",
    "Result",
    "TradeInput",
    "field_errors",
    "validate_account_settings",
    "validate_broker_settings",
    "validate_ledger_entry",
    "validate_lot",
    "validate_rate_tier",
    "validate_trade",
]
