"""Pydantic schemas for broker settings and rate tiers."""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel

from margin_ledger.models import BrokerSettings, RateTier
from margin_ledger.rates import format_apr


class RateTierSchema(BaseModel):
    min_balance: Decimal
    max_balance: Decimal | None = None
    apr: Decimal


class RateTierView(RateTierSchema):
    apr_display: str

    @classmethod
    def from_tier(cls, tier: RateTier) -> "RateTierView":
        return cls(
            min_balance=tier.min_balance,
            max_balance=tier.max_balance,
            apr=tier.apr,
            apr_display=format_apr(tier.apr),
        )


class BrokerSettingsSchema(BaseModel):
    broker_name: str
    base_rate_name: str | None = None
    tiers: list[RateTierView]
    day_count_basis: int
    initial_margin_pct: Decimal
    maintenance_margin_pct: Decimal

    @classmethod
    def from_settings(cls, broker: BrokerSettings) -> "BrokerSettingsSchema":
        return cls(
            broker_name=broker.broker_name,
            base_rate_name=broker.base_rate_name,
            tiers=[RateTierView.from_tier(tier) for tier in broker.tiers],
            day_count_basis=broker.day_count_basis,
            initial_margin_pct=broker.initial_margin_pct,
            maintenance_margin_pct=broker.maintenance_margin_pct,
        )


class BrokerSettingsUpdateRequest(BaseModel):
    broker_name: str | None = None
    base_rate_name: str | None = None
    tiers: list[RateTierSchema] | None = None
    day_count_basis: Literal[360, 365] | None = None
    initial_margin_pct: Decimal | None = None
    maintenance_margin_pct: Decimal | None = None


__all__ = [
    "BrokerSettingsSchema",
    "BrokerSettingsUpdateRequest",
    "RateTierSchema",
    "RateTierView",
]
