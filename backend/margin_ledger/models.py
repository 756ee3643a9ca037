"""Domain models used by the margin accounting engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Mapping, Optional, Sequence


class TradeSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    SHORT = "SHORT"
    COVER = "COVER"

    @property
    def is_opening(self) -> bool:
        return self in (TradeSide.BUY, TradeSide.SHORT)

    @property
    def is_closing(self) -> bool:
        return self in (TradeSide.SELL, TradeSide.COVER)


class LotSide(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"


class MatchPolicy(str, Enum):
    FIFO = "FIFO"
    LIFO = "LIFO"


# Which lot side a closing trade consumes, and which side an opening trade creates.
CLOSES_LOT_SIDE: Mapping[TradeSide, LotSide] = {
    TradeSide.SELL: LotSide.LONG,
    TradeSide.COVER: LotSide.SHORT,
}
OPENS_LOT_SIDE: Mapping[TradeSide, LotSide] = {
    TradeSide.BUY: LotSide.LONG,
    TradeSide.SHORT: LotSide.SHORT,
}
OPPOSITE_OPENING_SIDE: Mapping[TradeSide, TradeSide] = {
    TradeSide.SELL: TradeSide.BUY,
    TradeSide.COVER: TradeSide.SHORT,
}


@dataclass(frozen=True)
class Trade:
    """A single executed trade. Never mutated once recorded."""

    id: str
    date: date
    ticker: str
    side: TradeSide
    quantity: Decimal
    price: Decimal
    fees: Decimal = Decimal("0")
    notes: Optional[str] = None

    @property
    def notional(self) -> Decimal:
        return self.quantity * self.price


@dataclass(frozen=True)
class Lot:
    """An open batch of shares tracked for cost basis and realized P&L."""

    id: str
    ticker: str
    open_date: date
    side: LotSide
    qty_open: Decimal
    qty_init: Decimal
    cost_basis_per_share: Decimal
    fees_total: Decimal = Decimal("0")
    maintenance_margin_pct: Optional[Decimal] = None

    @property
    def cost_basis(self) -> Decimal:
        return self.qty_open * self.cost_basis_per_share


@dataclass(frozen=True)
class RateTier:
    min_balance: Decimal
    apr: Decimal
    max_balance: Optional[Decimal] = None


@dataclass(frozen=True)
class BrokerSettings:
    broker_name: str
    tiers: tuple[RateTier, ...]
    day_count_basis: int = 360
    initial_margin_pct: Decimal = Decimal("0.50")
    maintenance_margin_pct: Decimal = Decimal("0.30")
    base_rate_name: Optional[str] = None


@dataclass(frozen=True)
class InterestLedgerEntry:
    """One calendar day of the debit-balance ledger."""

    date: date
    opening_debit: Decimal
    cash_activity: Decimal
    daily_interest: Decimal
    closing_debit: Decimal
    apr_used: Optional[Decimal] = None


@dataclass(frozen=True)
class PDTStatus:
    day_trades_last_5_days: int
    is_pdt_risk: bool
    last_5_business_days: tuple[date, ...]
    day_trades_by_date: Mapping[date, int] = field(default_factory=dict)


@dataclass(frozen=True)
class PositionSnapshot:
    """Per-lot position handed to the margin calculator for one valuation."""

    date: date
    ticker: str
    lot_id: str
    qty: Decimal
    market_price: Optional[Decimal] = None


@dataclass(frozen=True)
class AccountSettings:
    match_policy: MatchPolicy = MatchPolicy.FIFO
    default_fees_per_trade: Optional[Decimal] = Decimal("0")
    rounding: int = 2  # decimal places for report currency amounts


def sort_trades(trades: Sequence[Trade]) -> list[Trade]:
    """Return trades in replay order: by date, same-day trades in entry order.

    The sort is stable, so callers keep trades in the order they were
    recorded and a same-day close always follows the open it was entered
    after, whatever the ids look like.
    """

    return sorted(trades, key=lambda t: t.date)


__all__ = [
    "AccountSettings",
    "BrokerSettings",
    "CLOSES_LOT_SIDE",
    "InterestLedgerEntry",
    "Lot",
    "LotSide",
    "MatchPolicy",
    "OPENS_LOT_SIDE",
    "OPPOSITE_OPENING_SIDE",
    "PDTStatus",
    "PositionSnapshot",
    "RateTier",
    "Trade",
    "TradeSide",
    "sort_trades",
]
