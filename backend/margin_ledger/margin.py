"""Account-level margin metrics: equity, requirements, buying power."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, getcontext
from typing import Mapping, Sequence

from .models import BrokerSettings, Lot, LotSide, PositionSnapshot

getcontext().prec = 28

ZERO = Decimal("0")
DEFAULT_MAINTENANCE_PCT = Decimal("0.30")
# Stand-in APR for the daily interest estimate when the caller has no rate.
PLACEHOLDER_APR = Decimal("0.10")


@dataclass(frozen=True)
class PositionSummary:
    ticker: str
    total_qty: Decimal
    total_market_value: Decimal
    total_cost_basis: Decimal
    total_unrealized_pnl: Decimal
    total_required_margin: Decimal
    equity_impact: Decimal


@dataclass(frozen=True)
class AccountSummary:
    total_equity: Decimal
    total_debit: Decimal
    total_market_value: Decimal
    available_buying_power: Decimal
    maintenance_requirement: Decimal
    daily_interest: Decimal
    is_margin_call: bool


def calculate_market_value(qty: Decimal, market_price: Decimal) -> Decimal:
    return qty * market_price


def _lot_index(lots: Sequence[Lot] | None) -> dict[str, Lot]:
    return {lot.id: lot for lot in lots or ()}


def resolve_price(position: PositionSnapshot, lots_by_id: Mapping[str, Lot]) -> Decimal | None:
    """Market price of ``position``, falling back to its lot's cost basis."""

    if position.market_price is not None:
        return position.market_price
    lot = lots_by_id.get(position.lot_id)
    if lot is None:
        return None
    return lot.cost_basis_per_share


def _total_market_value(positions: Sequence[PositionSnapshot], lots_by_id: Mapping[str, Lot]) -> Decimal:
    total = ZERO
    for position in positions:
        price = resolve_price(position, lots_by_id)
        if price is None:
            continue
        total += calculate_market_value(position.qty, price)
    return total


def compute_equity(
    positions: Sequence[PositionSnapshot],
    debit: Decimal,
    credit: Decimal = ZERO,
    *,
    lots: Sequence[Lot] | None = None,
) -> Decimal:
    return _total_market_value(positions, _lot_index(lots)) - debit + credit


def maintenance_requirement(qty: Decimal, market_price: Decimal, maintenance_margin_pct: Decimal) -> Decimal:
    return abs(qty) * market_price * maintenance_margin_pct


def compute_maintenance_requirement(
    positions: Sequence[PositionSnapshot],
    lots: Sequence[Lot],
    default_maintenance_pct: Decimal,
) -> Decimal:
    lots_by_id = _lot_index(lots)
    total = ZERO
    for position in positions:
        price = resolve_price(position, lots_by_id)
        if price is None:
            continue
        lot = lots_by_id.get(position.lot_id)
        pct = default_maintenance_pct
        if lot is not None and lot.maintenance_margin_pct is not None:
            pct = lot.maintenance_margin_pct
        total += maintenance_requirement(position.qty, price, pct)
    return total


def compute_abp(equity: Decimal, maintenance_req: Decimal, initial_margin_pct: Decimal) -> Decimal:
    """Available buying power, approximated as twice the excess equity (Reg-T style).

    ``initial_margin_pct`` is accepted for interface stability; the
    approximation does not use it.
    """

    return max(ZERO, 2 * (equity - maintenance_req))


def compute_initial_margin(purchase_amount: Decimal, initial_margin_pct: Decimal) -> Decimal:
    return purchase_amount * initial_margin_pct


def is_margin_call(equity: Decimal, maintenance_req: Decimal) -> bool:
    return equity < maintenance_req


def calculate_equity_impact(qty: Decimal, market_price: Decimal, cost_basis: Decimal) -> Decimal:
    return qty * (market_price - cost_basis)


def get_position_summary(
    ticker: str,
    lots: Sequence[Lot],
    market_price: Decimal | None = None,
    maintenance_pct: Decimal = DEFAULT_MAINTENANCE_PCT,
) -> PositionSummary:
    """Aggregate the open lots of ``ticker``; without a price they are valued at cost."""

    position_lots = [lot for lot in lots if lot.ticker == ticker]
    total_qty = sum((lot.qty_open for lot in position_lots), ZERO)
    total_cost = sum((lot.cost_basis for lot in position_lots), ZERO)
    if market_price:
        market_value = total_qty * market_price
        required = maintenance_requirement(total_qty, market_price, maintenance_pct)
    else:
        market_value = total_cost
        required = sum(
            (maintenance_requirement(lot.qty_open, lot.cost_basis_per_share, maintenance_pct) for lot in position_lots),
            ZERO,
        )
    unrealized = market_value - total_cost
    return PositionSummary(
        ticker=ticker,
        total_qty=total_qty,
        total_market_value=market_value,
        total_cost_basis=total_cost,
        total_unrealized_pnl=unrealized,
        total_required_margin=required,
        equity_impact=unrealized,
    )


def get_account_summary(
    positions: Sequence[PositionSnapshot],
    lots: Sequence[Lot],
    debit: Decimal,
    broker: BrokerSettings,
    *,
    current_apr: Decimal | None = None,
) -> AccountSummary:
    lots_by_id = _lot_index(lots)
    market_value = _total_market_value(positions, lots_by_id)
    equity = market_value - debit
    maintenance = compute_maintenance_requirement(positions, lots, broker.maintenance_margin_pct)
    apr = current_apr if current_apr is not None else PLACEHOLDER_APR
    return AccountSummary(
        total_equity=equity,
        total_debit=debit,
        total_market_value=market_value,
        available_buying_power=compute_abp(equity, maintenance, broker.initial_margin_pct),
        maintenance_requirement=maintenance,
        daily_interest=debit * apr / Decimal(broker.day_count_basis),
        is_margin_call=is_margin_call(equity, maintenance),
    )


def build_position_snapshots(
    lots: Sequence[Lot],
    prices: Mapping[str, Decimal | None],
    as_of: date,
) -> list[PositionSnapshot]:
    """One snapshot per open lot; short lots carry a negative quantity."""

    snapshots: list[PositionSnapshot] = []
    for lot in lots:
        qty = lot.qty_open if lot.side == LotSide.LONG else -lot.qty_open
        snapshots.append(
            PositionSnapshot(
                date=as_of,
                ticker=lot.ticker,
                lot_id=lot.id,
                qty=qty,
                market_price=prices.get(lot.ticker),
            )
        )
    return snapshots


__all__ = [
    "AccountSummary",
    "DEFAULT_MAINTENANCE_PCT",
    "PLACEHOLDER_APR",
    "PositionSummary",
    "build_position_snapshots",
    "calculate_equity_impact",
    "calculate_market_value",
    "compute_abp",
    "compute_equity",
    "compute_initial_margin",
    "compute_maintenance_requirement",
    "get_account_summary",
    "get_position_summary",
    "is_margin_call",
    "maintenance_requirement",
    "resolve_price",
]
