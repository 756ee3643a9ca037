"""Lot matching: opening and closing positions against FIFO/LIFO lot queues."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal, getcontext
from typing import Iterable, Sequence

from .errors import FieldError, InsufficientLotQuantity, ValidationError
from .models import (
    CLOSES_LOT_SIDE,
    OPENS_LOT_SIDE,
    Lot,
    MatchPolicy,
    Trade,
    sort_trades,
)

getcontext().prec = 28

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class LotMatchResult:
    updated_lots: list[Lot]
    new_lots: list[Lot]
    realized_pnl: Decimal

    @property
    def lots(self) -> list[Lot]:
        """Active lot set after the trade: surviving lots followed by new ones."""

        return [*self.updated_lots, *self.new_lots]


@dataclass(frozen=True)
class SellValidation:
    is_valid: bool
    available_qty: Decimal
    error: str | None = None


@dataclass(frozen=True)
class SplitResult:
    remaining_lot: Lot
    sold_lot: Lot


@dataclass
class ReplayResult:
    lots: list[Lot] = field(default_factory=list)
    realized_pnl: Decimal = ZERO
    realized_by_trade: dict[str, Decimal] = field(default_factory=dict)


def lot_id_for_trade(trade: Trade) -> str:
    return f"lot_{trade.id}"


def open_lot_from_trade(trade: Trade) -> Lot:
    return Lot(
        id=lot_id_for_trade(trade),
        ticker=trade.ticker,
        open_date=trade.date,
        side=OPENS_LOT_SIDE[trade.side],
        qty_open=trade.quantity,
        qty_init=trade.quantity,
        cost_basis_per_share=trade.price,
        fees_total=trade.fees,
    )


def _closable_lots(trade: Trade, lots: Iterable[Lot]) -> list[Lot]:
    lot_side = CLOSES_LOT_SIDE[trade.side]
    return [lot for lot in lots if lot.ticker == trade.ticker and lot.side == lot_side]


def _ordered(lots: Sequence[Lot], policy: MatchPolicy) -> list[Lot]:
    return sorted(lots, key=lambda lot: (lot.open_date, lot.id), reverse=policy == MatchPolicy.LIFO)


def get_lots_for_ticker(ticker: str, lots: Iterable[Lot]) -> list[Lot]:
    return [lot for lot in lots if lot.ticker == ticker]


def get_total_quantity_for_ticker(ticker: str, lots: Iterable[Lot]) -> Decimal:
    return sum((lot.qty_open for lot in lots if lot.ticker == ticker), ZERO)


def validate_sell_trade(trade: Trade, lots: Sequence[Lot]) -> SellValidation:
    """Check that a closing trade does not exceed the open quantity it consumes."""

    if not trade.side.is_closing:
        return SellValidation(is_valid=True, available_qty=get_total_quantity_for_ticker(trade.ticker, lots))
    available = sum((lot.qty_open for lot in _closable_lots(trade, lots)), ZERO)
    if available < trade.quantity:
        return SellValidation(
            is_valid=False,
            available_qty=available,
            error=f"Insufficient quantity. Available: {available}, Requested: {trade.quantity}",
        )
    return SellValidation(is_valid=True, available_qty=available)


def apply_trade(
    trade: Trade,
    existing_lots: Sequence[Lot],
    policy: MatchPolicy = MatchPolicy.FIFO,
) -> LotMatchResult:
    """Apply ``trade`` to ``existing_lots`` and return the resulting lot set.

    Opening trades add exactly one lot. Closing trades consume lots of the
    same ticker in ``policy`` order; the quantity check runs before any lot is
    touched, so a rejected trade leaves nothing half-applied. The input
    sequence and its lots are never modified.
    """

    lots = list(existing_lots)
    if trade.side.is_opening:
        return LotMatchResult(updated_lots=lots, new_lots=[open_lot_from_trade(trade)], realized_pnl=ZERO)

    check = validate_sell_trade(trade, lots)
    if not check.is_valid:
        logger.warning(
            "Rejected %s %s %s: %s", trade.side.value, trade.quantity, trade.ticker, check.error
        )
        raise InsufficientLotQuantity(trade.ticker, check.available_qty, trade.quantity)

    remaining = trade.quantity
    realized = ZERO
    replacements: dict[str, Lot | None] = {}
    for lot in _ordered(_closable_lots(trade, lots), MatchPolicy(policy)):
        if remaining <= 0:
            break
        take_qty = min(remaining, lot.qty_open)
        if take_qty <= 0:
            continue
        realized += take_qty * (trade.price - lot.cost_basis_per_share)
        left = lot.qty_open - take_qty
        remaining -= take_qty
        replacements[lot.id] = replace(lot, qty_open=left) if left > 0 else None

    updated: list[Lot] = []
    for lot in lots:
        if lot.id not in replacements:
            updated.append(lot)
            continue
        survivor = replacements[lot.id]
        if survivor is not None:
            updated.append(survivor)
    return LotMatchResult(updated_lots=updated, new_lots=[], realized_pnl=realized)


def split_lot(lot: Lot, sell_qty: Decimal) -> SplitResult:
    """Split ``lot`` into the part that stays open and the ``sell_qty`` part."""

    if sell_qty <= 0 or sell_qty > lot.qty_open:
        raise ValidationError(
            [FieldError("sell_qty", f"must be > 0 and <= {lot.qty_open}")]
        )
    remaining_qty = lot.qty_open - sell_qty
    remaining_lot = replace(lot, qty_open=remaining_qty, qty_init=remaining_qty)
    sold_lot = replace(lot, id=f"{lot.id}_sold", qty_open=sell_qty, qty_init=sell_qty)
    return SplitResult(remaining_lot=remaining_lot, sold_lot=sold_lot)


def calculate_unrealized_pnl(lot: Lot, current_price: Decimal | None) -> Decimal:
    if not current_price:
        return ZERO
    return lot.qty_open * current_price - lot.cost_basis


def calculate_allocated_interest(
    lot: Lot,
    total_interest: Decimal,
    total_days: int,
    as_of: date,
) -> Decimal:
    """Share of ``total_interest`` attributable to ``lot`` by days held."""

    days_held = max(1, (as_of - lot.open_date).days)
    return Decimal(total_interest) * days_held / max(1, total_days)


def replay_trades(trades: Sequence[Trade], policy: MatchPolicy = MatchPolicy.FIFO) -> ReplayResult:
    """Rebuild the lot book from scratch by applying ``trades`` in date order."""

    result = ReplayResult()
    for trade in sort_trades(trades):
        match = apply_trade(trade, result.lots, policy)
        result.lots = match.lots
        result.realized_pnl += match.realized_pnl
        if trade.side.is_closing:
            result.realized_by_trade[trade.id] = match.realized_pnl
    logger.debug("Replayed %d trades into %d open lots", len(trades), len(result.lots))
    return result


__all__ = [
    "LotMatchResult",
    "ReplayResult",
    "SellValidation",
    "SplitResult",
    "apply_trade",
    "calculate_allocated_interest",
    "calculate_unrealized_pnl",
    "get_lots_for_ticker",
    "get_total_quantity_for_ticker",
    "lot_id_for_trade",
    "open_lot_from_trade",
    "replay_trades",
    "split_lot",
    "validate_sell_trade",
]
