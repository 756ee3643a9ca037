"""Pattern-Day-Trader detection over a rolling five-business-day window."""
from __future__ import annotations

from datetime import date, timedelta
from typing import Sequence

from .models import OPPOSITE_OPENING_SIDE, PDTStatus, Trade

PDT_WINDOW_BUSINESS_DAYS = 5
PDT_RISK_THRESHOLD = 4
PDT_APPROACHING_THRESHOLD = 2


def is_day_trade(trade: Trade, all_trades: Sequence[Trade]) -> bool:
    """A closing trade with an opposite opening trade in the same ticker that day."""

    if not trade.side.is_closing:
        return False
    opening_side = OPPOSITE_OPENING_SIDE[trade.side]
    return any(
        t.ticker == trade.ticker and t.side == opening_side and t.date == trade.date
        for t in all_trades
    )


def get_last_5_business_days(as_of: date) -> tuple[date, ...]:
    """Most recent five weekdays ending at ``as_of``; no holiday calendar."""

    days: list[date] = []
    current = as_of
    while len(days) < PDT_WINDOW_BUSINESS_DAYS:
        if current.weekday() < 5:
            days.append(current)
        current -= timedelta(days=1)
    return tuple(days)


def count_day_trades_last_5_days(trades: Sequence[Trade], as_of: date | None = None) -> int:
    window = set(get_last_5_business_days(as_of or date.today()))
    counted: set[str] = set()
    for trade in trades:
        if trade.id in counted or trade.date not in window:
            continue
        if is_day_trade(trade, trades):
            counted.add(trade.id)
    return len(counted)


def get_day_trades_for_date(day: date, trades: Sequence[Trade]) -> list[Trade]:
    return [t for t in trades if t.date == day and is_day_trade(t, trades)]


def get_pdt_status(trades: Sequence[Trade], as_of: date | None = None) -> PDTStatus:
    as_of = as_of or date.today()
    window = get_last_5_business_days(as_of)
    count = count_day_trades_last_5_days(trades, as_of)
    by_date = {day: len({t.id for t in get_day_trades_for_date(day, trades)}) for day in window}
    return PDTStatus(
        day_trades_last_5_days=count,
        is_pdt_risk=count >= PDT_RISK_THRESHOLD,
        last_5_business_days=window,
        day_trades_by_date=by_date,
    )


def would_create_day_trade(new_trade: Trade, existing_trades: Sequence[Trade]) -> bool:
    return is_day_trade(new_trade, [*existing_trades, new_trade])


def get_pdt_warning_message(status: PDTStatus) -> str:
    # The risk wording says "one more" even though the count already meets
    # the threshold.
    count = status.day_trades_last_5_days
    if status.is_pdt_risk:
        return (
            f"PDT Risk: {count} day trades in last 5 business days. "
            "One more day trade will trigger PDT status."
        )
    if count >= PDT_APPROACHING_THRESHOLD:
        return f"Approaching PDT limit: {count} day trades in last 5 business days."
    return ""


__all__ = [
    "PDT_RISK_THRESHOLD",
    "count_day_trades_last_5_days",
    "get_day_trades_for_date",
    "get_last_5_business_days",
    "get_pdt_status",
    "get_pdt_warning_message",
    "is_day_trade",
    "would_create_day_trade",
]
