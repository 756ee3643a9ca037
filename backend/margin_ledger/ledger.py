"""Day-by-day debit-balance ledger with tiered interest accrual.

Each calendar day is posted from the previous day's closing debit, the net
cash effect of that day's trades and the APR chosen by the rate schedule.
Entries are chained (an entry opens where the previous one closed) and are
replaced wholesale from a change point forward whenever an earlier trade is
added, edited or removed.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal, getcontext
from typing import Iterable, Mapping, Sequence

from .models import BrokerSettings, InterestLedgerEntry, Trade, TradeSide
from .rates import calculate_daily_interest, effective_apr_by_day

getcontext().prec = 28

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ONE_DAY = timedelta(days=1)


def _trade_cash_effect(trade: Trade) -> Decimal:
    value = trade.quantity * trade.price
    if trade.side in (TradeSide.BUY, TradeSide.COVER):
        return -value - trade.fees
    return value - trade.fees


def calculate_cash_activity_for_date(day: date, trades: Iterable[Trade]) -> Decimal:
    """Net cash effect of all trades dated ``day``.

    Purchases (BUY, COVER) draw cash and raise the debit; proceeds (SELL,
    SHORT) bring cash in. Fees always draw cash.
    """

    return sum((_trade_cash_effect(t) for t in trades if t.date == day), ZERO)


def _cash_by_date(trades: Iterable[Trade]) -> dict[date, Decimal]:
    totals: dict[date, Decimal] = {}
    for trade in trades:
        totals[trade.date] = totals.get(trade.date, ZERO) + _trade_cash_effect(trade)
    return totals


def post_daily_interest(
    day: date,
    opening_debit: Decimal,
    cash_activity: Decimal,
    broker: BrokerSettings,
    manual_apr: Decimal | None = None,
) -> InterestLedgerEntry:
    # Only the debit-raising part of today's activity bears interest today;
    # debit-reducing activity lands in the closing balance after accrual.
    effective_debit = max(opening_debit + max(cash_activity, ZERO), ZERO)
    apr = effective_apr_by_day(day, effective_debit, broker.tiers, manual_apr)
    daily_interest = calculate_daily_interest(effective_debit, apr, broker.day_count_basis)
    closing_debit = opening_debit + cash_activity + daily_interest
    return InterestLedgerEntry(
        date=day,
        opening_debit=opening_debit,
        cash_activity=cash_activity,
        daily_interest=daily_interest,
        closing_debit=closing_debit,
        apr_used=manual_apr if manual_apr is not None else apr,
    )


def _sorted_entries(ledger: Iterable[InterestLedgerEntry]) -> list[InterestLedgerEntry]:
    return sorted(ledger, key=lambda entry: entry.date)


def _roll_forward(
    from_date: date,
    through: date,
    opening_debit: Decimal,
    cash_by_date: Mapping[date, Decimal],
    broker: BrokerSettings,
    manual_aprs: Mapping[date, Decimal],
) -> list[InterestLedgerEntry]:
    entries: list[InterestLedgerEntry] = []
    current_debit = opening_debit
    current = from_date
    while current <= through:
        entry = post_daily_interest(
            current,
            current_debit,
            cash_by_date.get(current, ZERO),
            broker,
            manual_aprs.get(current),
        )
        entries.append(entry)
        current_debit = entry.closing_debit
        current += ONE_DAY
    return entries


def _recompute(
    from_date: date,
    cash_by_date: Mapping[date, Decimal],
    broker: BrokerSettings,
    existing_ledger: Iterable[InterestLedgerEntry],
    through: date,
    manual_aprs: Mapping[date, Decimal] | None,
) -> list[InterestLedgerEntry]:
    retained = [e for e in _sorted_entries(existing_ledger) if e.date < from_date]
    opening = retained[-1].closing_debit if retained else ZERO
    rolled = _roll_forward(from_date, through, opening, cash_by_date, broker, manual_aprs or {})
    logger.debug(
        "Recomputed ledger from %s through %s: kept %d, posted %d",
        from_date,
        through,
        len(retained),
        len(rolled),
    )
    return [*retained, *rolled]


def recompute_ledger(
    from_date: date,
    trades: Sequence[Trade],
    broker: BrokerSettings,
    existing_ledger: Iterable[InterestLedgerEntry] = (),
    *,
    through: date | None = None,
    manual_aprs: Mapping[date, Decimal] | None = None,
    cash_adjustments: Mapping[date, Decimal] | None = None,
) -> list[InterestLedgerEntry]:
    """Rebuild every entry dated ``from_date`` or later.

    Entries strictly before ``from_date`` are kept as-is and the last of them
    supplies the opening debit (zero if there is none). Days are then posted
    one at a time through ``through`` (today by default), including days
    without trades, so a carried debit keeps accruing. ``cash_adjustments``
    adds non-trade cash activity per day. Running this twice on unchanged
    inputs yields identical entries.
    """

    end = through or date.today()
    cash = _cash_by_date(trades)
    for day, amount in (cash_adjustments or {}).items():
        cash[day] = cash.get(day, ZERO) + amount
    return _recompute(from_date, cash, broker, existing_ledger, end, manual_aprs)


def apply_cash_activity(
    day: date,
    amount: Decimal,
    ledger: Sequence[InterestLedgerEntry],
    broker: BrokerSettings,
    *,
    description: str | None = None,
    through: date | None = None,
    manual_aprs: Mapping[date, Decimal] | None = None,
) -> list[InterestLedgerEntry]:
    """Add ``amount`` to the cash activity of ``day`` and re-chain later days.

    Entries before ``day`` are not touched. Later entries keep their own cash
    activity but are re-posted on the new opening balance. When ``day`` falls
    past the last entry, the days in between are posted with no activity.
    Activity dated in the future is ignored.
    """

    end = through or date.today()
    if day > end:
        logger.info("Ignoring future cash activity on %s (%s)", day, description or "no description")
        return list(ledger)

    overrides = manual_aprs or {}
    ordered = _sorted_entries(ledger)
    before = [e for e in ordered if e.date < day]
    current = next((e for e in ordered if e.date == day), None)
    later = [e for e in ordered if e.date > day]

    if current is None:
        if before and before[-1].date < day - ONE_DAY:
            # Post the idle days between the last entry and ``day`` so the chain stays unbroken.
            gap = _roll_forward(
                before[-1].date + ONE_DAY,
                day - ONE_DAY,
                before[-1].closing_debit,
                {},
                broker,
                overrides,
            )
            before = [*before, *gap]
        opening = before[-1].closing_debit if before else ZERO
        target = post_daily_interest(day, opening, amount, broker, overrides.get(day))
    else:
        target = post_daily_interest(
            day,
            current.opening_debit,
            current.cash_activity + amount,
            broker,
            overrides.get(day),
        )
    logger.info("Applied cash activity %s on %s (%s)", amount, day, description or "no description")

    later_cash = {e.date: e.cash_activity for e in later}
    last_day = max(end, later[-1].date) if later else end
    return _recompute(day + ONE_DAY, later_cash, broker, [*before, target], last_day, overrides)


def get_total_interest(start: date, end: date, ledger: Iterable[InterestLedgerEntry]) -> Decimal:
    return sum((e.daily_interest for e in ledger if start <= e.date <= end), ZERO)


def get_current_debit(ledger: Sequence[InterestLedgerEntry]) -> Decimal:
    if not ledger:
        return ZERO
    return _sorted_entries(ledger)[-1].closing_debit


def get_opening_debit(day: date, ledger: Iterable[InterestLedgerEntry]) -> Decimal:
    """Opening debit of the latest entry dated on or before ``day``."""

    candidates = [e for e in _sorted_entries(ledger) if e.date <= day]
    if not candidates:
        return ZERO
    return candidates[-1].opening_debit


__all__ = [
    "apply_cash_activity",
    "calculate_cash_activity_for_date",
    "get_current_debit",
    "get_opening_debit",
    "get_total_interest",
    "post_daily_interest",
    "recompute_ledger",
]
