"""Tiered margin-rate lookup and daily interest arithmetic."""
from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation, getcontext
from typing import Sequence

from .models import RateTier

getcontext().prec = 28

ZERO = Decimal("0")


def _sorted_tiers(tiers: Sequence[RateTier]) -> list[RateTier]:
    return sorted(tiers, key=lambda tier: tier.min_balance)


def pick_tier_apr(balance: Decimal, tiers: Sequence[RateTier]) -> Decimal:
    """Return the APR of the first tier (by ascending minimum) containing ``balance``.

    A balance sitting on a boundary shared by two tiers belongs to the upper
    tier; a tier's ``max_balance`` is only inclusive when no other tier starts
    there. Non-positive balances carry no interest. When no tier matches, the
    rate of the highest tier is used; an empty schedule yields zero.
    """

    if balance <= 0:
        return ZERO
    ordered = _sorted_tiers(tiers)
    for tier in ordered:
        if balance >= tier.min_balance and (tier.max_balance is None or balance < tier.max_balance):
            return tier.apr
    for tier in ordered:
        if tier.max_balance is not None and balance == tier.max_balance:
            return tier.apr
    if not ordered:
        return ZERO
    return ordered[-1].apr


def calculate_daily_interest(balance: Decimal, apr: Decimal, day_count_basis: int = 360) -> Decimal:
    if balance <= 0:
        return ZERO
    return balance * apr / Decimal(day_count_basis)


def effective_apr_by_day(
    day: date,
    balance: Decimal,
    tiers: Sequence[RateTier],
    manual_override: Decimal | None = None,
) -> Decimal:
    """Return the APR for ``day``; a manual override always wins."""

    if manual_override is not None:
        return manual_override
    return pick_tier_apr(balance, tiers)


def default_schwab_tiers() -> tuple[RateTier, ...]:
    return (
        RateTier(min_balance=Decimal("0"), max_balance=Decimal("25000"), apr=Decimal("0.119")),
        RateTier(min_balance=Decimal("25000"), max_balance=Decimal("100000"), apr=Decimal("0.111")),
        RateTier(min_balance=Decimal("100000"), max_balance=Decimal("250000"), apr=Decimal("0.106")),
        RateTier(min_balance=Decimal("250000"), max_balance=Decimal("1000000"), apr=Decimal("0.102")),
        RateTier(min_balance=Decimal("1000000"), apr=Decimal("0.098")),
    )


def format_apr(apr: Decimal) -> str:
    """Format a decimal APR as a percentage string, e.g. ``0.119`` -> ``11.900%``."""

    return f"{(Decimal(apr) * 100):.3f}%"


def parse_apr(value: str) -> Decimal:
    cleaned = value.replace("%", "").strip()
    try:
        parsed = Decimal(cleaned)
    except InvalidOperation:
        return ZERO
    if not parsed.is_finite():
        return ZERO
    return parsed / 100


__all__ = [
    "calculate_daily_interest",
    "default_schwab_tiers",
    "effective_apr_by_day",
    "format_apr",
    "parse_apr",
    "pick_tier_apr",
]
