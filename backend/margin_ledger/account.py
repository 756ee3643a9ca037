"""Single-writer account state container.

All changes to trades, lots, the interest ledger and broker settings are
expressed as named commands. :func:`apply_command` takes an immutable
:class:`AccountState` and returns a new one, or the unchanged state together
with the error that rejected the command. :class:`AccountContainer` holds the
current snapshot; its owner must serialize calls to ``dispatch``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Callable, Mapping, Sequence

from .errors import FieldError, InvalidRateSchedule, MarginLedgerError, ValidationError
from .ledger import apply_cash_activity, recompute_ledger
from .lots import replay_trades
from .models import (
    AccountSettings,
    BrokerSettings,
    InterestLedgerEntry,
    Lot,
    RateTier,
    Trade,
    sort_trades,
)
from .rates import default_schwab_tiers
from .validation import (
    BrokerSettingsInput,
    validate_account_settings,
    validate_broker_settings,
    validate_rate_tier,
    validate_trade,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def default_broker_settings() -> BrokerSettings:
    return BrokerSettings(
        broker_name="Charles Schwab",
        base_rate_name="Schwab Base Rate",
        tiers=default_schwab_tiers(),
        day_count_basis=360,
        initial_margin_pct=Decimal("0.50"),
        maintenance_margin_pct=Decimal("0.30"),
    )


@dataclass(frozen=True)
class CashAdjustment:
    date: date
    amount: Decimal
    description: str | None = None


@dataclass(frozen=True)
class AccountState:
    broker: BrokerSettings = field(default_factory=default_broker_settings)
    settings: AccountSettings = field(default_factory=AccountSettings)
    trades: tuple[Trade, ...] = ()
    lots: tuple[Lot, ...] = ()
    ledger: tuple[InterestLedgerEntry, ...] = ()
    realized_pnl: Decimal = ZERO
    manual_aprs: Mapping[date, Decimal] = field(default_factory=dict)
    cash_adjustments: tuple[CashAdjustment, ...] = ()

    def trade_by_id(self, trade_id: str) -> Trade | None:
        return next((t for t in self.trades if t.id == trade_id), None)

    def adjustments_by_date(self) -> dict[date, Decimal]:
        totals: dict[date, Decimal] = {}
        for adjustment in self.cash_adjustments:
            totals[adjustment.date] = totals.get(adjustment.date, ZERO) + adjustment.amount
        return totals


# ---- Commands ----


@dataclass(frozen=True)
class AddTrade:
    trade: Trade | Mapping[str, Any]


@dataclass(frozen=True)
class EditTrade:
    trade_id: str
    changes: Mapping[str, Any]


@dataclass(frozen=True)
class RemoveTrade:
    trade_id: str


@dataclass(frozen=True)
class SetTrades:
    trades: Sequence[Trade | Mapping[str, Any]]


@dataclass(frozen=True)
class UpdateBrokerSettings:
    changes: Mapping[str, Any]


@dataclass(frozen=True)
class SetBrokerSettings:
    broker: BrokerSettings | Mapping[str, Any]


@dataclass(frozen=True)
class ResetBrokerSettings:
    pass


@dataclass(frozen=True)
class ReplaceRateTiers:
    tiers: Sequence[RateTier | Mapping[str, Any]]


@dataclass(frozen=True)
class AddRateTier:
    tier: RateTier | Mapping[str, Any]


@dataclass(frozen=True)
class UpdateRateTier:
    index: int
    tier: RateTier | Mapping[str, Any]


@dataclass(frozen=True)
class DeleteRateTier:
    index: int


@dataclass(frozen=True)
class UpdateAccountSettings:
    changes: Mapping[str, Any]


@dataclass(frozen=True)
class ApplyCashActivity:
    date: date
    amount: Decimal
    description: str | None = None


@dataclass(frozen=True)
class SetManualAPR:
    date: date
    apr: Decimal | None


@dataclass(frozen=True)
class RecomputeLedger:
    from_date: date | None = None


@dataclass(frozen=True)
class CommandResult:
    state: AccountState
    error: MarginLedgerError | None = None
    realized_pnl: Decimal = ZERO

    @property
    def ok(self) -> bool:
        return self.error is None


# ---- Helpers ----


def _ledger_start(state: AccountState, change_date: date | None) -> date | None:
    """First day that must be re-posted after a change dated ``change_date``."""

    candidates: list[date] = []
    if change_date is not None:
        candidates.append(change_date)
    if state.ledger:
        candidates.append(state.ledger[-1].date + timedelta(days=1))
    elif state.trades or state.cash_adjustments:
        dated = [t.date for t in state.trades] + [a.date for a in state.cash_adjustments]
        candidates.append(min(dated))
    return min(candidates) if candidates else None


def _with_ledger(state: AccountState, from_date: date | None, as_of: date) -> AccountState:
    if from_date is None:
        return replace(state, ledger=())
    ledger = recompute_ledger(
        from_date,
        state.trades,
        state.broker,
        state.ledger,
        through=as_of,
        manual_aprs=state.manual_aprs,
        cash_adjustments=state.adjustments_by_date(),
    )
    return replace(state, ledger=tuple(ledger))


def _rebuild(state: AccountState, trades: Sequence[Trade], change_date: date | None, as_of: date) -> CommandResult:
    replay = replay_trades(trades, state.settings.match_policy)
    rebuilt = replace(state, trades=tuple(sort_trades(trades)), lots=tuple(replay.lots), realized_pnl=replay.realized_pnl)
    if not rebuilt.trades and not rebuilt.cash_adjustments:
        return CommandResult(state=replace(rebuilt, ledger=()))
    start = _ledger_start(rebuilt, change_date)
    return CommandResult(
        state=_with_ledger(rebuilt, start, as_of),
        realized_pnl=rebuilt.realized_pnl - state.realized_pnl,
    )


def _trade_or_error(data: Trade | Mapping[str, Any]) -> Trade:
    return validate_trade(data).unwrap()


def _broker_or_error(data: BrokerSettings | Mapping[str, Any]) -> BrokerSettings:
    result = validate_broker_settings(data)
    if not result.ok:
        if any(error.field == "tiers" for error in result.errors):
            raise InvalidRateSchedule("At least one rate tier is required")
        raise ValidationError(result.errors)
    return result.unwrap()


def _with_tiers(state: AccountState, tiers: Sequence[RateTier]) -> AccountState:
    if not tiers:
        raise InvalidRateSchedule("At least one rate tier is required")
    return replace(state, broker=_broker_or_error(replace(state.broker, tiers=tuple(tiers))))


def _tier_index(state: AccountState, index: int) -> int:
    if not 0 <= index < len(state.broker.tiers):
        raise ValidationError([FieldError("index", f"no rate tier at position {index}")])
    return index


# ---- Handlers ----


def _add_trade(state: AccountState, command: AddTrade, as_of: date) -> CommandResult:
    trade = _trade_or_error(command.trade)
    if state.trade_by_id(trade.id) is not None:
        raise ValidationError([FieldError("id", f"trade {trade.id} already exists")])
    return _rebuild(state, [*state.trades, trade], trade.date, as_of)


def _edit_trade(state: AccountState, command: EditTrade, as_of: date) -> CommandResult:
    existing = state.trade_by_id(command.trade_id)
    if existing is None:
        raise ValidationError([FieldError("id", f"trade {command.trade_id} not found")])
    changes = dict(command.changes)
    if "qty" in changes:
        changes["quantity"] = changes.pop("qty")
    merged = {**existing.__dict__, **changes, "id": existing.id}
    updated = _trade_or_error(merged)
    trades = [updated if t.id == existing.id else t for t in state.trades]
    return _rebuild(state, trades, min(existing.date, updated.date), as_of)


def _remove_trade(state: AccountState, command: RemoveTrade, as_of: date) -> CommandResult:
    existing = state.trade_by_id(command.trade_id)
    if existing is None:
        raise ValidationError([FieldError("id", f"trade {command.trade_id} not found")])
    trades = [t for t in state.trades if t.id != existing.id]
    return _rebuild(state, trades, existing.date, as_of)


def _set_trades(state: AccountState, command: SetTrades, as_of: date) -> CommandResult:
    trades = [_trade_or_error(t) for t in command.trades]
    ids = [t.id for t in trades]
    if len(set(ids)) != len(ids):
        raise ValidationError([FieldError("id", "trade ids must be unique")])
    cleared = replace(state, ledger=())
    first = min((t.date for t in trades), default=None)
    return _rebuild(cleared, trades, first, as_of)


def _update_broker(state: AccountState, command: UpdateBrokerSettings, as_of: date) -> CommandResult:
    payload = BrokerSettingsInput.from_domain(state.broker).model_dump()
    payload.update(dict(command.changes))
    return CommandResult(state=replace(state, broker=_broker_or_error(payload)))


def _set_broker(state: AccountState, command: SetBrokerSettings, as_of: date) -> CommandResult:
    return CommandResult(state=replace(state, broker=_broker_or_error(command.broker)))


def _reset_broker(state: AccountState, command: ResetBrokerSettings, as_of: date) -> CommandResult:
    return CommandResult(state=replace(state, broker=default_broker_settings()))


def _replace_tiers(state: AccountState, command: ReplaceRateTiers, as_of: date) -> CommandResult:
    tiers = [validate_rate_tier(t).unwrap() for t in command.tiers]
    return CommandResult(state=_with_tiers(state, tiers))


def _add_tier(state: AccountState, command: AddRateTier, as_of: date) -> CommandResult:
    tier = validate_rate_tier(command.tier).unwrap()
    return CommandResult(state=_with_tiers(state, [*state.broker.tiers, tier]))


def _update_tier(state: AccountState, command: UpdateRateTier, as_of: date) -> CommandResult:
    index = _tier_index(state, command.index)
    tiers = list(state.broker.tiers)
    tiers[index] = validate_rate_tier(command.tier).unwrap()
    return CommandResult(state=_with_tiers(state, tiers))


def _delete_tier(state: AccountState, command: DeleteRateTier, as_of: date) -> CommandResult:
    index = _tier_index(state, command.index)
    if len(state.broker.tiers) == 1:
        raise InvalidRateSchedule("Cannot delete the last rate tier")
    tiers = [t for i, t in enumerate(state.broker.tiers) if i != index]
    return CommandResult(state=_with_tiers(state, tiers))


def _update_settings(state: AccountState, command: UpdateAccountSettings, as_of: date) -> CommandResult:
    merged = {**state.settings.__dict__, **dict(command.changes)}
    settings = validate_account_settings(merged).unwrap()
    updated = replace(state, settings=settings)
    if settings.match_policy != state.settings.match_policy:
        return _rebuild(updated, list(state.trades), None, as_of)
    return CommandResult(state=updated)


def _apply_cash(state: AccountState, command: ApplyCashActivity, as_of: date) -> CommandResult:
    if command.date > as_of:
        raise ValidationError([FieldError("date", "cash activity cannot be dated in the future")])
    adjustment = CashAdjustment(date=command.date, amount=Decimal(command.amount), description=command.description)
    ledger = apply_cash_activity(
        adjustment.date,
        adjustment.amount,
        state.ledger,
        state.broker,
        description=adjustment.description,
        through=as_of,
        manual_aprs=state.manual_aprs,
    )
    return CommandResult(
        state=replace(state, ledger=tuple(ledger), cash_adjustments=(*state.cash_adjustments, adjustment))
    )


def _set_manual_apr(state: AccountState, command: SetManualAPR, as_of: date) -> CommandResult:
    overrides = dict(state.manual_aprs)
    if command.apr is None:
        overrides.pop(command.date, None)
    else:
        if not Decimal("0") <= Decimal(command.apr) <= Decimal("1"):
            raise ValidationError([FieldError("apr", "must be between 0 and 1")])
        overrides[command.date] = Decimal(command.apr)
    updated = replace(state, manual_aprs=overrides)
    if not updated.ledger or command.date > updated.ledger[-1].date:
        return CommandResult(state=updated)
    return CommandResult(state=_with_ledger(updated, command.date, as_of))


def _recompute(state: AccountState, command: RecomputeLedger, as_of: date) -> CommandResult:
    start = command.from_date or _ledger_start(replace(state, ledger=()), None)
    return CommandResult(state=_with_ledger(state, start, as_of))


Command = (
    AddTrade
    | EditTrade
    | RemoveTrade
    | SetTrades
    | UpdateBrokerSettings
    | SetBrokerSettings
    | ResetBrokerSettings
    | ReplaceRateTiers
    | AddRateTier
    | UpdateRateTier
    | DeleteRateTier
    | UpdateAccountSettings
    | ApplyCashActivity
    | SetManualAPR
    | RecomputeLedger
)

_HANDLERS: dict[type, Callable[[AccountState, Any, date], CommandResult]] = {
    AddTrade: _add_trade,
    EditTrade: _edit_trade,
    RemoveTrade: _remove_trade,
    SetTrades: _set_trades,
    UpdateBrokerSettings: _update_broker,
    SetBrokerSettings: _set_broker,
    ResetBrokerSettings: _reset_broker,
    ReplaceRateTiers: _replace_tiers,
    AddRateTier: _add_tier,
    UpdateRateTier: _update_tier,
    DeleteRateTier: _delete_tier,
    UpdateAccountSettings: _update_settings,
    ApplyCashActivity: _apply_cash,
    SetManualAPR: _set_manual_apr,
    RecomputeLedger: _recompute,
}


def apply_command(state: AccountState, command: Command, as_of: date) -> CommandResult:
    """Apply ``command`` to ``state`` as of ``as_of``.

    Rejected commands return ``state`` unchanged with the error attached.
    """

    handler = _HANDLERS.get(type(command))
    if handler is None:
        raise TypeError(f"Unsupported command {type(command).__name__}")
    try:
        return handler(state, command, as_of)
    except MarginLedgerError as exc:
        logger.warning("Rejected %s: %s", type(command).__name__, exc.message)
        return CommandResult(state=state, error=exc)


class AccountContainer:
    """Holds the current account snapshot and applies commands one at a time."""

    def __init__(self, state: AccountState | None = None, *, clock: Callable[[], date] = date.today) -> None:
        self._state = state or AccountState()
        self._clock = clock

    @property
    def state(self) -> AccountState:
        return self._state

    def dispatch(self, command: Command) -> CommandResult:
        result = apply_command(self._state, command, self._clock())
        if result.ok:
            self._state = result.state
        return result


__all__ = [
    "AccountContainer",
    "AccountState",
    "AddRateTier",
    "AddTrade",
    "ApplyCashActivity",
    "CashAdjustment",
    "Command",
    "CommandResult",
    "DeleteRateTier",
    "EditTrade",
    "RecomputeLedger",
    "RemoveTrade",
    "ReplaceRateTiers",
    "ResetBrokerSettings",
    "SetBrokerSettings",
    "SetManualAPR",
    "SetTrades",
    "UpdateAccountSettings",
    "UpdateBrokerSettings",
    "UpdateRateTier",
    "apply_command",
    "default_broker_settings",
]
