"""Core package for the margin accounting engine."""

from .account import AccountContainer, AccountState, apply_command
from .errors import InsufficientLotQuantity, InvalidRateSchedule, MarginLedgerError, ValidationError
from .models import (
    AccountSettings,
    BrokerSettings,
    InterestLedgerEntry,
    Lot,
    LotSide,
    MatchPolicy,
    PDTStatus,
    PositionSnapshot,
    RateTier,
    Trade,
    TradeSide,
)

__all__ = [
    "AccountContainer",
    "AccountSettings",
    "AccountState",
    "BrokerSettings",
    "InsufficientLotQuantity",
    "InterestLedgerEntry",
    "InvalidRateSchedule",
    "Lot",
    "LotSide",
    "MarginLedgerError",
    "MatchPolicy",
    "PDTStatus",
    "PositionSnapshot",
    "RateTier",
    "Trade",
    "TradeSide",
    "ValidationError",
    "apply_command",
]
