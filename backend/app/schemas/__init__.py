"""Pydantic schema exports."""

from .account import (
    AccountSettingsSchema,
    AccountSettingsUpdateRequest,
    AccountSummarySchema,
    DayTradeCheckResponse,
    HealthResponse,
    PDTStatusSchema,
    PositionSummarySchema,
)
from .broker import BrokerSettingsSchema, BrokerSettingsUpdateRequest, RateTierSchema, RateTierView
from .ledger import (
    CashActivityRequest,
    InterestTotalResponse,
    LedgerEntrySchema,
    ManualAPRRequest,
    RecomputeRequest,
)
from .trades import (
    CsvImportRequest,
    FieldErrorSchema,
    TradeCreateRequest,
    TradeImportResponse,
    TradeMutationResponse,
    TradeSchema,
    TradeUpdateRequest,
)

__all__ = [
    "AccountSettingsSchema",
    "AccountSettingsUpdateRequest",
    "AccountSummarySchema",
    "BrokerSettingsSchema",
    "BrokerSettingsUpdateRequest",
    "CashActivityRequest",
    "CsvImportRequest",
    "DayTradeCheckResponse",
    "FieldErrorSchema",
    "HealthResponse",
    "InterestTotalResponse",
    "LedgerEntrySchema",
    "ManualAPRRequest",
    "PDTStatusSchema",
    "PositionSummarySchema",
    "RateTierSchema",
    "RateTierView",
    "RecomputeRequest",
    "TradeCreateRequest",
    "TradeImportResponse",
    "TradeMutationResponse",
    "TradeSchema",
    "TradeUpdateRequest",
]
