"""Pydantic schemas for trades and trade imports."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, Field

from margin_ledger.models import Trade, TradeSide


class TradeCreateRequest(BaseModel):
    id: str | None = Field(default=None, description="Client supplied id; generated when omitted")
    date: dt.date
    ticker: str = Field(..., examples=["AAPL"])
    side: TradeSide
    quantity: Decimal = Field(..., validation_alias=AliasChoices("quantity", "qty"))
    price: Decimal
    fees: Decimal | None = None
    notes: str | None = None


class TradeUpdateRequest(BaseModel):
    date: dt.date | None = None
    ticker: str | None = None
    side: TradeSide | None = None
    quantity: Decimal | None = Field(default=None, validation_alias=AliasChoices("quantity", "qty"))
    price: Decimal | None = None
    fees: Decimal | None = None
    notes: str | None = None


class TradeSchema(BaseModel):
    id: str
    date: dt.date
    ticker: str
    side: TradeSide
    quantity: Decimal
    price: Decimal
    fees: Decimal
    notes: str | None = None
    notional_value: Decimal

    @classmethod
    def from_trade(cls, trade: Trade) -> "TradeSchema":
        return cls(
            id=trade.id,
            date=trade.date,
            ticker=trade.ticker,
            side=trade.side,
            quantity=trade.quantity,
            price=trade.price,
            fees=trade.fees,
            notes=trade.notes,
            notional_value=trade.notional,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "id": "t1",
                "date": "2024-01-02",
                "ticker": "AAPL",
                "side": "BUY",
                "quantity": "100",
                "price": "150.00",
                "fees": "0",
                "notes": None,
                "notional_value": "15000.00",
            }
        }


class TradeMutationResponse(BaseModel):
    trade: TradeSchema
    realized_pnl: Decimal = Decimal("0")
    is_day_trade: bool = False


class FieldErrorSchema(BaseModel):
    field: str
    message: str


class CsvImportRequest(BaseModel):
    csv: str = Field(..., description="CSV text with columns date,ticker,side,qty,price,fees,notes")
    replace: bool = Field(default=False, description="Replace all trades instead of appending")


class TradeImportResponse(BaseModel):
    imported: int
    errors: list[FieldErrorSchema] = Field(default_factory=list)


__all__ = [
    "CsvImportRequest",
    "FieldErrorSchema",
    "TradeCreateRequest",
    "TradeImportResponse",
    "TradeMutationResponse",
    "TradeSchema",
    "TradeUpdateRequest",
]
