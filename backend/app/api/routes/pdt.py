"""Pattern-day-trader status endpoints."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query

from app.api.dependencies.account import get_account_service
from app.api.errors import http_error
from app.schemas import DayTradeCheckResponse, PDTStatusSchema, TradeCreateRequest
from app.services.account_service import MarginAccountService
from margin_ledger.errors import ValidationError
from margin_ledger.validation import validate_trade

router = APIRouter()


@router.get("/status", response_model=PDTStatusSchema)
async def pdt_status(
    as_of: date | None = Query(default=None),
    service: MarginAccountService = Depends(get_account_service),
) -> PDTStatusSchema:
    as_of = as_of or service.today()
    report = service.pdt_report(as_of)
    return PDTStatusSchema.from_status(report.status, as_of=as_of, warning=report.warning)


@router.post("/check", response_model=DayTradeCheckResponse)
async def check_day_trade(
    payload: TradeCreateRequest,
    service: MarginAccountService = Depends(get_account_service),
) -> DayTradeCheckResponse:
    data = payload.model_dump()
    data["id"] = payload.id or "__candidate__"
    data["ticker"] = payload.ticker.strip().upper()
    data["fees"] = payload.fees or 0
    result = validate_trade(data)
    if not result.ok:
        raise http_error(ValidationError(result.errors))
    candidate = result.unwrap()
    report = service.pdt_report(candidate.date)
    return DayTradeCheckResponse(
        would_create_day_trade=service.would_create_day_trade(candidate),
        day_trades_last_5_days=report.status.day_trades_last_5_days,
    )


__all__ = ["router"]
