"""Trade endpoints: record, edit, remove and exchange trades as CSV."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.api.dependencies.account import get_account_service
from app.api.errors import ensure_ok
from app.schemas import (
    CsvImportRequest,
    FieldErrorSchema,
    TradeCreateRequest,
    TradeImportResponse,
    TradeMutationResponse,
    TradeSchema,
    TradeUpdateRequest,
)
from app.services.account_service import MarginAccountService
from app.services.interchange import trades_from_csv, trades_to_csv
from margin_ledger.account import AccountState, AddTrade, EditTrade, RemoveTrade, SetTrades
from margin_ledger.models import Trade

router = APIRouter()


def _payload(request: TradeCreateRequest, service: MarginAccountService) -> dict[str, object]:
    payload = request.model_dump()
    payload["id"] = request.id or f"trade_{uuid.uuid4().hex[:12]}"
    payload["ticker"] = request.ticker.strip().upper()
    if request.fees is None:
        payload["fees"] = service.state.settings.default_fees_per_trade or 0
    return payload


def _stored_trade(state: AccountState, trade_id: str) -> Trade:
    trade = state.trade_by_id(trade_id)
    if trade is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Trade {trade_id} not found")
    return trade


@router.get("", response_model=list[TradeSchema])
async def list_trades(service: MarginAccountService = Depends(get_account_service)) -> list[TradeSchema]:
    return [TradeSchema.from_trade(trade) for trade in service.state.trades]


@router.post("", response_model=TradeMutationResponse, status_code=status.HTTP_201_CREATED)
async def add_trade(
    payload: TradeCreateRequest,
    service: MarginAccountService = Depends(get_account_service),
) -> TradeMutationResponse:
    data = _payload(payload, service)
    result = ensure_ok(await service.dispatch(AddTrade(data)))
    trade = _stored_trade(result.state, str(data["id"]))
    return TradeMutationResponse(
        trade=TradeSchema.from_trade(trade),
        realized_pnl=result.realized_pnl,
        is_day_trade=service.would_create_day_trade(trade),
    )


@router.patch("/{trade_id}", response_model=TradeMutationResponse)
async def edit_trade(
    trade_id: str,
    payload: TradeUpdateRequest,
    service: MarginAccountService = Depends(get_account_service),
) -> TradeMutationResponse:
    changes = payload.model_dump(exclude_unset=True)
    if "ticker" in changes and changes["ticker"]:
        changes["ticker"] = changes["ticker"].strip().upper()
    result = ensure_ok(await service.dispatch(EditTrade(trade_id, changes)))
    trade = _stored_trade(result.state, trade_id)
    return TradeMutationResponse(trade=TradeSchema.from_trade(trade), realized_pnl=result.realized_pnl)


@router.delete("/{trade_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trade(
    trade_id: str,
    service: MarginAccountService = Depends(get_account_service),
) -> Response:
    ensure_ok(await service.dispatch(RemoveTrade(trade_id)))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/export")
async def export_trades(service: MarginAccountService = Depends(get_account_service)) -> Response:
    filename = f"trades_{service.today().isoformat()}.csv"
    return Response(
        content=trades_to_csv(service.state.trades),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import", response_model=TradeImportResponse)
async def import_trades(
    payload: CsvImportRequest,
    service: MarginAccountService = Depends(get_account_service),
) -> TradeImportResponse:
    parsed = trades_from_csv(payload.csv, id_prefix=f"import_{uuid.uuid4().hex[:8]}")
    errors = [FieldErrorSchema(field=e.field, message=e.message) for e in parsed.errors]
    if not parsed.trades:
        if errors:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail={"code": "VALIDATION_ERROR", "message": "No valid rows", "errors": [e.model_dump() for e in errors]},
            )
        return TradeImportResponse(imported=0)
    trades = parsed.trades if payload.replace else [*service.state.trades, *parsed.trades]
    ensure_ok(await service.dispatch(SetTrades(trades)))
    return TradeImportResponse(imported=len(parsed.trades), errors=errors)


__all__ = ["router"]
