"""Interest ledger endpoints."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.api.dependencies.account import get_account_service
from app.api.errors import ensure_ok
from app.schemas import (
    CashActivityRequest,
    InterestTotalResponse,
    LedgerEntrySchema,
    ManualAPRRequest,
    RecomputeRequest,
)
from app.services.account_service import MarginAccountService
from app.services.interchange import ledger_to_csv
from margin_ledger.account import ApplyCashActivity, RecomputeLedger, SetManualAPR

router = APIRouter()


def _entries(service: MarginAccountService) -> list[LedgerEntrySchema]:
    return [LedgerEntrySchema.from_entry(entry) for entry in service.state.ledger]


@router.get("", response_model=list[LedgerEntrySchema])
async def list_ledger(service: MarginAccountService = Depends(get_account_service)) -> list[LedgerEntrySchema]:
    return _entries(service)


@router.post("/recompute", response_model=list[LedgerEntrySchema])
async def recompute_ledger(
    payload: RecomputeRequest | None = None,
    service: MarginAccountService = Depends(get_account_service),
) -> list[LedgerEntrySchema]:
    from_date = payload.from_date if payload else None
    ensure_ok(await service.dispatch(RecomputeLedger(from_date)))
    return _entries(service)


@router.post("/cash-activity", response_model=list[LedgerEntrySchema])
async def post_cash_activity(
    payload: CashActivityRequest,
    service: MarginAccountService = Depends(get_account_service),
) -> list[LedgerEntrySchema]:
    ensure_ok(await service.dispatch(ApplyCashActivity(payload.date, payload.amount, payload.description)))
    return _entries(service)


@router.put("/manual-apr", response_model=list[LedgerEntrySchema])
async def set_manual_apr(
    payload: ManualAPRRequest,
    service: MarginAccountService = Depends(get_account_service),
) -> list[LedgerEntrySchema]:
    ensure_ok(await service.dispatch(SetManualAPR(payload.date, payload.apr)))
    return _entries(service)


@router.get("/interest", response_model=InterestTotalResponse)
async def interest_total(
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    service: MarginAccountService = Depends(get_account_service),
) -> InterestTotalResponse:
    ledger = service.state.ledger
    start = start or (ledger[0].date if ledger else service.today())
    end = end or service.today()
    if end < start:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="end must not precede start")
    return InterestTotalResponse(start=start, end=end, total_interest=service.total_interest(start, end))


@router.get("/export")
async def export_ledger(service: MarginAccountService = Depends(get_account_service)) -> Response:
    filename = f"interest_ledger_{service.today().isoformat()}.csv"
    return Response(
        content=ledger_to_csv(service.state.ledger),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


__all__ = ["router"]
