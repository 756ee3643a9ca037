"""Account reports, settings and full snapshot exchange."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Response

from app.api.dependencies.account import get_account_service
from app.api.errors import ensure_ok, http_error
from app.schemas import (
    AccountSettingsSchema,
    AccountSettingsUpdateRequest,
    AccountSummarySchema,
    PositionSummarySchema,
)
from app.services.account_service import MarginAccountService
from app.services.interchange import export_state_json, state_from_dict
from margin_ledger.account import UpdateAccountSettings
from margin_ledger.errors import MarginLedgerError

router = APIRouter()


@router.get("/summary", response_model=AccountSummarySchema)
async def account_summary(service: MarginAccountService = Depends(get_account_service)) -> AccountSummarySchema:
    as_of = service.today()
    return AccountSummarySchema.from_summary(
        service.account_summary(as_of),
        as_of=as_of,
        realized_pnl=service.state.realized_pnl,
        places=service.state.settings.rounding,
    )


@router.get("/positions", response_model=list[PositionSummarySchema])
async def account_positions(
    service: MarginAccountService = Depends(get_account_service),
) -> list[PositionSummarySchema]:
    prices = service.prices()
    places = service.state.settings.rounding
    return [
        PositionSummarySchema.from_summary(summary, prices.get(summary.ticker), places=places)
        for summary in service.position_summaries()
    ]


@router.get("/settings", response_model=AccountSettingsSchema)
async def get_account_settings(
    service: MarginAccountService = Depends(get_account_service),
) -> AccountSettingsSchema:
    return AccountSettingsSchema(**service.state.settings.__dict__)


@router.patch("/settings", response_model=AccountSettingsSchema)
async def update_account_settings(
    payload: AccountSettingsUpdateRequest,
    service: MarginAccountService = Depends(get_account_service),
) -> AccountSettingsSchema:
    ensure_ok(await service.dispatch(UpdateAccountSettings(payload.model_dump(exclude_unset=True))))
    return AccountSettingsSchema(**service.state.settings.__dict__)


@router.get("/export")
async def export_account(service: MarginAccountService = Depends(get_account_service)) -> Response:
    filename = f"margin_ledger_backup_{service.today().isoformat()}.json"
    return Response(
        content=export_state_json(service.state),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import", response_model=AccountSummarySchema)
async def import_account(
    payload: dict = Body(...),
    service: MarginAccountService = Depends(get_account_service),
) -> AccountSummarySchema:
    try:
        state = state_from_dict(payload)
    except MarginLedgerError as exc:
        raise http_error(exc) from exc
    await service.replace_state(state)
    return await account_summary(service)


__all__ = ["router"]
