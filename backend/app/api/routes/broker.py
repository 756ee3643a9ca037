"""Broker settings and rate tier endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from app.api.dependencies.account import get_account_service
from app.api.errors import ensure_ok
from app.schemas import BrokerSettingsSchema, BrokerSettingsUpdateRequest, RateTierSchema
from app.services.account_service import MarginAccountService
from margin_ledger.account import (
    AddRateTier,
    DeleteRateTier,
    ResetBrokerSettings,
    UpdateBrokerSettings,
    UpdateRateTier,
)

router = APIRouter()


def _broker(service: MarginAccountService) -> BrokerSettingsSchema:
    return BrokerSettingsSchema.from_settings(service.state.broker)


@router.get("", response_model=BrokerSettingsSchema)
async def get_broker(service: MarginAccountService = Depends(get_account_service)) -> BrokerSettingsSchema:
    return _broker(service)


@router.patch("", response_model=BrokerSettingsSchema)
async def update_broker(
    payload: BrokerSettingsUpdateRequest,
    service: MarginAccountService = Depends(get_account_service),
) -> BrokerSettingsSchema:
    changes = payload.model_dump(exclude_unset=True)
    ensure_ok(await service.dispatch(UpdateBrokerSettings(changes)))
    return _broker(service)


@router.post("/reset", response_model=BrokerSettingsSchema)
async def reset_broker(service: MarginAccountService = Depends(get_account_service)) -> BrokerSettingsSchema:
    ensure_ok(await service.dispatch(ResetBrokerSettings()))
    return _broker(service)


@router.post("/tiers", response_model=BrokerSettingsSchema, status_code=status.HTTP_201_CREATED)
async def add_tier(
    payload: RateTierSchema,
    service: MarginAccountService = Depends(get_account_service),
) -> BrokerSettingsSchema:
    ensure_ok(await service.dispatch(AddRateTier(payload.model_dump())))
    return _broker(service)


@router.put("/tiers/{index}", response_model=BrokerSettingsSchema)
async def update_tier(
    index: int,
    payload: RateTierSchema,
    service: MarginAccountService = Depends(get_account_service),
) -> BrokerSettingsSchema:
    ensure_ok(await service.dispatch(UpdateRateTier(index, payload.model_dump())))
    return _broker(service)


@router.delete("/tiers/{index}", response_model=BrokerSettingsSchema)
async def delete_tier(
    index: int,
    service: MarginAccountService = Depends(get_account_service),
) -> BrokerSettingsSchema:
    ensure_ok(await service.dispatch(DeleteRateTier(index)))
    return _broker(service)


__all__ = ["router"]
