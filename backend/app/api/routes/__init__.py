"""Route registration helpers."""

from __future__ import annotations

from fastapi import APIRouter

from .account import router as account_router
from .broker import router as broker_router
from .ledger import router as ledger_router
from .pdt import router as pdt_router
from .trades import router as trades_router

api_router = APIRouter()
api_router.include_router(trades_router, prefix="/trades", tags=["trades"])
api_router.include_router(ledger_router, prefix="/ledger", tags=["ledger"])
api_router.include_router(broker_router, prefix="/broker", tags=["broker"])
api_router.include_router(account_router, prefix="/account", tags=["account"])
api_router.include_router(pdt_router, prefix="/pdt", tags=["pdt"])

__all__ = ["api_router"]
