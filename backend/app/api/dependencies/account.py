"""Dependency helpers giving routes access to the account service."""

from __future__ import annotations

from fastapi import Request

from app.services.account_service import MarginAccountService


def get_account_service(request: Request) -> MarginAccountService:
    return request.app.state.account_service


__all__ = ["get_account_service"]
