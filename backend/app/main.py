"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import api_router
from app.config import AppSettings, get_settings
from app.core.logging import setup_logging
from app.db import Database
from app.providers.quotes import HTTPQuoteFeed, QuoteFeed
from app.schemas import HealthResponse
from app.services.account_service import MarginAccountService
from app.services.persistence import AccountStateRepository

logger = logging.getLogger(__name__)


def create_app(
    database: Database | None = None,
    *,
    settings: AppSettings | None = None,
    feed: QuoteFeed | None = None,
    service: MarginAccountService | None = None,
    start_refresher: bool | None = None,
) -> FastAPI:
    """Build the API around one account service backed by ``database``."""

    settings = settings or get_settings()
    database_instance = database or Database(settings.database_url)
    if feed is None and settings.quote_service_url:
        feed = HTTPQuoteFeed(settings.quote_service_url, timeout=settings.quote_timeout_seconds)
    account_service = service or MarginAccountService(
        AccountStateRepository(database_instance),
        feed=feed,
        settings=settings,
    )
    run_refresher = start_refresher if start_refresher is not None else bool(settings.quote_service_url)

    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        await database_instance.create_all()
        await account_service.load()
        refresher = account_service.build_refresher() if run_refresher else None
        if refresher is not None:
            refresher.start()
        try:
            yield
        finally:
            if refresher is not None:
                await refresher.stop()

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=_lifespan)
    app.state.account_service = account_service
    app.state.database = database_instance

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_router)

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            service=settings.app_name,
            database_url=database_instance.url,
            timezone=settings.timezone,
        )

    return app


def configure_app() -> FastAPI:
    """Create the production application with logging configured."""

    settings = get_settings()
    setup_logging(settings.log_level, engine_level=settings.engine_log_level)
    logger.info("Starting %s with settings %s", settings.app_name, settings.dict_for_logging())
    return create_app(settings=settings)


__all__ = ["configure_app", "create_app"]
