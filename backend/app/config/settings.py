"""Application configuration and environment helpers."""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_ACCOUNT_KEY = "app_state"


class AppSettings(BaseSettings):
    """Configuration options for the margin ledger service."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = Field(default="Margin Ledger")
    timezone: str = Field(default=DEFAULT_TIMEZONE)
    log_level: str = Field(default="INFO")
    engine_log_level: str | None = Field(default=None, description="Overrides log_level for margin_ledger.*")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./margin_ledger.db",
        description="SQLAlchemy database URL for the account state store.",
    )
    account_key: str = Field(default=DEFAULT_ACCOUNT_KEY, description="Key the account state is stored under.")

    lot_allocation_method: Literal["FIFO", "LIFO"] = Field(default="FIFO")
    default_fees_per_trade: Decimal = Field(default=Decimal("0"), ge=0)

    default_broker_name: str = Field(default="Charles Schwab")
    day_count_basis: Literal[360, 365] = Field(default=360)
    initial_margin_pct: Decimal = Field(default=Decimal("0.50"), ge=0, le=1)
    maintenance_margin_pct: Decimal = Field(default=Decimal("0.30"), ge=0, le=1)

    quote_service_url: str | None = Field(
        default=None,
        description="Base URL of the quote service exposing GET /quotes?symbols=...",
    )
    quote_service_token: str | None = Field(default=None)
    quote_timeout_seconds: float = Field(default=10.0, gt=0)
    quote_refresh_seconds: float = Field(default=60.0, gt=0)

    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    def dict_for_logging(self) -> dict[str, Any]:
        """Return a sanitized dict for logging purposes."""

        hidden = {"quote_service_token"}
        return {k: ("***" if k in hidden else v) for k, v in self.model_dump().items()}


@lru_cache(maxsize=1)
def get_settings(**overrides: Any) -> AppSettings:
    """Return cached application settings with optional overrides."""

    if overrides:
        return AppSettings(**overrides)
    return AppSettings()


__all__ = [
    "AppSettings",
    "DEFAULT_ACCOUNT_KEY",
    "DEFAULT_TIMEZONE",
    "get_settings",
]
