"""Application configuration and environment helpers."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SPLIT_STORAGE_KEY = "portfolio_stockSplits"


class LedgerSettings(BaseSettings):
    """Configuration options for the portfolio ledger."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="Portfolio Ledger")
    log_level: str = Field(default="INFO")

    split_storage_key: str = Field(
        default=DEFAULT_SPLIT_STORAGE_KEY,
        description="Key under which stock splits are persisted in the external store.",
    )
    header_search_lines: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Leading non-empty lines scanned for a CSV header row.",
    )

    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:4200"])

    def dict_for_logging(self) -> dict[str, Any]:
        """Return a plain dict for logging purposes."""

        return self.model_dump()


@lru_cache(maxsize=1)
def get_settings(**overrides: Any) -> LedgerSettings:
    """Return cached application settings with optional overrides."""

    if overrides:
        return LedgerSettings(**overrides)
    return LedgerSettings()


__all__ = [
    "LedgerSettings",
    "DEFAULT_SPLIT_STORAGE_KEY",
    "get_settings",
]
