"""Entrypoint for the Portfolio Ledger FastAPI application."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portfolio_ledger.config import LedgerSettings, get_settings
from portfolio_ledger.core.logging import setup_logging
from portfolio_ledger.schemas import HealthResponse

from .routes import api_router


def create_app(settings: LedgerSettings | None = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(title=settings.app_name, version="0.1.0")
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
        return HealthResponse(status="ok", service=settings.app_name)

    return app


setup_logging()
app = create_app()

__all__ = ["app", "create_app"]
