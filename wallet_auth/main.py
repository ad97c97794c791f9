"""
FastAPI application entrypoint for the wallet auth service.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from wallet_auth.api.error_handling import register_exception_handlers
from wallet_auth.api.routes import router as api_router
from wallet_auth.api.routes import well_known_router
from wallet_auth.core.config import get_settings, validate_settings
from wallet_auth.core.logging import configure_logging
from wallet_auth.dependencies import get_auth_orchestrator, get_kv_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Building the graph up front surfaces bad key material at startup.
    validate_settings(get_settings())
    get_auth_orchestrator()
    logger.info("Auth service started")
    yield
    await get_kv_store().close()


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Wallet Auth Service",
        version="0.1.0",
        description="Provider-federated login and wallet sessions for X and Telegram.",
        lifespan=lifespan,
    )
    register_exception_handlers(app)
    app.include_router(well_known_router)
    app.include_router(api_router, prefix="/api/v1")
    return app


app = create_app()

__all__ = ["app", "create_app"]
