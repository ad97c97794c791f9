"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_auth_orchestrator,
    get_identity_store,
    get_kv_store,
    get_risk_gate,
    get_sync_merger,
    get_telegram_verifier,
    get_token_service,
    get_x_oauth_client,
)

__all__ = [
    "get_auth_orchestrator",
    "get_identity_store",
    "get_kv_store",
    "get_risk_gate",
    "get_sync_merger",
    "get_telegram_verifier",
    "get_token_service",
    "get_x_oauth_client",
]
