"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

import logging
from functools import lru_cache

from wallet_auth.clients import (
    InMemoryKeyValueStore,
    KeyValueStore,
    RedisKeyValueStore,
    XOAuthClient,
)
from wallet_auth.core.config import get_settings
from wallet_auth.services import (
    AuthOrchestrator,
    IdentityStore,
    ProfileSyncMerger,
    RiskGate,
    TelegramVerifier,
    TokenService,
    XIdentityProvider,
)

logger = logging.getLogger(__name__)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_kv_store() -> KeyValueStore:
    """Provide the shared key-value store, Redis when configured."""
    settings = _settings()
    if settings.redis_url:
        return RedisKeyValueStore(
            settings.redis_url, socket_timeout=settings.redis_socket_timeout_seconds
        )
    logger.warning("REDIS_URL not set; using a process-local key-value store.")
    return InMemoryKeyValueStore()


@lru_cache()
def get_identity_store() -> IdentityStore:
    """Provide the auth record store."""
    return IdentityStore(get_kv_store())


@lru_cache()
def get_token_service() -> TokenService:
    """Provide the signing service; fails fast on bad key material."""
    settings = _settings()
    return TokenService(settings.web3auth, settings.app_jwt)


@lru_cache()
def get_risk_gate() -> RiskGate:
    """Provide denylist and rate-limit checks."""
    return RiskGate(get_kv_store(), _settings().risk)


@lru_cache()
def get_x_oauth_client() -> XOAuthClient:
    """Create a singleton X OAuth client."""
    return XOAuthClient(_settings().x_oauth)


@lru_cache()
def get_telegram_verifier() -> TelegramVerifier:
    """Provide the Telegram widget verifier."""
    return TelegramVerifier(_settings().telegram)


@lru_cache()
def get_sync_merger() -> ProfileSyncMerger:
    """Provide the favorites/history merger with configured caps."""
    settings = _settings()
    return ProfileSyncMerger(
        max_favorites=settings.auth.sync_max_favorites,
        max_history=settings.auth.sync_max_history,
    )


@lru_cache()
def get_auth_orchestrator() -> AuthOrchestrator:
    """Wire the auth protocol from the shared components."""
    return AuthOrchestrator(
        settings=_settings(),
        store=get_identity_store(),
        risk=get_risk_gate(),
        tokens=get_token_service(),
        x_provider=XIdentityProvider(get_x_oauth_client()),
        telegram=get_telegram_verifier(),
        merger=get_sync_merger(),
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
