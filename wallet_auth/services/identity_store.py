"""
Key layout and persistence of every auth artifact.

All records live in the key-value store as camelCase JSON. Nothing here
caches across calls; every read goes back to the store.
"""

from __future__ import annotations

import logging
from typing import Optional, Type, TypeVar

from pydantic import ValidationError

from wallet_auth.clients.kv_store import KeyValueStore
from wallet_auth.models.records import (
    AuthCodeRecord,
    OAuthStateRecord,
    RefreshTokenRecord,
    WalletProfile,
    _Record,
)

logger = logging.getLogger(__name__)

PREFIX_OAUTH_STATE = "auth:oauth:state:"
PREFIX_OAUTH_STATE_USED = "auth:oauth:state:used:"
PREFIX_AUTH_CODE = "auth:code:"
PREFIX_AUTH_CODE_USED = "auth:code:used:"
PREFIX_PROVIDER_TO_WALLET = "auth:provider:"
PREFIX_WALLET = "auth:wallet:"
PREFIX_REFRESH = "auth:refresh:"
PREFIX_JTI = "auth:jti:"

RecordT = TypeVar("RecordT", bound=_Record)


class IdentityStore:
    """Owns OAuth states, auth codes, bindings, wallets, refresh tokens and JTIs."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def _get_record(self, key: str, model: Type[RecordT]) -> Optional[RecordT]:
        raw = await self._store.get(key)
        if raw is None or not raw.strip():
            return None
        try:
            return model.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable %s at %s", model.__name__, key.split(":")[1])
            return None

    async def _put_record(self, key: str, record: _Record, ttl_seconds: Optional[int]) -> None:
        await self._store.set(key, record.to_json(), ttl_seconds)

    # OAuth state

    async def put_oauth_state(self, record: OAuthStateRecord, ttl_seconds: int) -> None:
        await self._put_record(PREFIX_OAUTH_STATE + record.state, record, ttl_seconds)

    async def consume_oauth_state(
        self, state: Optional[str], claim_ttl_seconds: int
    ) -> Optional[OAuthStateRecord]:
        """Return the state record at most once, deleting it on first read."""
        if not state or not state.strip():
            return None
        key = PREFIX_OAUTH_STATE + state
        record = await self._get_record(key, OAuthStateRecord)
        if record is None:
            return None
        won = await self._store.set_if_absent(
            PREFIX_OAUTH_STATE_USED + record.state, "1", claim_ttl_seconds
        )
        await self._store.delete(key)
        return record if won else None

    # One-time auth codes

    async def put_auth_code(self, record: AuthCodeRecord, ttl_seconds: int) -> None:
        await self._put_record(PREFIX_AUTH_CODE + record.code, record, ttl_seconds)

    async def get_auth_code(self, code: Optional[str]) -> Optional[AuthCodeRecord]:
        if not code or not code.strip():
            return None
        return await self._get_record(PREFIX_AUTH_CODE + code, AuthCodeRecord)

    async def mark_auth_code_used_once(self, code: Optional[str], ttl_seconds: int) -> bool:
        if not code or not code.strip():
            return False
        return await self._store.set_if_absent(
            PREFIX_AUTH_CODE_USED + code, "1", max(1, ttl_seconds)
        )

    async def update_auth_code(self, record: AuthCodeRecord) -> None:
        """Replace the record while keeping whatever lifetime it has left."""
        key = PREFIX_AUTH_CODE + record.code
        ttl = await self._store.ttl_remaining(key)
        await self._put_record(key, record, ttl if ttl and ttl > 0 else 1)

    # Provider sub -> wallet sub pointers

    async def get_wallet_sub_by_provider_sub(self, provider_sub: Optional[str]) -> Optional[str]:
        if not provider_sub or not provider_sub.strip():
            return None
        return await self._store.get(PREFIX_PROVIDER_TO_WALLET + provider_sub)

    async def bind_provider_sub_if_absent(self, provider_sub: str, wallet_sub: str) -> bool:
        return await self._store.set_if_absent(PREFIX_PROVIDER_TO_WALLET + provider_sub, wallet_sub)

    async def bind_provider_sub_force(self, provider_sub: str, wallet_sub: str) -> None:
        await self._store.set(PREFIX_PROVIDER_TO_WALLET + provider_sub, wallet_sub)

    async def unbind_provider_sub(self, provider_sub: str) -> None:
        await self._store.delete(PREFIX_PROVIDER_TO_WALLET + provider_sub)

    # Wallet profiles (no expiry)

    async def get_wallet_profile(self, wallet_sub: Optional[str]) -> Optional[WalletProfile]:
        if not wallet_sub or not wallet_sub.strip():
            return None
        return await self._get_record(PREFIX_WALLET + wallet_sub, WalletProfile)

    async def put_wallet_profile(self, profile: WalletProfile) -> None:
        await self._put_record(PREFIX_WALLET + profile.wallet_sub, profile, None)

    # Refresh tokens, keyed by the token's SHA-256 hex digest

    async def put_refresh_token(self, record: RefreshTokenRecord, ttl_seconds: int) -> None:
        await self._put_record(PREFIX_REFRESH + record.token_hash, record, ttl_seconds)

    async def get_refresh_token_by_hash(
        self, token_hash: Optional[str]
    ) -> Optional[RefreshTokenRecord]:
        if not token_hash or not token_hash.strip():
            return None
        return await self._get_record(PREFIX_REFRESH + token_hash, RefreshTokenRecord)

    async def delete_refresh_token_by_hash(self, token_hash: str) -> None:
        await self._store.delete(PREFIX_REFRESH + token_hash)

    # Replay set

    async def remember_jti(self, jti: Optional[str], ttl_seconds: int) -> bool:
        """Record ``jti``; ``False`` means it was already seen inside its window."""
        if not jti or not jti.strip():
            return False
        return await self._store.set_if_absent(PREFIX_JTI + jti, "1", max(1, ttl_seconds))


__all__ = [
    "IdentityStore",
    "PREFIX_AUTH_CODE",
    "PREFIX_AUTH_CODE_USED",
    "PREFIX_JTI",
    "PREFIX_OAUTH_STATE",
    "PREFIX_PROVIDER_TO_WALLET",
    "PREFIX_REFRESH",
    "PREFIX_WALLET",
]
