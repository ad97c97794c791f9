"""
Domain records persisted in the key-value store.

All records are immutable; a change is a ``model_copy(update=...)`` followed by
replacing the stored value. Timestamps are epoch milliseconds.
"""

from __future__ import annotations

import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def now_millis() -> int:
    return int(time.time() * 1000)


class _Record(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class OAuthStateRecord(_Record):
    state: str
    provider: str
    code_verifier: str
    app_redirect_uri: Optional[str] = None
    created_at: int
    expires_at: int


class AuthCodeRecord(_Record):
    code: str
    provider: str
    provider_user_id: str
    provider_sub: str
    created_at: int
    expires_at: int
    used_at: Optional[int] = None


class ProviderBinding(_Record):
    provider: str
    provider_user_id: str
    provider_sub: str
    added_at: int


class FavoriteItem(_Record):
    url: str
    name: Optional[str] = None
    icon_url: Optional[str] = None
    updated_at: int
    deleted_at: Optional[int] = None


class HistoryItem(_Record):
    url: str
    title: Optional[str] = None
    icon_url: Optional[str] = None
    visited_at: int
    updated_at: int
    deleted_at: Optional[int] = None


class SyncFavorites(_Record):
    items: tuple[FavoriteItem, ...] = ()
    updated_at: int = 0


class SyncHistory(_Record):
    items: tuple[HistoryItem, ...] = ()
    updated_at: int = 0


class WalletProfile(_Record):
    """Durable wallet identity and everything bound to it."""

    wallet_sub: str
    created_at: int
    # Keyed by provider sub; insertion order is the bind order.
    providers: dict[str, ProviderBinding] = Field(default_factory=dict)
    favorites: SyncFavorites = Field(default_factory=SyncFavorites)
    history: SyncHistory = Field(default_factory=SyncHistory)

    @classmethod
    def create(cls, wallet_sub: str, now: int) -> "WalletProfile":
        return cls(
            wallet_sub=wallet_sub,
            created_at=now,
            favorites=SyncFavorites(updated_at=now),
            history=SyncHistory(updated_at=now),
        )

    def with_binding(self, binding: ProviderBinding) -> "WalletProfile":
        if binding.provider_sub in self.providers:
            return self
        providers = dict(self.providers)
        providers[binding.provider_sub] = binding
        return self.model_copy(update={"providers": providers})

    def without_binding(self, provider_sub: str) -> "WalletProfile":
        providers = {
            key: value for key, value in self.providers.items() if key != provider_sub
        }
        return self.model_copy(update={"providers": providers})

    def sorted_providers(self) -> list[ProviderBinding]:
        return sorted(self.providers.values(), key=lambda binding: binding.added_at)


class RefreshTokenRecord(_Record):
    id: str
    wallet_sub: str
    token_hash: str
    created_at: int
    expires_at: int
    revoked_at: Optional[int] = None
    replaces_id: Optional[str] = None


__all__ = [
    "AuthCodeRecord",
    "FavoriteItem",
    "HistoryItem",
    "OAuthStateRecord",
    "ProviderBinding",
    "RefreshTokenRecord",
    "SyncFavorites",
    "SyncHistory",
    "WalletProfile",
    "now_millis",
]
