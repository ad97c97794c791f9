"""Provider verification capability shared by X and Telegram logins."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from wallet_auth.clients.x_oauth import XOAuthClient

PROVIDER_X = "x"
PROVIDER_TELEGRAM = "tg"


@runtime_checkable
class IdentityProvider(Protocol):
    """Given provider-specific proof, return the provider's user id or raise."""

    provider: str

    async def verify(self, proof: Any) -> str:
        ...


@dataclass(frozen=True, slots=True)
class XAuthorizationProof:
    code: str
    code_verifier: str


class XIdentityProvider:
    """Turns an authorization code plus PKCE verifier into an X user id."""

    provider = PROVIDER_X

    def __init__(self, client: XOAuthClient) -> None:
        self._client = client

    def authorize_url(self, state: str, code_challenge: str) -> str:
        return self._client.build_authorize_url(state, code_challenge)

    async def verify(self, proof: XAuthorizationProof) -> str:
        access_token = await self._client.exchange_code_for_access_token(
            proof.code, proof.code_verifier
        )
        return await self._client.fetch_user_id(access_token)


__all__ = [
    "IdentityProvider",
    "PROVIDER_TELEGRAM",
    "PROVIDER_X",
    "XAuthorizationProof",
    "XIdentityProvider",
]
