"""
X (Twitter) OAuth2 client.

Builds PKCE authorization URLs, exchanges authorization codes, and resolves the
authenticated user's id. Provider calls are never retried.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from wallet_auth.core.config import XOAuthSettings
from wallet_auth.core.errors import AuthError, AuthErrorCode, provider_unavailable

logger = logging.getLogger(__name__)


def _exchange_failed(message: str) -> AuthError:
    return AuthError(AuthErrorCode.OAUTH_EXCHANGE_FAILED, message, HTTPStatus.BAD_GATEWAY)


class XOAuthClient:
    """Build X authorization URLs and exchange authorization codes."""

    def __init__(
        self,
        settings: XOAuthSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.http_timeout_seconds, transport=self._transport
        )

    def build_authorize_url(self, state: str, code_challenge: str) -> str:
        """Construct the X consent URL for a PKCE S256 flow."""
        params = {
            "response_type": "code",
            "client_id": self._settings.client_id,
            "redirect_uri": self._settings.redirect_uri,
            "scope": " ".join(self._settings.scopes),
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        separator = "&" if "?" in self._settings.authorize_endpoint else "?"
        return f"{self._settings.authorize_endpoint}{separator}{urlencode(params)}"

    async def exchange_code_for_access_token(self, code: str, code_verifier: str) -> str:
        """Exchange an authorization code for the provider access token."""
        payload = {
            "grant_type": "authorization_code",
            "client_id": self._settings.client_id,
            "redirect_uri": self._settings.redirect_uri,
            "code_verifier": code_verifier,
            "code": code,
        }
        auth = None
        if self._settings.client_secret:
            auth = httpx.BasicAuth(self._settings.client_id, self._settings.client_secret)

        try:
            async with self._client() as client:
                response = await client.post(
                    self._settings.token_endpoint,
                    data=payload,
                    auth=auth,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as exc:
            logger.warning("X token exchange request failed: %s", exc)
            raise _exchange_failed("X token exchange failed.") from exc

        if response.status_code >= 400:
            logger.warning("X token endpoint returned HTTP %s", response.status_code)
            raise _exchange_failed("X token exchange failed.")

        token_payload = self._json(response)
        access_token = token_payload.get("access_token") if token_payload else None
        if not isinstance(access_token, str) or not access_token.strip():
            raise _exchange_failed("X token exchange returned no access token.")
        return access_token

    async def fetch_user_id(self, access_token: str) -> str:
        """Resolve the X user id behind ``access_token``."""
        try:
            async with self._client() as client:
                response = await client.get(
                    self._settings.userinfo_endpoint,
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Accept": "application/json",
                    },
                )
        except httpx.HTTPError as exc:
            logger.warning("X userinfo request failed: %s", exc)
            raise provider_unavailable("X userinfo request failed.") from exc

        if response.status_code >= 400:
            logger.warning("X userinfo endpoint returned HTTP %s", response.status_code)
            raise provider_unavailable("X userinfo request failed.")

        body = self._json(response) or {}
        data = body.get("data")
        user_id = data.get("id") if isinstance(data, dict) else None
        if user_id is None or not str(user_id).strip():
            raise provider_unavailable("X userinfo response has no user id.")
        return str(user_id).strip()

    @staticmethod
    def _json(response: httpx.Response) -> Optional[Dict[str, Any]]:
        if not response.content:
            return None
        try:
            body = response.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None


__all__ = ["XOAuthClient"]
