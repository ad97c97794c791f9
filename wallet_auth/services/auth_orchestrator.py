"""
End-to-end auth protocol: login, code exchange, refresh, binding and sync.

The orchestrator is stateless. Every step re-reads from the identity store
and all cross-request coordination relies on the store's per-key atomic
operations. Within one call the order is fixed: feature switches, then risk
checks, then provider verification, then store mutations, then token
issuance.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from http import HTTPStatus
from typing import Callable, Optional

from wallet_auth.core.config import AppSettings
from wallet_auth.core.errors import (
    AuthError,
    AuthErrorCode,
    bad_request,
    feature_disabled,
    provider_unavailable,
    unauthorized,
)
from wallet_auth.models.records import (
    AuthCodeRecord,
    OAuthStateRecord,
    ProviderBinding,
    RefreshTokenRecord,
    WalletProfile,
    now_millis,
)
from wallet_auth.schemas import (
    AuthCodeResponse,
    BindRequest,
    ExchangeRequest,
    ExchangeResponse,
    MeResponse,
    ProviderBindingView,
    RefreshRequest,
    RefreshResponse,
    SyncPayloadInput,
    SyncPayloadResponse,
    TelegramLoginRequest,
    UnbindRequest,
    XStartResponse,
)
from wallet_auth.utils.auth import (
    blank_to_none,
    callback_redirect_url,
    is_allowed_redirect,
    is_blank,
    provider_sub as make_provider_sub,
    random_base64url,
    sha256_base64url,
)

from .identity_providers import (
    PROVIDER_TELEGRAM,
    PROVIDER_X,
    IdentityProvider,
    XAuthorizationProof,
    XIdentityProvider,
)
from .identity_store import IdentityStore
from .risk_gate import RiskGate
from .sync_merger import ProfileSyncMerger
from .token_service import TokenService, sha256_hex

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


@dataclass(frozen=True, slots=True)
class XCallbackResult:
    payload: AuthCodeResponse
    app_redirect_uri: Optional[str]


def new_wallet_sub() -> str:
    return "wallet_" + random_base64url(18).lower()


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Pull the token out of an ``Authorization: Bearer ...`` header."""
    if authorization is None or not authorization.strip():
        raise unauthorized(AuthErrorCode.ACCESS_TOKEN_INVALID, "Missing authorization header.")
    value = authorization.strip()
    if value[: len(BEARER_PREFIX)].lower() != BEARER_PREFIX:
        raise unauthorized(AuthErrorCode.ACCESS_TOKEN_INVALID, "Invalid authorization type.")
    token = value[len(BEARER_PREFIX):].strip()
    if not token:
        raise unauthorized(AuthErrorCode.ACCESS_TOKEN_INVALID, "Missing access token.")
    return token


def _me_from_profile(profile: WalletProfile) -> MeResponse:
    return MeResponse(
        wallet_sub=profile.wallet_sub,
        providers=[
            ProviderBindingView(
                provider=binding.provider,
                provider_user_id=binding.provider_user_id,
                provider_sub=binding.provider_sub,
                added_at=binding.added_at,
            )
            for binding in profile.sorted_providers()
        ],
    )


def _sync_response(profile: WalletProfile) -> SyncPayloadResponse:
    return SyncPayloadResponse.model_validate(
        {
            "favorites": profile.favorites.model_dump(),
            "history": profile.history.model_dump(),
        }
    )


class AuthOrchestrator:
    """Drives every auth flow over the store, risk gate, verifiers and tokens."""

    def __init__(
        self,
        settings: AppSettings,
        store: IdentityStore,
        risk: RiskGate,
        tokens: TokenService,
        x_provider: XIdentityProvider,
        telegram: IdentityProvider,
        merger: ProfileSyncMerger,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self._settings = settings
        self._auth = settings.auth
        self._store = store
        self._risk = risk
        self._tokens = tokens
        self._x = x_provider
        self._telegram = telegram
        self._merger = merger
        self._clock = clock

    # Feature switches and validation

    def _ensure_enabled(self) -> None:
        if not self._auth.enabled:
            raise feature_disabled("Auth is disabled.")

    def _ensure_x_ready(self) -> None:
        self._ensure_enabled()
        if not self._auth.x_enabled:
            raise feature_disabled("X login is disabled.")
        if not self._settings.x_oauth.is_configured():
            raise provider_unavailable("X OAuth is not configured.")

    def _validate_app_redirect(self, app_redirect_uri: Optional[str]) -> None:
        if is_blank(app_redirect_uri):
            return
        if not is_allowed_redirect(app_redirect_uri, self._auth.app_redirect_allowlist):
            raise bad_request("appRedirectUri is not allowed.")

    def _wallet_sub_from(self, authorization: Optional[str]) -> str:
        token = extract_bearer_token(authorization)
        return self._tokens.verify_access_token(token).wallet_sub

    # Login: X

    async def start_x_login(self, app_redirect_uri: Optional[str] = None) -> XStartResponse:
        self._ensure_x_ready()
        self._validate_app_redirect(app_redirect_uri)

        ttl = self._auth.oauth_state_ttl_seconds
        state = random_base64url(24)
        code_verifier = random_base64url(48)
        now = self._clock()
        await self._store.put_oauth_state(
            OAuthStateRecord(
                state=state,
                provider=PROVIDER_X,
                code_verifier=code_verifier,
                app_redirect_uri=blank_to_none(app_redirect_uri),
                created_at=now,
                expires_at=now + ttl * 1000,
            ),
            ttl,
        )
        authorize_url = self._x.authorize_url(state, sha256_base64url(code_verifier))
        return XStartResponse(authorize_url=authorize_url, state=state, expires_in_seconds=ttl)

    async def handle_x_callback(
        self,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
        error_description: Optional[str] = None,
        ip: Optional[str] = None,
        device_id: Optional[str] = None,
    ) -> XCallbackResult:
        self._ensure_x_ready()
        self._risk.check_ip_allowed(ip)
        await self._risk.check_login_rate_limit(ip, device_id)

        record = await self._store.consume_oauth_state(
            state, self._auth.oauth_state_ttl_seconds
        )
        if record is None:
            raise unauthorized(AuthErrorCode.OAUTH_STATE_INVALID, "OAuth state is invalid.")
        if record.expires_at < self._clock():
            raise unauthorized(AuthErrorCode.OAUTH_STATE_EXPIRED, "OAuth state expired.")
        if not is_blank(error):
            logger.info("X login failed reason=oauth_error error=%s", error)
            raise AuthError(
                AuthErrorCode.OAUTH_EXCHANGE_FAILED,
                f"X authorization failed: {error_description or error}",
                HTTPStatus.BAD_REQUEST,
            )
        if code is None or not code.strip():
            logger.info("X login failed reason=missing_code")
            raise AuthError(
                AuthErrorCode.OAUTH_EXCHANGE_FAILED,
                "X authorization code is missing.",
                HTTPStatus.BAD_REQUEST,
            )

        provider_user_id = await self._x.verify(
            XAuthorizationProof(code=code.strip(), code_verifier=record.code_verifier)
        )
        sub = make_provider_sub(PROVIDER_X, provider_user_id)
        self._risk.check_provider_allowed(sub)

        payload = await self._issue_auth_code(PROVIDER_X, provider_user_id, sub)
        logger.info("Login succeeded provider=%s", PROVIDER_X)
        return XCallbackResult(payload=payload, app_redirect_uri=record.app_redirect_uri)

    # Login: Telegram

    async def telegram_login(
        self,
        request: TelegramLoginRequest,
        ip: Optional[str] = None,
        device_id: Optional[str] = None,
    ) -> AuthCodeResponse:
        self._ensure_enabled()
        if not self._auth.tg_enabled:
            raise feature_disabled("Telegram login is disabled.")
        self._risk.check_ip_allowed(ip)
        await self._risk.check_login_rate_limit(ip, device_id)
        self._validate_app_redirect(request.app_redirect_uri)

        provider_user_id = await self._telegram.verify(request)
        sub = make_provider_sub(PROVIDER_TELEGRAM, provider_user_id)
        self._risk.check_provider_allowed(sub)
        if self._settings.telegram.replay_guard_enabled:
            fresh = await self._store.remember_jti(
                "tg:" + sha256_hex(request.hash.strip().lower()),
                self._settings.telegram.auth_max_age_seconds,
            )
            if not fresh:
                logger.warning("Replayed Telegram login payload rejected")
                raise unauthorized(
                    AuthErrorCode.TELEGRAM_VERIFY_FAILED, "Telegram payload already used."
                )

        payload = await self._issue_auth_code(PROVIDER_TELEGRAM, provider_user_id, sub)
        logger.info("Login succeeded provider=%s", PROVIDER_TELEGRAM)
        return payload

    async def _issue_auth_code(
        self, provider: str, provider_user_id: str, provider_sub: str
    ) -> AuthCodeResponse:
        ttl = self._auth.one_time_code_ttl_seconds
        now = self._clock()
        record = AuthCodeRecord(
            code=random_base64url(24),
            provider=provider,
            provider_user_id=provider_user_id,
            provider_sub=provider_sub,
            created_at=now,
            expires_at=now + ttl * 1000,
        )
        await self._store.put_auth_code(record, ttl)
        return AuthCodeResponse(
            provider=provider,
            provider_user_id=provider_user_id,
            provider_sub=provider_sub,
            code=record.code,
            expires_in_seconds=ttl,
        )

    async def _consume_valid_auth_code(self, code: str) -> AuthCodeRecord:
        """Claim ``code`` exactly once; concurrent callers lose with AUTH_CODE_USED."""
        now = self._clock()
        record = await self._store.get_auth_code(code)
        if record is None:
            raise unauthorized(AuthErrorCode.AUTH_CODE_INVALID, "Invalid auth code.")
        self._risk.check_provider_allowed(record.provider_sub)

        claim_ttl = max(1, math.ceil((record.expires_at - now) / 1000))
        if not await self._store.mark_auth_code_used_once(record.code, claim_ttl):
            raise unauthorized(AuthErrorCode.AUTH_CODE_USED, "Auth code already used.")
        # Second guard for stores that are not perfectly linearizable.
        if record.used_at is not None:
            raise unauthorized(AuthErrorCode.AUTH_CODE_USED, "Auth code already used.")
        if record.expires_at < now:
            raise unauthorized(AuthErrorCode.AUTH_CODE_EXPIRED, "Auth code expired.")

        used = record.model_copy(update={"used_at": now})
        await self._store.update_auth_code(used)
        return used

    async def _get_or_create_wallet(self, wallet_sub: str) -> WalletProfile:
        profile = await self._store.get_wallet_profile(wallet_sub)
        if profile is None:
            return WalletProfile.create(wallet_sub, self._clock())
        return profile

    def _binding_for(self, record: AuthCodeRecord) -> ProviderBinding:
        return ProviderBinding(
            provider=record.provider,
            provider_user_id=record.provider_user_id,
            provider_sub=record.provider_sub,
            added_at=self._clock(),
        )

    async def _resolve_or_create_wallet(self, record: AuthCodeRecord) -> str:
        sub = record.provider_sub
        wallet_sub = await self._store.get_wallet_sub_by_provider_sub(sub)
        if wallet_sub is None:
            proposed = new_wallet_sub()
            if await self._store.bind_provider_sub_if_absent(sub, proposed):
                wallet_sub = proposed
                logger.info("Created wallet for provider=%s", record.provider)
            else:
                # Lost the first-login race; adopt the winner's wallet.
                wallet_sub = await self._store.get_wallet_sub_by_provider_sub(sub) or proposed

        profile = await self._get_or_create_wallet(wallet_sub)
        if sub not in profile.providers:
            await self._store.put_wallet_profile(profile.with_binding(self._binding_for(record)))
            await self._store.bind_provider_sub_force(sub, wallet_sub)
        elif await self._store.get_wallet_sub_by_provider_sub(sub) is None:
            await self._store.bind_provider_sub_force(sub, wallet_sub)
        return wallet_sub

    # Sessions

    async def exchange(self, request: ExchangeRequest) -> ExchangeResponse:
        self._ensure_enabled()
        record = await self._consume_valid_auth_code(request.code.strip())
        wallet_sub = await self._resolve_or_create_wallet(record)

        web3auth_jwt = self._tokens.issue_provider_assertion(
            record.provider_sub, request.nonce, self._auth.web3auth_jwt_ttl_seconds
        )
        access_token = self._tokens.issue_access_token(
            wallet_sub, self._auth.access_token_ttl_seconds
        )
        refresh_token = await self._mint_refresh_token(wallet_sub, replaces_id=None)
        logger.info("Exchanged auth code provider=%s", record.provider)
        return ExchangeResponse(
            wallet_sub=wallet_sub,
            provider=record.provider,
            provider_user_id=record.provider_user_id,
            provider_sub=record.provider_sub,
            web3auth_jwt=web3auth_jwt,
            access_token=access_token,
            refresh_token=refresh_token,
            access_token_expires_in_seconds=self._auth.access_token_ttl_seconds,
            refresh_token_expires_in_seconds=self._auth.refresh_token_ttl_seconds,
        )

    async def _mint_refresh_token(self, wallet_sub: str, replaces_id: Optional[str]) -> str:
        ttl = self._auth.refresh_token_ttl_seconds
        token = random_base64url(48)
        now = self._clock()
        await self._store.put_refresh_token(
            RefreshTokenRecord(
                id=str(uuid.uuid4()),
                wallet_sub=wallet_sub,
                token_hash=sha256_hex(token),
                created_at=now,
                expires_at=now + ttl * 1000,
                replaces_id=replaces_id,
            ),
            ttl,
        )
        return token

    async def refresh(self, request: RefreshRequest) -> RefreshResponse:
        self._ensure_enabled()
        token_hash = sha256_hex(request.refresh_token.strip())
        record = await self._store.get_refresh_token_by_hash(token_hash)
        if record is None:
            raise unauthorized(AuthErrorCode.REFRESH_TOKEN_INVALID, "Invalid refresh token.")
        if record.revoked_at is not None or record.expires_at < self._clock():
            await self._store.delete_refresh_token_by_hash(record.token_hash)
            raise unauthorized(AuthErrorCode.REFRESH_TOKEN_INVALID, "Refresh token expired.")

        access_token = self._tokens.issue_access_token(
            record.wallet_sub, self._auth.access_token_ttl_seconds
        )
        # The new hash is stored before the old one is removed.
        new_token = await self._mint_refresh_token(record.wallet_sub, replaces_id=record.id)
        await self._store.delete_refresh_token_by_hash(token_hash)
        return RefreshResponse(
            access_token=access_token,
            refresh_token=new_token,
            access_token_expires_in_seconds=self._auth.access_token_ttl_seconds,
            refresh_token_expires_in_seconds=self._auth.refresh_token_ttl_seconds,
        )

    # Account

    async def me(self, authorization: Optional[str]) -> MeResponse:
        self._ensure_enabled()
        wallet_sub = self._wallet_sub_from(authorization)
        return _me_from_profile(await self._get_or_create_wallet(wallet_sub))

    async def bind_provider(
        self, authorization: Optional[str], request: BindRequest
    ) -> MeResponse:
        self._ensure_enabled()
        if not self._auth.bind_enabled:
            raise feature_disabled("Provider binding is disabled.")
        wallet_sub = self._wallet_sub_from(authorization)
        await self._risk.check_bind_rate_limit(wallet_sub)

        record = await self._consume_valid_auth_code(request.auth_code.strip())
        sub = record.provider_sub
        owner = await self._store.get_wallet_sub_by_provider_sub(sub)
        if owner is None:
            # The pointer is claimed before the profile is touched.
            if await self._store.bind_provider_sub_if_absent(sub, wallet_sub):
                owner = wallet_sub
            else:
                owner = await self._store.get_wallet_sub_by_provider_sub(sub)
        if owner != wallet_sub:
            logger.info("Bind failed reason=conflict provider=%s", record.provider)
            raise AuthError(
                AuthErrorCode.BIND_CONFLICT,
                "Provider is already bound to another account.",
                HTTPStatus.CONFLICT,
            )

        profile = await self._get_or_create_wallet(wallet_sub)
        if sub not in profile.providers:
            profile = profile.with_binding(self._binding_for(record))
            await self._store.put_wallet_profile(profile)
        logger.info("Bind succeeded provider=%s", record.provider)
        return _me_from_profile(profile)

    async def unbind_provider(
        self, authorization: Optional[str], request: UnbindRequest
    ) -> MeResponse:
        self._ensure_enabled()
        if not self._auth.bind_enabled:
            raise feature_disabled("Provider binding is disabled.")
        wallet_sub = self._wallet_sub_from(authorization)
        profile = await self._get_or_create_wallet(wallet_sub)

        sub = request.provider_sub.strip()
        if sub not in profile.providers:
            raise bad_request("Provider is not bound to this account.")
        if len(profile.providers) <= 1:
            logger.info("Unbind failed reason=last_provider")
            raise AuthError(
                AuthErrorCode.UNBIND_LAST_PROVIDER,
                "Cannot unbind the last provider.",
                HTTPStatus.BAD_REQUEST,
            )

        updated = profile.without_binding(sub)
        await self._store.put_wallet_profile(updated)
        await self._store.unbind_provider_sub(sub)
        logger.info("Unbind succeeded")
        return _me_from_profile(updated)

    # Sync

    def _ensure_sync_enabled(self) -> None:
        self._ensure_enabled()
        if not self._auth.sync_enabled:
            raise feature_disabled("Sync is disabled.")

    async def get_sync(self, authorization: Optional[str]) -> SyncPayloadResponse:
        self._ensure_sync_enabled()
        wallet_sub = self._wallet_sub_from(authorization)
        return _sync_response(await self._get_or_create_wallet(wallet_sub))

    async def upsert_sync(
        self, authorization: Optional[str], payload: SyncPayloadInput
    ) -> SyncPayloadResponse:
        self._ensure_sync_enabled()
        wallet_sub = self._wallet_sub_from(authorization)
        try:
            profile = await self._get_or_create_wallet(wallet_sub)
            updated = profile.model_copy(
                update={
                    "favorites": self._merger.merge_favorites(
                        profile.favorites, payload.favorites, payload.favorites_updated_at
                    ),
                    "history": self._merger.merge_history(
                        profile.history, payload.history, payload.history_updated_at
                    ),
                }
            )
            await self._store.put_wallet_profile(updated)
        except AuthError as exc:
            logger.warning("Sync failed code=%s", exc.code.value)
            raise
        except (ValueError, TypeError) as exc:
            logger.warning("Sync failed code=unknown: %s", exc)
            raise AuthError(
                AuthErrorCode.SYNC_PAYLOAD_INVALID, "Sync payload is invalid.", HTTPStatus.BAD_REQUEST
            ) from exc
        return _sync_response(updated)

    # Publication helpers

    def jwks(self) -> dict:
        return self._tokens.public_jwks()

    def callback_redirect_url(self, app_redirect_uri: str, payload: AuthCodeResponse) -> str:
        return callback_redirect_url(
            app_redirect_uri,
            {
                "provider": payload.provider,
                "providerUserId": payload.provider_user_id,
                "providerSub": payload.provider_sub,
                "authCode": payload.code,
            },
        )

    def is_allowed_app_redirect(self, app_redirect_uri: Optional[str]) -> bool:
        return is_allowed_redirect(app_redirect_uri, self._auth.app_redirect_allowlist)


__all__ = ["AuthOrchestrator", "XCallbackResult", "extract_bearer_token", "new_wallet_sub"]
