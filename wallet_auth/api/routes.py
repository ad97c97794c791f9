"""
FastAPI routes for the wallet auth service.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from wallet_auth.dependencies import get_auth_orchestrator
from wallet_auth.schemas import (
    AuthCodeResponse,
    BindRequest,
    ExchangeRequest,
    ExchangeResponse,
    MeResponse,
    RefreshRequest,
    RefreshResponse,
    SyncPayloadInput,
    SyncPayloadResponse,
    TelegramLoginRequest,
    UnbindRequest,
    XStartResponse,
)
from wallet_auth.services import AuthOrchestrator
from wallet_auth.utils.auth import client_ip

router = APIRouter()
well_known_router = APIRouter()
logger = logging.getLogger(__name__)

Orchestrator = Annotated[AuthOrchestrator, Depends(get_auth_orchestrator)]
DeviceIdHeader = Annotated[Optional[str], Header(alias="X-Device-Id")]
AuthorizationHeader = Annotated[Optional[str], Header(alias="Authorization")]


def _request_ip(request: Request) -> str:
    return client_ip(
        request.headers.get("x-forwarded-for"),
        request.headers.get("x-real-ip"),
        request.client.host if request.client else None,
    )


@well_known_router.get("/.well-known/jwks.json", status_code=HTTPStatus.OK)
async def jwks(orchestrator: Orchestrator) -> dict:
    """Public keys for verifying provider assertions."""
    return orchestrator.jwks()


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/x/start", response_model=XStartResponse)
async def start_x_login(
    orchestrator: Orchestrator,
    app_redirect_uri: Optional[str] = Query(
        default=None,
        alias="appRedirectUri",
        description="App deep link to receive the auth code after the callback.",
    ),
) -> XStartResponse:
    """Issue OAuth state plus PKCE challenge and return the X consent URL."""
    return await orchestrator.start_x_login(app_redirect_uri)


@router.get("/auth/x/callback", response_model=None)
async def handle_x_callback(
    request: Request,
    orchestrator: Orchestrator,
    device_id: DeviceIdHeader = None,
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    error_description: Optional[str] = Query(default=None),
) -> Response:
    """
    Complete the X login and hand out a one-time auth code.

    Redirects to the app when it supplied an allowed redirect URI at start,
    otherwise returns the code as JSON.
    """
    result = await orchestrator.handle_x_callback(
        code=code,
        state=state,
        error=error,
        error_description=error_description,
        ip=_request_ip(request),
        device_id=device_id,
    )
    if result.app_redirect_uri and orchestrator.is_allowed_app_redirect(result.app_redirect_uri):
        return RedirectResponse(
            url=orchestrator.callback_redirect_url(result.app_redirect_uri, result.payload),
            status_code=HTTPStatus.FOUND,
        )
    return JSONResponse(content=result.payload.model_dump(by_alias=True))


@router.post("/auth/tg/login", response_model=AuthCodeResponse)
async def telegram_login(
    payload: TelegramLoginRequest,
    request: Request,
    orchestrator: Orchestrator,
    device_id: DeviceIdHeader = None,
) -> AuthCodeResponse:
    """Verify a Telegram Login Widget payload and hand out a one-time auth code."""
    return await orchestrator.telegram_login(payload, ip=_request_ip(request), device_id=device_id)


@router.post("/auth/exchange", response_model=ExchangeResponse)
async def exchange(payload: ExchangeRequest, orchestrator: Orchestrator) -> ExchangeResponse:
    """Redeem a one-time auth code for a wallet session."""
    return await orchestrator.exchange(payload)


@router.post("/auth/refresh", response_model=RefreshResponse)
async def refresh(payload: RefreshRequest, orchestrator: Orchestrator) -> RefreshResponse:
    return await orchestrator.refresh(payload)


@router.get("/auth/me", response_model=MeResponse)
async def me(orchestrator: Orchestrator, authorization: AuthorizationHeader = None) -> MeResponse:
    return await orchestrator.me(authorization)


@router.post("/auth/providers/bind", response_model=MeResponse)
async def bind_provider(
    payload: BindRequest,
    orchestrator: Orchestrator,
    authorization: AuthorizationHeader = None,
) -> MeResponse:
    """Attach the identity behind a fresh auth code to the caller's wallet."""
    return await orchestrator.bind_provider(authorization, payload)


@router.post("/auth/providers/unbind", response_model=MeResponse)
async def unbind_provider(
    payload: UnbindRequest,
    orchestrator: Orchestrator,
    authorization: AuthorizationHeader = None,
) -> MeResponse:
    return await orchestrator.unbind_provider(authorization, payload)


@router.get("/auth/sync/dapps", response_model=SyncPayloadResponse)
async def get_sync(
    orchestrator: Orchestrator, authorization: AuthorizationHeader = None
) -> SyncPayloadResponse:
    return await orchestrator.get_sync(authorization)


@router.post("/auth/sync/dapps", response_model=SyncPayloadResponse)
async def upsert_sync(
    payload: SyncPayloadInput,
    orchestrator: Orchestrator,
    authorization: AuthorizationHeader = None,
) -> SyncPayloadResponse:
    """Merge client favorites/history into the stored lists."""
    return await orchestrator.upsert_sync(authorization, payload)


__all__ = ["router", "well_known_router"]
