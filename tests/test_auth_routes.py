try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

try:
    from ._factories import ALLOWED_REDIRECT, build_harness, make_settings, signed_telegram_payload
except Exception:  # pragma: no cover
    from _factories import (  # type: ignore
        ALLOWED_REDIRECT,
        build_harness,
        make_settings,
        signed_telegram_payload,
    )

from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from wallet_auth.core.errors import StoreUnavailable
from wallet_auth.main import app


@pytest.fixture()
def harness(rsa_private_key):
    from wallet_auth import dependencies

    harness = build_harness(rsa_private_key)
    app.dependency_overrides[dependencies.get_auth_orchestrator] = lambda: harness.orchestrator

    yield harness

    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


async def _login(client: httpx.AsyncClient, user_id: str = "555") -> dict:
    response = await client.post("/api/v1/auth/tg/login", json=signed_telegram_payload(user_id=user_id))
    assert response.status_code == 200, response.text
    exchange = await client.post("/api/v1/auth/exchange", json={"code": response.json()["code"]})
    assert exchange.status_code == 200, exchange.text
    return exchange.json()


@pytest.mark.anyio
async def test_health_and_jwks(harness):
    async with _client() as client:
        health = await client.get("/api/v1/health")
        jwks = await client.get("/.well-known/jwks.json")

    assert health.json() == {"status": "ok"}
    assert jwks.status_code == 200
    assert jwks.json()["keys"][0]["kid"] == harness.settings.web3auth.key_id


@pytest.mark.anyio
async def test_x_start_and_callback_redirects_to_app(harness):
    async with _client() as client:
        start = await client.get("/api/v1/auth/x/start", params={"appRedirectUri": ALLOWED_REDIRECT})
        state = start.json()["state"]
        callback = await client.get(
            "/api/v1/auth/x/callback", params={"code": "x-code", "state": state}
        )

    assert start.status_code == 200
    assert start.json()["authorizeUrl"].startswith("https://twitter.com/i/oauth2/authorize?")
    assert start.json()["expiresInSeconds"] == 600
    assert callback.status_code == 302
    location = urlsplit(callback.headers["location"])
    assert f"{location.scheme}://{location.netloc}" == ALLOWED_REDIRECT
    query = parse_qs(location.query)
    assert query["provider"] == ["x"]
    assert query["providerSub"] == ["x:4242"]
    assert query["authCode"][0]


@pytest.mark.anyio
async def test_x_callback_without_redirect_returns_json(harness):
    async with _client() as client:
        start = await client.get("/api/v1/auth/x/start")
        callback = await client.get(
            "/api/v1/auth/x/callback",
            params={"code": "x-code", "state": start.json()["state"]},
            headers={"X-Forwarded-For": "203.0.113.9"},
        )

    assert callback.status_code == 200
    body = callback.json()
    assert body["providerUserId"] == "4242"
    assert body["expiresInSeconds"] == 60


@pytest.mark.anyio
async def test_login_exchange_me_refresh_flow(harness):
    async with _client() as client:
        session = await _login(client)
        me = await client.get(
            "/api/v1/auth/me", headers={"Authorization": f"Bearer {session['accessToken']}"}
        )
        refreshed = await client.post(
            "/api/v1/auth/refresh", json={"refreshToken": session["refreshToken"]}
        )
        replayed = await client.post(
            "/api/v1/auth/refresh", json={"refreshToken": session["refreshToken"]}
        )

    assert session["walletSub"].startswith("wallet_")
    assert session["providerSub"] == "tg:555"
    assert session["web3authJwt"].count(".") == 2
    assert me.json()["walletSub"] == session["walletSub"]
    assert me.json()["providers"][0]["providerSub"] == "tg:555"
    assert refreshed.status_code == 200
    assert refreshed.json()["refreshToken"] != session["refreshToken"]
    assert replayed.status_code == 401
    assert replayed.json()["code"] == "REFRESH_TOKEN_INVALID"


@pytest.mark.anyio
async def test_error_envelope_shape(harness):
    async with _client() as client:
        response = await client.post("/api/v1/auth/exchange", json={"code": "missing"})

    assert response.status_code == 401
    body = response.json()
    assert body["ok"] is False
    assert body["code"] == "AUTH_CODE_INVALID"
    assert body["message"]
    assert body["retryAfterSeconds"] is None
    assert body["details"] == {}
    assert body["timestamp"]
    assert "retry-after" not in response.headers


@pytest.mark.anyio
async def test_rate_limit_sets_retry_after(rsa_private_key):
    from wallet_auth import dependencies

    base = make_settings()
    settings = make_settings(risk=base.risk.model_copy(update={"login_ip_limit": 1}))
    harness = build_harness(rsa_private_key, settings=settings)
    app.dependency_overrides[dependencies.get_auth_orchestrator] = lambda: harness.orchestrator
    try:
        async with _client() as client:
            await client.post("/api/v1/auth/tg/login", json=signed_telegram_payload(user_id="1"))
            limited = await client.post(
                "/api/v1/auth/tg/login", json=signed_telegram_payload(user_id="2")
            )
    finally:
        app.dependency_overrides.clear()

    assert limited.status_code == 429
    body = limited.json()
    assert body["code"] == "RATE_LIMITED"
    assert body["details"] == {"scope": "login-ip"}
    assert int(limited.headers["retry-after"]) == body["retryAfterSeconds"] >= 1


@pytest.mark.anyio
async def test_validation_errors_use_envelope(harness):
    async with _client() as client:
        login = await client.post("/api/v1/auth/tg/login", json={"id": "1"})
        sync = await client.post(
            "/api/v1/auth/sync/dapps",
            json={"favorites": "not-a-list"},
            headers={"Authorization": "Bearer whatever"},
        )

    assert login.status_code == 400
    assert login.json()["code"] == "BAD_REQUEST"
    assert any("hash" in field for field in login.json()["details"]["fields"])
    assert sync.status_code == 400
    assert sync.json()["code"] == "SYNC_PAYLOAD_INVALID"


@pytest.mark.anyio
async def test_sync_endpoints(harness):
    async with _client() as client:
        session = await _login(client)
        headers = {"Authorization": f"Bearer {session['accessToken']}"}
        posted = await client.post(
            "/api/v1/auth/sync/dapps",
            json={
                "favorites": [{"url": "https://app.uniswap.org", "name": "Uniswap", "updatedAt": 5}],
                "history": [{"url": "https://opensea.io", "visitedAt": 3, "updatedAt": 4}],
            },
            headers=headers,
        )
        fetched = await client.get("/api/v1/auth/sync/dapps", headers=headers)

    assert posted.status_code == 200
    assert fetched.json() == posted.json()
    assert fetched.json()["favorites"]["items"][0]["iconUrl"] is None
    assert fetched.json()["history"]["items"][0]["visitedAt"] == 3


@pytest.mark.anyio
async def test_bind_and_unbind_routes(harness):
    async with _client() as client:
        session = await _login(client, "555")
        headers = {"Authorization": f"Bearer {session['accessToken']}"}
        other = await client.post(
            "/api/v1/auth/tg/login", json=signed_telegram_payload(user_id="556")
        )
        bound = await client.post(
            "/api/v1/auth/providers/bind",
            json={"authCode": other.json()["code"]},
            headers=headers,
        )
        unbound = await client.post(
            "/api/v1/auth/providers/unbind", json={"providerSub": "tg:556"}, headers=headers
        )
        last = await client.post(
            "/api/v1/auth/providers/unbind", json={"providerSub": "tg:555"}, headers=headers
        )

    assert [item["providerSub"] for item in bound.json()["providers"]] == ["tg:555", "tg:556"]
    assert [item["providerSub"] for item in unbound.json()["providers"]] == ["tg:555"]
    assert last.status_code == 400
    assert last.json()["code"] == "UNBIND_LAST_PROVIDER"


@pytest.mark.anyio
async def test_me_without_token(harness):
    async with _client() as client:
        response = await client.get("/api/v1/auth/me")

    assert response.status_code == 401
    assert response.json()["code"] == "ACCESS_TOKEN_INVALID"


@pytest.mark.anyio
async def test_store_outage_maps_to_503(harness, monkeypatch):
    async def broken_get(key):
        raise StoreUnavailable()

    monkeypatch.setattr(harness.kv, "get", broken_get)

    async with _client() as client:
        response = await client.post("/api/v1/auth/exchange", json={"code": "abc"})

    assert response.status_code == 503
    assert response.json()["code"] == "STORE_UNAVAILABLE"
    assert response.headers["retry-after"] == "1"


def test_routes_depend_on_the_orchestrator_type():
    from typing import get_args, get_type_hints

    from wallet_auth.api import routes
    from wallet_auth.services import AuthOrchestrator

    for endpoint in (routes.exchange, routes.refresh, routes.me):
        hints = get_type_hints(endpoint, include_extras=True)
        assert get_args(hints["orchestrator"])[0] is AuthOrchestrator
