try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import base64
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from wallet_auth.clients.x_oauth import XOAuthClient
from wallet_auth.core.config import XOAuthSettings
from wallet_auth.core.errors import AuthError, AuthErrorCode


def _settings(**overrides) -> XOAuthSettings:
    return XOAuthSettings().model_copy(
        update={
            "client_id": "client-123",
            "client_secret": "",
            "redirect_uri": "https://auth.example.com/api/v1/auth/x/callback",
            **overrides,
        }
    )


def _client(handler, **overrides) -> XOAuthClient:
    return XOAuthClient(_settings(**overrides), transport=httpx.MockTransport(handler))


def test_authorize_url_contains_pkce_parameters():
    client = XOAuthClient(_settings())

    url = client.build_authorize_url("state-1", "challenge-1")

    parts = urlsplit(url)
    query = parse_qs(parts.query)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "https://twitter.com/i/oauth2/authorize"
    assert query == {
        "response_type": ["code"],
        "client_id": ["client-123"],
        "redirect_uri": ["https://auth.example.com/api/v1/auth/x/callback"],
        "scope": ["tweet.read users.read offline.access"],
        "state": ["state-1"],
        "code_challenge": ["challenge-1"],
        "code_challenge_method": ["S256"],
    }


def test_scopes_accept_space_separated_strings():
    settings = XOAuthSettings.model_validate({"AUTH_X_SCOPES": "users.read tweet.read"})

    assert settings.scopes == ("users.read", "tweet.read")


@pytest.mark.anyio
async def test_exchange_posts_form_with_basic_auth_when_secret_is_set():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"access_token": "tok", "token_type": "bearer"})

    client = _client(handler, client_secret="shh")

    assert await client.exchange_code_for_access_token("code-1", "verifier-1") == "tok"

    request = seen[0]
    form = parse_qs(request.content.decode())
    assert request.method == "POST"
    assert form["grant_type"] == ["authorization_code"]
    assert form["code_verifier"] == ["verifier-1"]
    expected = base64.b64encode(b"client-123:shh").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"


@pytest.mark.anyio
async def test_exchange_without_secret_sends_no_basic_auth():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"access_token": "tok"})

    await _client(handler).exchange_code_for_access_token("code-1", "verifier-1")

    assert "Authorization" not in seen[0].headers


@pytest.mark.anyio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(400, json={"error": "invalid_grant"}),
        httpx.Response(200, json={"token_type": "bearer"}),
        httpx.Response(200, content=b"not json"),
    ],
)
async def test_exchange_failures_map_to_exchange_failed(response):
    client = _client(lambda request: response)

    with pytest.raises(AuthError) as exc_info:
        await client.exchange_code_for_access_token("code-1", "verifier-1")

    assert exc_info.value.code is AuthErrorCode.OAUTH_EXCHANGE_FAILED
    assert exc_info.value.status_code == 502


@pytest.mark.anyio
async def test_exchange_transport_error_maps_to_exchange_failed():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(AuthError) as exc_info:
        await _client(handler).exchange_code_for_access_token("code-1", "verifier-1")

    assert exc_info.value.code is AuthErrorCode.OAUTH_EXCHANGE_FAILED


@pytest.mark.anyio
async def test_fetch_user_id_sends_bearer_token():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": {"id": 98765, "username": "someone"}})

    assert await _client(handler).fetch_user_id("tok") == "98765"
    assert seen[0].headers["Authorization"] == "Bearer tok"


@pytest.mark.anyio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, json={"title": "Unauthorized"}),
        httpx.Response(200, json={"data": {}}),
        httpx.Response(200, json={"errors": []}),
    ],
)
async def test_userinfo_failures_map_to_provider_unavailable(response):
    client = _client(lambda request: response)

    with pytest.raises(AuthError) as exc_info:
        await client.fetch_user_id("tok")

    assert exc_info.value.code is AuthErrorCode.PROVIDER_UNAVAILABLE
    assert exc_info.value.status_code == 503
