try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

try:
    from ._factories import BOT_TOKEN, signed_telegram_payload
except Exception:  # pragma: no cover
    from _factories import BOT_TOKEN, signed_telegram_payload  # type: ignore

import pytest

from wallet_auth.core.config import TelegramSettings
from wallet_auth.core.errors import AuthError, AuthErrorCode
from wallet_auth.schemas import TelegramLoginRequest
from wallet_auth.services.telegram_verifier import (
    TelegramVerifier,
    build_data_check_string,
    compute_widget_hash,
)

NOW = 1_700_000_000


def _verifier(**overrides) -> TelegramVerifier:
    settings = TelegramSettings().model_copy(
        update={"bot_token": BOT_TOKEN, "auth_max_age_seconds": 600, **overrides}
    )
    return TelegramVerifier(settings, clock=lambda: NOW)


def _request(**fields) -> TelegramLoginRequest:
    return TelegramLoginRequest.model_validate(fields)


def test_data_check_string_sorts_and_skips_blank_fields():
    result = build_data_check_string(
        {"username": "ada", "id": "7", "auth_date": "100", "last_name": "  ", "photo_url": None}
    )

    assert result == "auth_date=100\nid=7\nusername=ada"


def test_valid_payload_returns_user_id():
    payload = signed_telegram_payload(user_id="777", auth_date=NOW - 30)

    assert _verifier().verify_and_get_user_id(_request(**payload)) == "777"


def test_widget_numbers_are_accepted():
    payload = signed_telegram_payload(user_id="777", auth_date=NOW)
    payload["id"] = 777
    payload["auth_date"] = NOW

    assert _verifier().verify_and_get_user_id(_request(**payload)) == "777"


def test_hash_comparison_ignores_case():
    payload = signed_telegram_payload(auth_date=NOW)
    payload["hash"] = payload["hash"].upper()

    assert _verifier().verify_and_get_user_id(_request(**payload)) == "777"


def test_tampered_hash_is_rejected():
    payload = signed_telegram_payload(auth_date=NOW)
    last = payload["hash"][-1]
    payload["hash"] = payload["hash"][:-1] + ("0" if last != "0" else "1")

    with pytest.raises(AuthError) as exc_info:
        _verifier().verify_and_get_user_id(_request(**payload))

    assert exc_info.value.code is AuthErrorCode.TELEGRAM_VERIFY_FAILED
    assert exc_info.value.status_code == 401


def test_tampered_field_is_rejected():
    payload = signed_telegram_payload(auth_date=NOW)
    payload["username"] = "mallory"

    with pytest.raises(AuthError) as exc_info:
        _verifier().verify_and_get_user_id(_request(**payload))

    assert exc_info.value.code is AuthErrorCode.TELEGRAM_VERIFY_FAILED


def test_stale_payload_is_rejected():
    payload = signed_telegram_payload(auth_date=NOW - 700)

    with pytest.raises(AuthError) as exc_info:
        _verifier().verify_and_get_user_id(_request(**payload))

    assert exc_info.value.code is AuthErrorCode.TELEGRAM_VERIFY_FAILED
    assert exc_info.value.status_code == 401


def test_unparsable_auth_date_is_a_bad_request():
    payload = signed_telegram_payload(auth_date=NOW)
    payload["auth_date"] = "yesterday"

    with pytest.raises(AuthError) as exc_info:
        _verifier().verify_and_get_user_id(_request(**payload))

    assert exc_info.value.code is AuthErrorCode.TELEGRAM_VERIFY_FAILED
    assert exc_info.value.status_code == 400


def test_missing_bot_token_means_provider_unavailable():
    payload = signed_telegram_payload(auth_date=NOW)

    with pytest.raises(AuthError) as exc_info:
        _verifier(bot_token="  ").verify_and_get_user_id(_request(**payload))

    assert exc_info.value.code is AuthErrorCode.PROVIDER_UNAVAILABLE
    assert exc_info.value.status_code == 503


def test_payload_signed_with_other_bot_is_rejected():
    payload = signed_telegram_payload("999:other-bot", auth_date=NOW)

    with pytest.raises(AuthError):
        _verifier().verify_and_get_user_id(_request(**payload))


def test_compute_widget_hash_matches_independent_signature():
    payload = signed_telegram_payload(auth_date=NOW)
    fields = {key: value for key, value in payload.items() if key != "hash"}

    assert compute_widget_hash(BOT_TOKEN, build_data_check_string(fields)) == payload["hash"]


@pytest.mark.anyio
async def test_async_verify_delegates():
    payload = signed_telegram_payload(user_id="12", auth_date=NOW)

    assert await _verifier().verify(_request(**payload)) == "12"
