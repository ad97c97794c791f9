"""Telegram Login Widget payload verification."""

from __future__ import annotations

import hashlib
import hmac
import time
from http import HTTPStatus
from typing import Callable, Mapping, Optional

from wallet_auth.core.config import TelegramSettings
from wallet_auth.core.errors import AuthError, AuthErrorCode, provider_unavailable
from wallet_auth.schemas.auth import TelegramLoginRequest

from .identity_providers import PROVIDER_TELEGRAM

_DATA_CHECK_FIELDS = ("auth_date", "id", "first_name", "last_name", "username", "photo_url")


def build_data_check_string(fields: Mapping[str, Optional[str]]) -> str:
    """Sorted ``key=value`` lines for every non-blank widget field."""
    pairs = [
        f"{name}={fields[name]}"
        for name in _DATA_CHECK_FIELDS
        if fields.get(name) is not None and str(fields[name]).strip()
    ]
    return "\n".join(sorted(pairs))


def compute_widget_hash(bot_token: str, data_check_string: str) -> str:
    secret = hashlib.sha256(bot_token.encode("utf-8")).digest()
    return hmac.new(secret, data_check_string.encode("utf-8"), hashlib.sha256).hexdigest()


def _verify_failed(message: str, status_code: int = HTTPStatus.UNAUTHORIZED) -> AuthError:
    return AuthError(AuthErrorCode.TELEGRAM_VERIFY_FAILED, message, status_code)


class TelegramVerifier:
    """Authenticate widget payloads signed with the bot token."""

    provider = PROVIDER_TELEGRAM

    def __init__(
        self, settings: TelegramSettings, clock: Callable[[], float] = time.time
    ) -> None:
        self._settings = settings
        self._clock = clock

    def verify_and_get_user_id(self, payload: TelegramLoginRequest) -> str:
        bot_token = self._settings.bot_token.strip()
        if not bot_token:
            raise provider_unavailable("Telegram login is not configured.")

        try:
            auth_date = int(payload.auth_date.strip())
        except ValueError as exc:
            raise _verify_failed("Telegram auth_date is invalid.", HTTPStatus.BAD_REQUEST) from exc

        max_age = max(1, self._settings.auth_max_age_seconds)
        if abs(int(self._clock()) - auth_date) > max_age:
            raise _verify_failed("Telegram auth payload expired.")

        expected = compute_widget_hash(
            bot_token, build_data_check_string(payload.data_check_fields())
        )
        provided = payload.hash.strip().lower()
        if not hmac.compare_digest(expected.encode("ascii"), provided.encode("utf-8")):
            raise _verify_failed("Telegram signature mismatch.")

        return payload.id.strip()

    async def verify(self, proof: TelegramLoginRequest) -> str:
        return self.verify_and_get_user_id(proof)


__all__ = ["TelegramVerifier", "build_data_check_string", "compute_widget_hash"]
