"""
Typed failures raised by the auth core.

Each failure carries a stable machine-readable code, the HTTP status it maps
to, and optionally a retry hint and a details mapping. Translation into an
HTTP response happens only in ``wallet_auth.api.error_handling``.
"""

from __future__ import annotations

from enum import Enum
from http import HTTPStatus
from typing import Any, Optional


class AuthErrorCode(str, Enum):
    FEATURE_DISABLED = "FEATURE_DISABLED"
    BAD_REQUEST = "BAD_REQUEST"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMITED = "RATE_LIMITED"
    OAUTH_STATE_INVALID = "OAUTH_STATE_INVALID"
    OAUTH_STATE_EXPIRED = "OAUTH_STATE_EXPIRED"
    OAUTH_EXCHANGE_FAILED = "OAUTH_EXCHANGE_FAILED"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    TELEGRAM_VERIFY_FAILED = "TELEGRAM_VERIFY_FAILED"
    AUTH_CODE_INVALID = "AUTH_CODE_INVALID"
    AUTH_CODE_EXPIRED = "AUTH_CODE_EXPIRED"
    AUTH_CODE_USED = "AUTH_CODE_USED"
    ACCESS_TOKEN_INVALID = "ACCESS_TOKEN_INVALID"
    ACCESS_TOKEN_EXPIRED = "ACCESS_TOKEN_EXPIRED"
    REFRESH_TOKEN_INVALID = "REFRESH_TOKEN_INVALID"
    BIND_CONFLICT = "BIND_CONFLICT"
    UNBIND_LAST_PROVIDER = "UNBIND_LAST_PROVIDER"
    SYNC_PAYLOAD_INVALID = "SYNC_PAYLOAD_INVALID"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AuthError(Exception):
    """Base class for auth failures mapped to HTTP responses."""

    def __init__(
        self,
        code: AuthErrorCode,
        message: str,
        status_code: int = HTTPStatus.BAD_REQUEST,
        *,
        retry_after_seconds: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = int(status_code)
        self.retry_after_seconds = retry_after_seconds
        self.details = details or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code.value!r}, status={self.status_code})"


class StoreUnavailable(AuthError):
    """Raised when the key-value store cannot be reached; safe to retry."""

    def __init__(self, message: str = "Key-value store is unavailable.") -> None:
        super().__init__(
            AuthErrorCode.STORE_UNAVAILABLE,
            message,
            HTTPStatus.SERVICE_UNAVAILABLE,
            retry_after_seconds=1,
        )


def feature_disabled(message: str) -> AuthError:
    return AuthError(AuthErrorCode.FEATURE_DISABLED, message, HTTPStatus.FORBIDDEN)


def bad_request(message: str) -> AuthError:
    return AuthError(AuthErrorCode.BAD_REQUEST, message, HTTPStatus.BAD_REQUEST)


def forbidden(message: str) -> AuthError:
    return AuthError(AuthErrorCode.FORBIDDEN, message, HTTPStatus.FORBIDDEN)


def unauthorized(code: AuthErrorCode, message: str) -> AuthError:
    return AuthError(code, message, HTTPStatus.UNAUTHORIZED)


def provider_unavailable(message: str) -> AuthError:
    return AuthError(
        AuthErrorCode.PROVIDER_UNAVAILABLE, message, HTTPStatus.SERVICE_UNAVAILABLE
    )


def rate_limited(message: str, retry_after_seconds: int, scope: str) -> AuthError:
    return AuthError(
        AuthErrorCode.RATE_LIMITED,
        message,
        HTTPStatus.TOO_MANY_REQUESTS,
        retry_after_seconds=retry_after_seconds,
        details={"scope": scope},
    )


__all__ = [
    "AuthError",
    "AuthErrorCode",
    "StoreUnavailable",
    "bad_request",
    "feature_disabled",
    "forbidden",
    "provider_unavailable",
    "rate_limited",
    "unauthorized",
]
