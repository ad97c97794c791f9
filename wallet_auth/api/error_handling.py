"""Translate auth failures into the JSON error envelope."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from wallet_auth.core.errors import AuthError, AuthErrorCode

logger = logging.getLogger(__name__)

SYNC_PATH_SUFFIX = "/auth/sync/dapps"


def error_response(
    status_code: int,
    code: AuthErrorCode,
    message: str,
    *,
    retry_after_seconds: Optional[int] = None,
    details: Optional[dict[str, Any]] = None,
) -> JSONResponse:
    body = {
        "ok": False,
        "code": code.value,
        "message": message,
        "retryAfterSeconds": retry_after_seconds,
        "details": details or {},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    headers = None
    if retry_after_seconds is not None and retry_after_seconds > 0:
        headers = {"Retry-After": str(retry_after_seconds)}
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers for auth failures, validation errors and crashes."""

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn(
            "Auth error %s on %s %s: %s",
            exc.code.value,
            request.method,
            request.url.path,
            exc.message,
        )
        return error_response(
            exc.status_code,
            exc.code,
            exc.message,
            retry_after_seconds=exc.retry_after_seconds,
            details=exc.details,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        code = (
            AuthErrorCode.SYNC_PAYLOAD_INVALID
            if request.url.path.endswith(SYNC_PATH_SUFFIX)
            else AuthErrorCode.BAD_REQUEST
        )
        fields = [".".join(str(part) for part in error.get("loc", ())) for error in exc.errors()]
        logger.warning("Rejected request to %s: invalid %s", request.url.path, fields)
        return error_response(
            HTTPStatus.BAD_REQUEST,
            code,
            "Request validation failed.",
            details={"fields": fields},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
        )
        return error_response(
            HTTPStatus.INTERNAL_SERVER_ERROR,
            AuthErrorCode.INTERNAL_ERROR,
            "Internal server error.",
        )


__all__ = ["error_response", "register_exception_handlers"]
