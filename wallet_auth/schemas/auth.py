"""Request and response bodies for the auth endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accept and emit camelCase while keeping snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class XStartResponse(CamelModel):
    authorize_url: str = Field(..., description="X consent screen URL including PKCE challenge.")
    state: str = Field(..., description="Opaque single-use state token.")
    expires_in_seconds: int


class AuthCodeResponse(CamelModel):
    """One-time code handed back after a provider login succeeds."""

    provider: str
    provider_user_id: str
    provider_sub: str
    code: str
    expires_in_seconds: int


class TelegramLoginRequest(CamelModel):
    """Telegram Login Widget payload; snake_case keys from the widget are accepted."""

    id: str = Field(..., min_length=1)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    photo_url: Optional[str] = None
    auth_date: str = Field(..., min_length=1)
    hash: str = Field(..., min_length=1)
    app_redirect_uri: Optional[str] = None

    @field_validator("id", "auth_date", mode="before")
    @classmethod
    def _numbers_as_text(cls, value: object) -> object:
        # The widget sends both as JSON numbers.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    def data_check_fields(self) -> dict[str, Optional[str]]:
        return {
            "auth_date": self.auth_date,
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "username": self.username,
            "photo_url": self.photo_url,
        }


class ExchangeRequest(CamelModel):
    code: str = Field(..., min_length=1, description="One-time auth code.")
    nonce: Optional[str] = Field(
        None, description="Echoed into the provider assertion; generated when blank."
    )


class ExchangeResponse(CamelModel):
    wallet_sub: str
    provider: str
    provider_user_id: str
    provider_sub: str
    web3auth_jwt: str
    access_token: str
    refresh_token: str
    access_token_expires_in_seconds: int
    refresh_token_expires_in_seconds: int


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class RefreshResponse(CamelModel):
    access_token: str
    refresh_token: str
    access_token_expires_in_seconds: int
    refresh_token_expires_in_seconds: int


class ProviderBindingView(CamelModel):
    provider: str
    provider_user_id: str
    provider_sub: str
    added_at: int


class MeResponse(CamelModel):
    wallet_sub: str
    providers: list[ProviderBindingView]


class BindRequest(CamelModel):
    auth_code: str = Field(..., min_length=1)


class UnbindRequest(CamelModel):
    provider_sub: str = Field(..., min_length=1)


__all__ = [
    "AuthCodeResponse",
    "BindRequest",
    "CamelModel",
    "ExchangeRequest",
    "ExchangeResponse",
    "MeResponse",
    "ProviderBindingView",
    "RefreshRequest",
    "RefreshResponse",
    "TelegramLoginRequest",
    "UnbindRequest",
    "XStartResponse",
]
