"""
Application configuration models and helpers.

Every component receives the frozen settings object built here through its
constructor, so a process only ever reads the environment once.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional
import logging
import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger(__name__)

DEV_APP_JWT_SECRET = "replace-me-dev-secret-at-least-32-bytes"


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


def _split_csv(value: object) -> tuple[str, ...]:
    """Accept comma-separated strings as well as sequences."""
    if value is None:
        return ()
    if isinstance(value, (tuple, list, set, frozenset)):
        items = value
    else:
        items = str(value).split(",")
    return tuple(item.strip() for item in items if str(item).strip())


CsvTuple = Annotated[tuple[str, ...], NoDecode]

_BASE_CONFIG = SettingsConfigDict(
    frozen=True,
    populate_by_name=True,
    extra="ignore",
)


class AuthSettings(BaseSettings):
    """Feature switches, artifact lifetimes, and redirect policy."""

    model_config = _BASE_CONFIG

    enabled: bool = Field(True, validation_alias="AUTH_ENABLED")
    x_enabled: bool = Field(True, validation_alias="AUTH_X_ENABLED")
    tg_enabled: bool = Field(True, validation_alias="AUTH_TG_ENABLED")
    bind_enabled: bool = Field(True, validation_alias="AUTH_BIND_ENABLED")
    sync_enabled: bool = Field(True, validation_alias="AUTH_SYNC_ENABLED")

    one_time_code_ttl_seconds: int = Field(60, validation_alias="AUTH_ONE_TIME_CODE_TTL_SECONDS")
    oauth_state_ttl_seconds: int = Field(600, validation_alias="AUTH_OAUTH_STATE_TTL_SECONDS")
    web3auth_jwt_ttl_seconds: int = Field(300, validation_alias="AUTH_WEB3AUTH_JWT_TTL_SECONDS")
    access_token_ttl_seconds: int = Field(900, validation_alias="AUTH_ACCESS_TOKEN_TTL_SECONDS")
    refresh_token_ttl_seconds: int = Field(
        2_592_000, validation_alias="AUTH_REFRESH_TOKEN_TTL_SECONDS"
    )

    app_redirect_allowlist: CsvTuple = Field(
        (),
        validation_alias="AUTH_APP_REDIRECT_ALLOWLIST",
        description="Comma-separated URI prefixes the X callback may redirect to.",
    )
    sync_max_favorites: int = Field(500, validation_alias="AUTH_SYNC_MAX_FAVORITES")
    sync_max_history: int = Field(1000, validation_alias="AUTH_SYNC_MAX_HISTORY")

    @field_validator("app_redirect_allowlist", mode="before")
    @classmethod
    def _split_allowlist(cls, value: object) -> tuple[str, ...]:
        return _split_csv(value)


class Web3AuthSettings(BaseSettings):
    """Signing configuration for the RS256 provider assertion."""

    model_config = _BASE_CONFIG

    issuer: str = Field("https://auth.status-mvp.local", validation_alias="AUTH_WEB3AUTH_ISSUER")
    audience: str = Field("status-mvp", validation_alias="AUTH_WEB3AUTH_AUDIENCE")
    key_id: str = Field("status-mvp-auth-v1", validation_alias="AUTH_WEB3AUTH_KEY_ID")
    private_key_pem: str = Field(
        "",
        validation_alias="AUTH_WEB3AUTH_PRIVATE_KEY_PEM",
        description=(
            "PKCS#1 or PKCS#8 PEM. Literal \\n sequences are accepted. "
            "When empty an ephemeral key is generated at startup."
        ),
    )


class AppJwtSettings(BaseSettings):
    """HS256 configuration for the app's own access tokens."""

    model_config = _BASE_CONFIG

    issuer: str = Field("status-mvp-price-backend", validation_alias="AUTH_APP_JWT_ISSUER")
    audience: str = Field("status-mvp-app", validation_alias="AUTH_APP_JWT_AUDIENCE")
    secret: str = Field(DEV_APP_JWT_SECRET, validation_alias="AUTH_APP_JWT_SECRET")


class XOAuthSettings(BaseSettings):
    """X (Twitter) OAuth2 client configuration."""

    model_config = _BASE_CONFIG

    client_id: str = Field("", validation_alias="AUTH_X_CLIENT_ID")
    client_secret: str = Field("", validation_alias="AUTH_X_CLIENT_SECRET")
    redirect_uri: str = Field("", validation_alias="AUTH_X_REDIRECT_URI")
    scopes: CsvTuple = Field(
        ("tweet.read", "users.read", "offline.access"),
        validation_alias="AUTH_X_SCOPES",
    )
    authorize_endpoint: str = Field(
        "https://twitter.com/i/oauth2/authorize", validation_alias="AUTH_X_AUTHORIZE_ENDPOINT"
    )
    token_endpoint: str = Field(
        "https://api.twitter.com/2/oauth2/token", validation_alias="AUTH_X_TOKEN_ENDPOINT"
    )
    userinfo_endpoint: str = Field(
        "https://api.twitter.com/2/users/me", validation_alias="AUTH_X_USERINFO_ENDPOINT"
    )
    http_timeout_seconds: float = Field(10.0, validation_alias="AUTH_X_HTTP_TIMEOUT_SECONDS")

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(cls, value: object) -> tuple[str, ...]:
        """Support providing scopes as a space or comma separated string."""
        if isinstance(value, str):
            value = value.replace(" ", ",")
        return _split_csv(value)

    def is_configured(self) -> bool:
        return all(
            item.strip()
            for item in (
                self.client_id,
                self.redirect_uri,
                self.authorize_endpoint,
                self.token_endpoint,
                self.userinfo_endpoint,
            )
        )


class TelegramSettings(BaseSettings):
    """Telegram Login Widget verification settings."""

    model_config = _BASE_CONFIG

    bot_token: str = Field("", validation_alias="AUTH_TG_BOT_TOKEN")
    auth_max_age_seconds: int = Field(600, validation_alias="AUTH_TG_AUTH_MAX_AGE_SECONDS")
    replay_guard_enabled: bool = Field(True, validation_alias="AUTH_TG_REPLAY_GUARD_ENABLED")


class RiskSettings(BaseSettings):
    """Denylists and fixed-window rate limits."""

    model_config = _BASE_CONFIG

    blacklist_ips: CsvTuple = Field((), validation_alias="AUTH_RISK_BLACKLIST_IPS")
    blacklist_provider_subs: CsvTuple = Field(
        (), validation_alias="AUTH_RISK_BLACKLIST_PROVIDER_SUBS"
    )
    login_ip_limit: int = Field(20, validation_alias="AUTH_RISK_LOGIN_IP_LIMIT")
    login_device_limit: int = Field(30, validation_alias="AUTH_RISK_LOGIN_DEVICE_LIMIT")
    bind_account_limit: int = Field(20, validation_alias="AUTH_RISK_BIND_ACCOUNT_LIMIT")
    window_seconds: int = Field(60, validation_alias="AUTH_RISK_WINDOW_SECONDS")

    @field_validator("blacklist_ips", "blacklist_provider_subs", mode="before")
    @classmethod
    def _split_lists(cls, value: object) -> tuple[str, ...]:
        return _split_csv(value)


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    redis_url: Optional[str] = Field(
        None,
        validation_alias="REDIS_URL",
        description="Shared key-value store. Falls back to a process-local store when unset.",
    )
    redis_socket_timeout_seconds: float = Field(
        5.0, validation_alias="REDIS_SOCKET_TIMEOUT_SECONDS"
    )
    auth: AuthSettings = Field(default_factory=AuthSettings)
    web3auth: Web3AuthSettings = Field(default_factory=Web3AuthSettings)
    app_jwt: AppJwtSettings = Field(default_factory=AppJwtSettings)
    x_oauth: XOAuthSettings = Field(default_factory=XOAuthSettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    risk: RiskSettings = Field(default_factory=RiskSettings)

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"


def validate_settings(settings: AppSettings) -> list[str]:
    """Reject insecure defaults in production and return non-fatal warnings."""
    warnings: list[str] = []
    if settings.is_production:
        if settings.app_jwt.secret == DEV_APP_JWT_SECRET:
            raise ValueError("AUTH_APP_JWT_SECRET must be changed for production.")
        if not settings.web3auth.private_key_pem.strip():
            warnings.append(
                "AUTH_WEB3AUTH_PRIVATE_KEY_PEM is empty; JWKS will change on every restart."
            )
    if not settings.redis_url:
        warnings.append(
            "REDIS_URL is not set; auth state is process-local and not shared across workers."
        )
    if settings.auth.x_enabled and not settings.x_oauth.is_configured():
        warnings.append("X login is enabled but AUTH_X_CLIENT_ID/AUTH_X_REDIRECT_URI are missing.")
    if settings.auth.tg_enabled and not settings.telegram.bot_token:
        warnings.append("Telegram login is enabled but AUTH_TG_BOT_TOKEN is missing.")
    for warning in warnings:
        logger.warning(warning)
    return warnings


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppJwtSettings",
    "AppSettings",
    "AuthSettings",
    "DEV_APP_JWT_SECRET",
    "RiskSettings",
    "TelegramSettings",
    "Web3AuthSettings",
    "XOAuthSettings",
    "get_settings",
    "validate_settings",
]
