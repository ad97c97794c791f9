"""Denylists and fixed-window rate limits in front of every auth flow."""

from __future__ import annotations

import logging
import re
from typing import Optional

from wallet_auth.clients.kv_store import KeyValueStore
from wallet_auth.core.config import RiskSettings
from wallet_auth.core.errors import forbidden, rate_limited

logger = logging.getLogger(__name__)

RATE_LIMIT_PREFIX = "auth:rl:"
_UNSAFE_KEY_CHARS = re.compile(r"[^a-z0-9_.:\-]")


def normalize_key(value: Optional[str]) -> str:
    """Trim, lower-case and replace anything outside ``[a-z0-9_.:-]`` with ``_``."""
    if value is None:
        return ""
    return _UNSAFE_KEY_CHARS.sub("_", value.strip().lower())


class RiskGate:
    """Rejects denylisted callers and counts attempts per IP, device and wallet."""

    def __init__(self, store: KeyValueStore, settings: RiskSettings) -> None:
        self._store = store
        self._settings = settings
        self._blocked_ips = {item.lower() for item in settings.blacklist_ips}
        self._blocked_subs = {item.lower() for item in settings.blacklist_provider_subs}

    @property
    def window_seconds(self) -> int:
        return max(1, self._settings.window_seconds)

    def check_ip_allowed(self, ip: Optional[str]) -> None:
        if not ip or not ip.strip():
            return
        if ip.strip().lower() in self._blocked_ips:
            logger.warning("Blocked login attempt from denylisted ip=%s", ip)
            raise forbidden("IP address is blocked.")

    def check_provider_allowed(self, provider_sub: Optional[str]) -> None:
        if not provider_sub or not provider_sub.strip():
            return
        if provider_sub.strip().lower() in self._blocked_subs:
            logger.warning("Blocked denylisted provider identity %s", provider_sub)
            raise forbidden("Provider identity is blocked.")

    async def check_login_rate_limit(self, ip: Optional[str], device_id: Optional[str]) -> None:
        await self._check_limit(
            "login-ip", "login:ip", ip, max(1, self._settings.login_ip_limit)
        )
        if device_id and device_id.strip():
            await self._check_limit(
                "login-device",
                "login:device",
                device_id,
                max(1, self._settings.login_device_limit),
            )

    async def check_bind_rate_limit(self, wallet_sub: Optional[str]) -> None:
        await self._check_limit(
            "bind-account", "bind:wallet", wallet_sub, max(1, self._settings.bind_account_limit)
        )

    async def _check_limit(
        self, scope: str, prefix: str, subject: Optional[str], limit: int
    ) -> None:
        normalized = normalize_key(subject)
        if not normalized:
            return
        key = f"{RATE_LIMIT_PREFIX}{prefix}:{normalized}"
        window = self.window_seconds

        count = await self._store.increment(key)
        if count == 1:
            await self._store.expire(key, window)
        if count <= limit:
            return

        ttl = await self._store.ttl_remaining(key)
        if ttl is None or ttl < 1:
            # The window TTL was lost; re-arm it so the counter cannot stick forever.
            await self._store.expire(key, window)
            ttl = window
        logger.warning("Rate limited scope=%s count=%s limit=%s", scope, count, limit)
        raise rate_limited("Too many attempts, retry later.", ttl, scope)


__all__ = ["RATE_LIMIT_PREFIX", "RiskGate", "normalize_key"]
