"""Small helpers shared by the auth flows."""

from __future__ import annotations

import base64
import hashlib
import secrets
from typing import Iterable, Mapping, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit


def random_base64url(num_bytes: int) -> str:
    """URL-safe base64 of ``num_bytes`` random bytes, without padding."""
    return base64.urlsafe_b64encode(secrets.token_bytes(num_bytes)).rstrip(b"=").decode("ascii")


def sha256_base64url(value: str) -> str:
    """PKCE S256 transform of a code verifier."""
    digest = hashlib.sha256(value.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def provider_sub(provider: str, provider_user_id: str) -> str:
    return f"{provider}:{provider_user_id}"


def is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def blank_to_none(value: Optional[str]) -> Optional[str]:
    if is_blank(value):
        return None
    return value.strip()  # type: ignore[union-attr]


def is_allowed_redirect(uri: Optional[str], allowed_prefixes: Iterable[str]) -> bool:
    """Accept ``uri`` only when it has a scheme and starts with a configured prefix.

    An empty allowlist rejects everything.
    """
    if is_blank(uri):
        return False
    candidate = uri.strip()  # type: ignore[union-attr]
    if not urlsplit(candidate).scheme:
        return False
    prefixes = [prefix.strip() for prefix in allowed_prefixes if prefix and prefix.strip()]
    return any(candidate.startswith(prefix) for prefix in prefixes)


def callback_redirect_url(app_redirect_uri: str, params: Mapping[str, str]) -> str:
    """Append ``params`` to ``app_redirect_uri`` keeping its path, query and fragment."""
    parts = urlsplit(app_redirect_uri.strip())
    extra = urlencode(list(params.items()))
    query = f"{parts.query}&{extra}" if parts.query else extra
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def client_ip(
    forwarded_for: Optional[str], real_ip: Optional[str], remote_addr: Optional[str]
) -> str:
    """First ``X-Forwarded-For`` hop, then ``X-Real-IP``, then the socket peer."""
    if not is_blank(forwarded_for):
        first = forwarded_for.split(",")[0].strip()  # type: ignore[union-attr]
        if first:
            return first
    if not is_blank(real_ip):
        return real_ip.strip()  # type: ignore[union-attr]
    return (remote_addr or "").strip() or "unknown"


__all__ = [
    "blank_to_none",
    "callback_redirect_url",
    "client_ip",
    "is_allowed_redirect",
    "is_blank",
    "provider_sub",
    "random_base64url",
    "sha256_base64url",
]
