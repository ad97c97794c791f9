"""Key-value store protocol shared by every auth artifact."""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


def clamp_ttl(ttl_seconds: Optional[int]) -> Optional[int]:
    """Normalize a TTL; ``None`` means no expiry, anything else is at least 1s."""
    if ttl_seconds is None:
        return None
    return max(1, int(ttl_seconds))


@runtime_checkable
class KeyValueStore(Protocol):
    """Durable TTL-capable store with atomic set-if-absent and increment.

    Every operation touches exactly one key and is linearizable for that key.
    Implementations raise :class:`wallet_auth.core.errors.StoreUnavailable`
    when the backend cannot be reached.
    """

    async def get(self, key: str) -> Optional[str]:
        """Return the value stored at ``key`` or ``None`` when missing or expired."""
        ...

    async def set_if_absent(
        self, key: str, value: str, ttl_seconds: Optional[int] = None
    ) -> bool:
        """Store ``value`` only if ``key`` is free; return whether this call won."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        """Unconditionally store ``value``; ``ttl_seconds=None`` keeps it forever."""
        ...

    async def delete(self, key: str) -> None:
        ...

    async def increment(self, key: str) -> int:
        """Atomically add one, treating a missing key as zero. TTL is preserved."""
        ...

    async def expire(self, key: str, ttl_seconds: int) -> None:
        ...

    async def ttl_remaining(self, key: str) -> Optional[int]:
        """Seconds until ``key`` expires, or ``None`` if missing or persistent."""
        ...

    async def close(self) -> None:
        ...


__all__ = ["KeyValueStore", "clamp_ttl"]
