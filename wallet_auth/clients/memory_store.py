"""
Process-local implementation of the key-value store.

Suitable for tests and single-process development. Deployments with more than
one worker must point ``REDIS_URL`` at a shared Redis instead.
"""

from __future__ import annotations

import asyncio
import heapq
import math
import time
from typing import Callable, Optional

from .kv_store import clamp_ttl


class InMemoryKeyValueStore:
    """Dict-backed store with TTL expiry guarded by a single asyncio lock.

    Every deadline is pushed onto a min-heap. Each operation first pops the
    deadlines that have passed, so keys that are never read again are still
    released once they expire.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._values: dict[str, str] = {}
        self._expires_at: dict[str, float] = {}
        self._deadlines: list[tuple[float, str]] = []
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._values)

    def _purge_expired(self) -> None:
        now = self._clock()
        while self._deadlines and self._deadlines[0][0] <= now:
            deadline, key = heapq.heappop(self._deadlines)
            # Stale heap entries for keys rewritten with a later deadline are skipped.
            if self._expires_at.get(key) == deadline:
                self._values.pop(key, None)
                self._expires_at.pop(key, None)

    def _set_deadline(self, key: str, ttl: int) -> None:
        deadline = self._clock() + ttl
        self._expires_at[key] = deadline
        heapq.heappush(self._deadlines, (deadline, key))

    def _write(self, key: str, value: str, ttl_seconds: Optional[int]) -> None:
        self._values[key] = value
        ttl = clamp_ttl(ttl_seconds)
        if ttl is None:
            self._expires_at.pop(key, None)
        else:
            self._set_deadline(key, ttl)

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            self._purge_expired()
            return self._values.get(key)

    async def set_if_absent(
        self, key: str, value: str, ttl_seconds: Optional[int] = None
    ) -> bool:
        async with self._lock:
            self._purge_expired()
            if key in self._values:
                return False
            self._write(key, value, ttl_seconds)
            return True

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        async with self._lock:
            self._purge_expired()
            self._write(key, value, ttl_seconds)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._purge_expired()
            self._values.pop(key, None)
            self._expires_at.pop(key, None)

    async def increment(self, key: str) -> int:
        async with self._lock:
            self._purge_expired()
            try:
                current = int(self._values.get(key, "0"))
            except ValueError as exc:
                raise ValueError(f"Value at {key!r} is not an integer.") from exc
            current += 1
            self._values[key] = str(current)
            return current

    async def expire(self, key: str, ttl_seconds: int) -> None:
        async with self._lock:
            self._purge_expired()
            if key in self._values:
                self._set_deadline(key, clamp_ttl(ttl_seconds))

    async def ttl_remaining(self, key: str) -> Optional[int]:
        async with self._lock:
            self._purge_expired()
            deadline = self._expires_at.get(key)
            if key not in self._values or deadline is None:
                return None
            return max(1, math.ceil(deadline - self._clock()))

    async def close(self) -> None:
        async with self._lock:
            self._values.clear()
            self._expires_at.clear()
            self._deadlines.clear()

    def snapshot(self) -> dict[str, str]:
        """Copy of every live entry, for diagnostics and tests."""
        return {
            key: value for key, value in self._values.items() if not self._is_expired(key)
        }

    def _is_expired(self, key: str) -> bool:
        deadline = self._expires_at.get(key)
        return deadline is not None and self._clock() >= deadline


__all__ = ["InMemoryKeyValueStore"]
