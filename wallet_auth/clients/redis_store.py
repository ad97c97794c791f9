"""Redis-backed implementation of the key-value store."""

from __future__ import annotations

import logging
from typing import Any, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from wallet_auth.core.errors import StoreUnavailable

from .kv_store import clamp_ttl

logger = logging.getLogger(__name__)


class RedisKeyValueStore:
    """Thin async Redis wrapper exposing only single-key atomic primitives."""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        *,
        socket_timeout: float = 5.0,
        client: Any = None,
    ) -> None:
        if client is None:
            if not redis_url:
                raise ValueError("A Redis URL or client must be provided.")
            client = aioredis.from_url(
                redis_url,
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout,
            )
        self._client = client

    async def _call(self, operation: str, key: str, coro: Any) -> Any:
        try:
            return await coro
        except RedisError as exc:
            logger.error("Redis %s failed for key prefix %s: %s", operation, key.rsplit(":", 1)[0], exc)
            raise StoreUnavailable() from exc

    async def get(self, key: str) -> Optional[str]:
        return await self._call("GET", key, self._client.get(key))

    async def set_if_absent(
        self, key: str, value: str, ttl_seconds: Optional[int] = None
    ) -> bool:
        result = await self._call(
            "SETNX", key, self._client.set(key, value, nx=True, ex=clamp_ttl(ttl_seconds))
        )
        return bool(result)

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        await self._call("SET", key, self._client.set(key, value, ex=clamp_ttl(ttl_seconds)))

    async def delete(self, key: str) -> None:
        await self._call("DEL", key, self._client.delete(key))

    async def increment(self, key: str) -> int:
        return int(await self._call("INCR", key, self._client.incr(key)))

    async def expire(self, key: str, ttl_seconds: int) -> None:
        await self._call("EXPIRE", key, self._client.expire(key, clamp_ttl(ttl_seconds)))

    async def ttl_remaining(self, key: str) -> Optional[int]:
        ttl = await self._call("TTL", key, self._client.ttl(key))
        # -2: key missing, -1: key has no expiry.
        if ttl is None or int(ttl) < 0:
            return None
        return int(ttl)

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except RedisError as exc:  # pragma: no cover - best effort on shutdown
            logger.warning("Failed to close Redis client cleanly: %s", exc)


__all__ = ["RedisKeyValueStore"]
