"""Client exports for external systems."""

from .kv_store import KeyValueStore
from .memory_store import InMemoryKeyValueStore
from .redis_store import RedisKeyValueStore
from .x_oauth import XOAuthClient

__all__ = [
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "RedisKeyValueStore",
    "XOAuthClient",
]
