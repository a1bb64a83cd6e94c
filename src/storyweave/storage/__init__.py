"""Key-value storage backends used by the voting engine."""

from .kv import KeyValueStore, MemoryKeyValueStore, RedisKeyValueStore, get_kv_store

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "RedisKeyValueStore",
    "get_kv_store",
]
