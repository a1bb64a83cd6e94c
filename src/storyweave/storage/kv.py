"""Opaque key-value store used for votes, sessions and pending queues.

The engine assumes nothing beyond single-key operations: get, set, delete,
set-if-absent, and atomic list append and removal. There are no multi-key transactions,
so every read-modify-write in the services is serialized by the caller.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from threading import Lock

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from storyweave.core.errors import StorageError
from storyweave.core.settings import settings

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Asynchronous single-key store interface."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value stored at ``key`` or None when absent."""

    @abstractmethod
    async def set(self, key: str, value: str, *, ttl_seconds: int | None = None) -> None:
        """Store ``value`` at ``key``, optionally expiring after ``ttl_seconds``."""

    @abstractmethod
    async def set_if_absent(
        self, key: str, value: str, *, ttl_seconds: int | None = None
    ) -> bool:
        """Atomically store ``value`` only if ``key`` is unset.

        Returns:
            True if this call stored the value, False if the key already existed.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``; missing keys are ignored."""

    @abstractmethod
    async def list_append(self, key: str, value: str) -> int:
        """Atomically append to the list at ``key`` and return its new length."""

    @abstractmethod
    async def list_range(self, key: str) -> list[str]:
        """Return every element of the list at ``key`` (empty if absent)."""

    @abstractmethod
    async def list_remove(self, key: str, value: str) -> int:
        """Atomically remove every occurrence of ``value`` and return how many went."""

    async def close(self) -> None:
        """Release backend resources."""


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed store; every backend failure surfaces as StorageError."""

    def __init__(self, url: str | None = None, *, prefix: str | None = None) -> None:
        self._redis = aioredis.from_url(url or settings.redis_url, decode_responses=True)
        self._prefix = prefix if prefix is not None else settings.kv_key_prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}" if self._prefix else key

    async def get(self, key: str) -> str | None:
        try:
            value = await self._redis.get(self._key(key))
        except RedisError as err:
            logger.warning("Redis GET failed for %s: %s", key, err)
            raise StorageError(f"Failed to read {key}") from err
        return value

    async def set(self, key: str, value: str, *, ttl_seconds: int | None = None) -> None:
        try:
            await self._redis.set(self._key(key), value, ex=ttl_seconds)
        except RedisError as err:
            logger.warning("Redis SET failed for %s: %s", key, err)
            raise StorageError(f"Failed to write {key}") from err

    async def set_if_absent(
        self, key: str, value: str, *, ttl_seconds: int | None = None
    ) -> bool:
        try:
            stored = await self._redis.set(self._key(key), value, ex=ttl_seconds, nx=True)
        except RedisError as err:
            logger.warning("Redis SET NX failed for %s: %s", key, err)
            raise StorageError(f"Failed to claim {key}") from err
        return bool(stored)

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(self._key(key))
        except RedisError as err:
            logger.warning("Redis DEL failed for %s: %s", key, err)
            raise StorageError(f"Failed to delete {key}") from err

    async def list_append(self, key: str, value: str) -> int:
        try:
            length = await self._redis.rpush(self._key(key), value)
        except RedisError as err:
            logger.warning("Redis RPUSH failed for %s: %s", key, err)
            raise StorageError(f"Failed to append to {key}") from err
        return int(length)

    async def list_range(self, key: str) -> list[str]:
        try:
            values = await self._redis.lrange(self._key(key), 0, -1)
        except RedisError as err:
            logger.warning("Redis LRANGE failed for %s: %s", key, err)
            raise StorageError(f"Failed to read list {key}") from err
        return list(values)

    async def list_remove(self, key: str, value: str) -> int:
        try:
            removed = await self._redis.lrem(self._key(key), 0, value)
        except RedisError as err:
            logger.warning("Redis LREM failed for %s: %s", key, err)
            raise StorageError(f"Failed to remove from list {key}") from err
        return int(removed)

    async def close(self) -> None:
        await self._redis.aclose()


class MemoryKeyValueStore(KeyValueStore):
    """In-process store for development and tests.

    Expiry is evaluated lazily on read, mirroring Redis key TTLs.
    """

    def __init__(self) -> None:
        self._values: dict[str, str] = {}
        self._lists: dict[str, list[str]] = defaultdict(list)
        self._expiry: dict[str, float] = {}
        self._lock = Lock()

    def _expired(self, key: str) -> bool:
        expiry = self._expiry.get(key)
        if expiry is None or expiry > time.time():
            return False
        self._values.pop(key, None)
        self._lists.pop(key, None)
        self._expiry.pop(key, None)
        return True

    def _touch_ttl(self, key: str, ttl_seconds: int | None) -> None:
        if ttl_seconds is None:
            self._expiry.pop(key, None)
        else:
            self._expiry[key] = time.time() + ttl_seconds

    async def get(self, key: str) -> str | None:
        with self._lock:
            if self._expired(key):
                return None
            return self._values.get(key)

    async def set(self, key: str, value: str, *, ttl_seconds: int | None = None) -> None:
        with self._lock:
            self._values[key] = value
            self._touch_ttl(key, ttl_seconds)

    async def set_if_absent(
        self, key: str, value: str, *, ttl_seconds: int | None = None
    ) -> bool:
        with self._lock:
            if not self._expired(key) and key in self._values:
                return False
            self._values[key] = value
            self._touch_ttl(key, ttl_seconds)
            return True

    async def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)
            self._lists.pop(key, None)
            self._expiry.pop(key, None)

    async def list_append(self, key: str, value: str) -> int:
        with self._lock:
            self._expired(key)
            self._lists[key].append(value)
            return len(self._lists[key])

    async def list_range(self, key: str) -> list[str]:
        with self._lock:
            if self._expired(key):
                return []
            return list(self._lists.get(key, []))

    async def list_remove(self, key: str, value: str) -> int:
        with self._lock:
            if self._expired(key) or key not in self._lists:
                return 0
            kept = [item for item in self._lists[key] if item != value]
            removed = len(self._lists[key]) - len(kept)
            if kept:
                self._lists[key] = kept
            else:
                del self._lists[key]
            return removed


_STORE: KeyValueStore | None = None


def get_kv_store() -> KeyValueStore:
    """Return the process-wide key-value store selected by ``KV_BACKEND``."""
    global _STORE
    if _STORE is None:
        if settings.kv_backend == "memory":
            _STORE = MemoryKeyValueStore()
        else:
            _STORE = RedisKeyValueStore()
    return _STORE
