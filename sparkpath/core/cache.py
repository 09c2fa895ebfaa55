"""Cache stores and the cache-aside helper used by the advisory endpoints."""

from __future__ import annotations

import abc
import json
import time
from typing import Any, Awaitable, Callable, TypeVar

import redis.asyncio as aioredis
from loguru import logger

from sparkpath.utils.env_cfg import CacheConfig, load_cache_env

T = TypeVar("T")


def _serialize(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def escape_glob(text: str) -> str:
    """
    Escape Redis glob metacharacters so ``text`` only matches itself in ``SCAN MATCH``.

    Args:
        text (str): Literal text, usually a key prefix.

    Returns:
        str: The escaped pattern fragment.
    """
    escaped = text.replace("\\", "\\\\")
    for char in "*?[]":
        escaped = escaped.replace(char, f"\\{char}")
    return escaped


class CacheStore(abc.ABC):
    """
    Key-value store with per-entry TTL holding JSON-serializable payloads.
    """

    @abc.abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the value stored under ``key`` or None when absent or expired."""

    @abc.abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``."""

    @abc.abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix`` and return how many went away."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class MemoryCacheStore(CacheStore):
    """
    In-process TTL store. Values are kept serialized so every hit is a fresh copy.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        raw, expiry = entry
        if time.monotonic() >= expiry:
            del self._entries[key]
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        self._entries[key] = (_serialize(value), time.monotonic() + ttl_seconds)

    async def delete_prefix(self, prefix: str) -> int:
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def __len__(self) -> int:
        return len(self._entries)


class RedisCacheStore(CacheStore):
    """
    Redis-backed store. Payloads are written as JSON strings with ``SET ... EX``.
    """

    def __init__(self, url: str, socket_timeout: float = 2.0) -> None:
        self.url = url
        self._client = aioredis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            decode_responses=True,
        )

    async def get(self, key: str) -> Any | None:
        raw = await self._client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        await self._client.set(key, _serialize(value), ex=ttl_seconds)

    async def delete_prefix(self, prefix: str) -> int:
        pattern = f"{escape_glob(prefix)}*"
        doomed = [key async for key in self._client.scan_iter(match=pattern)]
        if not doomed:
            return 0
        return int(await self._client.delete(*doomed))

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def close(self) -> None:
        await self._client.aclose()


def get_cache_store(config: CacheConfig | None = None) -> CacheStore:
    """
    Build the cache store selected by the configuration.

    Args:
        config (CacheConfig | None, optional): Cache configuration. Loaded from the
            environment when omitted.

    Returns:
        CacheStore: A Redis store when ``REDIS_URL`` is set, otherwise an in-memory store.
    """
    config = config or load_cache_env()
    if config.redis_url:
        logger.info("Using Redis cache store")
        return RedisCacheStore(config.redis_url, socket_timeout=config.socket_timeout)
    logger.info("REDIS_URL not set, using in-memory cache store")
    return MemoryCacheStore()


def build_cache_key(operation: str, fields: Any) -> str:
    """
    Build a deterministic cache key for an operation and its request fields.

    Args:
        operation (str): The operation name, used as the key prefix.
        fields (Any): JSON-serializable request fields relevant to the operation.

    Returns:
        str: ``"<operation>:<canonical json>"``. Object keys are sorted so that
        semantically identical requests always serialize identically.
    """
    canonical = json.dumps(
        fields, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )
    return f"{operation}:{canonical}"


async def get_or_compute(
    store: CacheStore,
    key: str,
    producer: Callable[[], Awaitable[T]],
    ttl_seconds: int,
) -> T:
    """
    Return the cached value for ``key`` or compute, store and return it.

    A store that cannot be read never fails the call: the producer runs and its
    result is returned without being cached. A failed write is logged and the
    computed value is still returned. Errors raised by the producer propagate.

    Args:
        store (CacheStore): The cache store.
        key (str): The cache key.
        producer (Callable[[], Awaitable[T]]): Zero-argument coroutine factory
            computing the value on a miss.
        ttl_seconds (int): TTL applied when storing a freshly computed value.

    Returns:
        T: The cached or freshly computed value.
    """
    try:
        cached = await store.get(key)
    except Exception as e:
        logger.warning("Cache read failed for '{}', computing uncached: {}", key, e)
        return await producer()

    if cached is not None:
        logger.debug("Cache hit: {}", key)
        return cached

    logger.debug("Cache miss: {}", key)
    value = await producer()
    try:
        await store.set(key, value, ttl_seconds)
    except Exception as e:
        logger.warning("Cache write failed for '{}': {}", key, e)
    return value
