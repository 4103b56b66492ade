"""
Key/value stores backing the response cache.
"""

import json
import time
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable

import redis.asyncio as redis
from pydantic_core import to_jsonable_python

from shared.config import CacheConfig
from shared.errors import CacheBackendError, CacheConfigurationError
from shared.logging import get_logger


@runtime_checkable
class CacheStore(Protocol):
    """Async get/set store. ``get`` returns None when the key is absent."""

    async def get(self, key: str) -> Any:
        ...

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ...

    async def close(self) -> None:
        ...


class InMemoryCacheStore:
    """Process-local store with per-entry expiry."""

    def __init__(self, default_ttl: Optional[float] = None):
        self.default_ttl = default_ttl
        self._entries: Dict[str, Tuple[Any, Optional[float]]] = {}

    async def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        if ttl is None:
            ttl = self.default_ttl
        # 0 means no expiry
        expires_at = time.monotonic() + ttl if ttl else None
        self._entries[key] = (value, expires_at)

    async def close(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisCacheStore:
    """Redis-backed store. Values are stored as JSON."""

    def __init__(
        self,
        redis_url: str,
        default_ttl: Optional[float] = None,
        *,
        key_prefix: str = "response-cache:",
        client: Optional[redis.Redis] = None,
    ):
        self.redis_url = redis_url
        self.default_ttl = default_ttl
        self.key_prefix = key_prefix
        self.logger = get_logger("response_cache.redis_store")
        self._redis: Optional[redis.Redis] = client

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
        return self._redis

    def _make_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> Any:
        try:
            redis_client = await self._get_redis()
            cached_data = await redis_client.get(self._make_key(key))
        except redis.RedisError as exc:
            raise CacheBackendError("redis", str(exc), {"key": key}) from exc

        if cached_data is None:
            return None
        if isinstance(cached_data, bytes):
            cached_data = cached_data.decode("utf-8")
        return json.loads(cached_data)

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        if ttl is None:
            ttl = self.default_ttl
        payload = json.dumps(to_jsonable_python(value))

        expiry: Dict[str, int] = {}
        if ttl:
            if float(ttl).is_integer():
                expiry["ex"] = int(ttl)
            else:
                expiry["px"] = max(1, int(ttl * 1000))

        try:
            redis_client = await self._get_redis()
            await redis_client.set(self._make_key(key), payload, **expiry)
        except redis.RedisError as exc:
            raise CacheBackendError("redis", str(exc), {"key": key}) from exc

        self.logger.debug("Cached value", key=key, ttl=ttl)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


def build_cache_store(config: CacheConfig) -> CacheStore:
    """Create the store selected by ``config.backend``."""
    if config.backend == "memory":
        return InMemoryCacheStore(default_ttl=config.default_ttl)
    if config.backend == "redis":
        return RedisCacheStore(
            config.redis_url,
            default_ttl=config.default_ttl,
            key_prefix=config.key_prefix,
        )
    raise CacheConfigurationError(
        f"Unknown cache backend: {config.backend}",
        details={"backend": config.backend},
    )
