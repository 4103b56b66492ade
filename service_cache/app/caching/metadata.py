"""
Per-route cache metadata.

Routes opt into an explicit cache key and/or a TTL when they are registered.
The TTL is either a literal number of seconds or a factory evaluated against
the request context, and only when the interceptor has confirmed a miss.

Usage::

    @router.get("/items/{item_id}")
    @cache_ttl(30)
    async def get_item(item_id: int): ...

    @router.get("/report")
    @cache_key("daily-report")
    @cache_ttl(lambda context: seconds_until_midnight())
    async def get_report(): ...
"""

import inspect
import numbers
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from shared.errors import CacheConfigurationError

from .context import ExecutionContext

TTLFactory = Callable[[ExecutionContext], Union[Optional[float], Awaitable[Optional[float]]]]

_UNSET: Any = object()


def _check_seconds(seconds: float) -> float:
    if seconds < 0:
        raise CacheConfigurationError(
            "TTL must be non-negative",
            details={"ttl": seconds},
        )
    return seconds


@dataclass(frozen=True)
class LiteralTTL:
    """A fixed TTL in seconds."""

    seconds: float

    def __post_init__(self):
        _check_seconds(self.seconds)

    async def resolve(self, context: ExecutionContext) -> Optional[float]:
        return self.seconds


@dataclass(frozen=True)
class DeferredTTL:
    """A TTL computed from the request context (sync or async factory)."""

    factory: TTLFactory

    async def resolve(self, context: ExecutionContext) -> Optional[float]:
        value = self.factory(context)
        if inspect.isawaitable(value):
            value = await value
        if value is None:
            return None
        return _check_seconds(value)


CacheTTL = Union[LiteralTTL, DeferredTTL]


def as_ttl(value: Any) -> Optional[CacheTTL]:
    """Coerce a user supplied TTL (seconds, callable, or TTL object)."""
    if value is None or isinstance(value, (LiteralTTL, DeferredTTL)):
        return value
    if isinstance(value, bool):
        raise CacheConfigurationError("TTL must be a number or a callable", details={"ttl": value})
    if isinstance(value, numbers.Real):
        return LiteralTTL(value)
    if callable(value):
        return DeferredTTL(value)
    raise CacheConfigurationError("TTL must be a number or a callable", details={"ttl": repr(value)})


@dataclass(frozen=True)
class RouteCacheConfig:
    """Cache metadata attached to one handler."""

    key: Optional[str] = None
    ttl: Optional[CacheTTL] = None


class RouteCacheRegistry:
    """Read-mostly lookup of RouteCacheConfig by handler."""

    def __init__(self):
        self._configs: Dict[Callable[..., Any], RouteCacheConfig] = {}

    def register(self, handler: Callable[..., Any], *, key: Any = _UNSET, ttl: Any = _UNSET) -> RouteCacheConfig:
        """Attach (or merge into) the cache metadata of ``handler``."""
        config = self._configs.get(handler, RouteCacheConfig())
        if key is not _UNSET:
            if key is not None and (not isinstance(key, str) or not key):
                raise CacheConfigurationError("Cache key must be a non-empty string", details={"key": repr(key)})
            config = replace(config, key=key)
        if ttl is not _UNSET:
            config = replace(config, ttl=as_ttl(ttl))
        self._configs[handler] = config
        return config

    def get(self, handler: Callable[..., Any]) -> Optional[RouteCacheConfig]:
        return self._configs.get(handler)

    def get_key(self, handler: Callable[..., Any]) -> Optional[str]:
        config = self._configs.get(handler)
        return config.key if config else None

    def get_ttl(self, handler: Callable[..., Any]) -> Optional[CacheTTL]:
        config = self._configs.get(handler)
        return config.ttl if config else None

    def cache_key(self, key: str):
        """Decorator: cache the handler's response under a fixed key."""
        def decorator(func):
            self.register(func, key=key)
            return func
        return decorator

    def cache_ttl(self, ttl: Union[float, TTLFactory]):
        """Decorator: cache the handler's response for ``ttl`` seconds."""
        def decorator(func):
            self.register(func, ttl=ttl)
            return func
        return decorator

    def __len__(self) -> int:
        return len(self._configs)


route_cache = RouteCacheRegistry()

cache_key = route_cache.cache_key
cache_ttl = route_cache.cache_ttl
