"""
Response caching package.

Provides the interceptor that short-circuits GET handlers with stored
responses, the per-route metadata it reads (explicit keys, TTLs), and the
stores it writes to. Cache failures degrade to uncached handling.
"""

from .context import ExecutionContext, HttpAdapter, StarletteHttpAdapter, TransportKind
from .interceptor import CacheInterceptor
from .metadata import (
    DeferredTTL,
    LiteralTTL,
    RouteCacheConfig,
    RouteCacheRegistry,
    cache_key,
    cache_ttl,
    route_cache,
)
from .routing import CacheRoute, CacheRouter
from .snapshot import CachedResponse
from .stores import CacheStore, InMemoryCacheStore, RedisCacheStore, build_cache_store

__all__ = [
    "CacheInterceptor",
    "CacheRoute",
    "CacheRouter",
    "CacheStore",
    "CachedResponse",
    "DeferredTTL",
    "ExecutionContext",
    "HttpAdapter",
    "InMemoryCacheStore",
    "LiteralTTL",
    "RedisCacheStore",
    "RouteCacheConfig",
    "RouteCacheRegistry",
    "StarletteHttpAdapter",
    "TransportKind",
    "build_cache_store",
    "cache_key",
    "cache_ttl",
    "route_cache",
]
