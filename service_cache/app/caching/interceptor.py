"""
Response cache interceptor.

Wraps a handler invocation: returns a stored response when one exists for
the request's cache key, otherwise runs the handler and stores its result.
Cache backend failures never reach the caller; the worst case is an
uncached request.
"""

from collections.abc import AsyncIterator, Iterator
from typing import Any, Awaitable, Callable, Iterable, Optional

from starlette.responses import FileResponse, Response, StreamingResponse

from shared.logging import get_logger
from shared.metrics import MetricsCollector

from .context import ExecutionContext, HttpAdapter, TransportKind
from .metadata import RouteCacheRegistry, route_cache
from .snapshot import CachedResponse
from .stores import CacheStore

CallNext = Callable[[], Awaitable[Any]]

# Responses that can only be consumed once
NON_CACHEABLE_TYPES = (StreamingResponse, FileResponse, AsyncIterator, Iterator)


class CacheInterceptor:
    """Caches handler responses keyed by route metadata or request URL."""

    allowed_methods: Iterable[str] = ("GET",)

    def __init__(
        self,
        store: CacheStore,
        registry: Optional[RouteCacheRegistry] = None,
        *,
        http_adapter: Optional[HttpAdapter] = None,
        allowed_methods: Optional[Iterable[str]] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.registry = registry if registry is not None else route_cache
        self.http_adapter = http_adapter
        if allowed_methods is not None:
            self.allowed_methods = tuple(method.upper() for method in allowed_methods)
        self.metrics = metrics
        self.logger = get_logger("response_cache.interceptor")

    async def intercept(self, context: ExecutionContext, call_next: CallNext) -> Any:
        key = self.track_by(context)
        ttl_value_or_factory = self.registry.get_ttl(context.get_handler())

        if not key:
            self._record("bypass")
            return await call_next()

        try:
            value = await self.store.get(key)
            if value is not None:
                self._record("hit")
                self.logger.debug("Cache hit", key=key)
                return value

            ttl = None
            if ttl_value_or_factory is not None:
                ttl = await ttl_value_or_factory.resolve(context)
        except Exception as exc:
            self._record("error")
            self.logger.warning("Cache lookup failed, serving uncached", key=key, error=str(exc))
            return await call_next()

        self._record("miss")
        response = await call_next()
        await self._store_response(key, response, ttl)
        return response

    async def _store_response(self, key: str, response: Any, ttl: Optional[float]) -> None:
        if not self.is_cacheable_payload(response):
            self._record("uncacheable")
            self.logger.debug("Response not cacheable", key=key, response_type=type(response).__name__)
            return

        value = self.to_cache_value(response)
        try:
            if ttl is None:
                await self.store.set(key, value)
            else:
                await self.store.set(key, value, ttl=ttl)
        except Exception as exc:
            if self.metrics:
                self.metrics.record_cache_store_error()
            self.logger.warning(
                "An error occurred when inserting into the cache",
                key=key,
                value=repr(response),
                error=str(exc),
            )

    def track_by(self, context: ExecutionContext) -> Optional[str]:
        """Derive the cache key for ``context``; None disables caching."""
        explicit_key = self.registry.get_key(context.get_handler())
        if explicit_key is not None:
            return explicit_key

        if not self._is_http(context):
            return None
        if not self.is_request_cacheable(context):
            return None

        request = context.get_arg_by_index(0)
        return self.http_adapter.get_request_url(request)

    def is_request_cacheable(self, context: ExecutionContext) -> bool:
        request = context.switch_to_http().get_request()
        method = self.http_adapter.get_request_method(request)
        return method.upper() in self.allowed_methods

    def is_cacheable_payload(self, response: Any) -> bool:
        return not isinstance(response, NON_CACHEABLE_TYPES)

    def to_cache_value(self, response: Any) -> Any:
        """Buffered Starlette responses are stored as CachedResponse snapshots."""
        if isinstance(response, Response):
            return CachedResponse.capture(response)
        return response

    def _is_http(self, context: ExecutionContext) -> bool:
        return (
            isinstance(self.http_adapter, HttpAdapter)
            and context.get_type() is TransportKind.HTTP
        )

    def _record(self, outcome: str) -> None:
        if self.metrics:
            self.metrics.record_cache_lookup(outcome)
