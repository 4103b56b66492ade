"""
FastAPI integration for the response cache interceptor.

Put a ``CacheInterceptor`` on ``app.state.cache_interceptor`` and register
routes with ``CacheRoute``: ``create_app`` sets it as the app router's
``route_class``. Routes declared on a separate router keep that router's
route class through ``include_router``, so declare them on a ``CacheRouter``
(or ``APIRouter(route_class=CacheRoute)``).
"""

import binascii
from typing import Any, Callable, Coroutine, Optional

from fastapi import APIRouter, Request, Response
from fastapi.routing import APIRoute
from pydantic import ValidationError

from shared.logging import get_logger

from .context import ExecutionContext
from .snapshot import CachedResponse

logger = get_logger("response_cache.routing")


class CacheRoute(APIRoute):
    """APIRoute that runs its endpoint through the app's CacheInterceptor."""

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        route_handler = super().get_route_handler()
        endpoint = self.endpoint

        async def cached_route_handler(request: Request) -> Response:
            interceptor = getattr(request.app.state, "cache_interceptor", None)
            if interceptor is None:
                return await route_handler(request)

            handled: Optional[Response] = None

            async def call_next() -> Response:
                nonlocal handled
                handled = await route_handler(request)
                return handled

            context = ExecutionContext.for_http(endpoint, request)
            result = await interceptor.intercept(context, call_next)

            # The handler ran: hand back its own response object
            if handled is not None:
                return handled

            try:
                return CachedResponse.restore(result)
            except (ValidationError, binascii.Error, UnicodeError) as exc:
                logger.warning(
                    "Unreadable cache entry, serving uncached",
                    key=interceptor.track_by(context),
                    error=str(exc),
                )
                return await route_handler(request)

        return cached_route_handler


class CacheRouter(APIRouter):
    """APIRouter whose routes default to CacheRoute."""

    def __init__(self, *args, route_class: type = CacheRoute, **kwargs):
        super().__init__(*args, route_class=route_class, **kwargs)


__all__ = ["CacheRoute", "CacheRouter", "CachedResponse"]
