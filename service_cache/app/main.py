"""
Host application for the response cache interceptor.
"""

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from prometheus_client import CONTENT_TYPE_LATEST

from shared.config import CacheConfig, get_config
from shared.errors import CacheLayerException
from shared.logging import clear_context, configure_logging, get_logger, set_request_id
from shared.metrics import get_metrics_collector

from .caching.context import StarletteHttpAdapter
from .caching.interceptor import CacheInterceptor
from .caching.metadata import RouteCacheRegistry, route_cache
from .caching.routing import CacheRoute
from .caching.stores import CacheStore, build_cache_store


def create_app(
    config: Optional[CacheConfig] = None,
    store: Optional[CacheStore] = None,
    registry: Optional[RouteCacheRegistry] = None,
) -> FastAPI:
    """Create a FastAPI app whose routes are served through the response cache."""
    config = config or get_config()
    configure_logging(config.service_name, config.log_level)
    logger = get_logger(f"{config.service_name}.app")
    metrics = get_metrics_collector(config.service_name)

    if store is None:
        store = build_cache_store(config)
    interceptor = CacheInterceptor(
        store,
        registry if registry is not None else route_cache,
        http_adapter=StarletteHttpAdapter(),
        allowed_methods=config.allowed_methods,
        metrics=metrics,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Response cache started", backend=config.backend, allowed_methods=config.allowed_methods)
        yield
        await store.close()
        logger.info("Response cache stopped")

    app = FastAPI(
        title="Response Cache",
        version="1.0.0",
        docs_url="/docs" if config.env == "local" else None,
        redoc_url="/redoc" if config.env == "local" else None,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.metrics = metrics
    app.state.cache_interceptor = interceptor
    app.router.route_class = CacheRoute

    @app.middleware("http")
    async def add_request_context(request: Request, call_next):
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        start_time = time.time()
        try:
            response = await call_next(request)
        finally:
            clear_context()

        duration = time.time() - start_time
        metrics.record_http_request(
            method=request.method,
            endpoint=request.url.path,
            status_code=response.status_code,
            duration=duration
        )
        logger.info(
            "HTTP request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
            request_id=request_id,
        )
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(CacheLayerException)
    async def cache_layer_exception_handler(request: Request, exc: CacheLayerException):
        logger.error("Cache layer error", code=exc.code, message=exc.message, details=exc.details)
        return JSONResponse(status_code=exc.status_code, content=exc.to_response().model_dump())

    async def health_check():
        return {
            "service": config.service_name,
            "status": "ok",
            "backend": config.backend,
        }

    async def metrics_endpoint():
        return Response(content=metrics.render(), media_type=CONTENT_TYPE_LATEST)

    # Operational routes are never cached
    app.router.add_api_route("/health", health_check, methods=["GET"], route_class_override=APIRoute)
    app.router.add_api_route("/metrics", metrics_endpoint, methods=["GET"], route_class_override=APIRoute)

    return app


def main():
    """Run the service."""
    import uvicorn

    config = get_config()
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower()
    )


if __name__ == "__main__":
    main()
