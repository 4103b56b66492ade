"""
Response cache service package.

A FastAPI pipeline stage that serves repeated GET requests from a cache:
- Key derivation: explicit per-route key, else the request URL
- TTL: per-route literal seconds or a factory evaluated on cache miss
- Stores: in-process dictionary or Redis
- Cache backend failures degrade to uncached handling

Structure:
- app.main: FastAPI app factory, middleware and operational routes.
- app.caching: Interceptor, route metadata, stores and FastAPI route class.
"""
