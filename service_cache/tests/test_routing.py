"""
Integration tests for CacheRoute on a FastAPI application.
"""

import pytest
from unittest.mock import AsyncMock, patch

from fastapi import BackgroundTasks, HTTPException
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from fastapi.testclient import TestClient

from service_cache.app.caching.metadata import RouteCacheRegistry
from service_cache.app.caching.routing import CachedResponse, CacheRouter
from service_cache.app.caching.stores import InMemoryCacheStore
from service_cache.app.main import create_app
from shared.config import get_config


class TestCacheRoute:
    """Test cases for routes served through the interceptor."""

    @pytest.fixture
    def registry(self):
        return RouteCacheRegistry()

    @pytest.fixture
    def store(self):
        return InMemoryCacheStore()

    @pytest.fixture
    def calls(self):
        """Handler invocation counter."""
        return {"items": 0, "report": 0, "stream": 0, "orders": 0, "audit": []}

    @pytest.fixture
    def app(self, registry, store, calls):
        app = create_app(get_config(service_name="test-cache"), store=store, registry=registry)

        @app.get("/items/{item_id}")
        async def get_item(item_id: int):
            calls["items"] += 1
            return {"id": item_id, "version": calls["items"]}

        @app.get("/report")
        @registry.cache_key("daily-report")
        @registry.cache_ttl(60)
        async def get_report():
            calls["report"] += 1
            return PlainTextResponse(f"report #{calls['report']}", headers={"X-Report": "daily"})

        @app.get("/stream")
        async def stream():
            calls["stream"] += 1

            async def chunks():
                yield b"a"
                yield b"b"

            return StreamingResponse(chunks(), media_type="text/plain")

        @app.post("/orders")
        async def create_order():
            calls["orders"] += 1
            return {"order": calls["orders"]}

        @app.get("/missing")
        async def missing():
            raise HTTPException(status_code=404, detail="not found")

        @app.get("/audited")
        async def audited(background_tasks: BackgroundTasks):
            background_tasks.add_task(calls["audit"].append, "done")
            return {"ok": True}

        return app

    @pytest.fixture
    def client(self, app):
        with TestClient(app) as client:
            yield client

    def test_get_cached_by_url(self, client, calls, store):
        """Test repeated GET is served from cache."""
        first = client.get("/items/42")
        second = client.get("/items/42")

        assert first.status_code == second.status_code == 200
        assert first.json() == second.json() == {"id": 42, "version": 1}
        assert calls["items"] == 1

    def test_different_urls_have_different_entries(self, client, calls):
        """Test path and query string are part of the key."""
        client.get("/items/1")
        client.get("/items/2")
        client.get("/items/1?fields=name")

        assert calls["items"] == 3

    def test_post_not_cached(self, client, calls, store):
        """Test non-GET requests always reach the handler."""
        assert client.post("/orders").json() == {"order": 1}
        assert client.post("/orders").json() == {"order": 2}
        assert len(store) == 0

    def test_explicit_key_and_ttl(self, client, calls, store):
        """Test explicit key is used and headers survive the cache."""
        client.get("/report")
        cached = client.get("/report")

        assert cached.text == "report #1"
        assert cached.headers["x-report"] == "daily"
        assert cached.headers["content-type"].startswith("text/plain")
        assert calls["report"] == 1

        value, expires_at = store._entries["daily-report"]
        assert isinstance(value, CachedResponse)
        assert expires_at is not None

    def test_streaming_response_not_cached(self, client, calls, store):
        """Test streaming responses are returned but never stored."""
        assert client.get("/stream").text == "ab"
        assert client.get("/stream").text == "ab"
        assert calls["stream"] == 2
        assert len(store) == 0

    def test_handler_errors_not_cached(self, client, store):
        """Test HTTP errors propagate and leave the cache empty."""
        assert client.get("/missing").status_code == 404
        assert len(store) == 0

    def test_background_tasks_run_on_miss(self, client, calls):
        """Test the handler's own response object is returned on a miss."""
        client.get("/audited")
        assert calls["audit"] == ["done"]

    def test_lookup_failure_serves_uncached(self, client, calls, store):
        """Test a broken store never breaks the request."""
        store.get = AsyncMock(side_effect=ConnectionError("down"))

        assert client.get("/items/7").json() == {"id": 7, "version": 1}
        assert client.get("/items/7").json() == {"id": 7, "version": 2}

    def test_store_failure_serves_response(self, client, calls, store):
        """Test a failing write still returns the handler response."""
        store.set = AsyncMock(side_effect=ConnectionError("down"))

        response = client.get("/items/9")

        assert response.status_code == 200
        assert response.json() == {"id": 9, "version": 1}

    def test_hit_from_dict_snapshot(self, client, calls, store):
        """Test entries read back as plain dicts (Redis) are restored."""
        snapshot = CachedResponse.capture(JSONResponse({"id": 5, "from": "redis"}))
        store._entries["/items/5"] = (snapshot.model_dump(mode="json"), None)

        response = client.get("/items/5")

        assert response.json() == {"id": 5, "from": "redis"}
        assert calls["items"] == 0

    @pytest.mark.parametrize("entry", [
        {"legacy": "shape"},
        {"status_code": 200, "headers": [], "body": "not base64!"},
    ])
    def test_unreadable_entry_serves_uncached(self, client, calls, store, entry):
        """Test an entry that cannot be restored falls back to the handler."""
        store._entries["/items/5"] = (entry, None)

        response = client.get("/items/5")

        assert response.status_code == 200
        assert response.json() == {"id": 5, "version": 1}
        assert calls["items"] == 1

    def test_included_router_is_cached(self, app, client):
        """Test routes declared on a CacheRouter are cached once included."""
        router = CacheRouter(prefix="/catalog")
        hits = []

        @router.get("/things/{thing_id}")
        async def get_thing(thing_id: int):
            hits.append(thing_id)
            return {"id": thing_id}

        app.include_router(router)

        assert client.get("/catalog/things/3").json() == {"id": 3}
        assert client.get("/catalog/things/3").json() == {"id": 3}
        assert hits == [3]

    def test_snapshot_taken_only_when_stored(self, app, client):
        """Test bypassed requests are never snapshotted."""
        interceptor = app.state.cache_interceptor
        with patch.object(interceptor, "to_cache_value", wraps=interceptor.to_cache_value) as to_cache_value:
            client.post("/orders")
            to_cache_value.assert_not_called()

            client.get("/items/1")
            to_cache_value.assert_called_once()


class TestCachedResponse:
    """Test cases for CachedResponse snapshots."""

    def test_capture_and_restore(self):
        original = JSONResponse({"id": 1}, status_code=201, headers={"X-Trace": "abc"})

        restored = CachedResponse.restore(CachedResponse.capture(original))

        assert restored.status_code == 201
        assert restored.body == original.body
        assert restored.raw_headers == original.raw_headers

    def test_capture_leaves_streaming_response(self):
        async def chunks():
            yield b"x"

        streaming = StreamingResponse(chunks())
        assert CachedResponse.capture(streaming) is streaming

    def test_restore_passes_through_responses(self):
        response = PlainTextResponse("ok")
        assert CachedResponse.restore(response) is response
