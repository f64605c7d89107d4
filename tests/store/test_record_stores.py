"""
Tests for the record store adapters.

- InMemoryRecordStore: CRUD and the synchronous change feed
- PostgrestRecordStore: request shape against a local aiohttp app
- RealtimeChangeFeed: join, delivery and leave against a local websocket server
"""

import asyncio
import json
import logging
from typing import List

import pytest
from aiohttp import web
from websockets.asyncio.server import serve

from outreach_core.exceptions import StoreError
from outreach_core.store import InMemoryRecordStore, PostgrestRecordStore, RealtimeChangeFeed, matches_filters


async def wait_until(predicate, timeout: float = 2.0) -> None:
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.005)
    await asyncio.wait_for(_poll(), timeout)


# ============================================================================
# InMemoryRecordStore
# ============================================================================

class TestInMemoryRecordStore:

    def test_matches_filters(self):
        assert matches_filters({"a": 1}, None)
        assert matches_filters({"a": 1, "b": 2}, {"a": 1})
        assert not matches_filters({"a": 1}, {"a": 2})

    @pytest.mark.asyncio
    async def test_insert_assigns_id(self, memory_store):
        stored = await memory_store.insert("results", {"webhook_id": "t-1"})
        assert stored["id"]
        assert stored["created_at"]
        assert await memory_store.find_one("results", "webhook_id", "t-1") == stored
        assert await memory_store.find_one("results", "webhook_id", "t-2") is None
        assert memory_store.lookups == 2

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, memory_store):
        stored = await memory_store.insert("results", {"webhook_id": "t-1", "data": {"n": 1}})
        stored["data"]["n"] = 99
        found = await memory_store.find_one("results", "webhook_id", "t-1")
        assert found["data"] == {"n": 1}

    @pytest.mark.asyncio
    async def test_update_and_delete(self, memory_store):
        await memory_store.insert("results", {"webhook_id": "t-1", "status": "pending"})
        await memory_store.insert("results", {"webhook_id": "t-2", "status": "pending"})

        updated = await memory_store.update("results", {"webhook_id": "t-1"}, {"status": "done"})
        assert [r["status"] for r in updated] == ["done"]

        assert await memory_store.delete("results", {"status": "pending"}) == 1
        assert [r["webhook_id"] for r in memory_store.records("results")] == ["t-1"]

    @pytest.mark.asyncio
    async def test_change_feed(self, memory_store):
        seen: List[dict] = []
        unsubscribe = memory_store.subscribe("results", seen.append, {"user_id": "u-1"})

        await memory_store.insert("results", {"webhook_id": "a", "user_id": "u-1"})
        await memory_store.insert("results", {"webhook_id": "b", "user_id": "u-2"})
        await memory_store.insert("other", {"webhook_id": "c", "user_id": "u-1"})
        await memory_store.update("results", {"webhook_id": "a"}, {"status": "done"})
        unsubscribe()
        await memory_store.insert("results", {"webhook_id": "d", "user_id": "u-1"})

        assert [(r["webhook_id"], r.get("status")) for r in seen] == [("a", None), ("a", "done")]
        assert memory_store.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_failing_subscriber_isolated(self, memory_store):
        seen: List[dict] = []

        def broken(record):
            raise RuntimeError("boom")

        memory_store.subscribe("results", broken)
        memory_store.subscribe("results", seen.append)

        await memory_store.insert("results", {"webhook_id": "a"})

        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe_during_notification(self, memory_store):
        handles = {}
        seen = []

        def once(record):
            seen.append(record)
            handles["first"]()

        handles["first"] = memory_store.subscribe("results", once)
        await memory_store.insert("results", {"webhook_id": "a"})
        await memory_store.insert("results", {"webhook_id": "b"})

        assert len(seen) == 1


# ============================================================================
# PostgrestRecordStore
# ============================================================================

class RestBackend:
    def __init__(self):
        self.requests: List[dict] = []
        self.rows = [{"id": 1, "webhook_id": "t-1"}]
        self.fail = False
        self.garbled = False

    def app(self) -> web.Application:
        async def handler(request: web.Request) -> web.Response:
            body = await request.json() if request.can_read_body else None
            self.requests.append({
                "method": request.method,
                "path": request.path,
                "query": dict(request.query),
                "headers": dict(request.headers),
                "body": body,
            })
            if self.fail:
                return web.json_response({"message": "permission denied"}, status=401)
            if self.garbled:
                return web.Response(text="<html>gateway</html>", content_type="text/html")
            if request.method == "GET":
                return web.json_response(self.rows if request.query.get("webhook_id") == "eq.t-1" else [])
            if request.method == "POST":
                return web.json_response([{**body, "id": 2}], status=201)
            return web.json_response(self.rows)

        app = web.Application()
        app.router.add_route("*", "/rest/v1/{collection}", handler)
        return app


@pytest.fixture
async def rest(start_server):
    backend = RestBackend()
    server = await start_server(backend.app())
    store = PostgrestRecordStore(f"http://{server.host}:{server.port}/", "service-key")
    yield backend, store
    await store.close()


@pytest.mark.integration
class TestPostgrestRecordStore:

    @pytest.mark.asyncio
    async def test_find_one(self, rest):
        backend, store = rest

        assert await store.find_one("workflow_results", "webhook_id", "t-1") == {"id": 1, "webhook_id": "t-1"}
        assert await store.find_one("workflow_results", "webhook_id", "t-9") is None

        request = backend.requests[0]
        assert request["path"] == "/rest/v1/workflow_results"
        assert request["query"] == {"webhook_id": "eq.t-1", "select": "*", "limit": "1"}
        assert request["headers"]["apikey"] == "service-key"
        assert request["headers"]["Authorization"] == "Bearer service-key"

    @pytest.mark.asyncio
    async def test_insert_returns_representation(self, rest):
        backend, store = rest

        stored = await store.insert("file_uploads", {"file_path": "u/1-a.pdf"})

        assert stored == {"file_path": "u/1-a.pdf", "id": 2}
        assert backend.requests[0]["headers"]["Prefer"] == "return=representation"

    @pytest.mark.asyncio
    async def test_update_and_delete(self, rest):
        backend, store = rest

        assert await store.update("workflow_results", {"webhook_id": "t-1"}, {"status": "done"}) == backend.rows
        assert await store.delete("workflow_results", {"webhook_id": "t-1"}) == 1
        assert backend.requests[0]["method"] == "PATCH"
        assert backend.requests[1]["query"] == {"webhook_id": "eq.t-1"}

    @pytest.mark.asyncio
    async def test_error_status_raises_store_error(self, rest):
        backend, store = rest
        backend.fail = True

        with pytest.raises(StoreError) as exc_info:
            await store.find_one("workflow_results", "webhook_id", "t-1")

        assert exc_info.value.details["status_code"] == 401

    @pytest.mark.asyncio
    async def test_undecodable_body_raises_store_error(self, rest):
        backend, store = rest
        backend.garbled = True

        with pytest.raises(StoreError):
            await store.find_one("workflow_results", "webhook_id", "t-1")

    @pytest.mark.asyncio
    async def test_no_change_feed(self, rest):
        _, store = rest
        assert store.supports_change_feed is False
        with pytest.raises(StoreError):
            store.subscribe("workflow_results", lambda record: None)


# ============================================================================
# RealtimeChangeFeed
# ============================================================================

class RealtimeServer:
    def __init__(self):
        self.received: List[dict] = []
        self.connections = []

    async def handler(self, connection) -> None:
        self.connections.append(connection)
        async for raw in connection:
            self.received.append(json.loads(raw))

    async def broadcast(self, change_type: str, record: dict) -> None:
        message = json.dumps({
            "event": "postgres_changes",
            "payload": {"data": {"type": change_type, "record": record}},
        })
        for connection in self.connections:
            await connection.send(message)


@pytest.fixture
async def realtime():
    state = RealtimeServer()
    async with serve(state.handler, "127.0.0.1", 0) as server:
        port = next(iter(server.sockets)).getsockname()[1]
        feed = RealtimeChangeFeed("http://unused", "anon-key", url=f"ws://127.0.0.1:{port}/realtime/v1/websocket")
        yield state, feed


@pytest.mark.integration
class TestRealtimeChangeFeed:

    def test_ws_url_from_project_url(self):
        feed = RealtimeChangeFeed("https://project.supabase.co/", "anon")
        assert feed.url == "wss://project.supabase.co/realtime/v1/websocket?apikey=anon&vsn=1.0.0"

    @pytest.mark.asyncio
    async def test_join_deliver_and_leave(self, realtime):
        server, feed = realtime
        seen: List[dict] = []

        unsubscribe = feed.subscribe("workflow_results", seen.append, {"user_id": "u-1"})
        await wait_until(lambda: server.received)

        join = server.received[0]
        assert join["event"] == "phx_join"
        change = join["payload"]["config"]["postgres_changes"][0]
        assert change == {"event": "*", "schema": "public", "table": "workflow_results", "filter": "user_id=eq.u-1"}

        await server.broadcast("INSERT", {"webhook_id": "a", "user_id": "u-1"})
        await server.broadcast("DELETE", {"webhook_id": "b", "user_id": "u-1"})
        await server.broadcast("UPDATE", {"webhook_id": "c", "user_id": "u-2"})
        await server.broadcast("UPDATE", {"webhook_id": "d", "user_id": "u-1"})
        await wait_until(lambda: len(seen) == 2)

        assert [r["webhook_id"] for r in seen] == ["a", "d"]
        assert feed.active_subscriptions == 1

        unsubscribe()
        unsubscribe()
        await wait_until(lambda: any(m["event"] == "phx_leave" for m in server.received))
        await wait_until(lambda: feed.active_subscriptions == 0)

    @pytest.mark.asyncio
    async def test_connection_failure_ends_subscription(self, caplog):
        async with serve(RealtimeServer().handler, "127.0.0.1", 0) as server:
            port = next(iter(server.sockets)).getsockname()[1]
        feed = RealtimeChangeFeed("http://unused", "anon-key", url=f"ws://127.0.0.1:{port}/realtime/v1/websocket")

        with caplog.at_level(logging.ERROR, logger="outreach.store.realtime"):
            feed.subscribe("workflow_results", lambda record: None)
            await wait_until(lambda: feed.active_subscriptions == 0)

        messages = [r.getMessage() for r in caplog.records]
        assert any("Change feed connection failed" in m for m in messages)
        assert not any("Change feed task failed" in m for m in messages)

    @pytest.mark.asyncio
    async def test_store_delegates_subscriptions(self, realtime):
        server, feed = realtime
        store = PostgrestRecordStore("http://unused", "key", change_feed=feed)
        seen: List[dict] = []

        assert store.supports_change_feed
        unsubscribe = store.subscribe("workflow_results", seen.append)
        await wait_until(lambda: server.received)
        await server.broadcast("INSERT", {"webhook_id": "x"})
        await wait_until(lambda: seen)
        unsubscribe()

        assert "filter" not in server.received[0]["payload"]["config"]["postgres_changes"][0]
