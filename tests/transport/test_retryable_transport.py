"""
Tests for RetryableTransport.

Requests go to a local aiohttp server that replays a scripted sequence of
status codes; backoff waits are recorded instead of slept.
"""

import asyncio
from typing import List

import pytest
from aiohttp import web

from outreach_core.exceptions import TransportExhaustedError
from outreach_core.transport import RetryableTransport, RetryPolicy, TransportResponse


def scripted_app(statuses: List[int], hits: List[dict]) -> web.Application:
    """App answering POST /hook with the next scripted status."""
    script = iter(statuses)

    async def hook(request: web.Request) -> web.Response:
        hits.append({"body": await request.json(), "headers": dict(request.headers)})
        status = next(script)
        return web.json_response({"status": status, "attempt": len(hits)}, status=status)

    app = web.Application()
    app.router.add_post("/hook", hook)
    return app


# ============================================================================
# RetryPolicy
# ============================================================================

class TestRetryPolicy:

    def test_default_policy(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert policy.initial_delay_ms == 1000
        assert policy.backoff_factor == 2

    def test_delay_grows_exponentially(self):
        policy = RetryPolicy(max_attempts=4, initial_delay_ms=100, backoff_factor=3)
        assert policy.delay_for_retry(1) == 100
        assert policy.delay_for_retry(2) == 300
        assert policy.delay_for_retry(3) == 900
        assert policy.delays() == [100, 300, 900]

    def test_delays_are_monotonic(self):
        delays = RetryPolicy(max_attempts=6, initial_delay_ms=50, backoff_factor=1.5).delays()
        assert delays == sorted(delays)
        assert len(delays) == 5

    def test_single_attempt_has_no_delays(self):
        assert RetryPolicy(max_attempts=1).delays() == []

    def test_retry_number_starts_at_one(self):
        with pytest.raises(ValueError):
            RetryPolicy().delay_for_retry(0)

    @pytest.mark.parametrize("kwargs", [
        {"max_attempts": 0},
        {"initial_delay_ms": -1},
        {"backoff_factor": 0.5},
    ])
    def test_invalid_policy_rejected(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)

    def test_policy_is_frozen(self):
        policy = RetryPolicy()
        with pytest.raises(ValueError):
            policy.max_attempts = 5


# ============================================================================
# TransportResponse
# ============================================================================

class TestTransportResponse:

    def test_ok_only_for_2xx(self):
        assert TransportResponse(status=204).ok
        assert not TransportResponse(status=302).ok
        assert not TransportResponse(status=404).ok

    def test_json_and_text(self):
        response = TransportResponse(status=200, body=b'{"a": 1}')
        assert response.text() == '{"a": 1}'
        assert response.json() == {"a": 1}

    def test_invalid_json_raises_value_error(self):
        with pytest.raises(ValueError):
            TransportResponse(status=200, body=b"not json").json()


# ============================================================================
# Retry behaviour
# ============================================================================

@pytest.mark.integration
class TestRetryableTransport:

    @pytest.mark.asyncio
    async def test_recovers_after_server_errors(self, start_server, transport, sleeper):
        hits: List[dict] = []
        server = await start_server(scripted_app([500, 500, 200], hits))

        response = await transport.execute(
            str(server.make_url("/hook")),
            payload={"company": "Acme"},
            policy=RetryPolicy(max_attempts=3, initial_delay_ms=1000, backoff_factor=2),
        )

        assert response.status == 200
        assert response.attempts == 3
        assert response.json()["attempt"] == 3
        assert len(hits) == 3
        assert all(hit["body"] == {"company": "Acme"} for hit in hits)
        assert sleeper.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhausts_after_max_attempts(self, start_server, transport, sleeper):
        hits: List[dict] = []
        server = await start_server(scripted_app([500, 500, 500], hits))

        with pytest.raises(TransportExhaustedError) as exc_info:
            await transport.execute(str(server.make_url("/hook")), payload={})

        error = exc_info.value
        assert error.attempts == 3
        assert error.last_status == 500
        assert "500" in error.last_error
        assert len(hits) == 3
        # no wait after the final attempt
        assert sleeper.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_client_error_is_terminal(self, start_server, transport, sleeper):
        hits: List[dict] = []
        server = await start_server(scripted_app([404], hits))

        response = await transport.execute(str(server.make_url("/hook")), payload={})

        assert response.status == 404
        assert response.attempts == 1
        assert not response.ok
        assert len(hits) == 1
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_backoff_follows_policy(self, start_server, transport, sleeper):
        hits: List[dict] = []
        server = await start_server(scripted_app([503, 502, 500, 201], hits))

        response = await transport.execute(
            str(server.make_url("/hook")),
            payload={},
            policy=RetryPolicy(max_attempts=4, initial_delay_ms=10, backoff_factor=3),
        )

        assert response.status == 201
        assert sleeper.delays == pytest.approx([0.01, 0.03, 0.09])

    @pytest.mark.asyncio
    async def test_headers_are_sent(self, start_server, transport):
        hits: List[dict] = []
        server = await start_server(scripted_app([200], hits))

        await transport.execute(
            str(server.make_url("/hook")),
            headers={"X-N8N-API-KEY": "secret"},
            payload={},
        )

        assert hits[0]["headers"]["X-N8N-API-KEY"] == "secret"

    @pytest.mark.asyncio
    async def test_connection_errors_are_retried(self, sleeper):
        # Nothing listens on the port once the server is gone
        server_app = web.Application()
        from aiohttp.test_utils import TestServer
        server = TestServer(server_app)
        await server.start_server()
        url = str(server.make_url("/hook"))
        await server.close()

        transport = RetryableTransport(sleep=sleeper)
        try:
            with pytest.raises(TransportExhaustedError) as exc_info:
                await transport.execute(url, payload={}, policy=RetryPolicy(max_attempts=2, initial_delay_ms=5))
        finally:
            await transport.close()

        assert exc_info.value.attempts == 2
        assert exc_info.value.last_status is None
        assert sleeper.delays == [0.005]

    @pytest.mark.asyncio
    async def test_default_sleep_is_non_blocking(self, start_server):
        hits: List[dict] = []
        server = await start_server(scripted_app([500, 200], hits))
        transport = RetryableTransport()
        ticks = []

        async def ticker():
            for _ in range(3):
                ticks.append(1)
                await asyncio.sleep(0.005)

        try:
            _, response = await asyncio.gather(
                ticker(),
                transport.execute(
                    str(server.make_url("/hook")),
                    payload={},
                    policy=RetryPolicy(max_attempts=2, initial_delay_ms=30),
                ),
            )
        finally:
            await transport.close()

        assert response.status == 200
        assert len(ticks) == 3


# ============================================================================
# Session ownership
# ============================================================================

@pytest.mark.asyncio
async def test_borrowed_session_is_left_open():
    import aiohttp

    async with aiohttp.ClientSession() as session:
        transport = RetryableTransport(session=session)
        await transport.close()
        assert not session.closed


@pytest.mark.asyncio
async def test_owned_session_closed_on_exit(start_server):
    hits: List[dict] = []
    server = await start_server(scripted_app([200], hits))

    async with RetryableTransport() as transport:
        await transport.execute(str(server.make_url("/hook")), payload={})
        session = transport._session

    assert session.closed
