"""
Shared test fixtures.

HTTP collaborators are real local aiohttp servers; the durable store is the
in-memory implementation.
"""

from typing import List

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from outreach_core.store import InMemoryRecordStore
from outreach_core.transport import RetryableTransport
from outreach_core.utils.logging import LoggerAdaptor


class SleepRecorder:
    """Backoff sleeper that records requested delays instead of waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    monkeypatch.setenv("OUTREACH_ENV", "test")
    monkeypatch.setenv("OUTREACH_LOG_LEVEL", "WARNING")
    LoggerAdaptor.clear_instances()
    yield
    LoggerAdaptor.clear_instances()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def memory_store():
    return InMemoryRecordStore()


@pytest.fixture
async def start_server():
    """Factory fixture: start an aiohttp app on a local port."""
    servers: List[TestServer] = []

    async def _start(app: web.Application) -> TestServer:
        server = TestServer(app)
        await server.start_server()
        servers.append(server)
        return server

    yield _start

    for server in servers:
        await server.close()


@pytest.fixture
async def transport(sleeper):
    transport = RetryableTransport(sleep=sleeper)
    yield transport
    await transport.close()
