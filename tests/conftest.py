"""Shared test fixtures for callboard.

Redis is fakeredis: one FakeServer per test, shared by every client the
test creates, so two clients see each other's writes exactly like two
connections to a real server. Lua scripts run through lupa.
"""

import asyncio

import fakeredis
import pytest
import pytest_asyncio

from callboard.board import Board
from callboard.broadcast import Broadcaster
from callboard.keys import Keys


# -- Markers ------------------------------------------------------------------


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "integration: marks tests that need a live Redis (CALLBOARD_TEST_REDIS_URL)",
    )


# -- Store fixtures -----------------------------------------------------------


@pytest.fixture
def redis_server():
    """One in-memory Redis server per test."""
    return fakeredis.FakeServer()


@pytest_asyncio.fixture
async def redis_client(redis_server):
    """Async client, as the application uses."""
    client = fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def meddler(redis_server):
    """A second, synchronous client on the same server.

    Usable from inside a sync transform to simulate another writer
    sneaking in between WATCH and EXEC.
    """
    return fakeredis.FakeRedis(server=redis_server, decode_responses=True)


@pytest.fixture
def keys():
    return Keys(prefix="test")


# -- Board fixtures -----------------------------------------------------------


@pytest.fixture
def broadcaster():
    """Local fan-out, no backplane."""
    return Broadcaster()


@pytest.fixture
def board(redis_client, keys, broadcaster):
    return Board(redis_client, keys, broadcaster)


# -- Helpers ------------------------------------------------------------------


def drain(queue: asyncio.Queue) -> list[dict]:
    """Everything currently waiting in a subscriber queue."""
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


def event_types(events: list[dict]) -> list[str]:
    return [e["type"] for e in events if e is not None]
