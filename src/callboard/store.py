"""store.py — The Redis connection and its failure boundary.

One client per process, created by connect(). Every module that talks
to Redis wraps its calls in store_errors() so callers only ever see
StoreUnavailableError, never a redis-py exception type.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import logfire
import redis.asyncio as aioredis
from redis.exceptions import RedisError, WatchError

from .errors import StoreUnavailableError

# Decrement only when positive. A missing key counts as 0.
# Returns {value, moved} where moved is 1 if the decrement happened.
DECR_IF_POSITIVE = """
local current = tonumber(redis.call("GET", KEYS[1]) or "0")
if current > 0 then
    return {redis.call("DECR", KEYS[1]), 1}
end
return {current, 0}
"""


def connect(url: str) -> aioredis.Redis:
    """Create the shared async client. Connections are opened lazily."""
    return aioredis.Redis.from_url(url, decode_responses=True)


async def ping(client: aioredis.Redis) -> None:
    """Fail fast at startup if the store isn't there."""
    with store_errors("ping"):
        await client.ping()
    logfire.info("Store reachable")


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate redis-py failures into StoreUnavailableError.

    WatchError passes through untouched: it is the optimistic loop's
    conflict signal, not a store failure.
    """
    try:
        yield
    except WatchError:
        raise
    except RedisError as e:
        logfire.error("Store failure during {operation}: {error}", operation=operation, error=str(e))
        raise StoreUnavailableError(f"Store unavailable during {operation}") from e
