"""optimistic.py — Watch, read, transform, conditional write, retry.

The read-modify-write loop for values that can't be changed with a
single atomic command (a whole list rewritten at once, say).

    1. WATCH the key on a dedicated connection
    2. read the current value
    3. transform it (or bail out with INVALID)
    4. MULTI / write / EXEC — Redis refuses the EXEC if anyone touched
       the key since step 1
    5. on refusal, start over; give up after max_attempts

No locks are held. Under contention somebody retries, nobody waits,
and no write is ever computed from a stale read.

Usage:
    items = await mutate(
        client, key, lambda xs: xs + ["new"],
        read=list_reader(json.loads),
        write=list_writer(json.dumps),
    )
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

import logfire
import redis.asyncio as aioredis
from redis.asyncio.client import Pipeline
from redis.exceptions import WatchError

from .errors import ConcurrencyConflictError, StoreUnavailableError, ValidationError
from .store import store_errors

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5


class _Invalid:
    """Sentinel type: the transform rejected the edit."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "INVALID"


INVALID: Any = _Invalid()

Reader = Callable[[Pipeline, str], Awaitable[T]]
Writer = Callable[[Pipeline, str, T], None]
Transform = Callable[[T], T]


async def mutate(
    client: aioredis.Redis,
    key: str,
    transform: Transform,
    *,
    read: Reader,
    write: Writer,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> T:
    """Apply transform to the value at key under optimistic concurrency.

    Args:
        client: The shared Redis client. Each attempt takes its own
                pipeline connection so WATCH state never leaks.
        key: The key being guarded.
        transform: Pure function current -> new. Return INVALID (or raise
                   ValidationError) to reject the edit; the store is left
                   untouched either way.
        read: Coroutine reading the current value through the watching
              pipeline (immediate mode).
        write: Function queueing the write commands on the pipeline after
               MULTI (buffered mode, not awaited).
        max_attempts: Conflicts tolerated before giving up.

    Returns:
        The value that was committed.

    Raises:
        ValidationError: transform rejected the edit.
        ConcurrencyConflictError: every attempt lost the race.
        StoreUnavailableError: the store failed.
    """
    for attempt in range(1, max_attempts + 1):
        async with client.pipeline(transaction=True) as pipe:
            try:
                with store_errors(f"mutate {key}"):
                    await pipe.watch(key)
                    current = await read(pipe, key)

                    candidate = transform(current)
                    if candidate is INVALID:
                        raise ValidationError(f"Invalid edit of {key}")

                    pipe.multi()
                    write(pipe, key, candidate)
                    await pipe.execute()
            except WatchError:
                logfire.info(
                    "Write conflict on {key} (attempt {attempt}/{max_attempts})",
                    key=key,
                    attempt=attempt,
                    max_attempts=max_attempts,
                )
                continue
        return candidate

    logfire.warning("Giving up on {key} after {attempts} conflicts", key=key, attempts=max_attempts)
    raise ConcurrencyConflictError(key=key, attempts=max_attempts)


# -- List codec helpers -------------------------------------------------------


def list_reader(decode: Callable[[str], T]) -> Reader:
    """Reader for a Redis list whose elements are encoded with decode's inverse.

    An element decode can't handle raises StoreUnavailableError: the
    stored value is broken, not the caller's input.
    """

    async def read(pipe: Pipeline | aioredis.Redis, key: str) -> list[T]:
        raw = await pipe.lrange(key, 0, -1)
        try:
            return [decode(item) for item in raw]
        except (TypeError, ValueError) as e:
            logfire.error("Undecodable entry in {key}: {error}", key=key, error=str(e))
            raise StoreUnavailableError(f"Undecodable entry in {key}") from e

    return read


def list_writer(encode: Callable[[T], str]) -> Writer:
    """Writer that replaces the whole list. An empty list deletes the key."""

    def write(pipe: Pipeline, key: str, items: list[T]) -> None:
        pipe.delete(key)
        if items:
            pipe.rpush(key, *[encode(item) for item in items])

    return write
