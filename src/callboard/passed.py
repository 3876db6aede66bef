"""passed.py — Numbers that were called and skipped.

A sorted set scored by the number itself, so duplicates collapse and
the display order is ascending. After each add the set is trimmed to
the highest MAX_PASSED_NUMBERS. Every operation is one MULTI that also
reads back the resulting list, so the caller broadcasts exactly what
was committed.
"""

from __future__ import annotations

import redis.asyncio as aioredis

from .keys import MAX_PASSED_NUMBERS, Keys
from .models import any_int, positive_int
from .store import store_errors


class PassedNumbers:
    def __init__(self, client: aioredis.Redis, keys: Keys, limit: int = MAX_PASSED_NUMBERS):
        self._client = client
        self._key = keys.passed_numbers
        self._limit = limit

    async def numbers(self) -> list[int]:
        with store_errors("passed.numbers"):
            raw = await self._client.zrange(self._key, -self._limit, -1)
        return [int(n) for n in raw]

    async def add(self, number) -> list[int]:
        """Add a positive integer. Adding one already present is a no-op."""
        n = positive_int(number)
        with store_errors("passed.add"):
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.zadd(self._key, {str(n): n})
                pipe.zremrangebyrank(self._key, 0, -(self._limit + 1))
                pipe.zrange(self._key, -self._limit, -1)
                *_, raw = await pipe.execute()
        return [int(x) for x in raw]

    async def remove(self, number) -> list[int]:
        n = any_int(number)
        with store_errors("passed.remove"):
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.zrem(self._key, str(n))
                pipe.zrange(self._key, -self._limit, -1)
                _, raw = await pipe.execute()
        return [int(x) for x in raw]

    async def clear(self) -> None:
        with store_errors("passed.clear"):
            await self._client.delete(self._key)
