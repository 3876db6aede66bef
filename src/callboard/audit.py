"""audit.py — The admin log.

A bounded Redis list, newest first. Every administrative change appends
one human-readable line like "[14:03:27] (alice) Number set to 42".
"""

from __future__ import annotations

import pendulum
import redis.asyncio as aioredis

from .keys import MAX_ADMIN_LOG, Keys
from .store import store_errors

SYSTEM_ACTOR = "system"


def format_entry(message: str, actor: str, timezone: str = "UTC") -> str:
    stamp = pendulum.now(timezone).format("HH:mm:ss")
    return f"[{stamp}] ({actor}) {message}"


class AdminLog:
    def __init__(
        self,
        client: aioredis.Redis,
        keys: Keys,
        timezone: str = "UTC",
        limit: int = MAX_ADMIN_LOG,
    ):
        self._client = client
        self._key = keys.admin_log
        self._timezone = timezone
        self._limit = limit

    async def append(self, message: str, actor: str = SYSTEM_ACTOR) -> str:
        """Push one entry and trim to the limit. Returns the formatted entry."""
        entry = format_entry(message, actor, self._timezone)
        with store_errors("admin_log.append"):
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.lpush(self._key, entry)
                pipe.ltrim(self._key, 0, self._limit - 1)
                await pipe.execute()
        return entry

    async def recent(self) -> list[str]:
        with store_errors("admin_log.recent"):
            return await self._client.lrange(self._key, 0, self._limit - 1)

    async def clear(self) -> None:
        with store_errors("admin_log.clear"):
            await self._client.delete(self._key)
