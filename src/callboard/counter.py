"""counter.py — The current number.

Every change is a single atomic primitive on the store: INCR for next,
a server-side Lua script for the floor-at-zero decrement, SET for an
exact value. There is no read-then-write path, so concurrent admins
can't lose each other's updates.
"""

from __future__ import annotations

import redis.asyncio as aioredis

from .keys import Keys
from .models import non_negative_int
from .store import DECR_IF_POSITIVE, store_errors


class CounterAdjuster:
    """Atomic increment, floor-limited decrement, and exact set."""

    def __init__(self, client: aioredis.Redis, keys: Keys):
        self._client = client
        self._key = keys.current_number
        self._decr_if_positive = client.register_script(DECR_IF_POSITIVE)

    async def current(self) -> int:
        with store_errors("counter.current"):
            raw = await self._client.get(self._key)
        return int(raw or 0)

    async def next(self) -> int:
        """Increment and return the new value."""
        with store_errors("counter.next"):
            return int(await self._client.incr(self._key))

    async def previous(self) -> tuple[int, bool]:
        """Decrement unless already at zero.

        Returns:
            (value, moved) — the stored value after the call, and whether
            it actually changed. At zero this is (0, False).
        """
        with store_errors("counter.previous"):
            value, moved = await self._decr_if_positive(keys=[self._key])
        return int(value), bool(int(moved))

    async def set_exact(self, value) -> int:
        """Overwrite unconditionally. Value must be a non-negative integer."""
        n = non_negative_int(value)
        with store_errors("counter.set_exact"):
            await self._client.set(self._key, n)
        return n
