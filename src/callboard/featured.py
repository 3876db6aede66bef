"""featured.py — The ordered list of featured links.

Stored as a Redis list of JSON strings. Edits rewrite the whole list
through optimistic.mutate, so two admins editing at once either both
land or one of them retries against the fresh list. Clearing is a
single DEL and needs no guard.
"""

from __future__ import annotations

import redis.asyncio as aioredis

from .keys import Keys
from .models import FeaturedItem, any_int
from .optimistic import DEFAULT_MAX_ATTEMPTS, INVALID, list_reader, list_writer, mutate
from .store import store_errors

_read = list_reader(FeaturedItem.from_json)
_write = list_writer(FeaturedItem.to_json)


class FeaturedList:
    """Featured links with race-free add and remove."""

    def __init__(
        self,
        client: aioredis.Redis,
        keys: Keys,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self._client = client
        self._key = keys.featured_contents
        self._max_attempts = max_attempts

    async def items(self) -> list[FeaturedItem]:
        with store_errors("featured.items"):
            return await _read(self._client, self._key)

    async def _mutate(self, transform) -> list[FeaturedItem]:
        return await mutate(
            self._client,
            self._key,
            transform,
            read=_read,
            write=_write,
            max_attempts=self._max_attempts,
        )

    async def add(self, item: FeaturedItem) -> list[FeaturedItem]:
        """Append an item. Returns the committed list."""
        return await self._mutate(lambda items: [*items, item])

    async def remove(self, item: FeaturedItem) -> list[FeaturedItem]:
        """Remove the first exact (text, url) match.

        Raises ValidationError if the item isn't in the list.
        """

        def drop_first(items: list[FeaturedItem]):
            if item not in items:
                return INVALID
            i = items.index(item)
            return items[:i] + items[i + 1:]

        return await self._mutate(drop_first)

    async def remove_at(self, index) -> tuple[FeaturedItem, list[FeaturedItem]]:
        """Remove the item at index, judged against the list as read.

        Returns the removed item and the committed list. Raises
        ValidationError if index is out of range at read time.
        """
        i = any_int(index, "index")
        removed: list[FeaturedItem] = []

        def drop_at(items: list[FeaturedItem]):
            removed.clear()
            if not 0 <= i < len(items):
                return INVALID
            removed.append(items[i])
            return items[:i] + items[i + 1:]

        result = await self._mutate(drop_at)
        return removed[0], result

    async def clear(self) -> None:
        with store_errors("featured.clear"):
            await self._client.delete(self._key)
