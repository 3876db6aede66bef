"""board.py — The board as one service.

Board is what the HTTP handlers and the CLI talk to. Every mutating
operation follows the same shape:

    validate → change the store → append to the admin log →
    broadcast the new state → rewrite and broadcast the timestamp

Validation happens before the store is touched, so a rejected request
changes nothing and broadcasts nothing.

Usage:
    board = Board(client, Keys(), broadcaster)
    await board.next(actor="alice")
    snapshot = await board.snapshot()
"""

from __future__ import annotations

import logfire
import redis.asyncio as aioredis

from .audit import SYSTEM_ACTOR, AdminLog
from .broadcast import Broadcaster
from .counter import CounterAdjuster
from .errors import StoreUnavailableError, ValidationError
from .featured import FeaturedList
from .keys import Keys
from .models import (
    EVENT_ADMIN_LOG,
    EVENT_ADMIN_LOG_INIT,
    EVENT_FEATURED,
    EVENT_NUMBER,
    EVENT_PASSED,
    EVENT_PUBLIC,
    EVENT_SOUND,
    EVENT_TIMESTAMP,
    FeaturedItem,
    Snapshot,
    any_int,
    positive_int,
)
from .optimistic import DEFAULT_MAX_ATTEMPTS
from .passed import PassedNumbers
from .settings import BoardSettings, encode_flag
from .snapshot import now_iso, read_snapshot
from .store import store_errors


def _featured_payload(items: list[FeaturedItem]) -> list[dict[str, str]]:
    return [item.to_dict() for item in items]


class Board:
    """Queue-number board backed by Redis, broadcasting every change."""

    def __init__(
        self,
        client: aioredis.Redis,
        keys: Keys,
        broadcaster: Broadcaster,
        timezone: str = "UTC",
        featured_retries: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self._client = client
        self._keys = keys
        self._broadcaster = broadcaster
        self.counter = CounterAdjuster(client, keys)
        self.passed = PassedNumbers(client, keys)
        self.featured = FeaturedList(client, keys, max_attempts=featured_retries)
        self.settings = BoardSettings(client, keys)
        self.admin_log = AdminLog(client, keys, timezone=timezone)

    @property
    def broadcaster(self) -> Broadcaster:
        return self._broadcaster

    # -- Shared steps ---------------------------------------------------------

    async def _touch(self) -> str:
        """Rewrite last-updated and tell everyone."""
        now = now_iso()
        with store_errors("touch"):
            await self._client.set(self._keys.last_updated, now)
        await self._broadcaster.publish(EVENT_TIMESTAMP, now)
        return now

    async def _log(self, message: str, actor: str) -> None:
        """Append to the admin log and broadcast the entry.

        The change being logged has already committed, so a failed append
        is reported here and not raised.
        """
        try:
            entry = await self.admin_log.append(message, actor)
        except StoreUnavailableError:
            logfire.error("Admin log append failed: {message}", message=message)
            return
        await self._broadcaster.publish(EVENT_ADMIN_LOG, entry)

    # -- Reads ----------------------------------------------------------------

    async def snapshot(self) -> Snapshot:
        return await read_snapshot(self._client, self._keys)

    async def admin_logs(self) -> list[str]:
        return await self.admin_log.recent()

    # -- Current number -------------------------------------------------------

    async def next(self, actor: str = SYSTEM_ACTOR) -> int:
        with logfire.span("board.next", actor=actor):
            number = await self.counter.next()
            await self._broadcaster.publish(EVENT_NUMBER, number)
            await self._log(f"Number advanced to {number}", actor)
            await self._touch()
            return number

    async def previous(self, actor: str = SYSTEM_ACTOR) -> int:
        with logfire.span("board.previous", actor=actor):
            number, moved = await self.counter.previous()
            await self._broadcaster.publish(EVENT_NUMBER, number)
            if moved:
                await self._log(f"Number moved back to {number}", actor)
            await self._touch()
            return number

    async def change(self, direction: str, actor: str = SYSTEM_ACTOR) -> int:
        """Step the number by direction ("next" or "prev")."""
        if direction == "next":
            return await self.next(actor)
        if direction == "prev":
            return await self.previous(actor)
        raise ValidationError("direction must be 'next' or 'prev'")

    async def set_exact(self, value, actor: str = SYSTEM_ACTOR) -> int:
        with logfire.span("board.set_exact", actor=actor):
            number = await self.counter.set_exact(value)
            await self._broadcaster.publish(EVENT_NUMBER, number)
            await self._log(f"Number set to {number}", actor)
            await self._touch()
            return number

    # -- Passed numbers -------------------------------------------------------

    async def add_passed(self, value, actor: str = SYSTEM_ACTOR) -> list[int]:
        n = positive_int(value)
        with logfire.span("board.add_passed", actor=actor):
            numbers = await self.passed.add(n)
            await self._log(f"Passed number {n} added", actor)
            await self._broadcaster.publish(EVENT_PASSED, numbers)
            await self._touch()
            return numbers

    async def remove_passed(self, value, actor: str = SYSTEM_ACTOR) -> list[int]:
        n = any_int(value)
        with logfire.span("board.remove_passed", actor=actor):
            numbers = await self.passed.remove(n)
            await self._log(f"Passed number {n} removed", actor)
            await self._broadcaster.publish(EVENT_PASSED, numbers)
            await self._touch()
            return numbers

    async def clear_passed(self, actor: str = SYSTEM_ACTOR) -> list[int]:
        with logfire.span("board.clear_passed", actor=actor):
            await self.passed.clear()
            await self._log("Passed numbers cleared", actor)
            await self._broadcaster.publish(EVENT_PASSED, [])
            await self._touch()
            return []

    # -- Featured contents ----------------------------------------------------

    async def add_featured(self, link_text, link_url, actor: str = SYSTEM_ACTOR) -> list[FeaturedItem]:
        item = FeaturedItem.create(link_text, link_url)
        with logfire.span("board.add_featured", actor=actor):
            items = await self.featured.add(item)
            await self._log(f"Featured link added: {item.link_text}", actor)
            await self._broadcaster.publish(EVENT_FEATURED, _featured_payload(items))
            await self._touch()
            return items

    async def remove_featured(self, link_text, link_url, actor: str = SYSTEM_ACTOR) -> list[FeaturedItem]:
        """Remove the first item matching the (text, url) pair.

        Both are normalized the way add_featured normalizes them.
        """
        item = FeaturedItem.create(link_text, link_url)
        with logfire.span("board.remove_featured", actor=actor):
            items = await self.featured.remove(item)
            await self._log(f"Featured link removed: {item.link_text}", actor)
            await self._broadcaster.publish(EVENT_FEATURED, _featured_payload(items))
            await self._touch()
            return items

    async def remove_featured_at(self, index, actor: str = SYSTEM_ACTOR) -> list[FeaturedItem]:
        """Remove by position, judged against the freshest list."""
        with logfire.span("board.remove_featured_at", actor=actor, index=index):
            removed, items = await self.featured.remove_at(index)
            await self._log(f"Featured link removed: {removed.link_text}", actor)
            await self._broadcaster.publish(EVENT_FEATURED, _featured_payload(items))
            await self._touch()
            return items

    async def clear_featured(self, actor: str = SYSTEM_ACTOR) -> list[FeaturedItem]:
        with logfire.span("board.clear_featured", actor=actor):
            await self.featured.clear()
            await self._log("Featured links cleared", actor)
            await self._broadcaster.publish(EVENT_FEATURED, [])
            await self._touch()
            return []

    # -- Settings -------------------------------------------------------------

    async def set_sound_enabled(self, enabled, actor: str = SYSTEM_ACTOR) -> bool:
        with logfire.span("board.set_sound_enabled", actor=actor):
            flag = await self.settings.set_sound_enabled(enabled)
            await self._log(f"Display sound {'on' if flag else 'off'}", actor)
            await self._broadcaster.publish(EVENT_SOUND, flag)
            await self._touch()
            return flag

    async def set_public(self, is_public, actor: str = SYSTEM_ACTOR) -> bool:
        with logfire.span("board.set_public", actor=actor):
            flag = await self.settings.set_public(is_public)
            await self._log(f"Display {'open to the public' if flag else 'in maintenance'}", actor)
            await self._broadcaster.publish(EVENT_PUBLIC, flag)
            await self._touch()
            return flag

    # -- Whole board ----------------------------------------------------------

    async def clear_logs(self, actor: str = SYSTEM_ACTOR) -> None:
        with logfire.span("board.clear_logs", actor=actor):
            await self.admin_log.clear()
            await self._broadcaster.publish(EVENT_ADMIN_LOG_INIT, [])
            await self._log("Admin log cleared", actor)

    async def reset_all(self, actor: str = SYSTEM_ACTOR) -> Snapshot:
        """Put every key back to its initial value in one transaction."""
        keys = self._keys
        with logfire.span("board.reset_all", actor=actor):
            with store_errors("reset_all"):
                async with self._client.pipeline(transaction=True) as pipe:
                    pipe.set(keys.current_number, 0)
                    pipe.delete(keys.passed_numbers)
                    pipe.delete(keys.featured_contents)
                    pipe.set(keys.sound_enabled, encode_flag(True))
                    pipe.set(keys.is_public, encode_flag(True))
                    pipe.delete(keys.admin_log)
                    await pipe.execute()

            fresh = Snapshot()
            for event, data in fresh.events():
                if event != EVENT_TIMESTAMP:
                    await self._broadcaster.publish(event, data)
            await self._broadcaster.publish(EVENT_ADMIN_LOG_INIT, [])
            await self._log("Board reset", actor)
            fresh.last_updated = await self._touch()
            logfire.info("Board reset by {actor}", actor=actor)
            return fresh
