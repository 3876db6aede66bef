"""settings.py — Board-wide boolean switches.

Stored as "1"/"0". A missing key means on: a fresh board makes sound
and is open to the public.
"""

from __future__ import annotations

import redis.asyncio as aioredis

from .keys import Keys
from .models import require_bool
from .store import store_errors


def decode_flag(raw: str | None) -> bool:
    return (raw if raw is not None else "1") == "1"


def encode_flag(value: bool) -> str:
    return "1" if value else "0"


class BoardSettings:
    def __init__(self, client: aioredis.Redis, keys: Keys):
        self._client = client
        self._keys = keys

    async def _get(self, key: str) -> bool:
        with store_errors("settings.get"):
            return decode_flag(await self._client.get(key))

    async def _set(self, key: str, value) -> bool:
        flag = require_bool(value, "value")
        with store_errors("settings.set"):
            await self._client.set(key, encode_flag(flag))
        return flag

    async def sound_enabled(self) -> bool:
        return await self._get(self._keys.sound_enabled)

    async def is_public(self) -> bool:
        return await self._get(self._keys.is_public)

    async def set_sound_enabled(self, enabled) -> bool:
        return await self._set(self._keys.sound_enabled, enabled)

    async def set_public(self, is_public) -> bool:
        return await self._set(self._keys.is_public, is_public)
