"""snapshot.py — Everything a newly connected client needs, in one read.

All six keys are read inside a single MULTI, so a client never sees a
counter from before a reset next to a featured list from after it.
"""

from __future__ import annotations

import pendulum
import redis.asyncio as aioredis

from .errors import StoreUnavailableError
from .keys import MAX_PASSED_NUMBERS, Keys
from .models import FeaturedItem, Snapshot
from .settings import decode_flag
from .store import store_errors


def now_iso() -> str:
    return pendulum.now("UTC").to_iso8601_string()


async def read_snapshot(client: aioredis.Redis, keys: Keys) -> Snapshot:
    """Read the whole board atomically.

    Raises:
        StoreUnavailableError: the transaction failed. Nothing partial
            is ever returned.
    """
    with store_errors("snapshot"):
        async with client.pipeline(transaction=True) as pipe:
            pipe.get(keys.current_number)
            pipe.zrange(keys.passed_numbers, -MAX_PASSED_NUMBERS, -1)
            pipe.lrange(keys.featured_contents, 0, -1)
            pipe.get(keys.last_updated)
            pipe.get(keys.sound_enabled)
            pipe.get(keys.is_public)
            number, passed, featured, updated, sound, public = await pipe.execute()

    try:
        return Snapshot(
            current_number=int(number or 0),
            passed_numbers=[int(n) for n in passed or []],
            featured_contents=[FeaturedItem.from_json(r) for r in featured or []],
            last_updated=updated or now_iso(),
            sound_enabled=decode_flag(sound),
            is_public=decode_flag(public),
        )
    except (TypeError, ValueError) as e:
        raise StoreUnavailableError("Snapshot contained undecodable data") from e
