"""Tests for snapshot.py — the one-transaction board read."""

import pendulum
import pytest

from callboard.errors import StoreUnavailableError
from callboard.models import FeaturedItem, Snapshot
from callboard.snapshot import now_iso, read_snapshot


class TestReadSnapshot:
    @pytest.mark.asyncio
    async def test_fresh_board_defaults(self, redis_client, keys):
        snap = await read_snapshot(redis_client, keys)
        assert snap.current_number == 0
        assert snap.passed_numbers == []
        assert snap.featured_contents == []
        assert snap.sound_enabled is True
        assert snap.is_public is True
        # No stored timestamp yet, so it is "now"
        assert pendulum.parse(snap.last_updated)

    @pytest.mark.asyncio
    async def test_reads_every_key(self, redis_client, keys):
        await redis_client.set(keys.current_number, "42")
        await redis_client.zadd(keys.passed_numbers, {"3": 3, "1": 1})
        await redis_client.rpush(keys.featured_contents, FeaturedItem("Menu", "https://m").to_json())
        await redis_client.set(keys.last_updated, "2024-05-01T12:00:00Z")
        await redis_client.set(keys.sound_enabled, "0")
        await redis_client.set(keys.is_public, "0")

        snap = await read_snapshot(redis_client, keys)

        assert snap == Snapshot(
            current_number=42,
            passed_numbers=[1, 3],
            featured_contents=[FeaturedItem("Menu", "https://m")],
            last_updated="2024-05-01T12:00:00Z",
            sound_enabled=False,
            is_public=False,
        )

    @pytest.mark.asyncio
    async def test_events_in_wire_order(self, redis_client, keys):
        await redis_client.set(keys.current_number, "7")
        snap = await read_snapshot(redis_client, keys)
        events = list(snap.events())
        assert [e for e, _ in events] == [
            "update",
            "updatePassed",
            "updateFeaturedContents",
            "updateTimestamp",
            "updateSoundSetting",
            "updatePublicStatus",
        ]
        assert events[0] == ("update", 7)

    @pytest.mark.asyncio
    async def test_store_down(self, redis_client, keys, redis_server):
        redis_server.connected = False
        with pytest.raises(StoreUnavailableError):
            await read_snapshot(redis_client, keys)

    @pytest.mark.asyncio
    async def test_corrupt_data_is_an_error_not_a_partial_snapshot(self, redis_client, keys):
        await redis_client.set(keys.current_number, "not a number")
        with pytest.raises(StoreUnavailableError):
            await read_snapshot(redis_client, keys)

    @pytest.mark.asyncio
    async def test_corrupt_featured_entry(self, redis_client, keys):
        await redis_client.rpush(keys.featured_contents, "{broken")
        with pytest.raises(StoreUnavailableError):
            await read_snapshot(redis_client, keys)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("entry", ['"just a string"', "[1, 2]", "7"])
    async def test_featured_entry_that_is_not_an_object(self, redis_client, keys, entry):
        await redis_client.rpush(keys.featured_contents, entry)
        with pytest.raises(StoreUnavailableError):
            await read_snapshot(redis_client, keys)


class TestNowIso:
    def test_is_utc_iso8601(self):
        parsed = pendulum.parse(now_iso())
        assert parsed.utcoffset().total_seconds() == 0
