"""Tests for board.py — operations, the events they emit, and the admin log."""

import re

import pytest

from callboard.board import Board
from callboard.errors import StoreUnavailableError, ValidationError
from callboard.models import FeaturedItem
from conftest import drain, event_types


@pytest.fixture
def events(broadcaster):
    return broadcaster.subscribe()


def log_messages(entries):
    return [re.sub(r"^\[[^]]*\] \([^)]*\) ", "", e) for e in entries]


# -- The whole story ----------------------------------------------------------


class TestScenario:
    @pytest.mark.asyncio
    async def test_counter_featured_and_passed(self, board):
        for _ in range(3):
            await board.next()
        assert (await board.snapshot()).current_number == 3

        assert [await board.previous() for _ in range(4)] == [2, 1, 0, 0]

        await board.add_featured("Promo", "https://x.test")
        await board.add_passed(5)
        await board.add_passed(5)

        snap = await board.snapshot()
        assert snap.current_number == 0
        assert snap.featured_contents == [FeaturedItem("Promo", "https://x.test")]
        assert snap.passed_numbers == [5]

    @pytest.mark.asyncio
    async def test_bad_featured_url_changes_nothing(self, board, events):
        await board.add_featured("Promo", "https://x.test")
        drain(events)

        with pytest.raises(ValidationError):
            await board.add_featured("Bad", "ftp://bad")

        assert (await board.snapshot()).featured_contents == [FeaturedItem("Promo", "https://x.test")]
        assert drain(events) == []


# -- Events per operation -----------------------------------------------------


class TestNumberEvents:
    @pytest.mark.asyncio
    async def test_next(self, board, events):
        assert await board.next(actor="alice") == 1
        got = drain(events)
        assert event_types(got) == ["update", "newAdminLog", "updateTimestamp"]
        assert got[0]["data"] == 1
        assert "(alice) Number advanced to 1" in got[1]["data"]

    @pytest.mark.asyncio
    async def test_previous_at_floor_logs_nothing(self, board, events):
        assert await board.previous() == 0
        assert event_types(drain(events)) == ["update", "updateTimestamp"]
        assert await board.admin_logs() == []

    @pytest.mark.asyncio
    async def test_set_exact(self, board, events):
        assert await board.set_exact(42, actor="alice") == 42
        got = drain(events)
        assert event_types(got) == ["update", "newAdminLog", "updateTimestamp"]
        assert got[0]["data"] == 42

    @pytest.mark.asyncio
    async def test_set_exact_invalid_is_silent(self, board, events):
        with pytest.raises(ValidationError):
            await board.set_exact(-1)
        assert drain(events) == []
        assert await board.admin_logs() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("direction,expected", [("next", 6), ("prev", 4)])
    async def test_change(self, board, direction, expected):
        await board.set_exact(5)
        assert await board.change(direction) == expected

    @pytest.mark.asyncio
    async def test_change_rejects_unknown_direction(self, board, events):
        with pytest.raises(ValidationError):
            await board.change("sideways")
        assert drain(events) == []


class TestListEvents:
    @pytest.mark.asyncio
    async def test_add_passed(self, board, events):
        await board.add_passed(3)
        got = drain(events)
        assert event_types(got) == ["newAdminLog", "updatePassed", "updateTimestamp"]
        assert got[1]["data"] == [3]

    @pytest.mark.asyncio
    async def test_add_passed_rejects_zero(self, board, events):
        with pytest.raises(ValidationError):
            await board.add_passed(0)
        assert drain(events) == []

    @pytest.mark.asyncio
    async def test_remove_and_clear_passed(self, board, events):
        await board.add_passed(3)
        await board.add_passed(4)
        assert await board.remove_passed(3) == [4]
        assert await board.clear_passed() == []
        passed_payloads = [e["data"] for e in drain(events) if e["type"] == "updatePassed"]
        assert passed_payloads == [[3], [3, 4], [4], []]

    @pytest.mark.asyncio
    async def test_featured_payload_is_camel_case(self, board, events):
        await board.add_featured("Menu", "https://m.test")
        featured = [e for e in drain(events) if e["type"] == "updateFeaturedContents"]
        assert featured[0]["data"] == [{"linkText": "Menu", "linkUrl": "https://m.test"}]

    @pytest.mark.asyncio
    async def test_remove_featured_by_pair(self, board):
        await board.add_featured("A", "")
        await board.add_featured("B", "https://b.test")
        assert await board.remove_featured("A", "") == [FeaturedItem("B", "https://b.test")]

    @pytest.mark.asyncio
    async def test_remove_featured_by_pair_normalizes_like_add(self, board):
        await board.add_featured(" A ", " https://a.test ")
        assert await board.remove_featured(" A ", " https://a.test ") == []

    @pytest.mark.asyncio
    async def test_remove_featured_by_pair_requires_text(self, board):
        with pytest.raises(ValidationError):
            await board.remove_featured("", "https://b.test")

    @pytest.mark.asyncio
    async def test_remove_featured_at(self, board):
        await board.add_featured("A", "")
        await board.add_featured("B", "")
        assert await board.remove_featured_at(0, actor="alice") == [FeaturedItem("B")]
        assert log_messages(await board.admin_logs())[0] == "Featured link removed: A"

    @pytest.mark.asyncio
    async def test_remove_featured_at_out_of_range_is_silent(self, board, events):
        await board.add_featured("A", "")
        drain(events)
        with pytest.raises(ValidationError):
            await board.remove_featured_at(5)
        assert drain(events) == []

    @pytest.mark.asyncio
    async def test_clear_featured(self, board, events):
        await board.add_featured("A", "")
        drain(events)
        assert await board.clear_featured() == []
        assert event_types(drain(events)) == ["newAdminLog", "updateFeaturedContents", "updateTimestamp"]


class TestSettingsEvents:
    @pytest.mark.asyncio
    async def test_sound(self, board, events):
        assert await board.set_sound_enabled(False) is False
        got = drain(events)
        assert event_types(got) == ["newAdminLog", "updateSoundSetting", "updateTimestamp"]
        assert got[1]["data"] is False

    @pytest.mark.asyncio
    async def test_public(self, board, events):
        await board.set_public(False)
        got = drain(events)
        assert got[1] == {"type": "updatePublicStatus", "data": False, "id": got[1]["id"]}
        assert (await board.snapshot()).is_public is False

    @pytest.mark.asyncio
    async def test_non_boolean_rejected(self, board, events):
        with pytest.raises(ValidationError):
            await board.set_public("no")
        assert drain(events) == []


# -- Timestamp ----------------------------------------------------------------


class TestTimestamp:
    @pytest.mark.asyncio
    async def test_timestamp_event_matches_store(self, board, events, redis_client, keys):
        await board.next()
        stamp = [e for e in drain(events) if e["type"] == "updateTimestamp"][0]["data"]
        assert await redis_client.get(keys.last_updated) == stamp
        assert (await board.snapshot()).last_updated == stamp


# -- Admin log ----------------------------------------------------------------


class TestAdminLogging:
    @pytest.mark.asyncio
    async def test_operations_are_logged_newest_first(self, board):
        await board.next(actor="alice")
        await board.add_passed(7, actor="bob")
        entries = await board.admin_logs()
        assert "(bob)" in entries[0]
        assert log_messages(entries) == ["Passed number 7 added", "Number advanced to 1"]

    @pytest.mark.asyncio
    async def test_clear_logs(self, board, events):
        await board.next()
        drain(events)

        await board.clear_logs(actor="carol")

        assert event_types(drain(events)) == ["initAdminLogs", "newAdminLog"]
        assert log_messages(await board.admin_logs()) == ["Admin log cleared"]

    @pytest.mark.asyncio
    async def test_failed_log_append_does_not_fail_the_change(self, board, events, monkeypatch):
        async def broken_append(message, actor="system"):
            raise StoreUnavailableError("down")

        monkeypatch.setattr(board.admin_log, "append", broken_append)

        assert await board.next() == 1
        assert event_types(drain(events)) == ["update", "updateTimestamp"]


# -- Reset --------------------------------------------------------------------


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_restores_initial_state(self, board, events):
        await board.set_exact(9)
        await board.add_passed(4)
        await board.add_featured("A", "")
        await board.set_sound_enabled(False)
        await board.set_public(False)
        drain(events)

        fresh = await board.reset_all(actor="root")

        snap = await board.snapshot()
        assert snap.current_number == 0
        assert snap.passed_numbers == []
        assert snap.featured_contents == []
        assert snap.sound_enabled is True
        assert snap.is_public is True
        assert fresh.last_updated == snap.last_updated
        assert log_messages(await board.admin_logs()) == ["Board reset"]

        assert event_types(drain(events)) == [
            "update",
            "updatePassed",
            "updateFeaturedContents",
            "updateSoundSetting",
            "updatePublicStatus",
            "initAdminLogs",
            "newAdminLog",
            "updateTimestamp",
        ]

    @pytest.mark.asyncio
    async def test_store_down(self, board, redis_server, events):
        redis_server.connected = False
        with pytest.raises(StoreUnavailableError):
            await board.reset_all()
        assert drain(events) == []


class TestBoardWiring:
    def test_featured_retries_passed_through(self, redis_client, keys, broadcaster):
        board = Board(redis_client, keys, broadcaster, featured_retries=9)
        assert board.featured._max_attempts == 9
        assert board.broadcaster is broadcaster
