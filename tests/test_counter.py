"""Tests for counter.py — atomic next / previous / set."""

import asyncio

import pytest

from callboard.counter import CounterAdjuster
from callboard.errors import StoreUnavailableError, ValidationError


@pytest.fixture
def counter(redis_client, keys):
    return CounterAdjuster(redis_client, keys)


# -- Basics -------------------------------------------------------------------


class TestCounterBasics:
    @pytest.mark.asyncio
    async def test_missing_key_reads_as_zero(self, counter):
        assert await counter.current() == 0

    @pytest.mark.asyncio
    async def test_next_increments(self, counter):
        assert await counter.next() == 1
        assert await counter.next() == 2
        assert await counter.current() == 2

    @pytest.mark.asyncio
    async def test_previous_decrements(self, counter):
        await counter.set_exact(5)
        assert await counter.previous() == (4, True)
        assert await counter.current() == 4

    @pytest.mark.asyncio
    async def test_set_exact_overwrites(self, counter):
        await counter.next()
        assert await counter.set_exact(42) == 42
        assert await counter.current() == 42

    @pytest.mark.asyncio
    async def test_set_exact_accepts_numeric_string(self, counter):
        assert await counter.set_exact("7") == 7


# -- Floor at zero ------------------------------------------------------------


class TestFloorAtZero:
    @pytest.mark.asyncio
    async def test_previous_at_zero_stays_zero(self, counter, redis_client, keys):
        await counter.set_exact(0)
        assert await counter.previous() == (0, False)
        assert await redis_client.get(keys.current_number) == "0"

    @pytest.mark.asyncio
    async def test_previous_on_missing_key_returns_zero(self, counter):
        assert await counter.previous() == (0, False)
        assert await counter.current() == 0

    @pytest.mark.asyncio
    async def test_three_up_four_down(self, counter):
        for _ in range(3):
            await counter.next()
        assert await counter.current() == 3

        results = [await counter.previous() for _ in range(4)]
        assert [value for value, _ in results] == [2, 1, 0, 0]
        assert [moved for _, moved in results] == [True, True, True, False]


# -- Concurrency --------------------------------------------------------------


class TestConcurrentAdjustments:
    @pytest.mark.asyncio
    async def test_concurrent_next_loses_nothing(self, counter):
        values = await asyncio.gather(*(counter.next() for _ in range(50)))
        assert await counter.current() == 50
        # Each caller saw a distinct value
        assert sorted(values) == list(range(1, 51))

    @pytest.mark.asyncio
    async def test_concurrent_previous_never_goes_negative(self, counter):
        await counter.set_exact(10)
        results = await asyncio.gather(*(counter.previous() for _ in range(25)))

        assert await counter.current() == 0
        assert all(value >= 0 for value, _ in results)
        assert sum(1 for _, moved in results if moved) == 10

    @pytest.mark.asyncio
    async def test_mixed_next_and_previous(self, counter):
        # Starting at 10, ten decrements can never reach the floor in any
        # interleaving, so the net count is exact.
        await counter.set_exact(10)
        ops = [counter.next() for _ in range(20)] + [counter.previous() for _ in range(10)]
        await asyncio.gather(*ops)
        assert await counter.current() == 20


# -- Validation and failure ---------------------------------------------------


class TestCounterErrors:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad", [-1, "abc", 1.5, True, None, ""])
    async def test_set_exact_rejects_bad_values(self, counter, bad):
        await counter.set_exact(3)
        with pytest.raises(ValidationError):
            await counter.set_exact(bad)
        assert await counter.current() == 3

    @pytest.mark.asyncio
    async def test_store_down_surfaces_error(self, counter, redis_server):
        redis_server.connected = False
        with pytest.raises(StoreUnavailableError):
            await counter.next()
        with pytest.raises(StoreUnavailableError):
            await counter.previous()
