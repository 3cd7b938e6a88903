"""Tests for the sliding-window rate limiter."""

import asyncio

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from conftest import VirtualClock
from destiny_gateway.core.exceptions import AdmissionTimeoutError
from destiny_gateway.infrastructure.api.bungie import SlidingWindowRateLimiter


def make_limiter(clock: VirtualClock, max_requests: int = 2, window_ms: int = 1000) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(
        max_requests=max_requests,
        window_ms=window_ms,
        clock=clock,
        sleep=clock.sleep
    )


class TestConstruction:
    def test_defaults_match_bungie_limits(self):
        limiter = SlidingWindowRateLimiter()
        assert limiter.max_requests == 25
        assert limiter.window_ms == 10000

    @pytest.mark.parametrize("max_requests,window_ms", [(0, 1000), (5, 0), (-1, 1000)])
    def test_rejects_non_positive_limits(self, max_requests, window_ms):
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(max_requests=max_requests, window_ms=window_ms)


class TestAdmission:
    @pytest.mark.asyncio
    async def test_first_n_admitted_without_waiting(self, virtual_clock):
        limiter = make_limiter(virtual_clock, max_requests=3)
        for _ in range(3):
            await limiter.admit()

        assert virtual_clock.sleeps == []
        assert limiter.remaining_requests() == 0

    @pytest.mark.asyncio
    async def test_third_call_waits_for_window(self, virtual_clock):
        limiter = make_limiter(virtual_clock, max_requests=2, window_ms=1000)

        await limiter.admit()
        await limiter.admit()
        first_two_done = virtual_clock.now

        await limiter.admit()

        assert first_two_done == 0
        assert virtual_clock.now >= 1000
        assert virtual_clock.sleeps == [1000]

    @pytest.mark.asyncio
    async def test_wait_measured_from_oldest_admission(self, virtual_clock):
        limiter = make_limiter(virtual_clock, max_requests=2, window_ms=1000)

        await limiter.admit()
        virtual_clock.advance(400)
        await limiter.admit()
        virtual_clock.advance(100)

        await limiter.admit()

        # Oldest admission (t=0) leaves the window at t=1000
        assert virtual_clock.sleeps == [500]
        assert virtual_clock.now == 1000

    @pytest.mark.asyncio
    async def test_timestamp_exactly_window_old_is_pruned(self, virtual_clock):
        limiter = make_limiter(virtual_clock, max_requests=1, window_ms=1000)

        await limiter.admit()
        virtual_clock.advance(1000)
        await limiter.admit()

        assert virtual_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_concurrent_callers_admitted_in_arrival_order(self, virtual_clock):
        limiter = make_limiter(virtual_clock, max_requests=1, window_ms=1000)
        admitted = []

        async def caller(index: int):
            await limiter.admit()
            admitted.append((index, virtual_clock.now))

        await asyncio.gather(*(caller(i) for i in range(4)))

        assert [index for index, _ in admitted] == [0, 1, 2, 3]
        assert [t for _, t in admitted] == [0, 1000, 2000, 3000]


class TestAdmissionTimeout:
    @pytest.mark.asyncio
    async def test_timeout_raises_when_wait_too_long(self, virtual_clock):
        limiter = make_limiter(virtual_clock, max_requests=2, window_ms=1000)
        await limiter.admit()
        await limiter.admit()

        with pytest.raises(AdmissionTimeoutError) as exc_info:
            await limiter.admit(timeout_ms=500)

        assert exc_info.value.wait_ms == 1000
        assert virtual_clock.sleeps == []
        # Rejected caller leaves no trace in the window
        assert limiter.remaining_requests() == 0
        assert limiter.total_admitted == 2

    @pytest.mark.asyncio
    async def test_timeout_long_enough_admits(self, virtual_clock):
        limiter = make_limiter(virtual_clock, max_requests=1, window_ms=1000)
        await limiter.admit()

        await limiter.admit(timeout_ms=1000)

        assert virtual_clock.now == 1000
        assert limiter.total_admitted == 2

    @pytest.mark.asyncio
    async def test_timeout_counts_time_queued_behind_other_callers(self, virtual_clock):
        limiter = make_limiter(virtual_clock, max_requests=1, window_ms=1000)
        await limiter.admit()

        waiters = [asyncio.create_task(limiter.admit()) for _ in range(3)]
        await asyncio.sleep(0)
        started = virtual_clock.now

        with pytest.raises(AdmissionTimeoutError) as exc_info:
            await limiter.admit(timeout_ms=1000)

        # Rejected at once, not after the queue ahead drained
        assert virtual_clock.now == started
        assert exc_info.value.wait_ms > 1000

        await asyncio.gather(*waiters)
        assert limiter.total_admitted == 4
        assert virtual_clock.now == 3000

    @pytest.mark.asyncio
    async def test_timeout_covering_the_queue_admits_last(self, virtual_clock):
        limiter = make_limiter(virtual_clock, max_requests=1, window_ms=1000)
        await limiter.admit()
        order = []

        async def caller(name: str, timeout_ms=None):
            await limiter.admit(timeout_ms=timeout_ms)
            order.append((name, virtual_clock.now))

        waiters = [asyncio.create_task(caller(f"w{i}")) for i in range(3)]
        await asyncio.sleep(0)

        await caller("bounded", timeout_ms=5000)
        await asyncio.gather(*waiters)

        assert order == [("w0", 1000), ("w1", 2000), ("w2", 3000), ("bounded", 4000)]


class TestIntrospection:
    @pytest.mark.asyncio
    async def test_reset_time_zero_when_slot_free(self, virtual_clock):
        limiter = make_limiter(virtual_clock, max_requests=2, window_ms=1000)
        await limiter.admit()

        assert limiter.remaining_requests() == 1
        assert limiter.reset_time_ms() == 0

    @pytest.mark.asyncio
    async def test_reset_time_counts_down_when_full(self, virtual_clock):
        limiter = make_limiter(virtual_clock, max_requests=2, window_ms=1000)
        await limiter.admit()
        await limiter.admit()
        virtual_clock.advance(300)

        assert limiter.reset_time_ms() == 700

    @pytest.mark.asyncio
    async def test_queries_do_not_mutate_state(self, virtual_clock):
        limiter = make_limiter(virtual_clock, max_requests=2, window_ms=1000)
        await limiter.admit()
        await limiter.admit()
        virtual_clock.advance(5000)

        assert limiter.remaining_requests() == 2
        assert limiter.reset_time_ms() == 0
        assert len(limiter._requests) == 2

    @pytest.mark.asyncio
    async def test_status_and_reset(self, virtual_clock):
        limiter = make_limiter(virtual_clock, max_requests=1, window_ms=1000)
        await limiter.admit()
        await limiter.admit()

        status = limiter.get_status()
        assert status["max_requests"] == 1
        assert status["window_ms"] == 1000
        assert status["remaining_requests"] == 0
        assert status["total_admitted"] == 2
        assert status["average_wait_ms"] == 500

        limiter.reset()
        assert limiter.remaining_requests() == 1
        assert limiter.get_status()["total_admitted"] == 0


class TestWindowProperty:
    @given(
        max_requests=st.integers(min_value=1, max_value=6),
        window_ms=st.integers(min_value=1, max_value=2000),
        gaps=st.lists(st.integers(min_value=0, max_value=3000), min_size=1, max_size=40),
    )
    @settings(max_examples=60, deadline=None)
    def test_property_never_more_than_n_in_any_window(self, max_requests, window_ms, gaps):
        clock = VirtualClock()
        limiter = make_limiter(clock, max_requests=max_requests, window_ms=window_ms)
        admitted = []
        arrivals = []

        async def scenario():
            for gap in gaps:
                clock.advance(gap)
                arrivals.append(clock.now)
                await limiter.admit()
                admitted.append(clock.now)

        asyncio.run(scenario())

        for i in range(len(admitted) - max_requests):
            assert admitted[i + max_requests] - admitted[i] >= window_ms

        # Nobody waits longer than the window forces them to
        for i, t in enumerate(admitted):
            earliest = arrivals[i]
            if i >= max_requests:
                earliest = max(earliest, admitted[i - max_requests] + window_ms)
            assert t == earliest

    @given(
        max_requests=st.integers(min_value=1, max_value=5),
        window_ms=st.integers(min_value=1, max_value=2000),
        bursts=st.lists(
            st.tuples(
                st.integers(min_value=0, max_value=3000),
                st.integers(min_value=1, max_value=8),
                st.integers(min_value=0, max_value=3),
            ),
            min_size=1,
            max_size=12,
        ),
    )
    @settings(max_examples=60, deadline=None)
    def test_property_concurrent_callers_never_exceed_window(self, max_requests, window_ms, bursts):
        clock = VirtualClock()
        limiter = make_limiter(clock, max_requests=max_requests, window_ms=window_ms)
        admitted = []

        async def caller():
            await limiter.admit()
            admitted.append(clock.now)

        async def scenario():
            tasks = []
            for gap, size, yields in bursts:
                clock.advance(gap)
                tasks.extend(asyncio.create_task(caller()) for _ in range(size))
                # Let some callers reach the lock before the next burst lands
                for _ in range(yields):
                    await asyncio.sleep(0)
            await asyncio.gather(*tasks)

        asyncio.run(scenario())

        assert len(admitted) == sum(size for _, size, _ in bursts)
        assert admitted == sorted(admitted)
        for i in range(len(admitted) - max_requests):
            assert admitted[i + max_requests] - admitted[i] >= window_ms
