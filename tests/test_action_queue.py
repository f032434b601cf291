"""
Web Client Detector - Action Queue Tests
========================================

Serialization, ordering, pacing and retry behaviour of the role queue.
"""

import asyncio
from unittest.mock import AsyncMock, call

import pytest

from action_queue import RateLimitedActionQueue


@pytest.mark.asyncio
async def test_tasks_run_one_at_a_time_in_submission_order():
    queue = RateLimitedActionQueue(interval=0)
    loop = asyncio.get_running_loop()
    spans = []
    active = 0
    max_active = 0

    async def work(i):
        nonlocal active, max_active
        active += 1
        max_active = max(max_active, active)
        start = loop.time()
        await asyncio.sleep(0.01)
        spans.append((i, start, loop.time()))
        active -= 1
        return i

    futures = [queue.enqueue(lambda i=i: work(i)) for i in range(5)]
    results = await asyncio.gather(*futures)
    await queue.stop()

    assert results == [0, 1, 2, 3, 4]
    assert [s[0] for s in spans] == [0, 1, 2, 3, 4]
    assert max_active == 1
    for (_, _, prev_end), (_, next_start, _) in zip(spans, spans[1:]):
        assert next_start >= prev_end


@pytest.mark.asyncio
async def test_dispatches_are_paced_by_interval():
    queue = RateLimitedActionQueue(interval=0.05)
    loop = asyncio.get_running_loop()
    starts = []

    async def work():
        starts.append(loop.time())

    await asyncio.gather(*[queue.enqueue(work) for _ in range(3)])
    await queue.stop()

    gaps = [b - a for a, b in zip(starts, starts[1:])]
    assert all(gap >= 0.045 for gap in gaps)


@pytest.mark.asyncio
async def test_transient_failure_is_retried_with_backoff():
    sleep = AsyncMock()
    queue = RateLimitedActionQueue(interval=0, sleep=sleep)
    attempts = 0

    async def flaky():
        nonlocal attempts
        attempts += 1
        if attempts < 3:
            raise asyncio.TimeoutError()
        return "ok"

    assert await queue.enqueue(flaky) == "ok"
    await queue.stop()

    assert attempts == 3
    assert sleep.await_args_list == [call(1.0), call(1.6)]


@pytest.mark.asyncio
async def test_non_transient_failure_surfaces_without_retry():
    sleep = AsyncMock()
    queue = RateLimitedActionQueue(interval=0, sleep=sleep)
    attempts = 0

    async def broken():
        nonlocal attempts
        attempts += 1
        raise ValueError("permission denied")

    with pytest.raises(ValueError):
        await queue.enqueue(broken)
    await queue.stop()

    assert attempts == 1
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_exhausted_retries_raise_last_error_and_queue_keeps_going():
    queue = RateLimitedActionQueue(interval=0, sleep=AsyncMock())
    attempts = 0

    async def always_times_out():
        nonlocal attempts
        attempts += 1
        raise ConnectionResetError("connect timeout")

    async def fine():
        return "next"

    failing = queue.enqueue(always_times_out)
    following = queue.enqueue(fine)

    with pytest.raises(ConnectionResetError):
        await failing
    assert await following == "next"
    await queue.stop()
    assert attempts == 3


@pytest.mark.asyncio
async def test_join_waits_for_submitted_work():
    queue = RateLimitedActionQueue(interval=0)
    done = []

    async def work():
        await asyncio.sleep(0.01)
        done.append(True)

    queue.enqueue(work)
    queue.enqueue(work)
    await queue.join()
    await queue.stop()

    assert done == [True, True]
    assert queue.pending() == 0
