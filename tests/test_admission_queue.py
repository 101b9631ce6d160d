"""
Tests for the admission queue's concurrency bound and start pacing
"""

import asyncio

import pytest

from keyrelay.core.queues import AdmissionQueue

# Allow for timer granularity on slow machines
TOLERANCE = 0.01


def test_serial_queue_spaces_start_times():
    async def scenario():
        queue = AdmissionQueue(max_concurrent=1, min_interval_ms=100)
        loop = asyncio.get_running_loop()
        starts = []

        def make_task(name):
            async def task():
                starts.append((name, loop.time()))
                return name
            return task

        origin = loop.time()
        results = await asyncio.gather(*(queue.submit(make_task(n)) for n in "abc"))
        return origin, starts, results

    origin, starts, results = asyncio.run(scenario())

    assert results == ["a", "b", "c"]
    assert [name for name, _ in starts] == ["a", "b", "c"]
    assert starts[0][1] - origin < 0.05
    gaps = [later[1] - earlier[1] for earlier, later in zip(starts, starts[1:])]
    assert all(gap >= 0.1 - TOLERANCE for gap in gaps)
    assert starts[2][1] - origin < 0.4


def test_in_flight_never_exceeds_max_concurrent():
    async def scenario():
        queue = AdmissionQueue(max_concurrent=2, min_interval_ms=0)
        peak = 0
        running = 0

        async def task():
            nonlocal peak, running
            running += 1
            peak = max(peak, running, queue.in_flight)
            await asyncio.sleep(0.02)
            running -= 1

        await asyncio.gather(*(queue.submit(task) for _ in range(6)))
        return peak, queue.stats()

    peak, stats = asyncio.run(scenario())

    assert peak == 2
    assert stats["in_flight"] == 0
    assert stats["queue_depth"] == 0
    assert stats["total_admitted"] == 6


def test_failures_reach_the_submitter_and_free_the_slot():
    async def scenario():
        queue = AdmissionQueue(max_concurrent=1, min_interval_ms=0)

        async def boom():
            raise RuntimeError("upstream blew up")

        async def ok():
            return "ok"

        with pytest.raises(RuntimeError, match="upstream blew up"):
            await queue.submit(boom)
        return await queue.submit(ok), queue.in_flight

    result, in_flight = asyncio.run(scenario())
    assert result == "ok"
    assert in_flight == 0


def test_depth_reports_waiting_entries():
    async def scenario():
        queue = AdmissionQueue(max_concurrent=1, min_interval_ms=0)
        release = asyncio.Event()

        async def blocker():
            await release.wait()

        async def quick():
            return None

        pending = [asyncio.ensure_future(queue.submit(blocker))]
        pending += [asyncio.ensure_future(queue.submit(quick)) for _ in range(3)]
        await asyncio.sleep(0.01)
        depth, in_flight = queue.depth, queue.in_flight

        release.set()
        await asyncio.gather(*pending)
        return depth, in_flight

    depth, in_flight = asyncio.run(scenario())
    assert depth == 3
    assert in_flight == 1


def test_first_task_after_idle_starts_immediately():
    async def scenario():
        queue = AdmissionQueue(max_concurrent=1, min_interval_ms=50)
        loop = asyncio.get_running_loop()

        async def noop():
            return loop.time()

        await queue.submit(noop)
        await asyncio.sleep(0.08)
        submitted = loop.time()
        started = await queue.submit(noop)
        return started - submitted

    delay = asyncio.run(scenario())
    assert delay < 0.02


def test_slot_is_released_before_the_submitter_resumes():
    async def scenario():
        queue = AdmissionQueue(max_concurrent=2, min_interval_ms=0)

        async def ok():
            return "done"

        result = await queue.submit(ok)
        return result, queue.stats()

    result, stats = asyncio.run(scenario())
    assert result == "done"
    assert stats["in_flight"] == 0
    assert stats["total_admitted"] == 1
