"""
Admission queue for keyrelay: bounded concurrency with paced start times
"""

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from ..utils.logging import setup_logging

logger = setup_logging()

TaskFactory = Callable[[], Awaitable[Any]]


@dataclass
class QueueEntry:
    """A pending unit of work and the future its submitter awaits"""
    factory: TaskFactory
    future: asyncio.Future


class AdmissionQueue:
    """FIFO scheduler that keeps at most ``max_concurrent`` tasks in flight
    and spaces task start times at least ``min_interval_ms`` apart.

    The queue itself is unbounded; callers are already admitted HTTP requests.
    """

    def __init__(self, max_concurrent: int = 3, min_interval_ms: int = 150):
        self.max_concurrent = max(1, int(max_concurrent))
        self.min_interval_ms = max(0, int(min_interval_ms))
        self.total_admitted = 0
        self._queue: deque = deque()
        self._in_flight = 0
        self._last_start: Optional[float] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: set = set()

    @property
    def depth(self) -> int:
        return len(self._queue)

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def submit(self, factory: TaskFactory) -> Any:
        """Queue a unit of work and wait for its result or exception"""
        loop = asyncio.get_running_loop()
        entry = QueueEntry(factory=factory, future=loop.create_future())
        self._queue.append(entry)
        self._pump()
        return await entry.future

    def _pump(self):
        """Admit queued entries while capacity and pacing allow"""
        loop = asyncio.get_running_loop()

        while self._queue and self._in_flight < self.max_concurrent:
            now = loop.time()
            wait = 0.0
            if self._last_start is not None:
                wait = max(0.0, self.min_interval_ms / 1000 - (now - self._last_start))

            if wait > 0:
                if self._timer is None:
                    logger.debug("Admission deferred", wait_ms=int(wait * 1000), queue_depth=len(self._queue))
                    self._timer = loop.call_later(wait, self._on_timer)
                return

            entry = self._queue.popleft()
            if entry.future.cancelled():
                continue

            self._last_start = now
            self._in_flight += 1
            self.total_admitted += 1
            self._tasks.add(asyncio.ensure_future(self._run(entry)))

    def _on_timer(self):
        self._timer = None
        self._pump()

    async def _run(self, entry: QueueEntry):
        result, error = None, None
        try:
            result = await entry.factory()
        except asyncio.CancelledError:
            entry.future.cancel()
            raise
        except Exception as e:
            error = e
        finally:
            # Release the slot before the submitter can observe the outcome
            self._in_flight -= 1
            self._tasks.discard(asyncio.current_task())
            self._pump()

        if entry.future.done():
            return
        if error is not None:
            entry.future.set_exception(error)
        else:
            entry.future.set_result(result)

    def stats(self) -> Dict[str, Any]:
        return {
            "max_concurrent": self.max_concurrent,
            "min_interval_ms": self.min_interval_ms,
            "queue_depth": self.depth,
            "in_flight": self._in_flight,
            "total_admitted": self.total_admitted
        }
