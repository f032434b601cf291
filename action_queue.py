# action_queue.py
# Role queue to avoid ratelimits: one privileged call at a time, paced.

import asyncio
from typing import Any, Awaitable, Callable, Optional

from discord_utils import RETRY_ATTEMPTS, RETRY_BASE_DELAY, with_retries

Task = Callable[[], Awaitable[Any]]


class RateLimitedActionQueue:
    """
    Serializes privileged platform calls.

    Tasks run strictly one after another in submission order, and two
    dispatches never start less than ``interval`` seconds apart. A task that
    fails with a transient error is retried (with backoff) before the queue
    moves on; any other error is handed straight back through the future
    returned by ``enqueue``.
    """

    def __init__(self, interval: float = 1.0, attempts: int = RETRY_ATTEMPTS,
                 base_delay: float = RETRY_BASE_DELAY, sleep=asyncio.sleep):
        self.interval = interval
        self.attempts = attempts
        self.base_delay = base_delay
        self._sleep = sleep
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self):
        if self.running:
            return
        if self._queue is None:
            self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run(), name="action-queue")

    async def stop(self):
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

    async def join(self):
        """Wait until every task submitted so far has finished."""
        if self._queue is not None:
            await self._queue.join()

    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def enqueue(self, task: Task) -> asyncio.Future:
        """Submit ``task`` (a zero-arg callable returning an awaitable)."""
        if self._queue is None:
            self._queue = asyncio.Queue()
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((task, future))
        self.start()
        return future

    async def _run(self):
        loop = asyncio.get_running_loop()
        while True:
            task, future = await self._queue.get()
            started = loop.time()
            try:
                result = await with_retries(task, self.attempts, self.base_delay, self._sleep)
            except asyncio.CancelledError:
                if not future.done():
                    future.cancel()
                raise
            except Exception as e:
                print("Role task error:", repr(e))
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._queue.task_done()
            remaining = self.interval - (loop.time() - started)
            if remaining > 0:
                await self._sleep(remaining)
