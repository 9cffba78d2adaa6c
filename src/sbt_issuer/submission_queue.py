"""
Single-worker queue that runs write submissions strictly one at a time.

A task is an argument-less coroutine function. The worker awaits each task
to completion before taking the next one, so a submission never starts
while the previous one is still settling. Every caller gets a future for
its own task; a task that raises resolves only its own future.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

SubmissionTask = Callable[[], Awaitable[Any]]

_STOP = object()


class SubmissionQueue:
    """In-order, one-at-a-time executor for submission tasks."""

    def __init__(self) -> None:
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._completed = 0

    async def __aenter__(self) -> "SubmissionQueue":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def completed(self) -> int:
        """Number of tasks that have finished, successfully or not."""
        return self._completed

    @property
    def pending(self) -> int:
        """Tasks waiting to start."""
        return self._queue.qsize() if self._queue else 0

    def enqueue(self, task: SubmissionTask) -> asyncio.Future:
        """
        Add a task to the back of the queue.

        Must be called from within a running event loop.

        Returns:
            Future resolved with the task's result or exception
        """
        self._ensure_worker()
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((task, future))
        return future

    async def submit(self, task: SubmissionTask) -> Any:
        """Enqueue a task and wait for its result."""
        return await self.enqueue(task)

    async def close(self) -> None:
        """
        Let queued tasks finish, then stop the worker.

        Tasks enqueued while closing still run. A task enqueued after the
        worker has exited starts a new worker, which is closed as well.
        """
        while self._worker is not None:
            worker = self._worker
            if not worker.done():
                self._queue.put_nowait((_STOP, None))
                await worker
            if self._worker is worker:
                self._worker = None
                self._queue = None

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._queue = asyncio.Queue()
            self._worker = asyncio.create_task(self._run(self._queue))

    async def _run(self, queue: asyncio.Queue) -> None:
        stopping = False
        while True:
            # Exiting only on an empty queue leaves no task stranded
            if stopping and queue.empty():
                return
            task, future = await queue.get()
            if task is _STOP:
                queue.task_done()
                stopping = True
                continue
            try:
                result = await task()
            except asyncio.CancelledError:
                future.cancel()
                raise
            except Exception as e:
                if not future.cancelled():
                    future.set_exception(e)
            else:
                if not future.cancelled():
                    future.set_result(result)
            finally:
                self._completed += 1
                queue.task_done()
