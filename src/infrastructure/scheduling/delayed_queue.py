"""In-memory delayed job queue.

Jobs are coroutine factories ordered by their run time on a min-heap. A single
worker task sleeps until the earliest job is due, or until a new job arrives
that is due sooner. Jobs are lost on restart.
"""

import asyncio
import heapq
import itertools
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime

import structlog

logger = structlog.get_logger()

Job = Callable[[], Awaitable[None]]


@dataclass(order=True)
class _ScheduledJob:
    run_at: float
    seq: int
    name: str = field(compare=False)
    job: Job = field(compare=False)


class DelayedJobQueue:
    """Runs coroutine jobs after a delay on the running event loop."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._heap: list[_ScheduledJob] = []
        self._seq = itertools.count()
        self._wakeup = asyncio.Event()
        self._worker: asyncio.Task[None] | None = None
        self._running: set[asyncio.Task[None]] = set()

    def __len__(self) -> int:
        return len(self._heap)

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def schedule_in(self, delay_seconds: float, job: Job, name: str = "job") -> None:
        """Run ``job`` after ``delay_seconds``."""
        entry = _ScheduledJob(
            run_at=self._clock() + max(delay_seconds, 0.0),
            seq=next(self._seq),
            name=name,
            job=job,
        )
        heapq.heappush(self._heap, entry)
        self._wakeup.set()
        logger.debug("job_scheduled", job=name, delay_seconds=round(delay_seconds, 3))

    def schedule_at(self, run_at: datetime, job: Job, name: str = "job") -> None:
        """Run ``job`` at a naive UTC wall-clock time."""
        delay = (run_at - datetime.utcnow()).total_seconds()
        self.schedule_in(delay, job, name)

    async def run_pending(self, now: float | None = None) -> int:
        """Run every job due at ``now`` and wait for them. Returns jobs run."""
        due = self._pop_due(self._clock() if now is None else now)
        for entry in due:
            await self._run(entry)
        return len(due)

    def start(self) -> None:
        if self.is_running:
            return
        self._worker = asyncio.create_task(self._work(), name="delayed-job-queue")
        logger.info("delayed_queue_started", pending=len(self._heap))

    async def stop(self) -> None:
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        for task in list(self._running):
            task.cancel()
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)
        logger.info("delayed_queue_stopped", dropped=len(self._heap))

    def _pop_due(self, now: float) -> list[_ScheduledJob]:
        due: list[_ScheduledJob] = []
        while self._heap and self._heap[0].run_at <= now:
            due.append(heapq.heappop(self._heap))
        return due

    async def _run(self, entry: _ScheduledJob) -> None:
        try:
            await entry.job()
        except Exception:
            logger.exception("delayed_job_failed", job=entry.name)

    async def _work(self) -> None:
        while True:
            self._wakeup.clear()
            if self._heap:
                timeout: float | None = max(self._heap[0].run_at - self._clock(), 0.0)
            else:
                timeout = None

            if timeout is None or timeout > 0:
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=timeout)
                except asyncio.TimeoutError:
                    pass

            for entry in self._pop_due(self._clock()):
                task = asyncio.create_task(self._run(entry), name=entry.name)
                self._running.add(task)
                task.add_done_callback(self._running.discard)
