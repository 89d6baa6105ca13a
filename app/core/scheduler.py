import inspect
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional, Union

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings
from app.core.logger import logger

TickCallback = Callable[[datetime], Union[None, Awaitable[None]]]


class Clock:
    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, start: datetime):
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self._now = start

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        self._now = value

    def advance(self, seconds: float):
        self._now = self._now + timedelta(seconds=seconds)


@dataclass
class _Job:
    name: str
    interval: float
    callback: TickCallback
    next_run: Optional[datetime] = None


async def _invoke(job: _Job, now: datetime):
    try:
        result = job.callback(now)
        if inspect.isawaitable(result):
            await result
    except Exception:
        # A failing tick must not stop later ticks
        logger.exception(f"Scheduled job '{job.name}' failed")


class Scheduler:
    """Runs callbacks periodically. Callbacks receive the current instant."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self.jobs: List[_Job] = []

    def every(self, interval: float, callback: TickCallback, name: Optional[str] = None):
        job = _Job(name=name or getattr(callback, "__name__", "job"), interval=interval, callback=callback)
        self.jobs.append(job)
        return job

    async def start(self):
        pass

    async def stop(self):
        pass


class IntervalScheduler(Scheduler):
    """Runs the registered jobs on APScheduler inside the app's event loop."""

    def __init__(self, clock: Optional[Clock] = None):
        super().__init__(clock)
        self._scheduler = AsyncIOScheduler(timezone=settings.CLINIC_TIMEZONE)

    async def start(self):
        for job in self.jobs:
            self._scheduler.add_job(
                self._run,
                IntervalTrigger(seconds=job.interval),
                args=[job],
                id=job.name,
                name=job.name,
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
        self._scheduler.start()

    async def _run(self, job: _Job):
        await _invoke(job, self.clock.now())

    async def stop(self):
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)


class VirtualScheduler(Scheduler):
    """
    Scheduler driven by a FrozenClock. ``advance`` moves the clock forward and
    runs every job tick that falls due, in time order.
    """

    def __init__(self, clock: FrozenClock):
        super().__init__(clock)

    def every(self, interval: float, callback: TickCallback, name: Optional[str] = None):
        job = super().every(interval, callback, name)
        job.next_run = self.clock.now() + timedelta(seconds=interval)
        return job

    async def advance(self, seconds: float):
        target = self.clock.now() + timedelta(seconds=seconds)
        while True:
            due = [job for job in self.jobs if job.next_run is not None and job.next_run <= target]
            if not due:
                break
            job = min(due, key=lambda j: j.next_run)
            self.clock.set(job.next_run)
            job.next_run = job.next_run + timedelta(seconds=job.interval)
            await _invoke(job, self.clock.now())
        self.clock.set(target)
