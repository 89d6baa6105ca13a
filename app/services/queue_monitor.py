from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logger import logger
from app.core.scheduler import Clock, Scheduler, SystemClock
from app.core.timeutils import local_date
from app.engine.ordering import QueueSnapshot
from app.services.doctor_service import DoctorService
from app.services.queue_service import QueueService

SessionFactory = Callable[[], AsyncSession]
QueueKey = Tuple[UUID, date]


@dataclass
class _CachedQueue:
    snapshot: QueueSnapshot
    refreshed_at: datetime
    local_change_at: Optional[datetime] = None
    read_at: Optional[datetime] = None


class QueueMonitor:
    """
    Keeps a derived queue snapshot per watched doctor-day and re-derives it on
    every tick so waiting times stay current without a push channel.

    After a local reorder the cached snapshot is the post-reorder order; for
    the cooldown period a tick only replaces it when the stored order version
    is newer than the cached one.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        clock: Optional[Clock] = None,
        cooldown_seconds: Optional[int] = None,
        idle_seconds: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        cooldown = settings.QUEUE_REFRESH_COOLDOWN_SECONDS if cooldown_seconds is None else cooldown_seconds
        self.cooldown = timedelta(seconds=cooldown)
        idle = settings.QUEUE_WATCH_IDLE_SECONDS if idle_seconds is None else idle_seconds
        self.idle = timedelta(seconds=idle)
        self._cache: Dict[QueueKey, _CachedQueue] = {}

    def register(self, scheduler: Scheduler, interval: Optional[float] = None):
        scheduler.every(interval or settings.WAITING_TIME_TICK_SECONDS, self.refresh_all, name="queue-refresh")

    async def _load(self, doctor_id: UUID, day: date) -> QueueSnapshot:
        async with self.session_factory() as session:
            return await QueueService(session, clock=self.clock).get_queue(doctor_id, day)

    async def _load_version(self, doctor_id: UUID, day: date) -> int:
        async with self.session_factory() as session:
            return await QueueService(session, clock=self.clock).get_version(doctor_id, day)

    async def get(self, doctor_id: UUID, day: date) -> QueueSnapshot:
        key = (doctor_id, day)
        cached = self._cache.get(key)
        if cached is None:
            snapshot = await self._load(doctor_id, day)
            now = self.clock.now()
            self._cache[key] = _CachedQueue(snapshot=snapshot, refreshed_at=now, read_at=now)
            return snapshot
        cached.read_at = self.clock.now()
        return cached.snapshot

    def record_local_change(self, snapshot: QueueSnapshot):
        now = self.clock.now()
        key = (snapshot.doctor_id, snapshot.queue_date)
        previous = self._cache.get(key)
        self._cache[key] = _CachedQueue(
            snapshot=snapshot,
            refreshed_at=now,
            local_change_at=now,
            read_at=previous.read_at if previous else now,
        )

    async def publish(self, doctor_id: UUID, day: date) -> Optional[QueueSnapshot]:
        """Reload a watched queue after a local write so the board shows it at once."""
        if (doctor_id, day) not in self._cache:
            return None
        snapshot = await self._load(doctor_id, day)
        self.record_local_change(snapshot)
        return snapshot

    async def refresh(self, doctor_id: UUID, day: date, now: Optional[datetime] = None) -> QueueSnapshot:
        now = now or self.clock.now()
        key = (doctor_id, day)
        cached = self._cache.get(key)

        if cached and cached.local_change_at and now - cached.local_change_at < self.cooldown:
            stored_version = await self._load_version(doctor_id, day)
            if stored_version <= cached.snapshot.version:
                return cached.snapshot

        snapshot = await self._load(doctor_id, day)
        self._cache[key] = _CachedQueue(snapshot=snapshot, refreshed_at=now, read_at=cached.read_at if cached else now)
        return snapshot

    def evict(self, now: datetime) -> int:
        """Stop watching queues of past days and queues no board has read lately."""
        today = local_date(now)
        stale = [
            key for key, cached in self._cache.items()
            if key[1] < today or (cached.read_at is not None and now - cached.read_at >= self.idle)
        ]
        for key in stale:
            del self._cache[key]
        return len(stale)

    async def refresh_all(self, now: Optional[datetime] = None):
        now = now or self.clock.now()
        evicted = self.evict(now)
        if evicted:
            logger.info(f"Stopped watching {evicted} queue(s)")
        for doctor_id, day in list(self._cache):
            await self.refresh(doctor_id, day, now)
        logger.debug(f"Refreshed {len(self._cache)} watched queue(s)")


class BreakMonitor:
    """Clears doctor breaks whose end time has passed."""

    def __init__(self, session_factory: SessionFactory, clock: Optional[Clock] = None):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()

    def register(self, scheduler: Scheduler, interval: Optional[float] = None):
        scheduler.every(interval or settings.BREAK_CHECK_TICK_SECONDS, self.check, name="break-expiry")

    async def check(self, now: Optional[datetime] = None) -> int:
        now = now or self.clock.now()
        async with self.session_factory() as session:
            cleared = await DoctorService(session, self.clock).clear_expired_breaks(now)
        if cleared:
            logger.info(f"Cleared {cleared} expired doctor break(s)")
        return cleared
