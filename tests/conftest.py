import os

# Configure before the app modules build their engine and settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENABLE_SCHEDULER", "false")
os.environ.setdefault("SECRET_KEY", "test-secret")

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from app.api.deps import get_clock
from app.core.redis import RedisClient, get_redis
from app.core.scheduler import FrozenClock
from app.core.security import create_access_token
from app.db.models import Appointment, Doctor, Patient
from app.db.session import get_session
from app.main import app
from app.services.queue_monitor import QueueMonitor

CLINIC_TZ = ZoneInfo("Asia/Kolkata")
TODAY = date(2026, 3, 10)


def local(day: date, hour: int, minute: int = 0) -> datetime:
    """An aware UTC instant for a clinic-local wall clock time."""
    return datetime.combine(day, time(hour, minute), tzinfo=CLINIC_TZ).astimezone(timezone.utc)


def auth_headers(role: str, user_id: str = "user-1", doctor_id: Optional[UUID] = None, assigned: Iterable[UUID] = ()) -> dict:
    claims = {"sub": user_id, "role": role, "assigned_doctor_ids": [str(d) for d in assigned]}
    if doctor_id:
        claims["doctor_id"] = str(doctor_id)
    return {"Authorization": f"Bearer {create_access_token(claims)}"}


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def redis():
    client = RedisClient(FakeAsyncRedis(decode_responses=True))
    yield client
    await client.redis.flushall()


@pytest.fixture
def clock():
    # 07:00 in the clinic, before the morning session opens
    return FrozenClock(local(TODAY, 7, 0))


@pytest.fixture
def make_doctor(session):
    async def _make(**kwargs) -> Doctor:
        kwargs.setdefault("name", "Dr. Meera Rao")
        doctor = Doctor(**kwargs)
        session.add(doctor)
        await session.commit()
        await session.refresh(doctor)
        return doctor
    return _make


@pytest.fixture
def make_appointment(session):
    async def _make(doctor: Doctor, token: int, at: str = "09:00", day: date = TODAY, **kwargs) -> Appointment:
        patient = Patient(name=f"Patient {token}", phone=f"90000000{token:02d}")
        session.add(patient)
        await session.flush()
        hours, minutes = at.split(":")
        appointment = Appointment(
            doctor_id=doctor.id,
            patient_id=patient.id,
            appointment_date=day,
            appointment_time=time(int(hours), int(minutes)),
            session=kwargs.pop("session", "morning" if int(hours) < 14 else "evening"),
            token_number=token,
            **kwargs,
        )
        session.add(appointment)
        await session.commit()
        await session.refresh(appointment)
        return appointment
    return _make


@pytest_asyncio.fixture
async def client(session_maker, redis, clock):
    async def override_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_redis] = lambda: redis
    app.dependency_overrides[get_clock] = lambda: clock
    app.state.queue_monitor = QueueMonitor(session_maker, clock)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    del app.state.queue_monitor


def days_from_today(days: int) -> date:
    return TODAY + timedelta(days=days)
