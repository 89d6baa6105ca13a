from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.logger import logger
from app.core.scheduler import Clock, SystemClock
from app.core.timeutils import to_db, to_instant
from app.db.models import Appointment, Doctor, ScheduleOverride
from app.engine.admission import can_admit
from app.engine.capacity import capacity, session_slots
from app.engine.session_config import format_hhmm, resolve
from app.engine.types import SESSIONS, Capacity, SessionConfig
from app.schemas.doctor import (
    BreakStatusResponse,
    CapacityResponse,
    DoctorCreate,
    SessionAvailability,
    SessionConfigResponse,
    SessionsResponse,
    SessionWindowResponse,
    SlotsResponse,
)
from app.schemas.override import OverrideCreate

class DoctorService:
    def __init__(self, session: AsyncSession, clock: Optional[Clock] = None):
        self.session = session
        self.clock = clock or SystemClock()

    async def get_doctor(self, doctor_id: UUID) -> Doctor:
        doctor = await self.session.get(Doctor, doctor_id)
        if not doctor:
            raise HTTPException(status_code=404, detail="Doctor not found")
        return doctor

    async def get_doctors(self, doctor_ids: Optional[set] = None) -> List[Doctor]:
        query = select(Doctor).order_by(Doctor.name)
        if doctor_ids is not None:
            if not doctor_ids:
                return []
            query = query.where(Doctor.id.in_(list(doctor_ids)))
        result = await self.session.execute(query)
        return result.scalars().all()

    async def create_doctor(self, data: DoctorCreate) -> Doctor:
        doctor = Doctor(**data.model_dump())
        self.session.add(doctor)
        await self.session.commit()
        await self.session.refresh(doctor)
        logger.info(f"Doctor {doctor.name} registered with id {doctor.id}")
        return doctor

    async def all_doctor_ids(self) -> set:
        result = await self.session.execute(select(Doctor.id))
        return set(result.scalars().all())

    def session_config(self, doctor: Doctor) -> SessionConfig:
        return resolve(doctor)

    async def get_session_config(self, doctor_id: UUID) -> SessionConfigResponse:
        doctor = await self.get_doctor(doctor_id)
        config = self.session_config(doctor)
        return SessionConfigResponse(
            doctor_id=doctor.id,
            morning=SessionWindowResponse(start_time=format_hhmm(config.morning.start), end_time=format_hhmm(config.morning.end)),
            evening=SessionWindowResponse(start_time=format_hhmm(config.evening.start), end_time=format_hhmm(config.evening.end)),
        )

    async def get_session_appointments(self, doctor_id: UUID, day: date, session: str) -> List[Appointment]:
        stmt = select(Appointment).where(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_date == day,
            Appointment.session == session,
        ).order_by(Appointment.token_number)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def compute_capacity(self, doctor: Doctor, day: date, session: str) -> Capacity:
        config = self.session_config(doctor)
        appointments = await self.get_session_appointments(doctor.id, day, session)
        holding = [a for a in appointments if a.status != "cancelled"]
        return capacity(config.window(session), doctor.consult_duration_minutes, holding)

    async def get_capacity(self, doctor_id: UUID, day: date, session: str) -> CapacityResponse:
        doctor = await self.get_doctor(doctor_id)
        result = await self.compute_capacity(doctor, day, session)
        return CapacityResponse(
            doctor_id=doctor.id,
            date=day,
            session=session,
            total_slots=result.total_slots,
            booked_slots=result.booked_slots,
            available_slots=result.available_slots,
        )

    async def get_slots(self, doctor_id: UUID, day: date, session: str) -> SlotsResponse:
        doctor = await self.get_doctor(doctor_id)
        window = self.session_config(doctor).window(session)
        slots = session_slots(window, doctor.consult_duration_minutes, doctor.available_slots)
        appointments = await self.get_session_appointments(doctor.id, day, session)
        booked = {a.appointment_time for a in appointments if a.status != "cancelled"}
        return SlotsResponse(
            doctor_id=doctor.id,
            date=day,
            session=session,
            slots=[format_hhmm(s) for s in slots],
            free_slots=[format_hhmm(s) for s in slots if s not in booked],
        )

    async def get_sessions(self, doctor_id: UUID, day: date, emergency: bool = False) -> SessionsResponse:
        doctor = await self.get_doctor(doctor_id)
        config = self.session_config(doctor)
        overrides = await self.get_overrides(doctor.id, day)
        now = self.clock.now()

        sessions = []
        for session in SESSIONS:
            window = config.window(session)
            admission = can_admit(day, session, now, config, overrides, emergency=emergency)
            sessions.append(SessionAvailability(
                session=session,
                start_time=format_hhmm(window.start),
                end_time=format_hhmm(window.end),
                allowed=admission.allowed,
                reason=admission.reason,
            ))
        return SessionsResponse(doctor_id=doctor.id, date=day, sessions=sessions)

    async def get_overrides(self, doctor_id: UUID, day: Optional[date] = None) -> List[ScheduleOverride]:
        stmt = select(ScheduleOverride).where(
            ScheduleOverride.doctor_id == doctor_id,
            ScheduleOverride.is_active == True
        )
        if day is not None:
            stmt = stmt.where(ScheduleOverride.override_date == day)
        stmt = stmt.order_by(ScheduleOverride.override_date)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def create_override(self, doctor_id: UUID, data: OverrideCreate) -> ScheduleOverride:
        await self.get_doctor(doctor_id)
        override = ScheduleOverride(doctor_id=doctor_id, **data.model_dump())
        self.session.add(override)
        await self.session.commit()
        await self.session.refresh(override)
        logger.info(f"Override {override.type} added for doctor {doctor_id} on {override.override_date}")
        return override

    async def deactivate_override(self, doctor_id: UUID, override_id: UUID) -> dict:
        override = await self.session.get(ScheduleOverride, override_id)
        if not override or override.doctor_id != doctor_id:
            raise HTTPException(status_code=404, detail="Override not found")

        override.is_active = False
        self.session.add(override)
        await self.session.commit()
        logger.info(f"Override {override_id} deactivated for doctor {doctor_id}")
        return {"message": "Override deactivated successfully"}

    def _break_status(self, doctor: Doctor) -> BreakStatusResponse:
        return BreakStatusResponse(
            doctor_id=doctor.id,
            is_on_break=doctor.status == "break",
            break_start=doctor.break_start,
            break_end=doctor.break_end,
        )

    def _break_expired(self, doctor: Doctor, now: datetime) -> bool:
        return (
            doctor.status == "break"
            and doctor.break_end is not None
            and to_instant(doctor.break_end) <= to_instant(now)
        )

    async def set_break(self, doctor_id: UUID, break_start: datetime, break_end: datetime) -> BreakStatusResponse:
        if to_instant(break_end) <= to_instant(break_start):
            raise HTTPException(status_code=400, detail="Break end must be after break start")

        doctor = await self.get_doctor(doctor_id)
        doctor.status = "break"
        doctor.break_start = to_db(break_start)
        doctor.break_end = to_db(break_end)
        self.session.add(doctor)
        await self.session.commit()
        await self.session.refresh(doctor)
        logger.info(f"Doctor {doctor_id} on break until {doctor.break_end}")
        return self._break_status(doctor)

    async def clear_break(self, doctor_id: UUID) -> BreakStatusResponse:
        doctor = await self.get_doctor(doctor_id)
        self._end_break(doctor)
        await self.session.commit()
        await self.session.refresh(doctor)
        return self._break_status(doctor)

    def _end_break(self, doctor: Doctor):
        doctor.status = "active"
        doctor.break_start = None
        doctor.break_end = None
        self.session.add(doctor)
        logger.info(f"Doctor {doctor.id} break cleared")

    async def get_break_status(self, doctor_id: UUID) -> BreakStatusResponse:
        doctor = await self.get_doctor(doctor_id)
        if self._break_expired(doctor, self.clock.now()):
            self._end_break(doctor)
            await self.session.commit()
            await self.session.refresh(doctor)
        return self._break_status(doctor)

    async def clear_expired_breaks(self, now: datetime) -> int:
        result = await self.session.execute(select(Doctor).where(Doctor.status == "break"))
        expired = [d for d in result.scalars().all() if self._break_expired(d, now)]
        for doctor in expired:
            self._end_break(doctor)
        if expired:
            await self.session.commit()
        return len(expired)
