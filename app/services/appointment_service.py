from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.logger import logger
from app.core.scheduler import Clock, SystemClock
from app.db.models import Appointment, AuditLog, Doctor, Patient
from app.engine.admission import require_admission
from app.engine.assignment import assign, format_token
from app.engine.exceptions import AdmissionDenied, InvalidQueueState, NoCapacity
from app.engine.ordering import ensure_open
from app.engine.session_config import session_for_time
from app.schemas.appointment import BookingRequest, PatientCreate
from app.services.doctor_service import DoctorService

class AppointmentService:
    def __init__(self, session: AsyncSession, clock: Optional[Clock] = None):
        self.session = session
        self.clock = clock or SystemClock()
        self.doctors = DoctorService(session, self.clock)

    async def get_appointment(self, appointment_id: UUID) -> Appointment:
        appointment = await self.session.get(Appointment, appointment_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        return appointment

    async def get_patient_by_phone(self, phone: str, name: str) -> Patient | None:
        stmt = select(Patient).where(
            Patient.phone == phone,
            Patient.name == name
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def create_or_get_patient(self, patient_data: PatientCreate, family_id: Optional[UUID] = None) -> Patient:
        patient = await self.get_patient_by_phone(patient_data.phone, patient_data.name)
        if not patient:
            patient = Patient(
                name=patient_data.name,
                phone=patient_data.phone,
                age=patient_data.age,
                gender=patient_data.gender,
                family_id=family_id,
            )
            self.session.add(patient)
            await self.session.flush()
        elif family_id and not patient.family_id:
            patient.family_id = family_id
            self.session.add(patient)
        return patient

    async def book(self, data: BookingRequest, actor_id: Optional[str] = None) -> List[Appointment]:
        """
        Book the patient and any family members into one session.

        Admission and capacity are checked immediately before the write and
        the whole request is committed together; on any failure nothing is
        written.
        """
        # 1. Validate Doctor
        doctor = await self.doctors.get_doctor(data.doctor_id)
        config = self.doctors.session_config(doctor)
        session = data.session
        if session is None:
            try:
                session = session_for_time(data.slot_time, config)
            except ValueError as exc:
                raise HTTPException(status_code=422, detail=str(exc))

        # 2. Overrides and current bookings
        overrides = await self.doctors.get_overrides(doctor.id, data.appointment_date)
        people = [data.patient, *data.family_members]
        existing = await self.doctors.get_session_appointments(doctor.id, data.appointment_date, session)
        holding = [a for a in existing if a.status != "cancelled"]
        session_capacity = await self.doctors.compute_capacity(doctor, data.appointment_date, session)

        # 3. Admission, then tokens and slots
        try:
            require_admission(
                data.appointment_date,
                session,
                self.clock.now(),
                config,
                overrides,
                emergency=data.is_emergency,
            )
            assignments = assign(
                doctor.id,
                data.appointment_date,
                session,
                config,
                doctor.available_slots,
                [a.appointment_time for a in holding],
                len(people),
                existing_tokens=[a.token_number for a in existing],
                slot_duration_minutes=doctor.consult_duration_minutes,
                max_bookable=session_capacity.available_slots,
            )
        except (AdmissionDenied, NoCapacity) as exc:
            logger.warning(f"Booking rejected for doctor {doctor.id} on {data.appointment_date} {session}: {exc.message}")
            raise HTTPException(status_code=422, detail=exc.message)

        # 4. Patients and appointments
        primary = await self.create_or_get_patient(data.patient)
        patients = [primary]
        for member in data.family_members:
            patients.append(await self.create_or_get_patient(member, family_id=primary.family_id or primary.id))

        appointments = []
        for patient, assignment in zip(patients, assignments):
            appointment = Appointment(
                doctor_id=doctor.id,
                patient_id=patient.id,
                appointment_date=data.appointment_date,
                appointment_time=assignment.time,
                duration_minutes=doctor.consult_duration_minutes,
                session=session,
                status="scheduled",
                token_number=assignment.token_number,
                is_emergency=data.is_emergency,
                notes=data.notes,
            )
            self.session.add(appointment)
            appointments.append(appointment)

        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            logger.warning(f"Booking conflict for doctor {doctor.id} on {data.appointment_date} {session}")
            raise HTTPException(status_code=409, detail="Another booking took this token at the same time. Please retry.")

        for appointment in appointments:
            await self.session.refresh(appointment)

        logger.info(
            f"Booked {len(appointments)} appointment(s) for doctor {doctor.id} on {data.appointment_date} "
            f"{session}: " + ", ".join(f"{format_token(a.token_number)}@{a.appointment_time:%H:%M}" for a in appointments)
        )
        return appointments

    async def update_status(self, appointment_id: UUID, status: str, actor_id: Optional[str] = None) -> Appointment:
        appointment = await self.get_appointment(appointment_id)
        try:
            ensure_open(appointment)
        except InvalidQueueState as exc:
            raise HTTPException(status_code=409, detail=exc.message)

        previous = appointment.status
        appointment.status = status
        appointment.updated_at = datetime.utcnow()
        self.session.add(appointment)
        self.session.add(AuditLog(
            actor_id=actor_id,
            doctor_id=appointment.doctor_id,
            action=f"appointment.{status}",
            payload={"appointment_id": str(appointment.id), "from": previous},
        ))
        await self.session.commit()
        await self.session.refresh(appointment)
        logger.info(f"Appointment {appointment.id} {previous} -> {status}")
        return appointment
