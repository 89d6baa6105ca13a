from pydantic import BaseModel, Field, field_validator, model_validator
from uuid import UUID
from datetime import date, datetime, time
from typing import Optional, List, Literal

from app.engine.assignment import format_token
from app.engine.types import Session

class PatientCreate(BaseModel):
    name: str
    phone: str
    age: Optional[int] = None
    gender: Optional[str] = None

    @field_validator("name", "phone")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

class BookingRequest(BaseModel):
    doctor_id: UUID
    appointment_date: date
    session: Optional[Session] = None
    # A picked slot time, used to infer the session when none is given
    slot_time: Optional[str] = None
    patient: PatientCreate
    family_members: List[PatientCreate] = Field(default_factory=list)
    notes: Optional[str] = None
    is_emergency: bool = False

    @model_validator(mode="after")
    def session_or_slot_time(self):
        if self.session is None and not self.slot_time:
            raise ValueError("session or slot_time is required")
        return self

class AppointmentStatusUpdate(BaseModel):
    status: Literal["confirmed", "completed", "cancelled", "no_show"]

class AppointmentResponse(BaseModel):
    id: UUID
    doctor_id: UUID
    patient_id: UUID
    appointment_date: date
    appointment_time: str
    duration_minutes: int
    session: str
    status: str
    token_number: int
    token: str
    queue_order: Optional[int] = None
    checked_in_at: Optional[datetime] = None
    is_emergency: bool
    notes: Optional[str] = None

    @classmethod
    def from_model(cls, appointment) -> "AppointmentResponse":
        return cls(
            id=appointment.id,
            doctor_id=appointment.doctor_id,
            patient_id=appointment.patient_id,
            appointment_date=appointment.appointment_date,
            appointment_time=_hhmm(appointment.appointment_time),
            duration_minutes=appointment.duration_minutes,
            session=appointment.session,
            status=appointment.status,
            token_number=appointment.token_number,
            token=format_token(appointment.token_number),
            queue_order=appointment.queue_order,
            checked_in_at=appointment.checked_in_at,
            is_emergency=appointment.is_emergency,
            notes=appointment.notes,
        )

class BookingResponse(BaseModel):
    appointments: List[AppointmentResponse]

def _hhmm(value: time) -> str:
    return value.strftime("%H:%M")
