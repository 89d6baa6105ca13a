from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, TYPE_CHECKING
from datetime import datetime, date, time
from uuid import UUID, uuid4
from sqlalchemy import UniqueConstraint

if TYPE_CHECKING:
    from .doctor import Doctor
    from .patient import Patient

class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint("doctor_id", "appointment_date", "session", "token_number", name="uq_appointment_session_token"),
    )
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    doctor_id: UUID = Field(foreign_key="doctors.id", index=True)
    patient_id: UUID = Field(foreign_key="patients.id")
    appointment_date: date = Field(index=True)
    appointment_time: time
    duration_minutes: int = Field(default=20)
    session: str # morning, evening
    status: str = Field(default="scheduled") # scheduled, confirmed, completed, cancelled, no_show
    token_number: int
    queue_order: Optional[int] = None
    checked_in_at: Optional[datetime] = None
    is_emergency: bool = Field(default=False)
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    doctor: "Doctor" = Relationship(back_populates="appointments")
    patient: "Patient" = Relationship(back_populates="appointments")
