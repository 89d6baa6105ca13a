from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, List, TYPE_CHECKING
from datetime import datetime
from uuid import UUID, uuid4
from sqlalchemy import Column, JSON

from app.core.config import settings

if TYPE_CHECKING:
    from .appointment import Appointment
    from .schedule_override import ScheduleOverride

class Doctor(SQLModel, table=True):
    __tablename__ = "doctors"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: Optional[str] = Field(default=None, index=True)
    name: str
    specialty: Optional[str] = None
    consult_duration_minutes: int = Field(default=settings.DEFAULT_SLOT_DURATION_MINUTES)
    # Raw session boundaries as entered ("09:00", "9:00 AM", "09:00:00"); resolved on read
    morning_start_time: Optional[str] = None
    morning_end_time: Optional[str] = None
    evening_start_time: Optional[str] = None
    evening_end_time: Optional[str] = None
    available_slots: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    status: str = Field(default="active") # active, break, offline
    break_start: Optional[datetime] = None
    break_end: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    appointments: List["Appointment"] = Relationship(back_populates="doctor")
    overrides: List["ScheduleOverride"] = Relationship(back_populates="doctor")
