from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, TYPE_CHECKING
from datetime import date, datetime, time
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from .doctor import Doctor

class ScheduleOverride(SQLModel, table=True):
    __tablename__ = "schedule_overrides"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    doctor_id: UUID = Field(foreign_key="doctors.id", index=True)
    override_date: date = Field(index=True)
    # Both unset means the whole day
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: str = ""
    type: str = Field(default="holiday") # holiday, extended_hours, reduced_hours
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    doctor: "Doctor" = Relationship(back_populates="overrides")
