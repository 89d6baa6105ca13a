from pydantic import BaseModel, Field
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

from app.core.config import settings

class DoctorCreate(BaseModel):
    name: str
    user_id: Optional[str] = None
    specialty: Optional[str] = None
    consult_duration_minutes: int = Field(default=settings.DEFAULT_SLOT_DURATION_MINUTES, gt=0)
    morning_start_time: Optional[str] = None
    morning_end_time: Optional[str] = None
    evening_start_time: Optional[str] = None
    evening_end_time: Optional[str] = None
    available_slots: Optional[List[str]] = None

class DoctorResponse(BaseModel):
    id: UUID
    name: str
    specialty: Optional[str] = None
    consult_duration_minutes: int
    status: str

    class Config:
        from_attributes = True

class SessionWindowResponse(BaseModel):
    start_time: str
    end_time: str

class SessionConfigResponse(BaseModel):
    doctor_id: UUID
    morning: SessionWindowResponse
    evening: SessionWindowResponse

class CapacityResponse(BaseModel):
    doctor_id: UUID
    date: date
    session: str
    total_slots: int
    booked_slots: int
    available_slots: int

class SessionAvailability(BaseModel):
    session: str
    start_time: str
    end_time: str
    allowed: bool
    reason: Optional[str] = None

class SessionsResponse(BaseModel):
    doctor_id: UUID
    date: date
    sessions: List[SessionAvailability]

class SlotsResponse(BaseModel):
    doctor_id: UUID
    date: date
    session: str
    slots: List[str]
    free_slots: List[str]

class BreakUpdate(BaseModel):
    break_start: datetime
    break_end: datetime

class BreakStatusResponse(BaseModel):
    doctor_id: UUID
    is_on_break: bool
    break_start: Optional[datetime] = None
    break_end: Optional[datetime] = None
