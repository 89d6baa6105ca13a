from pydantic import BaseModel, model_validator
from typing import Optional, Literal
from uuid import UUID
from datetime import date, datetime, time

class OverrideCreate(BaseModel):
    override_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: str = ""
    type: Literal["holiday", "extended_hours", "reduced_hours"] = "holiday"

    @model_validator(mode="after")
    def check_range(self):
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError("start_time and end_time must be given together")
        if self.start_time is not None and self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self

class OverrideResponse(BaseModel):
    id: UUID
    doctor_id: UUID
    override_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: str
    type: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
