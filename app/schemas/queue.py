from pydantic import BaseModel
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

from app.engine.ordering import QueueSnapshot
from app.engine.types import QueueItem

class QueueItemResponse(BaseModel):
    appointment_id: UUID
    patient_id: UUID
    token_number: int
    token: str
    appointment_time: str
    session: str
    status: str
    appointment_status: str
    queue_order: Optional[int] = None
    checked_in_at: Optional[datetime] = None
    waiting_time_minutes: int
    position: int

    @classmethod
    def from_item(cls, item: QueueItem) -> "QueueItemResponse":
        return cls(
            appointment_id=item.appointment_id,
            patient_id=item.patient_id,
            token_number=item.token_number,
            token=item.token,
            appointment_time=item.appointment_time.strftime("%H:%M"),
            session=item.session,
            status=item.status,
            appointment_status=item.appointment_status,
            queue_order=item.queue_order,
            checked_in_at=item.checked_in_at,
            waiting_time_minutes=item.waiting_time_minutes,
            position=item.position,
        )

class QueueResponse(BaseModel):
    doctor_id: UUID
    date: date
    version: int
    queue: List[QueueItemResponse]

    @classmethod
    def from_snapshot(cls, snapshot: QueueSnapshot) -> "QueueResponse":
        return cls(
            doctor_id=snapshot.doctor_id,
            date=snapshot.queue_date,
            version=snapshot.version,
            queue=[QueueItemResponse.from_item(item) for item in snapshot.items],
        )

class ReorderRequest(BaseModel):
    source_id: UUID
    target_id: UUID
    version: int

class ResetOrderRequest(BaseModel):
    version: Optional[int] = None

class CallNextRequest(BaseModel):
    current_appointment_id: Optional[UUID] = None

class QueueStatsResponse(BaseModel):
    doctor_id: UUID
    date: date
    total: int
    waiting: int
    checked_in: int
    completed: int
    average_wait_minutes: float
