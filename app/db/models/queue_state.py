from sqlmodel import SQLModel, Field
from datetime import date, datetime
from uuid import UUID, uuid4
from sqlalchemy import UniqueConstraint

class QueueState(SQLModel, table=True):
    """Version of the manual queue order for one doctor and day."""
    __tablename__ = "queue_states"
    __table_args__ = (
        UniqueConstraint("doctor_id", "queue_date", name="uq_queue_state_doctor_date"),
    )
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    doctor_id: UUID = Field(foreign_key="doctors.id")
    queue_date: date
    version: int = Field(default=0)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
