from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Literal, Optional
from uuid import UUID

Session = Literal["morning", "evening"]
SESSIONS = ("morning", "evening")

ACTIVE_STATUSES = frozenset({"scheduled", "confirmed"})
TERMINAL_STATUSES = frozenset({"completed", "cancelled", "no_show"})


def minutes_of(value: time) -> int:
    return value.hour * 60 + value.minute


def time_from_minutes(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


@dataclass(frozen=True)
class SessionWindow:
    start: time
    end: time

    @property
    def minutes(self) -> int:
        """Length of the window; zero when empty or inverted."""
        return max(0, minutes_of(self.end) - minutes_of(self.start))

    def contains(self, value: time) -> bool:
        return self.start <= value < self.end


@dataclass(frozen=True)
class SessionConfig:
    morning: SessionWindow
    evening: SessionWindow

    def window(self, session: str) -> SessionWindow:
        if session == "morning":
            return self.morning
        if session == "evening":
            return self.evening
        raise ValueError(f"Unknown session: {session!r}")


@dataclass(frozen=True)
class Capacity:
    total_slots: int
    booked_slots: int
    available_slots: int


@dataclass(frozen=True)
class AdmissionResult:
    allowed: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class SlotAssignment:
    token_number: int
    time: time

    @property
    def token(self) -> str:
        return f"#{self.token_number}"


@dataclass(frozen=True)
class QueueItem:
    appointment_id: UUID
    patient_id: UUID
    doctor_id: UUID
    appointment_date: date
    appointment_time: time
    session: str
    token_number: int
    appointment_status: str
    status: str  # waiting | checked_in
    queue_order: Optional[int]
    checked_in_at: Optional[datetime]
    waiting_time_minutes: int
    position: int

    @property
    def token(self) -> str:
        return f"#{self.token_number}"
