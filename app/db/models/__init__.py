from sqlmodel import SQLModel
from .patient import Patient
from .doctor import Doctor
from .schedule_override import ScheduleOverride
from .appointment import Appointment
from .queue_state import QueueState
from .audit_log import AuditLog

__all__ = [
    "SQLModel",
    "Patient",
    "Doctor",
    "ScheduleOverride",
    "Appointment",
    "QueueState",
    "AuditLog",
]
