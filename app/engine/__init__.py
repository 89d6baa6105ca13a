from .types import (
    ACTIVE_STATUSES,
    SESSIONS,
    TERMINAL_STATUSES,
    AdmissionResult,
    Capacity,
    QueueItem,
    SessionConfig,
    SessionWindow,
    SlotAssignment,
)
from .exceptions import (
    AdmissionDenied,
    InvalidQueueState,
    NoCapacity,
    QueueItemNotFound,
    SchedulingError,
    StaleQueueVersion,
)
