class SchedulingError(Exception):
    """Base class for booking and queue rule violations."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AdmissionDenied(SchedulingError):
    pass


class NoCapacity(SchedulingError):
    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Not enough free slots in this session: requested {requested}, available {available}"
        )
        self.requested = requested
        self.available = available


class InvalidQueueState(SchedulingError):
    pass


class QueueItemNotFound(SchedulingError):
    pass


class StaleQueueVersion(SchedulingError):
    def __init__(self, expected: int, current: int):
        super().__init__(
            f"Queue order changed since it was loaded (version {expected}, now {current}). Refresh and retry."
        )
        self.expected = expected
        self.current = current
