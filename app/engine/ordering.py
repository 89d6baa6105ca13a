from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Collection, Dict, List, Mapping, Optional, Sequence
from uuid import UUID

from app.core.timeutils import to_instant
from app.engine.exceptions import InvalidQueueState, QueueItemNotFound
from app.engine.types import ACTIVE_STATUSES, TERMINAL_STATUSES, QueueItem


@dataclass(frozen=True)
class QueueSnapshot:
    """A derived queue together with the order version it was computed from."""
    doctor_id: UUID
    queue_date: date
    version: int
    items: List[QueueItem] = field(default_factory=list)

    @property
    def ids(self) -> List[UUID]:
        return [item.appointment_id for item in self.items]


def waiting_minutes(checked_in_at: Any, now: Any) -> int:
    if checked_in_at is None:
        return 0
    elapsed = (to_instant(now) - to_instant(checked_in_at)).total_seconds()
    return max(0, int(elapsed // 60))


def _sort_key(appointment: Any, order: Optional[int]):
    if order is not None:
        return (0, order)
    return (1, appointment.appointment_time)


def build_queue(
    doctor_id: UUID,
    day: date,
    appointments: Sequence[Any],
    persisted_order: Optional[Mapping[UUID, int]] = None,
    skipped_ids: Collection[UUID] = (),
    now: Optional[datetime] = None,
) -> List[QueueItem]:
    """
    Derive the live queue for one doctor and day.

    Only scheduled/confirmed appointments that are not skipped take part.
    Items with a queue order come first (ascending), the rest follow by
    appointment time; equal keys keep their input order. ``persisted_order``
    overrides an appointment's own ``queue_order`` when given.
    """
    persisted_order = persisted_order or {}
    skipped = set(skipped_ids)

    candidates = [
        appt for appt in appointments
        if appt.doctor_id == doctor_id
        and appt.appointment_date == day
        and appt.status in ACTIVE_STATUSES
        and appt.id not in skipped
    ]

    orders = {appt.id: persisted_order.get(appt.id, appt.queue_order) for appt in candidates}
    ordered = sorted(candidates, key=lambda appt: _sort_key(appt, orders[appt.id]))

    items = []
    for position, appt in enumerate(ordered, start=1):
        checked_in_at = to_instant(appt.checked_in_at) if appt.checked_in_at is not None else None
        items.append(QueueItem(
            appointment_id=appt.id,
            patient_id=appt.patient_id,
            doctor_id=appt.doctor_id,
            appointment_date=appt.appointment_date,
            appointment_time=appt.appointment_time,
            session=appt.session,
            token_number=appt.token_number,
            appointment_status=appt.status,
            status="checked_in" if checked_in_at else "waiting",
            queue_order=orders[appt.id],
            checked_in_at=checked_in_at,
            waiting_time_minutes=waiting_minutes(checked_in_at, now) if now is not None else 0,
            position=position,
        ))
    return items


def move_before(order: Sequence[UUID], source_id: UUID, target_id: UUID) -> List[UUID]:
    """Remove ``source_id`` and reinsert it immediately before ``target_id``."""
    if source_id not in order:
        raise QueueItemNotFound(f"Appointment {source_id} is not in the queue")
    if target_id not in order:
        raise QueueItemNotFound(f"Appointment {target_id} is not in the queue")

    result = list(order)
    if source_id == target_id:
        return result
    result.remove(source_id)
    result.insert(result.index(target_id), source_id)
    return result


def sequential_orders(order: Sequence[UUID]) -> Dict[UUID, int]:
    return {appointment_id: index for index, appointment_id in enumerate(order, start=1)}


def ensure_open(appointment: Any):
    """Terminal appointments (completed, cancelled, no-show) cannot change again."""
    if appointment.status in TERMINAL_STATUSES:
        raise InvalidQueueState(f"Appointment is already {appointment.status}")
