from datetime import time
from typing import Any, Iterable, List, Optional

from app.engine.session_config import parse_time
from app.engine.types import Capacity, SessionWindow, minutes_of, time_from_minutes


def capacity(window: SessionWindow, slot_duration_minutes: int, existing_bookings: Iterable[Any]) -> Capacity:
    booked = len(list(existing_bookings))
    if slot_duration_minutes is None or slot_duration_minutes <= 0:
        total = 0
    else:
        total = window.minutes // slot_duration_minutes
    return Capacity(
        total_slots=total,
        booked_slots=booked,
        available_slots=max(0, total - booked),
    )


def generate_slots(window: SessionWindow, slot_duration_minutes: int) -> List[time]:
    if not slot_duration_minutes or slot_duration_minutes <= 0:
        return []

    slots = []
    current = minutes_of(window.start)
    end = minutes_of(window.end)
    while current + slot_duration_minutes <= end:
        slots.append(time_from_minutes(current))
        current += slot_duration_minutes
    return slots


def session_slots(
    window: SessionWindow,
    slot_duration_minutes: int,
    canonical_slots: Optional[Iterable[Any]] = None,
) -> List[time]:
    """
    The ordered slot list for one session. A doctor's own slot list wins when
    present; it is normalised, restricted to the window and de-duplicated.
    Otherwise slots are generated from the window and consultation length.
    """
    if not canonical_slots:
        return generate_slots(window, slot_duration_minutes)

    slots = set()
    for raw in canonical_slots:
        parsed = parse_time(raw)
        if parsed is not None and window.contains(parsed):
            slots.add(parsed)
    return sorted(slots)
