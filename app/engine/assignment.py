import re
from datetime import date, time
from typing import Any, Iterable, List, Optional
from uuid import UUID

from app.engine.capacity import session_slots
from app.engine.exceptions import NoCapacity
from app.engine.session_config import parse_time
from app.engine.types import SessionConfig, SlotAssignment

_TOKEN_RE = re.compile(r"#?\s*(\d+)")


def parse_token(token: Any) -> int:
    """Read a token number from 3, "3" or "#3". Anything else counts as 0."""
    if isinstance(token, bool) or token is None:
        return 0
    if isinstance(token, int):
        return max(token, 0)
    match = _TOKEN_RE.search(str(token))
    return int(match.group(1)) if match else 0


def format_token(number: int) -> str:
    return f"#{number}"


def next_token(existing_tokens: Iterable[Any]) -> int:
    return max((parse_token(t) for t in existing_tokens), default=0) + 1


def assign(
    doctor_id: UUID,
    day: date,
    session: str,
    config: SessionConfig,
    available_slots: Optional[Iterable[Any]],
    booked_slot_times: Iterable[Any],
    count: int,
    *,
    existing_tokens: Iterable[Any] = (),
    slot_duration_minutes: Optional[int] = None,
    max_bookable: Optional[int] = None,
) -> List[SlotAssignment]:
    """
    Allocate ``count`` sequential tokens and free slots for one request.

    Slots come from ``available_slots`` restricted to the session window (or
    are generated from ``slot_duration_minutes`` when no list is given). Each
    assignment consumes its slot before the next is picked, so one request
    never receives the same slot or token twice. Raises NoCapacity for the
    whole request when there are not enough free slots; nothing is assigned.
    ``max_bookable`` caps the request by the session's remaining capacity.
    """
    if count < 1:
        raise ValueError("count must be at least 1")

    window = config.window(session)
    candidates = session_slots(window, slot_duration_minutes or 0, available_slots)
    booked = {t for t in (parse_time(b) for b in booked_slot_times) if t is not None}
    free = [slot for slot in candidates if slot not in booked]

    available = len(free) if max_bookable is None else min(len(free), max_bookable)
    if available < count:
        raise NoCapacity(requested=count, available=available)

    token = next_token(existing_tokens)
    assignments = []
    taken: set[time] = set()
    for _ in range(count):
        slot = next(s for s in free if s not in taken)
        taken.add(slot)
        assignments.append(SlotAssignment(token_number=token, time=slot))
        token += 1
    return assignments
