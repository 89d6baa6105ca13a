"""
Admission rules for booking into a (date, session).

Rules are applied in order: doctor leave, past dates, then the lead-time
window for today and tomorrow. Dates two or more days out are always open.
All instants are compared as aware datetimes; the calendar day and session
clock times are read in the clinic's timezone.
"""
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Iterable, List, Optional

from app.core.config import settings
from app.core.timeutils import clinic_tz, to_instant
from app.engine.exceptions import AdmissionDenied
from app.engine.session_config import format_hhmm, parse_time
from app.engine.types import SESSIONS, AdmissionResult, SessionConfig, SessionWindow


def _override_date(override: Any) -> Optional[date]:
    value = getattr(override, "override_date", None)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    return value


def is_leave(override: Any) -> bool:
    return getattr(override, "type", None) == "holiday" and getattr(override, "is_active", True)


def covers_session(override: Any, window: SessionWindow) -> bool:
    """
    A full-day leave covers every session. A time-ranged leave covers a
    session when the session cannot start: its start falls inside the range.
    """
    start = parse_time(getattr(override, "start_time", None))
    end = parse_time(getattr(override, "end_time", None))
    if start is None or end is None:
        return True
    return start <= window.start < end


def find_leave(day: date, window: SessionWindow, overrides: Iterable[Any]) -> Optional[Any]:
    for override in overrides:
        if _override_date(override) != day or not is_leave(override):
            continue
        if covers_session(override, window):
            return override
    return None


def session_start_instant(day: date, window: SessionWindow, tz: tzinfo) -> datetime:
    return datetime.combine(day, window.start, tzinfo=tz).astimezone(timezone.utc)


def session_end_instant(day: date, window: SessionWindow, tz: tzinfo) -> datetime:
    return datetime.combine(day, window.end, tzinfo=tz).astimezone(timezone.utc)


def can_admit(
    day: date,
    session: str,
    now: Any,
    config: SessionConfig,
    overrides: Iterable[Any] = (),
    *,
    lead_time: Optional[timedelta] = None,
    tz: Optional[tzinfo] = None,
    emergency: bool = False,
) -> AdmissionResult:
    tz = tz or clinic_tz()
    lead_time = lead_time if lead_time is not None else timedelta(hours=settings.BOOKING_LEAD_TIME_HOURS)
    now = to_instant(now)
    window = config.window(session)

    leave = find_leave(day, window, overrides)
    if leave is not None:
        return AdmissionResult(False, f"Doctor is on leave: {getattr(leave, 'reason', '') or 'unavailable'}")

    today = now.astimezone(tz).date()
    days_ahead = (day - today).days
    if days_ahead < 0:
        return AdmissionResult(False, "Cannot book appointments for past dates")

    start = session_start_instant(day, window, tz)

    if emergency:
        if days_ahead == 0 and now >= session_end_instant(day, window, tz):
            return AdmissionResult(False, "This session has already ended")
        return AdmissionResult(True)

    if days_ahead > 1:
        return AdmissionResult(True)

    cutoff = start - lead_time
    opens_at = format_hhmm(cutoff.astimezone(tz).time())

    if days_ahead == 0:
        if now < cutoff:
            return AdmissionResult(False, f"Booking for the {session} session opens at {opens_at}")
        if now >= start:
            return AdmissionResult(False, f"The {session} session has already started")
        return AdmissionResult(True)

    # Tomorrow: the cutoff is measured in tomorrow's own local day
    if now < cutoff:
        return AdmissionResult(
            False,
            f"Booking for tomorrow's {session} session opens at {opens_at} on {cutoff.astimezone(tz).date().isoformat()}",
        )
    return AdmissionResult(True)


def available_sessions(
    day: date,
    now: Any,
    config: SessionConfig,
    overrides: Iterable[Any] = (),
    **kwargs,
) -> List[str]:
    overrides = list(overrides)
    return [s for s in SESSIONS if can_admit(day, s, now, config, overrides, **kwargs).allowed]


def require_admission(day: date, session: str, now: Any, config: SessionConfig, overrides: Iterable[Any] = (), **kwargs):
    result = can_admit(day, session, now, config, overrides, **kwargs)
    if not result.allowed:
        raise AdmissionDenied(result.reason)
    return result
