import re
from datetime import time
from typing import Any, Mapping, Optional, Sequence

from app.core.config import settings
from app.engine.types import SessionConfig, SessionWindow, minutes_of

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?\s*([AaPp][Mm])?\s*$")

# Accepted spellings for each session boundary in raw doctor/config data
_ALIASES = {
    ("morning", "start"): ("morning_start_time", "morningStartTime", "morning_start"),
    ("morning", "end"): ("morning_end_time", "morningEndTime", "morning_end"),
    ("evening", "start"): ("evening_start_time", "eveningStartTime", "evening_start"),
    ("evening", "end"): ("evening_end_time", "eveningEndTime", "evening_end"),
}
_NESTED_KEYS = {"start": ("startTime", "start_time", "start"), "end": ("endTime", "end_time", "end")}


def parse_time(value: Any) -> Optional[time]:
    """
    Parse "HH:MM", "HH:MM:SS" or "h:mm AM/PM" into a time, or None when the
    value is missing or not a valid clock time.
    """
    if value is None:
        return None
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    if not isinstance(value, str):
        return None

    match = _TIME_RE.match(value)
    if not match:
        return None

    hours = int(match.group(1))
    minutes = int(match.group(2))
    meridiem = match.group(4)

    if meridiem:
        if hours < 1 or hours > 12:
            return None
        meridiem = meridiem.upper()
        if meridiem == "PM" and hours != 12:
            hours += 12
        if meridiem == "AM" and hours == 12:
            hours = 0

    if hours > 23 or minutes > 59:
        return None
    return time(hours, minutes)


def format_hhmm(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def _lookup(raw: Any, keys: Sequence[str]) -> Any:
    for key in keys:
        if isinstance(raw, Mapping):
            if raw.get(key) not in (None, ""):
                return raw[key]
        else:
            candidate = getattr(raw, key, None)
            if candidate not in (None, ""):
                return candidate
    return None


def _raw_boundary(raw: Any, session: str, edge: str) -> Any:
    value = _lookup(raw, _ALIASES[(session, edge)])
    if value is not None:
        return value
    nested = _lookup(raw, (session,))
    if nested is not None:
        return _lookup(nested, _NESTED_KEYS[edge])
    return None


def default_config() -> SessionConfig:
    return SessionConfig(
        morning=SessionWindow(parse_time(settings.DEFAULT_MORNING_START), parse_time(settings.DEFAULT_MORNING_END)),
        evening=SessionWindow(parse_time(settings.DEFAULT_EVENING_START), parse_time(settings.DEFAULT_EVENING_END)),
    )


def resolve(raw: Any) -> SessionConfig:
    """
    Build a SessionConfig from a doctor record or raw mapping.

    Each boundary is resolved on its own; anything missing or unparseable
    falls back to the clinic default for that boundary. Never raises.
    """
    defaults = default_config()
    if raw is None:
        return defaults

    windows = {}
    for session in ("morning", "evening"):
        fallback = defaults.window(session)
        start = parse_time(_raw_boundary(raw, session, "start")) or fallback.start
        end = parse_time(_raw_boundary(raw, session, "end")) or fallback.end
        windows[session] = SessionWindow(start, end)
    return SessionConfig(**windows)


def session_for_time(value: Any, config: SessionConfig) -> str:
    """Which session a slot time belongs to."""
    parsed = parse_time(value)
    if parsed is None:
        raise ValueError(f"Invalid time: {value!r}")
    if config.morning.contains(parsed):
        return "morning"
    if config.evening.contains(parsed):
        return "evening"
    return "morning" if minutes_of(parsed) < 14 * 60 else "evening"
