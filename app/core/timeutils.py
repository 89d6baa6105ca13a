from datetime import date, datetime, timezone
from typing import Any, Mapping
from zoneinfo import ZoneInfo

from app.core.config import settings

# Values above this are treated as epoch milliseconds rather than seconds
_EPOCH_MILLIS_THRESHOLD = 10_000_000_000


def clinic_tz() -> ZoneInfo:
    return ZoneInfo(settings.CLINIC_TIMEZONE)


def to_instant(value: Any) -> datetime:
    """
    Convert any external timestamp representation to an aware UTC datetime.

    Accepts datetimes (naive values are taken as UTC, matching how they are
    stored), ISO-8601 strings, epoch seconds or milliseconds, mappings shaped
    like a document-store timestamp ({"seconds", "nanoseconds"}) and objects
    exposing ``to_datetime()`` or ``toDate()``.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, bool):
        raise ValueError(f"Unsupported timestamp value: {value!r}")

    if isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) >= _EPOCH_MILLIS_THRESHOLD else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_instant(datetime.fromisoformat(text))
        except ValueError:
            raise ValueError(f"Unparseable timestamp: {value!r}")

    if isinstance(value, Mapping):
        seconds = value.get("seconds", value.get("_seconds"))
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
        if seconds is None:
            raise ValueError(f"Unsupported timestamp mapping: {value!r}")
        return datetime.fromtimestamp(seconds + nanos / 1e9, tz=timezone.utc)

    for attr in ("to_datetime", "toDate"):
        converter = getattr(value, attr, None)
        if callable(converter):
            return to_instant(converter())

    raise ValueError(f"Unsupported timestamp value: {value!r}")


def to_db(value: Any) -> datetime:
    """Naive UTC, the form every datetime column is stored in."""
    return to_instant(value).replace(tzinfo=None)


def to_local(value: Any) -> datetime:
    return to_instant(value).astimezone(clinic_tz())


def local_date(value: Any) -> date:
    return to_local(value).date()
