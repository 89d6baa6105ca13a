from datetime import date, datetime, time, timedelta, timezone
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from app.engine.admission import available_sessions, can_admit, require_admission
from app.engine.exceptions import AdmissionDenied
from app.engine.session_config import default_config, resolve
from app.engine.types import SessionConfig, SessionWindow

UTC = ZoneInfo("UTC")
DAY = date(2026, 3, 10)
CONFIG = default_config()


def at(day, hour, minute=0):
    return datetime.combine(day, time(hour, minute), tzinfo=timezone.utc)


def leave(day, start=None, end=None, **kwargs):
    kwargs.setdefault("type", "holiday")
    kwargs.setdefault("is_active", True)
    kwargs.setdefault("reason", "Conference")
    return SimpleNamespace(override_date=day, start_time=start, end_time=end, **kwargs)


def admit(day, session, now, overrides=(), **kwargs):
    return can_admit(day, session, now, CONFIG, overrides, tz=UTC, lead_time=timedelta(hours=3), **kwargs)


def test_today_opens_at_lead_time_and_closes_at_start():
    early = admit(DAY, "evening", at(DAY, 10, 59))
    assert not early.allowed
    assert early.reason == "Booking for the evening session opens at 11:00"

    assert admit(DAY, "evening", at(DAY, 11, 0)).allowed
    assert admit(DAY, "evening", at(DAY, 13, 59)).allowed

    started = admit(DAY, "evening", at(DAY, 14, 0))
    assert not started.allowed
    assert started.reason == "The evening session has already started"


def test_partial_leave_blocks_the_session_it_starts_in():
    day = DAY + timedelta(days=3)
    overrides = [leave(day, time(9, 0), time(12, 0))]

    morning = admit(day, "morning", at(DAY, 8), overrides)
    assert not morning.allowed
    assert morning.reason == "Doctor is on leave: Conference"
    assert admit(day, "evening", at(DAY, 8), overrides).allowed


def test_full_day_leave_blocks_both_sessions():
    day = DAY + timedelta(days=4)
    overrides = [leave(day)]
    assert available_sessions(day, at(DAY, 8), CONFIG, overrides, tz=UTC) == []


def test_inactive_or_non_holiday_overrides_are_ignored():
    day = DAY + timedelta(days=3)
    overrides = [
        leave(day, is_active=False),
        leave(day, type="extended_hours"),
        leave(day + timedelta(days=1)),
    ]
    assert admit(day, "morning", at(DAY, 8), overrides).allowed


def test_past_dates_are_denied():
    result = admit(DAY - timedelta(days=1), "evening", at(DAY, 8))
    assert not result.allowed
    assert result.reason == "Cannot book appointments for past dates"


def test_two_or_more_days_out_is_open():
    assert admit(DAY + timedelta(days=2), "morning", at(DAY, 23, 59)).allowed


def test_tomorrow_cutoff_is_measured_in_tomorrows_day():
    tomorrow = DAY + timedelta(days=1)
    assert not admit(tomorrow, "morning", at(DAY, 23, 30)).allowed

    # A session starting at 01:00 opens for booking at 22:00 the day before
    night = SessionConfig(morning=SessionWindow(time(1, 0), time(5, 0)), evening=CONFIG.evening)
    early = can_admit(tomorrow, "morning", at(DAY, 21, 59), night, tz=UTC, lead_time=timedelta(hours=3))
    assert not early.allowed
    assert "2026-03-10" in early.reason
    assert can_admit(tomorrow, "morning", at(DAY, 22, 0), night, tz=UTC, lead_time=timedelta(hours=3)).allowed


def test_emergency_skips_lead_time_but_not_leave_or_end():
    assert admit(DAY, "morning", at(DAY, 10, 0), emergency=True).allowed
    assert admit(DAY, "evening", at(DAY, 8, 0), emergency=True).allowed

    ended = admit(DAY, "morning", at(DAY, 13, 0), emergency=True)
    assert not ended.allowed
    assert not admit(DAY, "morning", at(DAY, 8), [leave(DAY)], emergency=True).allowed
    assert not admit(DAY - timedelta(days=1), "morning", at(DAY, 8), emergency=True).allowed


def test_clinic_timezone_drives_the_local_day():
    kolkata = ZoneInfo("Asia/Kolkata")
    # 10:59 and 11:00 in Kolkata
    before = datetime(2026, 3, 10, 5, 29, tzinfo=timezone.utc)
    after = datetime(2026, 3, 10, 5, 30, tzinfo=timezone.utc)
    assert not can_admit(DAY, "evening", before, CONFIG, tz=kolkata, lead_time=timedelta(hours=3)).allowed
    assert can_admit(DAY, "evening", after, CONFIG, tz=kolkata, lead_time=timedelta(hours=3)).allowed


def test_accepts_external_timestamp_shapes():
    now = {"seconds": int(at(DAY, 12).timestamp()), "nanoseconds": 0}
    assert admit(DAY, "evening", now).allowed
    assert admit(DAY, "evening", "2026-03-10T12:00:00Z").allowed


def test_available_sessions_for_today():
    assert available_sessions(DAY, at(DAY, 11, 0), CONFIG, tz=UTC, lead_time=timedelta(hours=3)) == ["evening"]


def test_require_admission_raises_with_reason():
    with pytest.raises(AdmissionDenied) as excinfo:
        require_admission(DAY, "morning", at(DAY, 10), resolve(None), tz=UTC, lead_time=timedelta(hours=3))
    assert excinfo.value.message == "The morning session has already started"


def test_morning_opens_exactly_three_hours_before_start():
    assert not admit(DAY, "morning", datetime(2026, 3, 10, 5, 59, 59, tzinfo=timezone.utc)).allowed
    assert admit(DAY, "morning", at(DAY, 6, 0)).allowed
