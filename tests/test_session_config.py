from datetime import time
from types import SimpleNamespace

import pytest

from app.engine.session_config import (
    default_config,
    parse_time,
    resolve,
    session_for_time,
)


@pytest.mark.parametrize("raw, expected", [
    ("09:00", time(9, 0)),
    ("9:05", time(9, 5)),
    ("14:30:00", time(14, 30)),
    ("9:30 AM", time(9, 30)),
    ("1:05 pm", time(13, 5)),
    ("12:00 PM", time(12, 0)),
    ("12:15 AM", time(0, 15)),
    (time(8, 45, 30), time(8, 45)),
])
def test_parse_time_accepts_clinic_formats(raw, expected):
    assert parse_time(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "25:00", "09:75", "13:00 PM", "noon", 900])
def test_parse_time_rejects_invalid(raw):
    assert parse_time(raw) is None


def test_resolve_without_data_uses_defaults():
    config = resolve(None)
    assert config == default_config()
    assert config.morning.start == time(9, 0)
    assert config.morning.end == time(13, 0)
    assert config.evening.start == time(14, 0)
    assert config.evening.end == time(18, 0)


def test_resolve_falls_back_per_boundary():
    config = resolve({
        "morningStartTime": "8:00 AM",
        "morning_end_time": "not a time",
        "evening": {"startTime": "15:00"},
    })
    assert config.morning.start == time(8, 0)
    assert config.morning.end == time(13, 0)
    assert config.evening.start == time(15, 0)
    assert config.evening.end == time(18, 0)


def test_resolve_reads_doctor_attributes():
    doctor = SimpleNamespace(
        morning_start_time="10:00:00",
        morning_end_time="12:00",
        evening_start_time=None,
        evening_end_time="8:00 PM",
    )
    config = resolve(doctor)
    assert config.morning.start == time(10, 0)
    assert config.morning.end == time(12, 0)
    assert config.evening.start == time(14, 0)
    assert config.evening.end == time(20, 0)


@pytest.mark.parametrize("value, expected", [
    ("09:00", "morning"),
    ("12:40", "morning"),
    ("13:30", "morning"),
    ("14:00", "evening"),
    ("19:00", "evening"),
])
def test_session_for_time(value, expected):
    assert session_for_time(value, default_config()) == expected


def test_session_for_time_rejects_invalid():
    with pytest.raises(ValueError):
        session_for_time("later", default_config())
