from datetime import datetime, timedelta

import pytest

from locus_inventory.utils import (
    InvalidDate,
    calibration_status,
    format_calibration_date,
    format_relative_time,
    is_due_soon,
    parse_calibration_date,
    to_date_input,
)

def test_format_relative_time_minutes():
    now = datetime(2025, 10, 2, 12, 0, 0)
    timestamp = now - timedelta(minutes=30)
    assert format_relative_time(timestamp, now=now) == "30 minutes ago"


def test_format_relative_time_just_now():
    now = datetime(2025, 10, 2, 12, 0, 0)
    timestamp = now - timedelta(seconds=10)
    assert format_relative_time(timestamp, now=now) == "just now"


def test_format_relative_time_accepts_iso_strings():
    now = datetime(2025, 10, 2, 12, 0, 0)
    assert format_relative_time("2025-10-01 12:00:00", now=now) == "Yesterday"


def test_parse_calibration_date_is_local_midnight():
    assert parse_calibration_date("2025-03-07") == datetime(2025, 3, 7, 0, 0, 0)
    assert parse_calibration_date("  ") is None
    assert parse_calibration_date(None) is None


def test_parse_calibration_date_rejects_other_formats():
    with pytest.raises(InvalidDate):
        parse_calibration_date("07/03/2025")


def test_calibration_date_formatting():
    due = datetime(2025, 3, 7)
    assert format_calibration_date(due) == "07/03/2025"
    assert format_calibration_date(None) == "N/A"
    assert to_date_input(due) == "2025-03-07"
    assert to_date_input(None) == ""


def test_calibration_status():
    now = datetime(2025, 6, 1, 12, 0, 0)
    assert calibration_status(None, now=now) == "na"
    assert calibration_status(datetime(2025, 5, 31), now=now) == "expired"
    assert calibration_status(datetime(2025, 6, 2), now=now) == "valid"


def test_is_due_soon():
    now = datetime(2025, 6, 1)
    assert is_due_soon(datetime(2025, 6, 20), days=30, now=now)
    assert not is_due_soon(datetime(2025, 8, 1), days=30, now=now)
    assert not is_due_soon(datetime(2025, 5, 1), days=30, now=now)
    assert not is_due_soon(None, days=30, now=now)
