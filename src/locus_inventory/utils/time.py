from __future__ import annotations

from datetime import datetime, timedelta
from typing import Literal

CalibrationStatus = Literal["na", "expired", "valid"]

DATE_INPUT_FORMAT = "%Y-%m-%d"
DATE_DISPLAY_FORMAT = "%d/%m/%Y"


class InvalidDate(ValueError):
    pass


def parse_calibration_date(value: str | None) -> datetime | None:
    """Parse a ``YYYY-MM-DD`` field into local midnight; blank means no due date."""

    text = (value or "").strip()
    if not text:
        return None

    try:
        parsed = datetime.strptime(text, DATE_INPUT_FORMAT)
    except ValueError as exc:
        raise InvalidDate("Dates must use the YYYY-MM-DD format.") from exc
    return parsed.replace(hour=0, minute=0, second=0, microsecond=0)


def format_calibration_date(value: datetime | None) -> str:
    if value is None:
        return "N/A"
    return value.strftime(DATE_DISPLAY_FORMAT)


def to_date_input(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.strftime(DATE_INPUT_FORMAT)


def calibration_status(due: datetime | None, *, now: datetime | None = None) -> CalibrationStatus:
    if due is None:
        return "na"
    reference = now or datetime.now()
    return "expired" if due < reference else "valid"


def is_due_soon(due: datetime | None, *, days: int, now: datetime | None = None) -> bool:
    if due is None:
        return False
    reference = now or datetime.now()
    return reference <= due <= reference + timedelta(days=days)


def coerce_datetime(value: datetime | str) -> datetime:
    if isinstance(value, datetime):
        return value

    if isinstance(value, str):
        candidate = value.strip().replace(" ", "T", 1)
        try:
            return datetime.fromisoformat(candidate)
        except ValueError:
            for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M:%S.%f"):
                try:
                    return datetime.strptime(value, fmt)
                except ValueError:
                    continue

    raise ValueError(f"Unsupported datetime value: {value!r}")


def format_relative_time(value: datetime | str, *, now: datetime | None = None) -> str:
    reference = now or datetime.now()
    moment = coerce_datetime(value)

    total_seconds = int((reference - moment).total_seconds())
    if total_seconds < 60:
        return "just now"

    minutes = total_seconds // 60
    if minutes == 1:
        return "1 minute ago"
    if minutes < 60:
        return f"{minutes} minutes ago"

    hours = minutes // 60
    if hours == 1:
        return "1 hour ago"
    if hours < 24:
        return f"{hours} hours ago"

    days = hours // 24
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"

    weeks = days // 7
    if weeks == 1:
        return "1 week ago"
    if weeks < 5:
        return f"{weeks} weeks ago"

    months = days // 30
    if months == 1:
        return "1 month ago"
    if months < 12:
        return f"{months} months ago"

    years = days // 365
    if years == 1:
        return "1 year ago"
    return f"{years} years ago"
