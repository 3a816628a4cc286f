from .time import (
    InvalidDate,
    calibration_status,
    format_calibration_date,
    format_relative_time,
    is_due_soon,
    parse_calibration_date,
    to_date_input,
)

__all__ = [
    "InvalidDate",
    "calibration_status",
    "format_calibration_date",
    "format_relative_time",
    "is_due_soon",
    "parse_calibration_date",
    "to_date_input",
]
