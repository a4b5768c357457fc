"""Trip day and calendar helpers."""

from .builder import (
    DayEntry,
    build_calendar,
    build_route_calendar,
    date_for_day,
    day_label,
    segment_label,
    segments_for_day,
    set_day_note,
    short_place_name,
)
from .days import default_segment_days, sanitize_segment_days, set_segment_day, trip_duration

__all__ = [
    "DayEntry",
    "build_calendar",
    "build_route_calendar",
    "date_for_day",
    "day_label",
    "default_segment_days",
    "sanitize_segment_days",
    "segment_label",
    "segments_for_day",
    "set_day_note",
    "set_segment_day",
    "short_place_name",
    "trip_duration",
]
