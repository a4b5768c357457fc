"""Trip-day assignment for route segments.

``segment_days`` runs parallel to ``segments`` and holds 1-based day numbers
that never decrease along the route.
"""

from __future__ import annotations

from typing import Sequence

from ...config import settings


def sanitize_segment_days(days: Sequence[int]) -> list[int]:
    """Force day 1 or later for the first segment and cascade each later day up to its predecessor."""
    result: list[int] = []
    for index, value in enumerate(days):
        day = int(value)
        floor = 1 if index == 0 else result[index - 1]
        result.append(max(day, floor))
    return result


def default_segment_days(existing: Sequence[int] | None, segment_count: int) -> list[int]:
    """Day numbers for a freshly (re)computed segment list.

    Same-length input is kept so user-assigned days survive recalculation; otherwise
    existing values are carried by index and new positions get sequential days.
    """
    existing = list(existing or [])
    if len(existing) == segment_count:
        return sanitize_segment_days(existing)
    days = [existing[i] if i < len(existing) else i + 1 for i in range(segment_count)]
    return sanitize_segment_days(days)


def set_segment_day(days: Sequence[int], index: int, value: int, max_day: int | None = None) -> list[int]:
    """Assign a day to one segment, clamped between its predecessor and ``max_day``, then cascade forward."""
    if index < 0 or index >= len(days):
        raise IndexError(f"Segment index {index} out of range.")
    ceiling = max_day if max_day is not None else settings.max_trip_day
    current = sanitize_segment_days(days)
    minimum = 1 if index == 0 else current[index - 1]
    current[index] = max(minimum, min(int(value), ceiling))
    for later in range(index + 1, len(current)):
        current[later] = max(current[later], current[index])
    return current


def trip_duration(days: Sequence[int]) -> int:
    return max(days) if days else 0
