"""Calendar view derived from segment day assignments."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Literal, Optional, Sequence

from ...config import settings
from ...models.domain import Route, Segment, Waypoint
from .days import trip_duration

DayKind = Literal["before", "trip", "after"]


@dataclass(slots=True)
class DayEntry:
    kind: DayKind
    day_number: Optional[int] = None
    date: Optional[date] = None
    segment_indices: list[int] = field(default_factory=list)
    note: Optional[str] = None

    @property
    def is_trip_day(self) -> bool:
        return self.kind == "trip"

    @property
    def is_rest_day(self) -> bool:
        return self.is_trip_day and not self.segment_indices


def short_place_name(name: Optional[str]) -> str:
    """Main place name only, e.g. "Kargil" from "Kargil, Kargil district, Ladakh, India"."""
    if not name or not isinstance(name, str):
        return "?"
    main = name.split(",")[0].strip()
    return main or name


def segment_label(segment: Segment, waypoints: Sequence[Waypoint]) -> str:
    by_id = {waypoint.id: waypoint for waypoint in waypoints}
    origin = by_id.get(segment.from_waypoint_id)
    target = by_id.get(segment.to_waypoint_id)
    return f"{short_place_name(origin.name if origin else None)} → {short_place_name(target.name if target else None)}"


def date_for_day(trip_start_date: Optional[date], day_number: int) -> Optional[date]:
    if trip_start_date is None or day_number < 1:
        return None
    return trip_start_date + timedelta(days=day_number - 1)


def day_label(trip_start_date: Optional[date], day_number: int) -> str:
    day = date_for_day(trip_start_date, day_number)
    if day is not None:
        return day.strftime("%a %d %b")
    return f"Day {day_number}"


def segments_for_day(segment_days: Sequence[int], day_number: int) -> list[int]:
    return [index for index, day in enumerate(segment_days) if day == day_number]


def build_calendar(
    segment_days: Sequence[int],
    trip_start_date: Optional[date] = None,
    day_notes: Optional[dict[str, str]] = None,
    buffer_days: int | None = None,
) -> list[DayEntry]:
    """One entry per trip day; with a start date, buffer days are added before and after."""
    max_day = trip_duration(segment_days)
    if max_day == 0:
        return []
    notes = day_notes or {}

    trip_entries = [
        DayEntry(
            kind="trip",
            day_number=day,
            date=date_for_day(trip_start_date, day),
            segment_indices=segments_for_day(segment_days, day),
            note=notes.get(str(day)),
        )
        for day in range(1, max_day + 1)
    ]
    if trip_start_date is None:
        return trip_entries

    buffer = buffer_days if buffer_days is not None else settings.calendar_buffer_days
    before = [
        DayEntry(kind="before", date=trip_start_date - timedelta(days=offset))
        for offset in range(buffer, 0, -1)
    ]
    last_day = date_for_day(trip_start_date, max_day)
    after = [DayEntry(kind="after", date=last_day + timedelta(days=offset)) for offset in range(1, buffer + 1)]
    return [*before, *trip_entries, *after]


def build_route_calendar(route: Route, buffer_days: int | None = None) -> list[DayEntry]:
    return build_calendar(route.segment_days, route.trip_start_date, route.day_notes, buffer_days)


def set_day_note(notes: dict[str, str], day_number: int, text: Optional[str]) -> dict[str, str]:
    """Return a copy of ``notes`` with the note for ``day_number`` set, or removed when blank."""
    if day_number < 1:
        raise ValueError("Day number must be 1 or greater.")
    updated = dict(notes)
    key = str(day_number)
    if text is None or not text.strip():
        updated.pop(key, None)
    else:
        updated[key] = text
    return updated
