"""Waypoint list helpers.

Every mutating helper returns a new list whose ``order`` values are exactly
``0..N-1``. Waypoint objects themselves are shared, not copied.
"""

from __future__ import annotations

import math
import uuid
from typing import Iterable, Sequence

from ..models.domain import ExtractedWaypoint, GeocodeCandidate, Waypoint


def new_waypoint_id() -> str:
    return str(uuid.uuid4())


def is_geocoded(waypoint: Waypoint) -> bool:
    return not (waypoint.lat == 0 and waypoint.lng == 0)


def geocoded_waypoints(waypoints: Iterable[Waypoint]) -> list[Waypoint]:
    return [waypoint for waypoint in waypoints if is_geocoded(waypoint)]


def normalize_order(waypoints: Sequence[Waypoint]) -> list[Waypoint]:
    updated = list(waypoints)
    for index, waypoint in enumerate(updated):
        waypoint.order = index
    return updated


def new_waypoint(name: str, order: int = 0) -> Waypoint:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValueError("Waypoint name is required.")
    return Waypoint(id=new_waypoint_id(), name=cleaned, order=order)


def add_waypoint(waypoints: Sequence[Waypoint], name: str, position: int | None = None) -> list[Waypoint]:
    updated = list(waypoints)
    waypoint = new_waypoint(name)
    if position is None or position >= len(updated):
        updated.append(waypoint)
    else:
        updated.insert(max(position, 0), waypoint)
    return normalize_order(updated)


def remove_waypoint(waypoints: Sequence[Waypoint], waypoint_id: str) -> list[Waypoint]:
    updated = [waypoint for waypoint in waypoints if waypoint.id != waypoint_id]
    if len(updated) == len(waypoints):
        raise KeyError(waypoint_id)
    return normalize_order(updated)


def move_waypoint(waypoints: Sequence[Waypoint], waypoint_id: str, offset: int) -> list[Waypoint]:
    """Move a waypoint up (negative offset) or down, clamped to the list bounds."""
    updated = list(waypoints)
    index = next((i for i, waypoint in enumerate(updated) if waypoint.id == waypoint_id), None)
    if index is None:
        raise KeyError(waypoint_id)
    target = max(0, min(len(updated) - 1, index + offset))
    waypoint = updated.pop(index)
    updated.insert(target, waypoint)
    return normalize_order(updated)


def reorder_waypoints(waypoints: Sequence[Waypoint], ordered_ids: Sequence[str]) -> list[Waypoint]:
    by_id = {waypoint.id: waypoint for waypoint in waypoints}
    if len(ordered_ids) != len(by_id) or set(ordered_ids) != set(by_id):
        raise ValueError("Reorder must list every waypoint id exactly once.")
    return normalize_order([by_id[waypoint_id] for waypoint_id in ordered_ids])


def waypoints_from_extraction(extracted: Sequence[ExtractedWaypoint]) -> list[Waypoint]:
    ordered = sorted(extracted, key=lambda item: item.sequence)
    return normalize_order(
        [
            Waypoint(id=new_waypoint_id(), name=item.name.strip(), context=item.context or None)
            for item in ordered
        ]
    )


def validate_coordinates(lat: float, lng: float) -> tuple[float, float]:
    try:
        lat_value = float(lat)
        lng_value = float(lng)
    except (TypeError, ValueError) as exc:
        raise ValueError("Please enter valid coordinates.") from exc
    if not (math.isfinite(lat_value) and math.isfinite(lng_value)):
        raise ValueError("Please enter valid coordinates.")
    if lat_value < -90 or lat_value > 90 or lng_value < -180 or lng_value > 180:
        raise ValueError("Invalid coordinate range. Lat: -90 to 90, Lng: -180 to 180")
    return lat_value, lng_value


def manual_candidate(lat: float, lng: float) -> GeocodeCandidate:
    lat_value, lng_value = validate_coordinates(lat, lng)
    if lat_value == 0 and lng_value == 0:
        raise ValueError("Coordinates 0, 0 mark an unplaced waypoint and cannot be entered manually.")
    return GeocodeCandidate(
        lat=lat_value,
        lng=lng_value,
        display_name=f"Manual: {lat_value:.4f}, {lng_value:.4f}",
        manual=True,
    )


def apply_candidate(waypoint: Waypoint, candidate: GeocodeCandidate) -> Waypoint:
    """Move a waypoint onto an accepted candidate.

    A manual candidate has no authoritative place name, so the typed name is kept.
    """
    waypoint.lat = candidate.lat
    waypoint.lng = candidate.lng
    waypoint.display_name = candidate.display_name
    waypoint.adjusted = None
    waypoint.original_coordinates = None
    if not candidate.manual:
        waypoint.name = candidate.display_name
    return waypoint


def copy_placement(source: Waypoint, target: Waypoint) -> Waypoint:
    """Carry the resolved position and naming of ``source`` onto ``target``."""
    target.name = source.name
    target.display_name = source.display_name
    target.lat = source.lat
    target.lng = source.lng
    target.adjusted = source.adjusted
    target.original_coordinates = source.original_coordinates
    return target
