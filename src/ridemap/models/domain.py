"""Domain models for routes, waypoints and routed segments."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional


@dataclass(slots=True, frozen=True)
class LatLng:
    lat: float
    lng: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.lat, self.lng)


@dataclass(slots=True)
class Waypoint:
    """A named stop in sequence order.

    ``lat == 0 and lng == 0`` marks a waypoint that has not been geocoded yet.
    """

    id: str
    name: str
    lat: float = 0.0
    lng: float = 0.0
    order: int = 0
    display_name: Optional[str] = None
    adjusted: Optional[bool] = None
    original_coordinates: Optional[LatLng] = None
    context: Optional[str] = None

    @property
    def position(self) -> LatLng:
        return LatLng(self.lat, self.lng)


@dataclass(slots=True)
class Segment:
    """Directed, routed edge between two consecutive geocoded waypoints."""

    from_waypoint_id: str
    to_waypoint_id: str
    polyline: list[tuple[float, float]]
    distance_meters: float

    @property
    def key(self) -> tuple[str, str]:
        return (self.from_waypoint_id, self.to_waypoint_id)


@dataclass(slots=True)
class Route:
    id: Optional[str] = None
    name: str = ""
    itinerary_text: str = ""
    waypoints: list[Waypoint] = field(default_factory=list)
    segments: list[Segment] = field(default_factory=list)
    segment_days: list[int] = field(default_factory=list)
    trip_start_date: Optional[date] = None
    day_notes: dict[str, str] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def polyline(self) -> list[tuple[float, float]]:
        """Flat path through every segment, in segment order."""
        points: list[tuple[float, float]] = []
        for segment in self.segments:
            points.extend(segment.polyline)
        return points

    def find_waypoint(self, waypoint_id: str) -> Waypoint | None:
        for waypoint in self.waypoints:
            if waypoint.id == waypoint_id:
                return waypoint
        return None


@dataclass(slots=True)
class GeocodeCandidate:
    lat: float
    lng: float
    display_name: str
    importance: Optional[float] = None
    place_type: Optional[str] = None
    manual: bool = False


@dataclass(slots=True)
class ExtractedWaypoint:
    name: str
    sequence: int
    context: Optional[str] = None


@dataclass(slots=True)
class RouteResult:
    polyline: list[tuple[float, float]]
    distance_meters: float
