"""Route persistence/export schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.domain import LatLng, Route, Segment, Waypoint


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CoordinatesModel(_CamelModel):
    lat: float
    lng: float


class WaypointModel(_CamelModel):
    id: str
    name: str
    lat: float = 0.0
    lng: float = 0.0
    order: int = 0
    display_name: Optional[str] = Field(None, alias="displayName")
    adjusted: Optional[bool] = None
    original_coordinates: Optional[CoordinatesModel] = Field(None, alias="originalCoordinates")
    context: Optional[str] = None

    @classmethod
    def from_domain(cls, waypoint: Waypoint) -> "WaypointModel":
        original = waypoint.original_coordinates
        return cls(
            id=waypoint.id,
            name=waypoint.name,
            lat=waypoint.lat,
            lng=waypoint.lng,
            order=waypoint.order,
            display_name=waypoint.display_name,
            adjusted=waypoint.adjusted,
            original_coordinates=CoordinatesModel(lat=original.lat, lng=original.lng) if original else None,
            context=waypoint.context,
        )

    def to_domain(self) -> Waypoint:
        original = self.original_coordinates
        return Waypoint(
            id=self.id,
            name=self.name,
            lat=self.lat,
            lng=self.lng,
            order=self.order,
            display_name=self.display_name,
            adjusted=self.adjusted,
            original_coordinates=LatLng(original.lat, original.lng) if original else None,
            context=self.context,
        )


class SegmentModel(_CamelModel):
    from_waypoint_id: str = Field(..., alias="fromWaypointId")
    to_waypoint_id: str = Field(..., alias="toWaypointId")
    polyline: List[tuple[float, float]] = Field(default_factory=list)
    distance_meters: float = Field(0.0, alias="distanceMeters")

    @classmethod
    def from_domain(cls, segment: Segment) -> "SegmentModel":
        return cls(
            from_waypoint_id=segment.from_waypoint_id,
            to_waypoint_id=segment.to_waypoint_id,
            polyline=list(segment.polyline),
            distance_meters=segment.distance_meters,
        )

    def to_domain(self) -> Segment:
        return Segment(
            from_waypoint_id=self.from_waypoint_id,
            to_waypoint_id=self.to_waypoint_id,
            polyline=[(lat, lng) for lat, lng in self.polyline],
            distance_meters=self.distance_meters,
        )


class RouteModel(_CamelModel):
    id: Optional[str] = None
    name: str = ""
    itinerary_text: str = Field("", alias="itineraryText")
    waypoints: List[WaypointModel] = Field(default_factory=list)
    segments: List[SegmentModel] = Field(default_factory=list)
    segment_days: List[int] = Field(default_factory=list, alias="segmentDays")
    trip_start_date: Optional[date] = Field(None, alias="tripStartDate")
    day_notes: Dict[str, str] = Field(default_factory=dict, alias="dayNotes")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    @field_validator("trip_start_date", mode="before")
    @classmethod
    def _blank_date_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def from_domain(cls, route: Route) -> "RouteModel":
        return cls(
            id=route.id,
            name=route.name,
            itinerary_text=route.itinerary_text,
            waypoints=[WaypointModel.from_domain(waypoint) for waypoint in route.waypoints],
            segments=[SegmentModel.from_domain(segment) for segment in route.segments],
            segment_days=list(route.segment_days),
            trip_start_date=route.trip_start_date,
            day_notes=dict(route.day_notes),
            created_at=route.created_at,
            updated_at=route.updated_at,
        )

    def to_domain(self) -> Route:
        return Route(
            id=self.id,
            name=self.name,
            itinerary_text=self.itinerary_text,
            waypoints=[waypoint.to_domain() for waypoint in self.waypoints],
            segments=[segment.to_domain() for segment in self.segments],
            segment_days=list(self.segment_days),
            trip_start_date=self.trip_start_date,
            day_notes=dict(self.day_notes),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class RouteSummaryModel(_CamelModel):
    id: str
    name: str
    waypoint_count: int = Field(..., alias="waypointCount")
    segment_count: int = Field(..., alias="segmentCount")
    total_distance_meters: float = Field(..., alias="totalDistanceMeters")
    trip_days: int = Field(..., alias="tripDays")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class ExportDocument(_CamelModel):
    exported_at: datetime = Field(..., alias="exportedAt")
    app_version: str = Field(..., alias="appVersion")
    route_count: int = Field(..., alias="routeCount")
    routes: List[RouteModel]


ImportMode = Literal["replace", "new-only", "merge"]


class ImportResultModel(_CamelModel):
    mode: ImportMode
    added: int
    updated: int
    skipped: int
    total: int
    backup_file: Optional[str] = Field(None, alias="backupFile")


def route_to_payload(route: Route) -> dict:
    """JSON-ready camelCase representation of a route."""
    return RouteModel.from_domain(route).model_dump(by_alias=True, mode="json")


def route_from_payload(payload: dict) -> Route:
    return RouteModel.model_validate(payload).to_domain()
