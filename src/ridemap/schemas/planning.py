"""Planning workflow request/response schemas."""

from __future__ import annotations

from datetime import date
from typing import Dict, List, Literal, Optional

from pydantic import Field, field_validator

from ..models.domain import GeocodeCandidate, Route
from ..services.calendar.builder import DayEntry, day_label, segment_label
from ..services.geocoding.resolver import (
    BatchOutcome,
    Decision,
    ManualCoordinates,
    PendingDecision,
    Requery,
    ResearchOutcome,
    SelectCandidate,
    Skip,
)
from ..services.routing.segments import SegmentCalculationResult
from .routes import RouteModel, _CamelModel


class ExtractRequest(_CamelModel):
    itinerary_text: str = Field(..., alias="itineraryText")
    name: Optional[str] = Field(default=None, description="Route name; defaults to first → last waypoint.")


class ExtractResponse(_CamelModel):
    route: RouteModel
    waypoint_count: int = Field(..., alias="waypointCount")


class CandidateModel(_CamelModel):
    lat: float
    lng: float
    display_name: str = Field(..., alias="displayName")
    importance: Optional[float] = None
    place_type: Optional[str] = Field(None, alias="placeType")
    manual: bool = False

    @classmethod
    def from_domain(cls, candidate: GeocodeCandidate) -> "CandidateModel":
        return cls(
            lat=candidate.lat,
            lng=candidate.lng,
            display_name=candidate.display_name,
            importance=candidate.importance,
            place_type=candidate.place_type,
            manual=candidate.manual,
        )


class PendingDecisionModel(_CamelModel):
    waypoint_id: str = Field(..., alias="waypointId")
    waypoint_name: str = Field(..., alias="waypointName")
    query: str
    candidates: List[CandidateModel]
    error: Optional[str] = None

    @classmethod
    def from_domain(cls, pending: Optional[PendingDecision]) -> Optional["PendingDecisionModel"]:
        if pending is None:
            return None
        return cls(
            waypoint_id=pending.waypoint_id,
            waypoint_name=pending.waypoint_name,
            query=pending.query,
            candidates=[CandidateModel.from_domain(candidate) for candidate in pending.candidates],
            error=pending.error,
        )


class BatchOutcomeModel(_CamelModel):
    status: str
    pending: Optional[PendingDecisionModel] = None
    resolved: int
    skipped: int
    total: int
    failed_lookups: int = Field(0, alias="failedLookups")
    statuses: Dict[str, str] = Field(default_factory=dict)
    route: RouteModel

    @classmethod
    def from_outcome(cls, outcome: BatchOutcome, route: Route) -> "BatchOutcomeModel":
        return cls(
            status=outcome.status.value,
            pending=PendingDecisionModel.from_domain(outcome.pending),
            resolved=outcome.resolved,
            skipped=outcome.skipped,
            total=outcome.total,
            failed_lookups=outcome.failed_lookups,
            statuses={waypoint_id: status.value for waypoint_id, status in outcome.statuses.items()},
            route=RouteModel.from_domain(route),
        )


class DecisionRequest(_CamelModel):
    action: Literal["select", "manual", "requery", "skip"]
    index: Optional[int] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    name: Optional[str] = None

    def to_decision(self) -> Decision:
        match self.action:
            case "select":
                if self.index is None:
                    raise ValueError("'index' is required to select a candidate.")
                return SelectCandidate(self.index)
            case "manual":
                if self.lat is None or self.lng is None:
                    raise ValueError("'lat' and 'lng' are required for manual coordinates.")
                return ManualCoordinates(self.lat, self.lng)
            case "requery":
                return Requery(self.name or "")
            case _:
                return Skip()


class ResearchRequest(_CamelModel):
    name: str


class ResearchOutcomeModel(_CamelModel):
    status: str
    waypoint_id: str = Field(..., alias="waypointId")
    pending: Optional[PendingDecisionModel] = None
    needs_partial_recalculation: bool = Field(..., alias="needsPartialRecalculation")
    route: RouteModel

    @classmethod
    def from_outcome(cls, outcome: ResearchOutcome, route: Route) -> "ResearchOutcomeModel":
        return cls(
            status=outcome.status.value,
            waypoint_id=outcome.waypoint_id,
            pending=PendingDecisionModel.from_domain(outcome.pending),
            needs_partial_recalculation=outcome.needs_partial_recalculation,
            route=RouteModel.from_domain(route),
        )


class SegmentFailureModel(_CamelModel):
    from_waypoint_id: str = Field(..., alias="fromWaypointId")
    to_waypoint_id: str = Field(..., alias="toWaypointId")
    reason: str
    fallback_attempts: int = Field(0, alias="fallbackAttempts")


class SegmentResultModel(_CamelModel):
    status: str
    attempted: int
    succeeded: int
    failed: int
    failures: List[SegmentFailureModel] = Field(default_factory=list)
    adjusted_waypoint_ids: List[str] = Field(default_factory=list, alias="adjustedWaypointIds")
    cancelled: bool = False
    route: RouteModel

    @classmethod
    def from_result(cls, result: SegmentCalculationResult, route: Route) -> "SegmentResultModel":
        return cls(
            status=result.status,
            attempted=result.attempted,
            succeeded=result.succeeded,
            failed=result.failed,
            failures=[
                SegmentFailureModel(
                    from_waypoint_id=failure.from_waypoint_id,
                    to_waypoint_id=failure.to_waypoint_id,
                    reason=failure.reason,
                    fallback_attempts=failure.fallback_attempts,
                )
                for failure in result.failures
            ],
            adjusted_waypoint_ids=list(result.adjusted_waypoint_ids),
            cancelled=result.cancelled,
            route=RouteModel.from_domain(route),
        )


class DayUpdateRequest(_CamelModel):
    day: int = Field(..., ge=1)


class StartDateRequest(_CamelModel):
    trip_start_date: Optional[date] = Field(None, alias="tripStartDate")

    @field_validator("trip_start_date", mode="before")
    @classmethod
    def _blank_date_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class NoteRequest(_CamelModel):
    text: Optional[str] = None


class CalendarEntryModel(_CamelModel):
    kind: Literal["before", "trip", "after"]
    day_number: Optional[int] = Field(None, alias="dayNumber")
    day_date: Optional[date] = Field(None, alias="date")
    label: str
    segment_indices: List[int] = Field(default_factory=list, alias="segmentIndices")
    segment_labels: List[str] = Field(default_factory=list, alias="segmentLabels")
    note: Optional[str] = None
    is_rest_day: bool = Field(False, alias="isRestDay")

    @classmethod
    def from_entry(cls, entry: DayEntry, route: Route) -> "CalendarEntryModel":
        if entry.day_number is not None:
            label = day_label(route.trip_start_date, entry.day_number)
        else:
            label = entry.date.strftime("%a %d %b") if entry.date else ""
        return cls(
            kind=entry.kind,
            day_number=entry.day_number,
            day_date=entry.date,
            label=label,
            segment_indices=list(entry.segment_indices),
            segment_labels=[
                segment_label(route.segments[index], route.waypoints)
                for index in entry.segment_indices
                if index < len(route.segments)
            ],
            note=entry.note,
            is_rest_day=entry.is_rest_day,
        )


class CalendarResponse(_CamelModel):
    route_id: Optional[str] = Field(None, alias="routeId")
    trip_days: int = Field(..., alias="tripDays")
    trip_start_date: Optional[date] = Field(None, alias="tripStartDate")
    entries: List[CalendarEntryModel]
