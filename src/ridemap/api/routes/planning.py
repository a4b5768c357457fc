"""Planning endpoints: extraction, geocoding decisions, segments and trip days."""

from __future__ import annotations

import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...models.domain import Route
from ...persistence.store import PersistenceError, RouteNotFoundError, RouteStore, save_route
from ...schemas.planning import (
    BatchOutcomeModel,
    CalendarEntryModel,
    CalendarResponse,
    CandidateModel,
    DayUpdateRequest,
    DecisionRequest,
    ExtractRequest,
    ExtractResponse,
    NoteRequest,
    ResearchOutcomeModel,
    ResearchRequest,
    SegmentResultModel,
    StartDateRequest,
)
from ...schemas.routes import RouteModel
from ...services.calendar.builder import build_route_calendar, set_day_note, short_place_name
from ...services.calendar.days import set_segment_day, trip_duration
from ...services.capabilities import Geocoder, Router, WaypointExtractor
from ...services.extraction.anthropic_client import ExtractionError, extract_waypoints_with_retry
from ...services.geocoding.nominatim_client import GeocodingError
from ...services.geocoding.resolver import ResearchOutcome, ResolutionStatus
from ...services.routing.ors_client import RoutingError
from ...services.routing.segments import SegmentEngine
from ...services.waypoints import copy_placement, waypoints_from_extraction
from ..deps import PlanningSessions, ResearchSession, get_extractor, get_geocoder, get_router, get_sessions, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/planning", tags=["planning"])


def _raise_http(exc: Exception, action: str) -> NoReturn:
    if isinstance(exc, HTTPException):
        raise exc
    if isinstance(exc, RouteNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, KeyError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Waypoint {exc} not found.") from exc
    if isinstance(exc, (ValueError, IndexError)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, (ExtractionError, GeocodingError, RoutingError)):
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    if isinstance(exc, PersistenceError):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    logger.exception(f"Error while trying to {action}: {exc}")
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {str(exc)}"
    ) from exc


def _load_route(route_id: str, store: RouteStore, sessions: PlanningSessions) -> Route:
    """Live route of an active geocoding batch, otherwise the stored copy."""
    session = sessions.get_batch(route_id)
    if session is not None:
        return session.route
    return store.require(route_id)


def _calendar(route: Route) -> CalendarResponse:
    entries = build_route_calendar(route)
    return CalendarResponse(
        route_id=route.id,
        trip_days=trip_duration(route.segment_days),
        trip_start_date=route.trip_start_date,
        entries=[CalendarEntryModel.from_entry(entry, route) for entry in entries],
    )


@router.post("/extract", response_model=ExtractResponse, status_code=status.HTTP_201_CREATED)
async def extract(
    payload: ExtractRequest,
    extractor: WaypointExtractor = Depends(get_extractor),
    store: RouteStore = Depends(get_store),
) -> ExtractResponse:
    """Extract ordered waypoints from free text and save them as a new, ungeocoded route."""
    try:
        extracted = await extract_waypoints_with_retry(extractor, payload.itinerary_text)
        waypoints = waypoints_from_extraction(extracted)
        name = (payload.name or "").strip()
        if not name and waypoints:
            name = f"{short_place_name(waypoints[0].name)} → {short_place_name(waypoints[-1].name)}"
        route = Route(name=name, itinerary_text=payload.itinerary_text, waypoints=waypoints)
        saved = save_route(store, route)
    except Exception as exc:
        _raise_http(exc, "extract waypoints")
    return ExtractResponse(route=RouteModel.from_domain(saved), waypoint_count=len(saved.waypoints))


@router.get("/search", response_model=List[CandidateModel], status_code=status.HTTP_200_OK)
async def search_places(
    q: str = Query(..., description="Partial place name"),
    limit: Optional[int] = Query(default=None, ge=1, le=20),
    geocoder: Geocoder = Depends(get_geocoder),
) -> List[CandidateModel]:
    try:
        candidates = await geocoder.search(q, limit)
    except Exception as exc:
        _raise_http(exc, "search places")
    return [CandidateModel.from_domain(candidate) for candidate in candidates]


@router.post("/routes/{route_id}/geocode", response_model=BatchOutcomeModel, status_code=status.HTTP_200_OK)
async def start_geocoding(
    route_id: str,
    store: RouteStore = Depends(get_store),
    geocoder: Geocoder = Depends(get_geocoder),
    sessions: PlanningSessions = Depends(get_sessions),
) -> BatchOutcomeModel:
    """Start geocoding every ungeocoded waypoint, or report the decision a running batch waits for."""
    try:
        session = sessions.get_batch(route_id)
        if session is None:
            session = sessions.start_batch(store.require(route_id), geocoder)
        outcome = await session.batch.run()
        if session.batch.finished:
            sessions.end_batch(route_id)
        save_route(store, session.route)
    except Exception as exc:
        _raise_http(exc, "geocode waypoints")
    return BatchOutcomeModel.from_outcome(outcome, session.route)


@router.post(
    "/routes/{route_id}/geocode/decision",
    response_model=BatchOutcomeModel,
    status_code=status.HTTP_200_OK,
)
async def decide_geocoding(
    route_id: str,
    payload: DecisionRequest,
    store: RouteStore = Depends(get_store),
    sessions: PlanningSessions = Depends(get_sessions),
) -> BatchOutcomeModel:
    session = sessions.get_batch(route_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"No geocoding batch is running for route {route_id}",
        )
    try:
        outcome = await session.batch.decide(payload.to_decision())
        if session.batch.finished:
            sessions.end_batch(route_id)
        save_route(store, session.route)
    except Exception as exc:
        _raise_http(exc, "apply geocoding decision")
    return BatchOutcomeModel.from_outcome(outcome, session.route)


@router.delete("/routes/{route_id}/geocode", response_model=BatchOutcomeModel, status_code=status.HTTP_200_OK)
def cancel_geocoding(
    route_id: str,
    store: RouteStore = Depends(get_store),
    sessions: PlanningSessions = Depends(get_sessions),
) -> BatchOutcomeModel:
    session = sessions.end_batch(route_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"No geocoding batch is running for route {route_id}",
        )
    outcome = session.batch.cancel()
    try:
        save_route(store, session.route)
    except Exception as exc:
        _raise_http(exc, "save route after cancelling geocoding")
    return BatchOutcomeModel.from_outcome(outcome, session.route)


def _research_route(session: ResearchSession, outcome: ResearchOutcome, store: RouteStore) -> Route:
    """Current stored route, with the researched placement applied once it resolves."""
    route = store.require(session.route_id)
    if outcome.status is not ResolutionStatus.RESOLVED:
        return route
    waypoint = route.find_waypoint(session.waypoint_id)
    if waypoint is None:
        raise KeyError(session.waypoint_id)
    copy_placement(session.research.waypoint, waypoint)
    return save_route(store, route)


@router.post(
    "/routes/{route_id}/waypoints/{waypoint_id}/research",
    response_model=ResearchOutcomeModel,
    status_code=status.HTTP_200_OK,
)
async def research_waypoint(
    route_id: str,
    waypoint_id: str,
    payload: ResearchRequest,
    store: RouteStore = Depends(get_store),
    geocoder: Geocoder = Depends(get_geocoder),
    sessions: PlanningSessions = Depends(get_sessions),
) -> ResearchOutcomeModel:
    """Search a placed waypoint again under a new name."""
    if sessions.get_batch(route_id) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Finish or cancel the running geocoding batch first.",
        )
    try:
        session = sessions.get_research(route_id, waypoint_id)
        if session is None:
            session = sessions.start_research(store.require(route_id), waypoint_id, geocoder)
        outcome = await session.research.search(payload.name)
        if outcome.status is not ResolutionStatus.AWAITING_DECISION:
            sessions.end_research(route_id, waypoint_id)
        route = _research_route(session, outcome, store)
    except Exception as exc:
        _raise_http(exc, "search waypoint")
    return ResearchOutcomeModel.from_outcome(outcome, route)


@router.post(
    "/routes/{route_id}/waypoints/{waypoint_id}/research/decision",
    response_model=ResearchOutcomeModel,
    status_code=status.HTTP_200_OK,
)
async def decide_research(
    route_id: str,
    waypoint_id: str,
    payload: DecisionRequest,
    store: RouteStore = Depends(get_store),
    sessions: PlanningSessions = Depends(get_sessions),
) -> ResearchOutcomeModel:
    session = sessions.get_research(route_id, waypoint_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"No search is pending for waypoint {waypoint_id}",
        )
    try:
        outcome = await session.research.decide(payload.to_decision())
        if outcome.status is not ResolutionStatus.AWAITING_DECISION:
            sessions.end_research(route_id, waypoint_id)
        route = _research_route(session, outcome, store)
    except Exception as exc:
        _raise_http(exc, "apply waypoint decision")
    return ResearchOutcomeModel.from_outcome(outcome, route)


@router.post("/routes/{route_id}/segments", response_model=SegmentResultModel, status_code=status.HTTP_200_OK)
async def calculate_segments(
    route_id: str,
    store: RouteStore = Depends(get_store),
    routing: Router = Depends(get_router),
    sessions: PlanningSessions = Depends(get_sessions),
) -> SegmentResultModel:
    """Recalculate every segment of the route."""
    try:
        route = _load_route(route_id, store, sessions)
        result = await SegmentEngine(routing).recalculate_all(route)
        save_route(store, route)
    except Exception as exc:
        _raise_http(exc, "calculate route segments")
    return SegmentResultModel.from_result(result, route)


@router.post(
    "/routes/{route_id}/segments/{waypoint_id}",
    response_model=SegmentResultModel,
    status_code=status.HTTP_200_OK,
)
async def recalculate_waypoint_segments(
    route_id: str,
    waypoint_id: str,
    store: RouteStore = Depends(get_store),
    routing: Router = Depends(get_router),
    sessions: PlanningSessions = Depends(get_sessions),
) -> SegmentResultModel:
    """Recalculate only the segments touching one waypoint."""
    try:
        route = _load_route(route_id, store, sessions)
        result = await SegmentEngine(routing).recalculate_for_waypoint(route, waypoint_id)
        save_route(store, route)
    except Exception as exc:
        _raise_http(exc, "recalculate waypoint segments")
    return SegmentResultModel.from_result(result, route)


@router.put("/routes/{route_id}/days/{index}", response_model=CalendarResponse, status_code=status.HTTP_200_OK)
def update_segment_day(
    route_id: str,
    index: int,
    payload: DayUpdateRequest,
    store: RouteStore = Depends(get_store),
    sessions: PlanningSessions = Depends(get_sessions),
) -> CalendarResponse:
    try:
        route = _load_route(route_id, store, sessions)
        route.segment_days = set_segment_day(route.segment_days, index, payload.day)
        save_route(store, route)
    except Exception as exc:
        _raise_http(exc, "update segment day")
    return _calendar(route)


@router.put("/routes/{route_id}/start-date", response_model=CalendarResponse, status_code=status.HTTP_200_OK)
def update_start_date(
    route_id: str,
    payload: StartDateRequest,
    store: RouteStore = Depends(get_store),
    sessions: PlanningSessions = Depends(get_sessions),
) -> CalendarResponse:
    try:
        route = _load_route(route_id, store, sessions)
        route.trip_start_date = payload.trip_start_date
        save_route(store, route)
    except Exception as exc:
        _raise_http(exc, "update trip start date")
    return _calendar(route)


@router.put("/routes/{route_id}/notes/{day}", response_model=CalendarResponse, status_code=status.HTTP_200_OK)
def update_day_note(
    route_id: str,
    day: int,
    payload: NoteRequest,
    store: RouteStore = Depends(get_store),
    sessions: PlanningSessions = Depends(get_sessions),
) -> CalendarResponse:
    try:
        route = _load_route(route_id, store, sessions)
        route.day_notes = set_day_note(route.day_notes, day, payload.text)
        save_route(store, route)
    except Exception as exc:
        _raise_http(exc, "update day note")
    return _calendar(route)


@router.get("/routes/{route_id}/calendar", response_model=CalendarResponse, status_code=status.HTTP_200_OK)
def route_calendar(
    route_id: str,
    store: RouteStore = Depends(get_store),
    sessions: PlanningSessions = Depends(get_sessions),
) -> CalendarResponse:
    try:
        route = _load_route(route_id, store, sessions)
    except Exception as exc:
        _raise_http(exc, "load route calendar")
    return _calendar(route)
