"""Shared FastAPI dependencies: route store, capability clients and planning sessions."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from fastapi import HTTPException, status

from ..config import settings
from ..models.domain import Route
from ..persistence.filesystem import FileStorage
from ..persistence.store import InMemoryRouteStore, JsonFileRouteStore, RouteStore
from ..services.capabilities import Geocoder, Router, WaypointExtractor
from ..services.geocoding.resolver import GeocodeThrottle, GeocodingBatch, WaypointResearch

logger = logging.getLogger(__name__)


def build_store() -> RouteStore:
    match settings.storage_backend:
        case "memory":
            return InMemoryRouteStore()
        case "supabase":
            from ..persistence.database import SupabaseRouteStore

            return SupabaseRouteStore()
        case _:
            return JsonFileRouteStore(FileStorage())


@lru_cache()
def get_store() -> RouteStore:
    return build_store()


@lru_cache()
def get_file_storage() -> FileStorage:
    return FileStorage()


def get_extractor() -> WaypointExtractor:
    from ..services.extraction.anthropic_client import AnthropicWaypointExtractor

    try:
        return AnthropicWaypointExtractor()
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


def get_geocoder() -> Geocoder:
    from ..services.geocoding.nominatim_client import NominatimGeocoder

    return NominatimGeocoder()


def get_router() -> Router:
    from ..services.routing.ors_client import OpenRouteServiceRouter

    try:
        return OpenRouteServiceRouter()
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@dataclass
class BatchSession:
    route: Route
    batch: GeocodingBatch


@dataclass
class ResearchSession:
    """A pending search holds a detached waypoint; the route is reloaded when it resolves."""

    route_id: str
    waypoint_id: str
    research: WaypointResearch


@dataclass
class PlanningSessions:
    """In-flight resolution work keyed by route id.

    A suspended batch holds references to the waypoints of ``route``, so the same
    ``Route`` object must be used until the batch finishes or is cancelled.
    One throttle is shared so the geocoder spacing holds across every session.
    """

    throttle: GeocodeThrottle = field(default_factory=GeocodeThrottle)
    batches: dict[str, BatchSession] = field(default_factory=dict)
    research: dict[tuple[str, str], ResearchSession] = field(default_factory=dict)

    def get_batch(self, route_id: str) -> Optional[BatchSession]:
        return self.batches.get(route_id)

    def start_batch(self, route: Route, geocoder: Geocoder) -> BatchSession:
        session = BatchSession(route=route, batch=GeocodingBatch(route.waypoints, geocoder, throttle=self.throttle))
        self.batches[route.id] = session
        return session

    def end_batch(self, route_id: str) -> Optional[BatchSession]:
        return self.batches.pop(route_id, None)

    def get_research(self, route_id: str, waypoint_id: str) -> Optional[ResearchSession]:
        return self.research.get((route_id, waypoint_id))

    def start_research(self, route: Route, waypoint_id: str, geocoder: Geocoder) -> ResearchSession:
        waypoint = route.find_waypoint(waypoint_id)
        if waypoint is None:
            raise KeyError(waypoint_id)
        session = ResearchSession(
            route_id=route.id,
            waypoint_id=waypoint_id,
            research=WaypointResearch(copy.deepcopy(waypoint), geocoder, throttle=self.throttle),
        )
        self.research[(route.id, waypoint_id)] = session
        return session

    def end_research(self, route_id: str, waypoint_id: str) -> Optional[ResearchSession]:
        return self.research.pop((route_id, waypoint_id), None)


@lru_cache()
def get_sessions() -> PlanningSessions:
    return PlanningSessions()
