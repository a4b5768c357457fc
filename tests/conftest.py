from __future__ import annotations

from typing import Callable, Optional

import pytest

from ridemap.models.domain import ExtractedWaypoint, GeocodeCandidate, LatLng, Route, RouteResult, Waypoint
from ridemap.services.geospatial import distance_meters
from ridemap.services.routing.ors_client import RoutingError


class FakeGeocoder:
    """Answers from a name -> candidates table; an Exception value is raised instead."""

    def __init__(self, table: dict[str, object] | None = None) -> None:
        self.table = table or {}
        self.calls: list[str] = []

    async def geocode(self, name: str, country_code: Optional[str] = None, limit: Optional[int] = None):
        self.calls.append(name)
        result = self.table.get(name, [])
        if isinstance(result, Exception):
            raise result
        return list(result)

    async def search(self, query: str, limit: Optional[int] = None):
        if len(query.strip()) < 2:
            return []
        return await self.geocode(query)


class FakeRouter:
    """Straight-line routes; ``fail`` decides per (a, b) whether to raise instead."""

    def __init__(self, fail: Callable[[LatLng, LatLng], Optional[RoutingError]] | None = None) -> None:
        self.fail = fail
        self.calls: list[tuple[LatLng, LatLng]] = []

    async def route_between(self, a: LatLng, b: LatLng) -> RouteResult:
        self.calls.append((a, b))
        if self.fail is not None:
            error = self.fail(a, b)
            if error is not None:
                raise error
        return RouteResult(polyline=[a.as_tuple(), b.as_tuple()], distance_meters=distance_meters(a, b))


class FakeExtractor:
    def __init__(self, names: list[str]) -> None:
        self.names = names
        self.calls = 0

    async def extract(self, itinerary_text: str) -> list[ExtractedWaypoint]:
        self.calls += 1
        return [ExtractedWaypoint(name=name, sequence=index + 1) for index, name in enumerate(self.names)]


def candidate(name: str, lat: float, lng: float) -> GeocodeCandidate:
    return GeocodeCandidate(lat=lat, lng=lng, display_name=name)


def make_route(*points: tuple[str, float, float]) -> Route:
    waypoints = [
        Waypoint(id=name.lower(), name=name, lat=lat, lng=lng, order=index)
        for index, (name, lat, lng) in enumerate(points)
    ]
    return Route(id="trip", name="Trip", waypoints=waypoints)


@pytest.fixture
def four_stop_route() -> Route:
    return make_route(
        ("A", 32.0, 77.0),
        ("B", 32.0, 77.1),
        ("C", 32.0, 77.2),
        ("D", 32.0, 77.3),
    )
