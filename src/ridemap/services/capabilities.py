"""Contracts for the external capabilities the planning engines depend on."""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..models.domain import ExtractedWaypoint, GeocodeCandidate, LatLng, RouteResult


class WaypointExtractor(Protocol):
    async def extract(self, itinerary_text: str) -> list[ExtractedWaypoint]:
        ...


class Geocoder(Protocol):
    async def geocode(
        self,
        name: str,
        country_code: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Sequence[GeocodeCandidate]:
        ...

    async def search(self, query: str, limit: Optional[int] = None) -> Sequence[GeocodeCandidate]:
        ...


class Router(Protocol):
    async def route_between(self, a: LatLng, b: LatLng) -> RouteResult:
        """Raise ``NoRouteWithinThresholdError`` or ``RoutingError`` on failure."""
        ...
