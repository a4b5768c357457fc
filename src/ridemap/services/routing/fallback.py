"""Search for a routable substitute coordinate near an unroutable waypoint."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ...models.domain import LatLng, RouteResult, Waypoint
from ..capabilities import Router
from ..geospatial import distance_meters, point_at_distance_from_b
from .ors_client import RoutingError

logger = logging.getLogger(__name__)

DEFAULT_STEP_METERS = 100.0


@dataclass(slots=True)
class FallbackResult:
    success: bool
    attempts: int
    coordinate: Optional[LatLng] = None
    offset_meters: Optional[float] = None
    route: Optional[RouteResult] = None


async def find_routable_coordinate(
    router: Router,
    a: LatLng,
    b: LatLng,
    step_meters: float = DEFAULT_STEP_METERS,
    cancel_event: asyncio.Event | None = None,
) -> FallbackResult:
    """Try points backing off from ``b`` toward ``a`` until one is routable from ``a``.

    Attempts stop at half the a-b distance; beyond that the failure is treated as
    a real routing impossibility rather than a snapping problem.
    """
    if step_meters <= 0:
        raise ValueError("Fallback step must be positive.")

    max_search = distance_meters(a, b) / 2
    step = step_meters
    attempts = 0
    while step <= max_search:
        if cancel_event is not None and cancel_event.is_set():
            break
        candidate = point_at_distance_from_b(a, b, step)
        attempts += 1
        try:
            route = await router.route_between(a, candidate)
        except RoutingError as exc:
            logger.debug("Fallback attempt at %.0fm failed: %s", step, exc)
            step += step_meters
            continue
        logger.info("Found routable coordinate %.0fm from target after %d attempts", step, attempts)
        return FallbackResult(success=True, attempts=attempts, coordinate=candidate, offset_meters=step, route=route)

    logger.warning("Fallback search exhausted after %d attempts (max %.0fm)", attempts, max_search)
    return FallbackResult(success=False, attempts=attempts)


def apply_adjustment(waypoint: Waypoint, coordinate: LatLng) -> None:
    """Move a waypoint onto a substitute coordinate, keeping its first known position."""
    if waypoint.original_coordinates is None:
        waypoint.original_coordinates = LatLng(waypoint.lat, waypoint.lng)
    waypoint.adjusted = True
    waypoint.lat = coordinate.lat
    waypoint.lng = coordinate.lng
