"""Route segment calculation between consecutive geocoded waypoints."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from ...config import settings
from ...models.domain import Route, Segment, Waypoint
from ..calendar.days import default_segment_days
from ..capabilities import Router
from ..waypoints import geocoded_waypoints
from .fallback import apply_adjustment, find_routable_coordinate
from .ors_client import NoRouteWithinThresholdError, RoutingError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass(slots=True)
class SegmentFailure:
    from_waypoint_id: str
    to_waypoint_id: str
    reason: str
    fallback_attempts: int = 0


@dataclass(slots=True)
class SegmentCalculationResult:
    attempted: int = 0
    succeeded: int = 0
    failures: list[SegmentFailure] = field(default_factory=list)
    adjusted_waypoint_ids: list[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def status(self) -> str:
        if self.cancelled:
            return "cancelled"
        if self.attempted and self.succeeded == 0:
            return "failed"
        if self.failures:
            return "partial"
        return "complete"


def _ordered_geocoded(route: Route) -> list[Waypoint]:
    return geocoded_waypoints(sorted(route.waypoints, key=lambda waypoint: waypoint.order))


def _find_segment(segments: list[Segment], key: tuple[str, str]) -> Optional[int]:
    for index, segment in enumerate(segments):
        if segment.key == key:
            return index
    return None


class SegmentEngine:
    def __init__(self, router: Router, fallback_step_meters: float | None = None) -> None:
        self.router = router
        self.fallback_step_meters = (
            fallback_step_meters if fallback_step_meters is not None else settings.fallback_step_meters
        )

    async def _compute(
        self,
        origin: Waypoint,
        target: Waypoint,
        result: SegmentCalculationResult,
        cancel_event: asyncio.Event | None,
    ) -> Segment | None:
        result.attempted += 1
        try:
            route = await self.router.route_between(origin.position, target.position)
        except NoRouteWithinThresholdError as exc:
            logger.info("No routable point near %r, searching nearby: %s", target.name, exc)
            fallback = await find_routable_coordinate(
                self.router,
                origin.position,
                target.position,
                step_meters=self.fallback_step_meters,
                cancel_event=cancel_event,
            )
            if not fallback.success or fallback.coordinate is None:
                result.failures.append(
                    SegmentFailure(origin.id, target.id, f"{exc} (no routable point found nearby)", fallback.attempts)
                )
                return None
            apply_adjustment(target, fallback.coordinate)
            if target.id not in result.adjusted_waypoint_ids:
                result.adjusted_waypoint_ids.append(target.id)
            try:
                route = await self.router.route_between(origin.position, target.position)
            except RoutingError as retry_exc:
                result.failures.append(SegmentFailure(origin.id, target.id, str(retry_exc), fallback.attempts))
                return None
        except RoutingError as exc:
            logger.warning("Segment %r -> %r failed: %s", origin.name, target.name, exc)
            result.failures.append(SegmentFailure(origin.id, target.id, str(exc)))
            return None

        result.succeeded += 1
        return Segment(
            from_waypoint_id=origin.id,
            to_waypoint_id=target.id,
            polyline=list(route.polyline),
            distance_meters=route.distance_meters,
        )

    async def recalculate_all(
        self,
        route: Route,
        progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> SegmentCalculationResult:
        """Recompute every segment. Ungeocoded waypoints are skipped; failed segments are left out."""
        geocoded = _ordered_geocoded(route)
        if len(geocoded) < 2:
            raise ValueError("At least 2 geocoded waypoints are required to calculate a route")

        pairs = list(zip(geocoded, geocoded[1:]))
        previous = list(route.segments)
        result = SegmentCalculationResult()
        segments: list[Segment] = []
        logger.info("Calculating %d segments for route %r", len(pairs), route.name)

        for index, (origin, target) in enumerate(pairs):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                # Pairs not reached keep whatever was calculated for them before.
                for later_origin, later_target in pairs[index:]:
                    existing = _find_segment(previous, (later_origin.id, later_target.id))
                    if existing is not None:
                        segments.append(previous[existing])
                break
            if progress is not None:
                progress(index + 1, len(pairs))
            segment = await self._compute(origin, target, result, cancel_event)
            if segment is not None:
                segments.append(segment)

        route.segments = segments
        route.segment_days = default_segment_days(route.segment_days, len(segments))
        logger.info(
            "Route %r: %d/%d segments calculated (%s)",
            route.name,
            result.succeeded,
            result.attempted,
            result.status,
        )
        return result

    async def recalculate_for_waypoint(
        self,
        route: Route,
        waypoint_id: str,
        progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> SegmentCalculationResult:
        """Recompute only the segments ending and starting at one edited waypoint."""
        if route.find_waypoint(waypoint_id) is None:
            raise KeyError(waypoint_id)
        geocoded = _ordered_geocoded(route)
        if len(geocoded) < 2:
            raise ValueError("At least 2 geocoded waypoints are required to calculate a route")
        position = next((i for i, waypoint in enumerate(geocoded) if waypoint.id == waypoint_id), None)
        if position is None:
            raise ValueError("The edited waypoint must be geocoded before its segments can be recalculated")

        pairs: list[tuple[Waypoint, Waypoint]] = []
        if position > 0:
            pairs.append((geocoded[position - 1], geocoded[position]))
        if position < len(geocoded) - 1:
            pairs.append((geocoded[position], geocoded[position + 1]))

        segments = list(route.segments)
        if 0 < position < len(geocoded) - 1:
            bridge = _find_segment(segments, (geocoded[position - 1].id, geocoded[position + 1].id))
            if bridge is not None:
                del segments[bridge]

        order = {waypoint.id: waypoint.order for waypoint in route.waypoints}
        result = SegmentCalculationResult()
        for index, (origin, target) in enumerate(pairs):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                break
            if progress is not None:
                progress(index + 1, len(pairs))
            segment = await self._compute(origin, target, result, cancel_event)
            existing = _find_segment(segments, (origin.id, target.id))
            if segment is None:
                if existing is not None:
                    del segments[existing]
                continue
            if existing is not None:
                segments[existing] = segment
            else:
                segments.insert(_insertion_index(segments, order, origin.id), segment)

        route.segments = segments
        route.segment_days = default_segment_days(route.segment_days, len(segments))
        logger.info(
            "Route %r: recalculated %d/%d segments around waypoint %s",
            route.name,
            result.succeeded,
            result.attempted,
            waypoint_id,
        )
        return result


def _insertion_index(segments: list[Segment], order: dict[str, int], from_waypoint_id: str) -> int:
    origin_order = order.get(from_waypoint_id, 0)
    for index, segment in enumerate(segments):
        if order.get(segment.from_waypoint_id, -1) >= origin_order:
            return index
    return len(segments)
