import asyncio

import pytest

from conftest import FakeRouter, make_route
from ridemap.models.domain import LatLng, Route
from ridemap.services.routing.ors_client import NoRouteWithinThresholdError, RoutingError
from ridemap.services.routing.segments import SegmentEngine

C_ORIGINAL = LatLng(32.0, 77.2)


def _keys(route: Route) -> list[tuple[str, str]]:
    return [segment.key for segment in route.segments]


def test_full_recalculation_adjusts_unroutable_waypoint(four_stop_route: Route) -> None:
    def fail(origin: LatLng, target: LatLng):
        if target == C_ORIGINAL:
            return NoRouteWithinThresholdError("Could not find routable point within a radius of 350.0 meters")
        return None

    engine = SegmentEngine(FakeRouter(fail), fallback_step_meters=100)

    result = asyncio.run(engine.recalculate_all(four_stop_route))

    c = four_stop_route.find_waypoint("c")
    assert result.status == "complete"
    assert result.adjusted_waypoint_ids == ["c"]
    assert c.adjusted is True
    assert c.original_coordinates == C_ORIGINAL
    assert c.position != C_ORIGINAL
    assert _keys(four_stop_route) == [("a", "b"), ("b", "c"), ("c", "d")]
    assert four_stop_route.segments[2].polyline[0] == c.position.as_tuple()
    assert four_stop_route.segment_days == [1, 2, 3]


def test_generic_failure_leaves_segment_out(four_stop_route: Route) -> None:
    def fail(origin: LatLng, target: LatLng):
        if target == C_ORIGINAL:
            return RoutingError("Routing failed: 500 - upstream error")
        return None

    router = FakeRouter(fail)
    result = asyncio.run(SegmentEngine(router).recalculate_all(four_stop_route))

    assert result.status == "partial"
    assert result.attempted == 3
    assert result.succeeded == 2
    assert result.failures[0].from_waypoint_id == "b"
    assert _keys(four_stop_route) == [("a", "b"), ("c", "d")]
    assert len(four_stop_route.segment_days) == 2
    assert four_stop_route.find_waypoint("c").adjusted is None
    # No fallback probing for errors other than "no routable point".
    assert len(router.calls) == 3


def test_partial_recalculation_touches_only_adjacent_segments(four_stop_route: Route) -> None:
    router = FakeRouter()
    engine = SegmentEngine(router)
    asyncio.run(engine.recalculate_all(four_stop_route))
    before = list(four_stop_route.segments)
    router.calls.clear()

    c = four_stop_route.find_waypoint("c")
    c.lat = 32.05
    result = asyncio.run(engine.recalculate_for_waypoint(four_stop_route, "c"))

    assert result.attempted == 2
    assert len(router.calls) == 2
    assert four_stop_route.segments[0] is before[0]
    assert four_stop_route.segments[1] is not before[1]
    assert four_stop_route.segments[2] is not before[2]
    assert four_stop_route.segments[1].polyline[-1] == (32.05, 77.2)
    assert _keys(four_stop_route) == [("a", "b"), ("b", "c"), ("c", "d")]


def test_newly_geocoded_waypoint_replaces_bridging_segment() -> None:
    route = make_route(("A", 32.0, 77.0), ("B", 0.0, 0.0), ("C", 32.0, 77.2))
    engine = SegmentEngine(FakeRouter())
    asyncio.run(engine.recalculate_all(route))
    assert _keys(route) == [("a", "c")]

    b = route.find_waypoint("b")
    b.lat, b.lng = 32.0, 77.1
    asyncio.run(engine.recalculate_for_waypoint(route, "b"))

    assert _keys(route) == [("a", "b"), ("b", "c")]
    assert route.segment_days == [1, 2]


def test_failed_partial_pair_drops_stale_segment(four_stop_route: Route) -> None:
    engine = SegmentEngine(FakeRouter())
    asyncio.run(engine.recalculate_all(four_stop_route))

    engine.router = FakeRouter(lambda a, b: RoutingError("boom") if b == LatLng(32.0, 77.3) else None)
    result = asyncio.run(engine.recalculate_for_waypoint(four_stop_route, "c"))

    assert result.status == "partial"
    assert _keys(four_stop_route) == [("a", "b"), ("b", "c")]


def test_preconditions() -> None:
    route = make_route(("A", 32.0, 77.0), ("B", 0.0, 0.0))
    engine = SegmentEngine(FakeRouter())

    with pytest.raises(ValueError):
        asyncio.run(engine.recalculate_all(route))
    with pytest.raises(KeyError):
        asyncio.run(engine.recalculate_for_waypoint(route, "missing"))

    route = make_route(("A", 32.0, 77.0), ("B", 0.0, 0.0), ("C", 32.0, 77.2))
    with pytest.raises(ValueError):
        asyncio.run(engine.recalculate_for_waypoint(route, "b"))


def test_progress_and_cancellation(four_stop_route: Route) -> None:
    engine = SegmentEngine(FakeRouter())
    progress: list[tuple[int, int]] = []
    asyncio.run(engine.recalculate_all(four_stop_route, progress=lambda done, total: progress.append((done, total))))
    assert progress == [(1, 3), (2, 3), (3, 3)]
    previous = list(four_stop_route.segments)

    async def cancelled_run():
        event = asyncio.Event()
        event.set()
        return await engine.recalculate_all(four_stop_route, cancel_event=event)

    result = asyncio.run(cancelled_run())

    assert result.cancelled
    assert result.status == "cancelled"
    assert result.attempted == 0
    assert four_stop_route.segments == previous
