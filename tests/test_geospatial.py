import math

import pytest

from ridemap.models.domain import LatLng
from ridemap.services.geospatial import (
    EARTH_RADIUS_M,
    bearing_degrees,
    distance_meters,
    haversine_m,
    point_at_distance_from_b,
)


def test_haversine_one_degree_of_latitude() -> None:
    expected = EARTH_RADIUS_M * math.pi / 180
    assert haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(expected, rel=1e-9)
    assert haversine_m(10.0, 20.0, 10.0, 20.0) == 0.0


def test_bearing_cardinal_directions() -> None:
    assert bearing_degrees(0.0, 0.0, 1.0, 0.0) == pytest.approx(0.0, abs=1e-9)
    assert bearing_degrees(0.0, 0.0, 0.0, 1.0) == pytest.approx(90.0, abs=1e-9)
    assert bearing_degrees(0.0, 0.0, -1.0, 0.0) == pytest.approx(180.0, abs=1e-9)


@pytest.mark.parametrize("offset", [50.0, 300.0, 2500.0])
def test_point_at_distance_from_b_lies_on_segment(offset: float) -> None:
    a = LatLng(34.1526, 77.5771)  # Leh
    b = LatLng(34.5539, 76.1349)  # Kargil
    total = distance_meters(a, b)

    point = point_at_distance_from_b(a, b, offset)

    assert distance_meters(point, b) == pytest.approx(offset, abs=0.01)
    assert distance_meters(a, point) + distance_meters(point, b) == pytest.approx(total, abs=0.5)


def test_point_at_distance_from_b_clamps_to_endpoints() -> None:
    a = LatLng(32.0, 77.0)
    b = LatLng(32.0, 77.1)

    assert point_at_distance_from_b(a, b, 0) == b
    assert point_at_distance_from_b(a, b, -5) == b
    assert point_at_distance_from_b(a, b, distance_meters(a, b) + 1) == a


@pytest.mark.parametrize(
    "a,b",
    [
        (LatLng(34.1526, 77.5771), LatLng(34.5539, 76.1349)),
        (LatLng(-33.8688, 151.2093), LatLng(51.5074, -0.1278)),
        (LatLng(10.0, 179.9), LatLng(10.0, -179.9)),
        (LatLng(-16.5, -179.5), LatLng(-17.0, 178.8)),
        (LatLng(90.0, 0.0), LatLng(-90.0, 0.0)),
        (LatLng(89.9, 45.0), LatLng(89.9, -135.0)),
    ],
)
def test_distance_is_symmetric_and_non_negative(a: LatLng, b: LatLng) -> None:
    forward = distance_meters(a, b)

    assert forward >= 0.0
    assert distance_meters(b, a) == pytest.approx(forward, rel=1e-12, abs=1e-9)
    assert distance_meters(a, a) == pytest.approx(0.0, abs=1e-6)


def test_distance_across_antimeridian_takes_short_way() -> None:
    # 0.2 degrees of longitude on the equator, not 359.8.
    assert distance_meters(LatLng(0.0, 179.9), LatLng(0.0, -179.9)) == pytest.approx(
        EARTH_RADIUS_M * math.radians(0.2), rel=1e-9
    )
