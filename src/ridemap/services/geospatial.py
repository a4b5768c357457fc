"""Geospatial helper functions."""

from __future__ import annotations

import math

from ..models.domain import LatLng

EARTH_RADIUS_M = 6_371_000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance in meters between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def distance_meters(a: LatLng, b: LatLng) -> float:
    return haversine_m(a.lat, a.lng, b.lat, b.lng)


def bearing_degrees(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the initial bearing from (lat1, lon1) to (lat2, lon2)."""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)
    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    bearing = math.degrees(math.atan2(y, x))
    return (bearing + 360) % 360


def destination_point(origin: LatLng, bearing: float, distance: float) -> LatLng:
    """Point reached by travelling ``distance`` meters from ``origin`` along ``bearing`` degrees."""

    phi1 = math.radians(origin.lat)
    lambda1 = math.radians(origin.lng)
    theta = math.radians(bearing)
    delta = distance / EARTH_RADIUS_M

    phi2 = math.asin(
        math.sin(phi1) * math.cos(delta) + math.cos(phi1) * math.sin(delta) * math.cos(theta)
    )
    lambda2 = lambda1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(phi1),
        math.cos(delta) - math.sin(phi1) * math.sin(phi2),
    )
    lng = (math.degrees(lambda2) + 540) % 360 - 180
    return LatLng(math.degrees(phi2), lng)


def point_at_distance_from_b(a: LatLng, b: LatLng, distance_from_b: float) -> LatLng:
    """Return the point on the great-circle path from ``b`` toward ``a``, ``distance_from_b`` meters from ``b``.

    The distance is clamped to the a-b length so the result never overshoots ``a``.
    """

    total = distance_meters(a, b)
    if total == 0 or distance_from_b <= 0:
        return b
    if distance_from_b >= total:
        return a
    bearing = bearing_degrees(b.lat, b.lng, a.lat, a.lng)
    return destination_point(b, bearing, distance_from_b)
