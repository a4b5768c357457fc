"""GeoJSON export utilities for saved routes."""

from __future__ import annotations

from typing import Any, Dict, List

from shapely.geometry import LineString, Point, mapping

from ...models.domain import Route
from ..calendar.builder import segment_label
from ..waypoints import geocoded_waypoints


def generate_segment_color(index: int) -> str:
    """Generate distinct colors for consecutive segments."""
    colors = [
        "#e0003e", "#0000c1", "#38e000", "#e0af00", "#611cc7",
        "#13aae0", "#e000a2", "#a4d819", "#00e0bb", "#e0e005",
    ]
    return colors[index % len(colors)]


def polyline_to_linestring(polyline: List[tuple[float, float]]) -> LineString:
    """Convert a [(lat, lng), ...] polyline to a shapely LineString.

    Args:
        polyline: List of (lat, lng) pairs

    Returns:
        LineString in (lng, lat) order as GeoJSON expects
    """
    if not polyline or len(polyline) < 2:
        raise ValueError("LineString must have at least 2 coordinates")
    return LineString([(lng, lat) for lat, lng in polyline])


def route_to_feature_collection(route: Route) -> Dict[str, Any]:
    """Convert a route to a GeoJSON FeatureCollection.

    One LineString feature per routed segment and one Point feature per
    geocoded waypoint. Segments with fewer than two polyline points are skipped.

    Args:
        route: Route to export

    Returns:
        GeoJSON FeatureCollection dictionary
    """
    features: List[Dict[str, Any]] = []

    for idx, segment in enumerate(route.segments):
        try:
            geometry = polyline_to_linestring(segment.polyline)
        except ValueError:
            continue
        day = route.segment_days[idx] if idx < len(route.segment_days) else None
        features.append({
            "type": "Feature",
            "geometry": mapping(geometry),
            "properties": {
                "kind": "segment",
                "index": idx,
                "label": segment_label(segment, route.waypoints),
                "fromWaypointId": segment.from_waypoint_id,
                "toWaypointId": segment.to_waypoint_id,
                "distanceMeters": segment.distance_meters,
                "day": day,
                "stroke": generate_segment_color(idx),
            },
        })

    for waypoint in geocoded_waypoints(route.waypoints):
        features.append({
            "type": "Feature",
            "geometry": mapping(Point(waypoint.lng, waypoint.lat)),
            "properties": {
                "kind": "waypoint",
                "id": waypoint.id,
                "name": waypoint.name,
                "displayName": waypoint.display_name,
                "order": waypoint.order,
                "adjusted": bool(waypoint.adjusted),
            },
        })

    return {
        "type": "FeatureCollection",
        "properties": {"routeId": route.id, "name": route.name},
        "features": features,
    }
