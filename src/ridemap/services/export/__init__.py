"""Export services."""

from .geojson import (
    polyline_to_linestring,
    route_to_feature_collection,
)

__all__ = [
    "polyline_to_linestring",
    "route_to_feature_collection",
]
