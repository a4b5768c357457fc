"""Waypoint extraction services."""

from .anthropic_client import (
    AnthropicWaypointExtractor,
    ExtractionError,
    extract_waypoints_with_retry,
    parse_waypoint_payload,
)

__all__ = [
    "AnthropicWaypointExtractor",
    "ExtractionError",
    "extract_waypoints_with_retry",
    "parse_waypoint_payload",
]
