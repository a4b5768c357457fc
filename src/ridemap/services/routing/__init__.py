"""Routing services."""

from .fallback import FallbackResult, apply_adjustment, find_routable_coordinate
from .ors_client import NoRouteWithinThresholdError, OpenRouteServiceRouter, RoutingError
from .segments import SegmentCalculationResult, SegmentEngine, SegmentFailure

__all__ = [
    "FallbackResult",
    "NoRouteWithinThresholdError",
    "OpenRouteServiceRouter",
    "RoutingError",
    "SegmentCalculationResult",
    "SegmentEngine",
    "SegmentFailure",
    "apply_adjustment",
    "find_routable_coordinate",
]
