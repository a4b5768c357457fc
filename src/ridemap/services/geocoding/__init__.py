"""Geocoding services."""

from .nominatim_client import GeocodingError, NominatimGeocoder
from .resolver import (
    BatchOutcome,
    BatchStatus,
    Decision,
    GeocodeThrottle,
    GeocodingBatch,
    ManualCoordinates,
    PendingDecision,
    Requery,
    ResearchOutcome,
    ResolutionStatus,
    SelectCandidate,
    Skip,
    WaypointResearch,
)

__all__ = [
    "BatchOutcome",
    "BatchStatus",
    "Decision",
    "GeocodeThrottle",
    "GeocodingBatch",
    "GeocodingError",
    "ManualCoordinates",
    "NominatimGeocoder",
    "PendingDecision",
    "Requery",
    "ResearchOutcome",
    "ResolutionStatus",
    "SelectCandidate",
    "Skip",
    "WaypointResearch",
]
