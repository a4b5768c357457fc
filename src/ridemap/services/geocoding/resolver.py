"""Waypoint resolution: geocoding with ambiguity handling.

Each waypoint moves through ``ResolutionStatus`` states. A zero- or
multi-candidate lookup suspends resolution until a decision is supplied;
a batch never skips ahead on its own. Geocoder failures are treated as an
empty result so one bad lookup cannot stop the pipeline.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional, Sequence, Union

import httpx

from ...config import settings
from ...models.domain import GeocodeCandidate, Waypoint
from ..capabilities import Geocoder
from ..waypoints import apply_candidate, is_geocoded, manual_candidate
from .nominatim_client import GeocodingError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

_LOOKUP_FAILURES = (GeocodingError, httpx.HTTPError, TimeoutError, ConnectionError)


class ResolutionStatus(str, Enum):
    UNRESOLVED = "unresolved"
    AWAITING_DECISION = "awaiting_decision"
    RESOLVED = "resolved"
    SKIPPED = "skipped"


class BatchStatus(str, Enum):
    COMPLETED = "completed"
    AWAITING_DECISION = "awaiting_decision"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class SelectCandidate:
    index: int


@dataclass(slots=True)
class ManualCoordinates:
    lat: float
    lng: float


@dataclass(slots=True)
class Requery:
    name: str


@dataclass(slots=True)
class Skip:
    pass


Decision = Union[SelectCandidate, ManualCoordinates, Requery, Skip]


@dataclass(slots=True)
class PendingDecision:
    waypoint_id: str
    waypoint_name: str
    query: str
    candidates: list[GeocodeCandidate]
    error: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.candidates


class GeocodeThrottle:
    """Keeps consecutive geocoder calls at least ``min_interval`` seconds apart."""

    def __init__(
        self,
        min_interval: float | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.min_interval = min_interval if min_interval is not None else settings.geocode_min_interval_seconds
        self._sleep = sleep
        self._clock = clock
        self._last_call: float | None = None

    async def wait(self) -> None:
        if self._last_call is not None:
            remaining = self.min_interval - (self._clock() - self._last_call)
            if remaining > 0:
                await self._sleep(remaining)
        self._last_call = self._clock()


class _Resolver:
    def __init__(
        self,
        geocoder: Geocoder,
        throttle: GeocodeThrottle | None = None,
        country_code: str | None = None,
    ) -> None:
        self.geocoder = geocoder
        self.throttle = throttle or GeocodeThrottle()
        self.country_code = country_code
        self.pending: PendingDecision | None = None

    async def _lookup(self, query: str) -> tuple[list[GeocodeCandidate], Optional[str]]:
        await self.throttle.wait()
        try:
            candidates = await self.geocoder.geocode(query, self.country_code)
        except _LOOKUP_FAILURES as exc:
            logger.warning("Geocoding %r failed, falling back to manual entry: %s", query, exc)
            return [], str(exc)
        return list(candidates), None

    async def _resolve_query(self, waypoint: Waypoint, query: str) -> PendingDecision | None:
        """Geocode ``query`` for ``waypoint``; accept a unique hit, otherwise return the decision to make."""
        candidates, error = await self._lookup(query)
        if len(candidates) == 1:
            apply_candidate(waypoint, candidates[0])
            logger.info("Resolved %r to %s", query, candidates[0].display_name)
            return None
        return PendingDecision(
            waypoint_id=waypoint.id,
            waypoint_name=waypoint.name,
            query=query,
            candidates=candidates,
            error=error,
        )

    def _candidate_for(self, decision: SelectCandidate | ManualCoordinates) -> GeocodeCandidate:
        if isinstance(decision, ManualCoordinates):
            return manual_candidate(decision.lat, decision.lng)
        if self.pending is None:
            raise ValueError("No geocoding decision is pending.")
        if decision.index < 0 or decision.index >= len(self.pending.candidates):
            raise ValueError(f"Candidate index {decision.index} is out of range.")
        return self.pending.candidates[decision.index]


@dataclass(slots=True)
class BatchOutcome:
    status: BatchStatus
    pending: PendingDecision | None
    resolved: int
    skipped: int
    total: int
    failed_lookups: int = 0
    statuses: dict[str, ResolutionStatus] = field(default_factory=dict)


class GeocodingBatch(_Resolver):
    """Sequential geocoding of every ungeocoded waypoint, resumable after each decision."""

    def __init__(
        self,
        waypoints: Sequence[Waypoint],
        geocoder: Geocoder,
        throttle: GeocodeThrottle | None = None,
        country_code: str | None = None,
    ) -> None:
        super().__init__(geocoder, throttle, country_code)
        self._waypoints = {waypoint.id: waypoint for waypoint in waypoints}
        self.queue = [waypoint.id for waypoint in waypoints if not is_geocoded(waypoint)]
        self.statuses = {waypoint_id: ResolutionStatus.UNRESOLVED for waypoint_id in self.queue}
        self.cursor = 0
        self.cancelled = False
        self.failed_lookups = 0

    @property
    def finished(self) -> bool:
        return self.cancelled or (self.pending is None and self.cursor >= len(self.queue))

    def _outcome(self, status: BatchStatus) -> BatchOutcome:
        values = list(self.statuses.values())
        return BatchOutcome(
            status=status,
            pending=self.pending,
            resolved=values.count(ResolutionStatus.RESOLVED),
            skipped=values.count(ResolutionStatus.SKIPPED),
            total=len(self.queue),
            failed_lookups=self.failed_lookups,
            statuses=dict(self.statuses),
        )

    async def run(
        self,
        progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BatchOutcome:
        if self.cancelled:
            return self._outcome(BatchStatus.CANCELLED)
        if self.pending is not None:
            return self._outcome(BatchStatus.AWAITING_DECISION)

        total = len(self.queue)
        if self.cursor == 0:
            logger.info("Starting geocoding batch for %d waypoints", total)
        while self.cursor < total:
            if cancel_event is not None and cancel_event.is_set():
                return self.cancel()
            waypoint_id = self.queue[self.cursor]
            waypoint = self._waypoints[waypoint_id]
            if is_geocoded(waypoint):
                self.statuses[waypoint_id] = ResolutionStatus.RESOLVED
                self.cursor += 1
                continue
            if progress is not None:
                progress(self.cursor + 1, total)

            pending = await self._resolve_query(waypoint, waypoint.name)
            if pending is not None:
                if pending.error:
                    self.failed_lookups += 1
                self.pending = pending
                self.statuses[waypoint_id] = ResolutionStatus.AWAITING_DECISION
                logger.info(
                    "Geocoding batch suspended at %r (%d candidates)", waypoint.name, len(pending.candidates)
                )
                return self._outcome(BatchStatus.AWAITING_DECISION)
            self.statuses[waypoint_id] = ResolutionStatus.RESOLVED
            self.cursor += 1

        logger.info("Geocoding batch finished: %s", {s.value: n for s, n in _count(self.statuses).items()})
        return self._outcome(BatchStatus.COMPLETED)

    async def decide(
        self,
        decision: Decision,
        progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BatchOutcome:
        """Apply a decision to the suspended waypoint and continue the batch."""
        if self.pending is None:
            raise ValueError("No geocoding decision is pending.")
        waypoint = self._waypoints[self.pending.waypoint_id]

        match decision:
            case SelectCandidate() | ManualCoordinates():
                apply_candidate(waypoint, self._candidate_for(decision))
                self.statuses[waypoint.id] = ResolutionStatus.RESOLVED
            case Requery(name=name):
                query = (name or "").strip()
                if not query:
                    raise ValueError("A search name is required.")
                pending = await self._resolve_query(waypoint, query)
                if pending is not None:
                    if pending.error:
                        self.failed_lookups += 1
                    self.pending = pending
                    return self._outcome(BatchStatus.AWAITING_DECISION)
                self.statuses[waypoint.id] = ResolutionStatus.RESOLVED
            case Skip():
                self.statuses[waypoint.id] = ResolutionStatus.SKIPPED
                logger.info("Skipped geocoding for %r", waypoint.name)
            case _:
                raise ValueError(f"Unsupported decision {decision!r}.")

        self.pending = None
        self.cursor += 1
        return await self.run(progress, cancel_event)

    def cancel(self) -> BatchOutcome:
        """Stop issuing lookups; waypoints resolved so far keep their coordinates."""
        self.cancelled = True
        if self.pending is not None:
            self.statuses[self.pending.waypoint_id] = ResolutionStatus.UNRESOLVED
            self.pending = None
        logger.info("Geocoding batch cancelled at %d/%d", self.cursor, len(self.queue))
        return self._outcome(BatchStatus.CANCELLED)


@dataclass(slots=True)
class ResearchOutcome:
    status: ResolutionStatus
    waypoint_id: str
    pending: PendingDecision | None = None

    @property
    def needs_partial_recalculation(self) -> bool:
        return self.status is ResolutionStatus.RESOLVED


class WaypointResearch(_Resolver):
    """Re-resolve one already placed waypoint under a new search name."""

    def __init__(
        self,
        waypoint: Waypoint,
        geocoder: Geocoder,
        throttle: GeocodeThrottle | None = None,
        country_code: str | None = None,
    ) -> None:
        super().__init__(geocoder, throttle, country_code)
        self.waypoint = waypoint

    def _outcome(self, status: ResolutionStatus) -> ResearchOutcome:
        return ResearchOutcome(status=status, waypoint_id=self.waypoint.id, pending=self.pending)

    async def search(self, name: str) -> ResearchOutcome:
        query = (name or "").strip()
        if not query:
            raise ValueError("A search name is required.")
        self.pending = await self._resolve_query(self.waypoint, query)
        if self.pending is not None:
            return self._outcome(ResolutionStatus.AWAITING_DECISION)
        return self._outcome(ResolutionStatus.RESOLVED)

    async def decide(self, decision: Decision) -> ResearchOutcome:
        if self.pending is None:
            raise ValueError("No geocoding decision is pending.")
        match decision:
            case SelectCandidate() | ManualCoordinates():
                apply_candidate(self.waypoint, self._candidate_for(decision))
                self.pending = None
                return self._outcome(ResolutionStatus.RESOLVED)
            case Requery(name=name):
                return await self.search(name)
            case Skip():
                self.pending = None
                return self._outcome(ResolutionStatus.SKIPPED)
            case _:
                raise ValueError(f"Unsupported decision {decision!r}.")


def _count(statuses: dict[str, ResolutionStatus]) -> dict[ResolutionStatus, int]:
    counts: dict[ResolutionStatus, int] = {}
    for status in statuses.values():
        counts[status] = counts.get(status, 0) + 1
    return counts
