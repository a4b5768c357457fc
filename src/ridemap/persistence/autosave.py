"""Debounced background saving of the route being edited."""

from __future__ import annotations

import asyncio
import copy
import hashlib
import json
import logging
import uuid
from datetime import datetime
from typing import Optional

from ..config import settings
from ..models.domain import Route
from ..schemas.routes import route_to_payload
from .store import PersistenceError, RouteStore, save_route

logger = logging.getLogger(__name__)

_VOLATILE_KEYS = ("createdAt", "updatedAt")


def route_fingerprint(route: Route) -> str:
    payload = route_to_payload(route)
    for key in _VOLATILE_KEYS:
        payload.pop(key, None)
    encoded = json.dumps(payload, sort_keys=True, ensure_ascii=False)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class AutoSaver:
    """Coalesces rapid edits into a single write after ``debounce`` seconds of quiet.

    Every ``notify`` restarts the timer with a fresh snapshot. Writes hold a lock,
    and the snapshot is taken inside it, so an older snapshot never lands after a
    newer one. Failed writes keep the snapshot pending and record ``last_error``.
    """

    def __init__(self, store: RouteStore, debounce: float | None = None) -> None:
        self.store = store
        self.debounce = settings.autosave_debounce_seconds if debounce is None else debounce
        self.last_error: Optional[PersistenceError] = None
        self.last_saved: Optional[Route] = None
        self.writes = 0
        self._pending: Optional[Route] = None
        self._fingerprints: dict[str, str] = {}
        self._created: dict[str, datetime] = {}
        self._timer: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def notify(self, route: Route) -> None:
        if not route.id:
            route.id = str(uuid.uuid4())
        self._pending = copy.deepcopy(route)
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._delayed_flush())

    async def _delayed_flush(self) -> None:
        try:
            await asyncio.sleep(self.debounce)
        except asyncio.CancelledError:
            return
        await asyncio.shield(self.flush())

    async def flush(self) -> Optional[Route]:
        """Write the pending snapshot now if its content changed since the last write."""
        async with self._lock:
            snapshot = self._pending
            if snapshot is None:
                return None
            fingerprint = route_fingerprint(snapshot)
            if self._fingerprints.get(snapshot.id) == fingerprint:
                self._pending = None
                return None
            if snapshot.created_at is None and snapshot.id in self._created:
                snapshot.created_at = self._created[snapshot.id]
            try:
                saved = await asyncio.to_thread(save_route, self.store, snapshot)
            except PersistenceError as exc:
                logger.warning(f"Autosave of route '{snapshot.id}' failed, keeping changes pending: {exc}")
                self.last_error = exc
                return None
            if self._pending is snapshot:
                self._pending = None
            self._fingerprints[snapshot.id] = fingerprint
            self._created[snapshot.id] = saved.created_at
            self.last_error = None
            self.last_saved = saved
            self.writes += 1
            return saved

    async def close(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        await self.flush()
