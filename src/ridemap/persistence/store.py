"""Route store contract and local implementations."""

from __future__ import annotations

import copy
import json
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..models.domain import Route
from ..schemas.routes import route_from_payload, route_to_payload
from ..services.calendar.days import sanitize_segment_days
from ..services.waypoints import normalize_order
from .filesystem import FileStorage

logger = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """The route store could not complete an operation."""


class RouteNotFoundError(KeyError):
    def __init__(self, route_id: str) -> None:
        super().__init__(route_id)
        self.route_id = route_id

    def __str__(self) -> str:
        return f"Route '{self.route_id}' not found."


class RouteStore(ABC):
    """Keyed object store for routes. Implementations return detached copies."""

    @abstractmethod
    def get_all(self) -> list[Route]:
        raise NotImplementedError

    @abstractmethod
    def get(self, route_id: str) -> Optional[Route]:
        raise NotImplementedError

    @abstractmethod
    def put(self, route: Route) -> Route:
        """Insert or replace by id. The caller sets ``updated_at``."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, route_id: str) -> bool:
        raise NotImplementedError

    def validate_id(self, route_id: str) -> str:
        """Raise ValueError for an id this store cannot hold."""
        if not route_id or not route_id.strip():
            raise ValueError("Route id is required to store a route.")
        return route_id

    def delete_all(self) -> int:
        count = 0
        for route in self.get_all():
            if route.id and self.delete(route.id):
                count += 1
        return count

    def require(self, route_id: str) -> Route:
        route = self.get(route_id)
        if route is None:
            raise RouteNotFoundError(route_id)
        return route


class InMemoryRouteStore(RouteStore):
    def __init__(self) -> None:
        self._routes: dict[str, Route] = {}

    def get_all(self) -> list[Route]:
        return [copy.deepcopy(route) for route in self._routes.values()]

    def get(self, route_id: str) -> Optional[Route]:
        route = self._routes.get(route_id)
        return copy.deepcopy(route) if route is not None else None

    def put(self, route: Route) -> Route:
        if not route.id:
            raise ValueError("Route id is required to store a route.")
        self._routes[route.id] = copy.deepcopy(route)
        return copy.deepcopy(route)

    def delete(self, route_id: str) -> bool:
        return self._routes.pop(route_id, None) is not None


class JsonFileRouteStore(RouteStore):
    """One JSON document per route under ``<data_root>/routes``."""

    def __init__(self, storage: FileStorage | None = None) -> None:
        self.storage = storage or FileStorage()

    def get_all(self) -> list[Route]:
        routes: list[Route] = []
        try:
            paths = sorted(self.storage.routes_root.glob("*.json"))
        except OSError as exc:
            raise PersistenceError(f"Failed to list routes: {exc}") from exc
        for path in paths:
            try:
                routes.append(route_from_payload(self.storage.read_json(path)))
            except (ValidationError, json.JSONDecodeError, OSError) as e:
                logger.warning(f"Skipping unreadable route file {path.name}: {e}")
                continue
        return routes

    def validate_id(self, route_id: str) -> str:
        self.storage.route_path(route_id)
        return route_id

    def get(self, route_id: str) -> Optional[Route]:
        try:
            path = self.storage.route_path(route_id)
        except ValueError:
            return None
        if not path.exists():
            return None
        try:
            return route_from_payload(self.storage.read_json(path))
        except (ValidationError, json.JSONDecodeError, OSError) as exc:
            raise PersistenceError(f"Failed to load route '{route_id}': {exc}") from exc

    def put(self, route: Route) -> Route:
        if not route.id:
            raise ValueError("Route id is required to store a route.")
        path = self.storage.route_path(route.id)
        try:
            self.storage.write_json(path, route_to_payload(route))
        except OSError as exc:
            raise PersistenceError(f"Failed to save route '{route.id}': {exc}") from exc
        return copy.deepcopy(route)

    def delete(self, route_id: str) -> bool:
        try:
            path = self.storage.route_path(route_id)
        except ValueError:
            return False
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as exc:
            raise PersistenceError(f"Failed to delete route '{route_id}': {exc}") from exc
        return True

    def migrate_legacy_file(self, legacy_path: Path | None) -> int:
        """Move routes from a flat ``{"routes": [...]}`` file into this store.

        Safe to call on every startup: the legacy file is renamed once its routes
        are stored, so later calls find nothing to do.
        """
        if legacy_path is None or not legacy_path.exists():
            return 0
        try:
            payload = self.storage.read_json(legacy_path)
        except (json.JSONDecodeError, OSError) as exc:
            logger.error(f"Legacy route file {legacy_path} is unreadable, migration skipped: {exc}")
            return 0

        migrated = 0
        for item in (payload or {}).get("routes", []) if isinstance(payload, dict) else []:
            try:
                route = route_from_payload(item)
            except ValidationError as e:
                logger.warning(f"Skipping invalid legacy route: {e}")
                continue
            if not route.id:
                route.id = str(uuid.uuid4())
            self.put(route)
            migrated += 1

        legacy_path.rename(legacy_path.with_suffix(legacy_path.suffix + ".migrated"))
        logger.info(f"Migrated {migrated} route(s) from {legacy_path.name}")
        return migrated


def normalize_route(route: Route) -> Route:
    """Waypoint orders become 0..N-1 (keeping their relative order) and segment days non-decreasing from 1."""
    route.waypoints = normalize_order(sorted(route.waypoints, key=lambda waypoint: waypoint.order))
    route.segment_days = sanitize_segment_days(route.segment_days)
    return route


def save_route(store: RouteStore, route: Route, now: datetime | None = None) -> Route:
    """Persist a route, assigning its id on first save and stamping timestamps."""
    moment = now or datetime.now(timezone.utc)
    normalize_route(route)
    if not route.id:
        route.id = str(uuid.uuid4())
    if route.created_at is None:
        route.created_at = moment
    route.updated_at = moment
    return store.put(route)
