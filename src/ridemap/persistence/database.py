"""Supabase-backed route store.

Expected table layout (``settings.supabase_routes_table``)::

    id          text primary key
    name        text
    payload     jsonb   -- full camelCase route document
    updated_at  timestamptz
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import ValidationError

from ..config import settings
from ..db.supabase import get_supabase_client
from ..models.domain import Route
from ..schemas.routes import route_from_payload, route_to_payload
from .store import PersistenceError, RouteStore

logger = logging.getLogger(__name__)


class SupabaseRouteStore(RouteStore):
    def __init__(self, client: Any | None = None, table: str | None = None) -> None:
        self.client = client or get_supabase_client()
        if self.client is None:
            raise ValueError(
                "Supabase not configured. Set RIDEMAP_SUPABASE_URL and RIDEMAP_SUPABASE_KEY environment variables."
            )
        self.table = table or settings.supabase_routes_table

    def _rows_to_routes(self, rows: list[dict[str, Any]]) -> list[Route]:
        routes: list[Route] = []
        for row in rows:
            try:
                routes.append(route_from_payload(row["payload"]))
            except (KeyError, TypeError, ValidationError) as e:
                logger.warning(f"Skipping invalid route row {row.get('id')}: {e}")
                continue
        return routes

    def get_all(self) -> list[Route]:
        try:
            response = self.client.table(self.table).select("id, payload").execute()
        except Exception as exc:
            raise PersistenceError(f"Failed to load routes from database: {exc}") from exc
        return self._rows_to_routes(response.data or [])

    def get(self, route_id: str) -> Optional[Route]:
        try:
            response = self.client.table(self.table).select("id, payload").eq("id", route_id).limit(1).execute()
        except Exception as exc:
            raise PersistenceError(f"Failed to load route '{route_id}' from database: {exc}") from exc
        routes = self._rows_to_routes(response.data or [])
        return routes[0] if routes else None

    def put(self, route: Route) -> Route:
        if not route.id:
            raise ValueError("Route id is required to store a route.")
        payload = route_to_payload(route)
        row = {
            "id": route.id,
            "name": route.name,
            "payload": payload,
            "updated_at": payload.get("updatedAt"),
        }
        try:
            self.client.table(self.table).upsert(row).execute()
        except Exception as exc:
            raise PersistenceError(f"Failed to save route '{route.id}' to database: {exc}") from exc
        return route_from_payload(payload)

    def delete(self, route_id: str) -> bool:
        try:
            response = self.client.table(self.table).delete().eq("id", route_id).execute()
        except Exception as exc:
            raise PersistenceError(f"Failed to delete route '{route_id}' from database: {exc}") from exc
        return bool(response.data)
