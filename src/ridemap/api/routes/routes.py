"""Route library endpoints: saved routes, export/import and GeoJSON."""

from __future__ import annotations

import logging
from typing import Any, List

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...models.domain import Route
from ...persistence.filesystem import FileStorage
from ...persistence.store import PersistenceError, RouteNotFoundError, RouteStore, save_route
from ...schemas.routes import ExportDocument, ImportMode, ImportResultModel, RouteModel, RouteSummaryModel
from ...services.calendar.days import trip_duration
from ...services.export.geojson import route_to_feature_collection
from ...services.library.transfer import build_export_document, import_routes
from ..deps import get_file_storage, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/routes", tags=["routes"])


def _summary(route: Route) -> RouteSummaryModel:
    return RouteSummaryModel(
        id=route.id or "",
        name=route.name,
        waypoint_count=len(route.waypoints),
        segment_count=len(route.segments),
        total_distance_meters=sum(segment.distance_meters for segment in route.segments),
        trip_days=trip_duration(route.segment_days),
        created_at=route.created_at,
        updated_at=route.updated_at,
    )


def _load(store: RouteStore, route_id: str) -> Route:
    try:
        return store.require(route_id)
    except RouteNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.get("", response_model=List[RouteSummaryModel], status_code=status.HTTP_200_OK)
def list_routes(store: RouteStore = Depends(get_store)) -> List[RouteSummaryModel]:
    """Saved routes, most recently updated first."""
    try:
        routes = store.get_all()
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    routes.sort(key=lambda route: route.updated_at.timestamp() if route.updated_at else 0.0, reverse=True)
    return [_summary(route) for route in routes]


@router.post("", response_model=RouteModel, status_code=status.HTTP_200_OK)
def save(payload: RouteModel, store: RouteStore = Depends(get_store)) -> RouteModel:
    """Create or update a route. The id is assigned on first save."""
    try:
        saved = save_route(store, payload.to_domain())
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PersistenceError as exc:
        logger.error(f"Failed to save route {payload.id}: {exc}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return RouteModel.from_domain(saved)


@router.get("/export", response_model=ExportDocument, status_code=status.HTTP_200_OK)
def export_library(store: RouteStore = Depends(get_store)) -> ExportDocument:
    try:
        return build_export_document(store)
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.post("/import", response_model=ImportResultModel, status_code=status.HTTP_200_OK)
def import_library(
    document: Any = Body(...),
    mode: ImportMode = Query(default="merge", description="replace, new-only or merge"),
    store: RouteStore = Depends(get_store),
    storage: FileStorage = Depends(get_file_storage),
) -> ImportResultModel:
    try:
        return import_routes(store, document, mode=mode, storage=storage)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error importing routes: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to import routes: {str(exc)}"
        ) from exc


@router.get("/{route_id}", response_model=RouteModel, status_code=status.HTTP_200_OK)
def get_route(route_id: str, store: RouteStore = Depends(get_store)) -> RouteModel:
    return RouteModel.from_domain(_load(store, route_id))


@router.delete("/{route_id}", status_code=status.HTTP_200_OK)
def delete_route(route_id: str, store: RouteStore = Depends(get_store)) -> dict:
    try:
        deleted = store.delete(route_id)
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Route '{route_id}' not found.")
    return {"success": True, "message": f"Route {route_id} deleted"}


@router.get("/{route_id}/geojson", status_code=status.HTTP_200_OK)
def route_geojson(route_id: str, store: RouteStore = Depends(get_store)) -> dict:
    return route_to_feature_collection(_load(store, route_id))
