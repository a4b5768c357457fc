"""Route library export, backup and import."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, get_args

from pydantic import BaseModel, ConfigDict, ValidationError

from ...config import settings
from ...models.domain import Route
from ...persistence.filesystem import FileStorage
from ...persistence.store import RouteStore, normalize_route
from ...schemas.routes import ExportDocument, ImportMode, ImportResultModel, RouteModel

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class _ImportDocument(BaseModel):
    """Only ``routes`` is required to import; the other export fields are informational."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    routes: List[RouteModel]


def build_export_document(store: RouteStore, now: datetime | None = None) -> ExportDocument:
    routes = store.get_all()
    return ExportDocument(
        exported_at=now or datetime.now(timezone.utc),
        app_version=settings.app_version,
        route_count=len(routes),
        routes=[RouteModel.from_domain(route) for route in routes],
    )


def write_backup(
    store: RouteStore,
    storage: FileStorage | None = None,
    now: datetime | None = None,
) -> Optional[Path]:
    """Write the full local library to ``backups/routes_backup_<timestamp>.json``.

    Returns the backup path, or None when there is nothing to back up.
    """
    document = build_export_document(store, now=now)
    if document.route_count == 0:
        logger.info("No local routes, backup skipped")
        return None
    storage = storage or FileStorage()
    path = storage.backup_path(now=document.exported_at)
    storage.write_json(path, document.model_dump(by_alias=True, mode="json"))
    logger.info(f"Backed up {document.route_count} route(s) to {path.name}")
    return path


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def route_timestamp(route: Route) -> datetime:
    """Last-modified time used for merging: ``updated_at``, else ``created_at``."""
    return _as_utc(route.updated_at) or _as_utc(route.created_at) or _EPOCH


def parse_import_document(document: Any) -> list[Route]:
    if isinstance(document, ExportDocument):
        return [model.to_domain() for model in document.routes]
    try:
        parsed = _ImportDocument.model_validate(document)
    except ValidationError as exc:
        raise ValueError(f"Invalid import document: {exc}") from exc
    return [model.to_domain() for model in parsed.routes]


def import_routes(
    store: RouteStore,
    document: Any,
    mode: ImportMode = "merge",
    storage: FileStorage | None = None,
    now: datetime | None = None,
) -> ImportResultModel:
    """Import an export document into the store.

    The whole document is validated before anything is touched. A backup of the
    current library is written first unless the library is empty.

    Modes:
        replace: delete every local route, then insert all imported ones.
        new-only: insert routes whose id is unknown, skip the rest.
        merge: insert unknown ids; for known ids keep whichever copy is newer,
            local copy wins on an exact tie.
    """
    if mode not in get_args(ImportMode):
        raise ValueError(f"Unknown import mode '{mode}'. Expected one of: {', '.join(get_args(ImportMode))}")

    incoming = parse_import_document(document)
    for route in incoming:
        if not route.id:
            route.id = str(uuid.uuid4())
        store.validate_id(route.id)
        normalize_route(route)

    backup = write_backup(store, storage=storage, now=now)

    added = updated = skipped = 0
    match mode:
        case "replace":
            store.delete_all()
            for route in incoming:
                store.put(route)
                added += 1
        case "new-only":
            for route in incoming:
                if store.get(route.id) is not None:
                    skipped += 1
                    continue
                store.put(route)
                added += 1
        case "merge":
            for route in incoming:
                existing = store.get(route.id)
                if existing is None:
                    store.put(route)
                    added += 1
                elif route_timestamp(route) > route_timestamp(existing):
                    store.put(route)
                    updated += 1
                else:
                    skipped += 1

    logger.info(
        f"Import ({mode}) finished: {added} added, {updated} updated, {skipped} skipped of {len(incoming)}"
    )
    return ImportResultModel(
        mode=mode,
        added=added,
        updated=updated,
        skipped=skipped,
        total=len(incoming),
        backup_file=backup.name if backup else None,
    )
