"""File-based storage helpers for route documents and backups."""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..config import settings

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class FileStorage:
    """Thin wrapper around the data root for storing JSON documents."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or settings.data_root).resolve()
        self.routes_root = self.root / "routes"
        self.backup_root = self.root / "backups"
        self.routes_root.mkdir(parents=True, exist_ok=True)
        self.backup_root.mkdir(parents=True, exist_ok=True)

    def route_path(self, route_id: str) -> Path:
        if not route_id or not _SAFE_ID.match(route_id) or route_id.startswith("."):
            raise ValueError(f"Invalid route id '{route_id}'.")
        return self.routes_root / f"{route_id}.json"

    def backup_path(self, prefix: str = "routes_backup", now: datetime | None = None) -> Path:
        moment = now or datetime.now(timezone.utc)
        timestamp = moment.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        return self.backup_root / f"{prefix}_{timestamp}.json"

    def write_json(self, path: Path, data: Any, *, indent: int = 2) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_suffix(path.suffix + ".tmp")
        with temp_path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=False, indent=indent)
        temp_path.replace(path)

    def read_json(self, path: Path) -> Any:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
