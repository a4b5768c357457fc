import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from conftest import make_route
from ridemap.persistence.autosave import AutoSaver
from ridemap.persistence.filesystem import FileStorage
from ridemap.persistence.store import (
    InMemoryRouteStore,
    JsonFileRouteStore,
    PersistenceError,
    RouteNotFoundError,
    save_route,
)
from ridemap.schemas.routes import route_to_payload


def test_file_storage_rejects_unsafe_ids(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)

    assert storage.route_path("abc-123").parent == storage.routes_root
    with pytest.raises(ValueError):
        storage.route_path("../escape")


def test_json_store_round_trips_route_document(tmp_path: Path) -> None:
    store = JsonFileRouteStore(FileStorage(root=tmp_path))
    route = make_route(("Leh", 34.1526, 77.5771), ("Kargil", 34.5539, 76.1349))
    route.day_notes = {"1": "Permit check at Khaltse"}

    save_route(store, route, now=datetime(2026, 10, 1, 8, 0, tzinfo=timezone.utc))
    loaded = store.require("trip")

    assert loaded.waypoints[1].name == "Kargil"
    assert loaded.day_notes == {"1": "Permit check at Khaltse"}
    stored = json.loads((store.storage.routes_root / "trip.json").read_text(encoding="utf-8"))
    assert stored["dayNotes"] == {"1": "Permit check at Khaltse"}
    assert stored["waypoints"][0]["displayName"] is None


def test_json_store_skips_unreadable_files(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)
    store = JsonFileRouteStore(storage)
    store.put(make_route(("Leh", 34.1, 77.5)))
    (storage.routes_root / "broken.json").write_text("{not json", encoding="utf-8")

    routes = store.get_all()

    assert [route.id for route in routes] == ["trip"]
    assert store.delete("trip") is True
    assert store.delete("trip") is False
    with pytest.raises(RouteNotFoundError):
        store.require("trip")


def test_save_route_sets_created_once() -> None:
    store = InMemoryRouteStore()
    route = make_route(("Leh", 34.1, 77.5))
    route.id = None
    first = datetime(2026, 10, 1, tzinfo=timezone.utc)
    second = datetime(2026, 10, 2, tzinfo=timezone.utc)

    save_route(store, route, now=first)
    save_route(store, route, now=second)

    stored = store.require(route.id)
    assert stored.created_at == first
    assert stored.updated_at == second


def test_in_memory_store_returns_detached_copies() -> None:
    store = InMemoryRouteStore()
    store.put(make_route(("Leh", 34.1, 77.5)))

    copy = store.require("trip")
    copy.name = "changed"

    assert store.require("trip").name == "Trip"


def test_legacy_file_is_migrated_once(tmp_path: Path) -> None:
    legacy = tmp_path / "routes.json"
    legacy.write_text(
        json.dumps(
            {
                "routes": [
                    route_to_payload(make_route(("Leh", 34.1, 77.5))),
                    {"name": "No id yet", "waypoints": []},
                ]
            }
        ),
        encoding="utf-8",
    )
    store = JsonFileRouteStore(FileStorage(root=tmp_path / "data"))

    assert store.migrate_legacy_file(legacy) == 2
    assert not legacy.exists()
    assert (tmp_path / "routes.json.migrated").exists()
    assert store.migrate_legacy_file(legacy) == 0
    assert len(store.get_all()) == 2


class CountingStore(InMemoryRouteStore):
    def __init__(self, fail: bool = False) -> None:
        super().__init__()
        self.fail = fail
        self.puts = 0

    def put(self, route):
        if self.fail:
            raise PersistenceError("disk full")
        self.puts += 1
        return super().put(route)


def test_autosave_coalesces_rapid_edits() -> None:
    store = CountingStore()
    route = make_route(("Leh", 34.1, 77.5))

    async def scenario():
        saver = AutoSaver(store, debounce=0.01)
        for name in ["One", "Two", "Three"]:
            route.name = name
            saver.notify(route)
        await asyncio.sleep(0.1)
        saver.notify(route)
        await asyncio.sleep(0.1)
        await saver.close()
        return saver

    saver = asyncio.run(scenario())

    assert store.puts == 1
    assert saver.writes == 1
    assert store.require("trip").name == "Three"


def test_autosave_keeps_changes_pending_on_failure() -> None:
    store = CountingStore(fail=True)
    route = make_route(("Leh", 34.1, 77.5))

    async def scenario():
        saver = AutoSaver(store, debounce=60.0)
        saver.notify(route)
        await saver.flush()
        return saver

    saver = asyncio.run(scenario())

    assert isinstance(saver.last_error, PersistenceError)
    assert saver.has_pending
    assert route.name == "Trip"


class FakeSupabaseQuery:
    def __init__(self, table: "FakeSupabaseTable", action: str, payload=None) -> None:
        self.table = table
        self.action = action
        self.payload = payload
        self.filters: dict[str, str] = {}

    def eq(self, column: str, value: str) -> "FakeSupabaseQuery":
        self.filters[column] = value
        return self

    def limit(self, count: int) -> "FakeSupabaseQuery":
        return self

    def execute(self):
        rows = self.table.rows
        matching = [row for row in rows.values() if all(row[k] == v for k, v in self.filters.items())]
        if self.action == "upsert":
            rows[self.payload["id"]] = self.payload
            matching = [self.payload]
        elif self.action == "delete":
            for row in matching:
                rows.pop(row["id"])
        return type("Response", (), {"data": matching})()


class FakeSupabaseTable:
    def __init__(self) -> None:
        self.rows: dict[str, dict] = {}

    def select(self, columns: str) -> FakeSupabaseQuery:
        return FakeSupabaseQuery(self, "select")

    def upsert(self, row: dict) -> FakeSupabaseQuery:
        return FakeSupabaseQuery(self, "upsert", row)

    def delete(self) -> FakeSupabaseQuery:
        return FakeSupabaseQuery(self, "delete")


class FakeSupabaseClient:
    def __init__(self) -> None:
        self.tables: dict[str, FakeSupabaseTable] = {}

    def table(self, name: str) -> FakeSupabaseTable:
        return self.tables.setdefault(name, FakeSupabaseTable())


def test_supabase_store_keeps_payload_and_columns() -> None:
    from ridemap.persistence.database import SupabaseRouteStore

    client = FakeSupabaseClient()
    store = SupabaseRouteStore(client=client, table="routes")
    route = make_route(("Leh", 34.1, 77.5))

    save_route(store, route, now=datetime(2026, 10, 1, tzinfo=timezone.utc))

    row = client.tables["routes"].rows["trip"]
    assert row["name"] == "Trip"
    assert row["updated_at"] == row["payload"]["updatedAt"]
    assert store.require("trip").waypoints[0].name == "Leh"
    assert [r.id for r in store.get_all()] == ["trip"]
    assert store.delete("trip") is True
    assert store.get("trip") is None


def test_supabase_store_wraps_client_errors() -> None:
    from ridemap.persistence.database import SupabaseRouteStore

    class BrokenClient:
        def table(self, name: str):
            raise ConnectionError("network down")

    store = SupabaseRouteStore(client=BrokenClient())

    with pytest.raises(PersistenceError):
        store.get_all()
