from datetime import datetime, timezone
from pathlib import Path

import pytest

from conftest import make_route
from ridemap.models.domain import Route, Segment
from ridemap.persistence.filesystem import FileStorage
from ridemap.persistence.store import InMemoryRouteStore, JsonFileRouteStore
from ridemap.services.export.geojson import route_to_feature_collection
from ridemap.services.library.transfer import build_export_document, import_routes

OCT_1 = datetime(2026, 10, 1, tzinfo=timezone.utc)
OCT_2 = datetime(2026, 10, 2, tzinfo=timezone.utc)
OCT_3 = datetime(2026, 10, 3, tzinfo=timezone.utc)


def _route(route_id: str, name: str, updated_at: datetime | None) -> Route:
    route = make_route(("Leh", 34.1526, 77.5771))
    route.id = route_id
    route.name = name
    route.created_at = OCT_1
    route.updated_at = updated_at
    return route


def _document(*routes: Route) -> dict:
    source = InMemoryRouteStore()
    for route in routes:
        source.put(route)
    return build_export_document(source, now=OCT_3).model_dump(by_alias=True, mode="json")


def test_export_document_shape() -> None:
    document = _document(_route("r1", "Ladakh loop", OCT_2))

    assert set(document) == {"exportedAt", "appVersion", "routeCount", "routes"}
    assert document["routeCount"] == 1
    assert document["appVersion"] == "1.0.0"
    assert document["routes"][0]["segmentDays"] == []


def test_merge_keeps_newer_copy_and_local_on_tie(tmp_path: Path) -> None:
    store = InMemoryRouteStore()
    store.put(_route("older-local", "local", OCT_1))
    store.put(_route("newer-local", "local", OCT_3))
    store.put(_route("tie", "local", OCT_2))
    document = _document(
        _route("older-local", "imported", OCT_2),
        _route("newer-local", "imported", OCT_2),
        _route("tie", "imported", OCT_2),
        _route("brand-new", "imported", OCT_2),
    )

    result = import_routes(store, document, mode="merge", storage=FileStorage(root=tmp_path), now=OCT_3)

    assert (result.added, result.updated, result.skipped, result.total) == (1, 1, 2, 4)
    assert store.require("older-local").name == "imported"
    assert store.require("newer-local").name == "local"
    assert store.require("tie").name == "local"
    assert store.require("brand-new").name == "imported"


def test_merge_twice_is_a_no_op(tmp_path: Path) -> None:
    store = InMemoryRouteStore()
    document = _document(_route("r1", "a", OCT_1), _route("r2", "b", None))
    storage = FileStorage(root=tmp_path)

    first = import_routes(store, document, storage=storage)
    second = import_routes(store, document, storage=storage)

    assert (first.added, first.updated, first.skipped) == (2, 0, 0)
    assert (second.added, second.updated, second.skipped) == (0, 0, 2)


def test_replace_and_new_only_modes(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)
    store = InMemoryRouteStore()
    store.put(_route("keep", "local", OCT_1))
    store.put(_route("gone", "local", OCT_1))

    new_only = import_routes(store, _document(_route("keep", "imported", OCT_3), _route("r3", "x", OCT_1)), mode="new-only", storage=storage)
    assert (new_only.added, new_only.skipped) == (1, 1)
    assert store.require("keep").name == "local"

    replaced = import_routes(store, _document(_route("only", "imported", OCT_1)), mode="replace", storage=storage)
    assert replaced.added == 1
    assert [route.id for route in store.get_all()] == ["only"]


def test_import_backs_up_existing_library_first(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)
    store = InMemoryRouteStore()

    empty = import_routes(store, _document(_route("r1", "a", OCT_1)), storage=storage, now=OCT_2)
    assert empty.backup_file is None

    result = import_routes(store, _document(_route("r2", "b", OCT_1)), storage=storage, now=OCT_3)
    assert result.backup_file == "routes_backup_20261003T000000000000Z.json"
    assert (storage.backup_root / result.backup_file).exists()


def test_invalid_document_changes_nothing(tmp_path: Path) -> None:
    store = InMemoryRouteStore()
    store.put(_route("r1", "a", OCT_1))

    with pytest.raises(ValueError):
        import_routes(store, {"routes": [{"waypoints": "nope"}]}, mode="replace", storage=FileStorage(root=tmp_path))
    with pytest.raises(ValueError):
        import_routes(store, {"routes": []}, mode="overwrite", storage=FileStorage(root=tmp_path))

    assert [route.id for route in store.get_all()] == ["r1"]
    assert list((tmp_path / "backups").iterdir()) == []


def test_import_rejects_ids_the_store_cannot_hold_before_touching_it(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)
    store = JsonFileRouteStore(storage)
    store.put(_route("r1", "a", OCT_1))
    store.put(_route("r2", "b", OCT_1))

    with pytest.raises(ValueError):
        import_routes(store, _document(_route("ok", "x", OCT_2), _route("my route/1", "y", OCT_2)), mode="replace", storage=storage)

    assert [route.id for route in store.get_all()] == ["r1", "r2"]
    assert list(storage.backup_root.iterdir()) == []


def test_imported_routes_are_normalized(tmp_path: Path) -> None:
    route = make_route(("Leh", 34.1526, 77.5771), ("Kargil", 34.5539, 76.1349))
    route.waypoints[0].order = 9
    route.segment_days = [0]
    store = InMemoryRouteStore()

    import_routes(store, _document(route), storage=FileStorage(root=tmp_path))

    stored = store.require("trip")
    assert [w.name for w in stored.waypoints] == ["Kargil", "Leh"]
    assert [w.order for w in stored.waypoints] == [0, 1]
    assert stored.segment_days == [1]


def test_geojson_contains_segment_lines_and_waypoint_points() -> None:
    route = make_route(("Leh", 34.1526, 77.5771), ("Kargil", 34.5539, 76.1349), ("Unplaced", 0.0, 0.0))
    route.segments = [
        Segment(
            from_waypoint_id="leh",
            to_waypoint_id="kargil",
            polyline=[(34.1526, 77.5771), (34.3, 76.9), (34.5539, 76.1349)],
            distance_meters=218_000.0,
        )
    ]
    route.segment_days = [1]

    collection = route_to_feature_collection(route)

    kinds = [feature["properties"]["kind"] for feature in collection["features"]]
    assert collection["type"] == "FeatureCollection"
    assert kinds == ["segment", "waypoint", "waypoint"]
    line = collection["features"][0]
    assert line["geometry"]["type"] == "LineString"
    assert tuple(line["geometry"]["coordinates"][0]) == (77.5771, 34.1526)
    assert line["properties"]["label"] == "Leh → Kargil"
    assert tuple(collection["features"][1]["geometry"]["coordinates"]) == (77.5771, 34.1526)
