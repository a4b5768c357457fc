import asyncio
import json

import httpx
import pytest

from ridemap.config import settings
from ridemap.models.domain import LatLng
from ridemap.services.geocoding.nominatim_client import GeocodingError, NominatimGeocoder, parse_candidates
from ridemap.services.routing.ors_client import (
    NoRouteWithinThresholdError,
    OpenRouteServiceRouter,
    RoutingError,
    classify_routing_error,
)

ROUTE_BODY = {
    "type": "FeatureCollection",
    "features": [
        {
            "geometry": {"type": "LineString", "coordinates": [[77.0, 32.0], [77.05, 32.01], [77.1, 32.0]]},
            "properties": {"summary": {"distance": 9876.5, "duration": 1200.0}},
        }
    ],
}


def _router(handler) -> OpenRouteServiceRouter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenRouteServiceRouter(
        base_url="https://ors.test",
        api_key="test-key",
        max_retries=2,
        backoff_seconds=0.0,
        client=client,
    )


def test_router_parses_geojson_route() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=ROUTE_BODY)

    result = asyncio.run(_router(handler).route_between(LatLng(32.0, 77.0), LatLng(32.0, 77.1)))

    assert seen["path"] == "/v2/directions/driving-car/geojson"
    assert seen["auth"] == "test-key"
    assert seen["body"]["coordinates"] == [[77.0, 32.0], [77.1, 32.0]]
    assert result.polyline == [(32.0, 77.0), (32.01, 77.05), (32.0, 77.1)]
    assert result.distance_meters == 9876.5


def test_router_classifies_unroutable_point() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            404,
            json={
                "error": {
                    "code": 2010,
                    "message": "Could not find routable point within a radius of 350.0 meters of specified coordinate 1",
                }
            },
        )

    with pytest.raises(NoRouteWithinThresholdError):
        asyncio.run(_router(handler).route_between(LatLng(32.0, 77.0), LatLng(32.0, 77.1)))


def test_router_retries_transient_status() -> None:
    responses = [httpx.Response(503, text="busy"), httpx.Response(200, json=ROUTE_BODY)]
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return responses.pop(0)

    result = asyncio.run(_router(handler).route_between(LatLng(32.0, 77.0), LatLng(32.0, 77.1)))

    assert len(calls) == 2
    assert result.distance_meters == 9876.5


def test_classification_prefers_structured_code() -> None:
    other = classify_routing_error(400, {"error": {"code": 2003, "message": "Parameter 'profile' has incorrect value"}})
    by_text = classify_routing_error(404, None, "Could not find routable point within a radius of 350.0 meters")

    assert type(other) is RoutingError
    assert isinstance(by_text, NoRouteWithinThresholdError)


def test_router_requires_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "ors_api_key", None)

    with pytest.raises(ValueError):
        OpenRouteServiceRouter(api_key="")


def _geocoder(handler) -> NominatimGeocoder:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return NominatimGeocoder(base_url="https://nominatim.test", user_agent="ridemap-tests", country_code="IN", client=client)


def test_geocoder_sends_region_hint_and_user_agent() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        seen["agent"] = request.headers["User-Agent"]
        return httpx.Response(
            200,
            json=[
                {"lat": "34.1526", "lon": "77.5771", "display_name": "Leh, Ladakh, India", "importance": 0.6, "type": "town"},
                {"lat": "bad", "lon": "77.0", "display_name": "Broken"},
            ],
        )

    candidates = asyncio.run(_geocoder(handler).geocode("Leh"))

    assert seen["params"]["q"] == "Leh"
    assert seen["params"]["countrycodes"] == "in"
    assert seen["params"]["limit"] == "5"
    assert seen["agent"] == "ridemap-tests"
    assert len(candidates) == 1
    assert candidates[0].lat == 34.1526
    assert candidates[0].place_type == "town"


def test_geocoder_wraps_http_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    with pytest.raises(GeocodingError):
        asyncio.run(_geocoder(handler).geocode("Leh"))


def test_search_ignores_single_character_queries() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    assert asyncio.run(_geocoder(handler).search("L")) == []


def test_parse_candidates_keeps_relevance_order() -> None:
    rows = [
        {"lat": "1.0", "lon": "2.0", "display_name": "First"},
        {"lat": "3.0", "lon": "4.0", "display_name": "Second"},
    ]

    assert [c.display_name for c in parse_candidates(rows)] == ["First", "Second"]
