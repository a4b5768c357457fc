"""HTTP client for the OpenRouteService directions API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from ...config import settings
from ...models.domain import LatLng, RouteResult

logger = logging.getLogger(__name__)

# ORS error code for "Could not find routable point within a radius of N meters".
ORS_UNROUTABLE_POINT_CODE = 2010
# Used only when the error body has no structured code. Depends on upstream message wording.
_UNROUTABLE_MESSAGE_MARKER = "routable point"

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class RoutingError(RuntimeError):
    """Generic routing failure (network, invalid input, no path)."""


class NoRouteWithinThresholdError(RoutingError):
    """The router found no road within its snapping radius of an endpoint."""


def classify_routing_error(status_code: int, payload: Any, text: str = "") -> RoutingError:
    error = payload.get("error") if isinstance(payload, dict) else None
    code = None
    message = text
    if isinstance(error, dict):
        code = error.get("code")
        message = str(error.get("message") or text)
    elif isinstance(error, str):
        message = error

    detail = f"Routing failed: {status_code} - {message}"
    if code == ORS_UNROUTABLE_POINT_CODE:
        return NoRouteWithinThresholdError(detail)
    if code is None and _UNROUTABLE_MESSAGE_MARKER in message.lower():
        return NoRouteWithinThresholdError(detail)
    return RoutingError(detail)


def parse_route_response(data: Any) -> RouteResult:
    features = data.get("features") if isinstance(data, dict) else None
    if not features:
        raise RoutingError("No route found")
    feature = features[0]
    try:
        coordinates = feature["geometry"]["coordinates"]
        polyline = [(float(lat), float(lng)) for lng, lat, *_ in coordinates]
    except (KeyError, TypeError, ValueError) as exc:
        raise RoutingError(f"Malformed route geometry: {exc}") from exc

    properties = feature.get("properties") or {}
    distance = (properties.get("summary") or {}).get("distance")
    if distance is None:
        distance = sum(float(leg.get("distance") or 0.0) for leg in properties.get("segments") or [])
    return RouteResult(polyline=polyline, distance_meters=float(distance or 0.0))


class OpenRouteServiceRouter:
    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = (base_url or settings.ors_base_url).rstrip("/")
        self.api_key = api_key or settings.ors_api_key
        if not self.api_key:
            raise ValueError("OpenRouteService API key is not configured.")
        self.profile = profile or settings.ors_profile
        self.timeout = timeout or settings.routing_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.routing_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.routing_backoff_seconds
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(timeout=httpx.Timeout(self.timeout, connect=10.0))

    async def route_between(self, a: LatLng, b: LatLng) -> RouteResult:
        """Road route from ``a`` to ``b``.

        Raises ``NoRouteWithinThresholdError`` when an endpoint cannot be snapped
        to the road network, ``RoutingError`` for every other failure.
        """
        url = f"{self.base_url}/v2/directions/{self.profile}/geojson"
        body = {"coordinates": [[a.lng, a.lat], [b.lng, b.lat]]}
        headers = {"Authorization": self.api_key, "Content-Type": "application/json"}

        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = await client.post(url, json=body, headers=headers)
                except httpx.TimeoutException as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"Routing request timed out after {self.max_retries} retries: {e}")
                        raise RoutingError(f"Routing request timed out: {e}") from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"Routing timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    await asyncio.sleep(wait_time)
                    continue
                except (httpx.ConnectError, httpx.NetworkError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise RoutingError(f"Failed to connect to routing service at {self.base_url}: {e}") from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"Routing network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {e}")
                    await asyncio.sleep(wait_time)
                    continue
                except httpx.HTTPError as e:
                    raise RoutingError(f"Routing request failed: {e}") from e

                if response.status_code in _RETRYABLE_STATUS_CODES and attempt < self.max_retries:
                    attempt += 1
                    await asyncio.sleep(self.backoff_seconds * attempt)
                    continue

                try:
                    data = response.json()
                except ValueError:
                    data = None
                if response.is_error:
                    raise classify_routing_error(response.status_code, data, response.text)
                return parse_route_response(data)
        finally:
            if client is not self._client:
                await client.aclose()
