"""HTTP client for the Nominatim (OpenStreetMap) geocoding service."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ...config import settings
from ...models.domain import GeocodeCandidate

logger = logging.getLogger(__name__)


class GeocodingError(RuntimeError):
    """Transport or HTTP failure while talking to the geocoder."""


class NominatimGeocoder:
    def __init__(
        self,
        base_url: str | None = None,
        user_agent: str | None = None,
        country_code: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = (base_url or settings.nominatim_base_url).rstrip("/")
        self.user_agent = user_agent or settings.nominatim_user_agent
        self.country_code = country_code if country_code is not None else settings.geocode_country_code
        self.timeout = timeout or settings.geocode_timeout_seconds
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            headers={"User-Agent": self.user_agent},
        )

    async def _search(self, query: str, country_code: Optional[str], limit: int) -> list[GeocodeCandidate]:
        params: dict[str, Any] = {"format": "json", "q": query, "limit": limit}
        if country_code:
            params["countrycodes"] = country_code.lower()

        client = self._get_client()
        try:
            response = await client.get(
                f"{self.base_url}/search",
                params=params,
                headers={"User-Agent": self.user_agent},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise GeocodingError(f"Geocoding failed: {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise GeocodingError(f"Geocoding failed: {exc}") from exc
        finally:
            if client is not self._client:
                await client.aclose()

        if not isinstance(data, list):
            raise GeocodingError("Geocoding response is not a list")
        return parse_candidates(data)

    async def geocode(
        self,
        name: str,
        country_code: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[GeocodeCandidate]:
        if not name or not name.strip():
            raise ValueError("Location name is required.")
        region = country_code if country_code is not None else self.country_code
        candidates = await self._search(name.strip(), region, limit or settings.geocode_limit)
        logger.debug("Geocoded %r to %d candidates", name, len(candidates))
        return candidates

    async def search(self, query: str, limit: Optional[int] = None) -> list[GeocodeCandidate]:
        """Autocomplete variant: same result shape, returns nothing for very short input."""
        cleaned = (query or "").strip()
        if len(cleaned) < settings.search_min_chars:
            return []
        return await self._search(cleaned, self.country_code, limit or settings.search_limit)


def parse_candidates(rows: list[dict[str, Any]]) -> list[GeocodeCandidate]:
    candidates: list[GeocodeCandidate] = []
    for row in rows:
        try:
            candidates.append(
                GeocodeCandidate(
                    lat=float(row["lat"]),
                    lng=float(row["lon"]),
                    display_name=str(row.get("display_name") or ""),
                    importance=float(row["importance"]) if row.get("importance") is not None else None,
                    place_type=row.get("type") or None,
                )
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed geocoding result: {e}")
            continue
    return candidates
