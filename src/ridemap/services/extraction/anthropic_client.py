"""LLM-backed waypoint extraction from free-text itineraries."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Awaitable, Callable, Optional

import anthropic
from anthropic import AsyncAnthropic

from ...config import settings
from ...models.domain import ExtractedWaypoint
from ..capabilities import WaypointExtractor

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*\n?|\n?```\s*$")

# Errors that will not change on retry.
_NON_RETRYABLE_API_ERRORS = (
    anthropic.AuthenticationError,
    anthropic.PermissionDeniedError,
    anthropic.BadRequestError,
    anthropic.NotFoundError,
)

_EXTRACTION_PROMPT = """You are analyzing a motorbike tour itinerary. Extract ONLY the actual route waypoints - places where the route goes through or where the journey stops/stays overnight.

CRITICAL: Distinguish between:
- WAYPOINTS: Places the route actually passes through or stops at (cities, towns, villages, overnight stops, route destinations)
- HIGHLIGHTS: Points of interest mentioned along the way (lakes you see, viewpoints, landmarks you pass by, scenic spots) - DO NOT include these

Extract waypoints in the order they appear in the itinerary. Ignore day numbers - focus on the sequence of locations the route actually visits.

Return a JSON array of waypoints with this exact structure:
[
  {{"name": "Location Name", "sequence": 1, "context": "optional description"}},
  {{"name": "Location Name", "sequence": 2, "context": "optional description"}}
]

Rules:
- DO include: cities/towns you visit, overnight stops, route destinations, villages you pass through
- Look for phrases like "to", "from", "via", "overnight in", "stay in", "reach", "arrive at"
- Ignore phrases like "witness", "see", "spot" (these are usually highlights)
- Use the most common spelling of place names
- Include context only if it helps identify the location (e.g. "Keylong (town)")
- Return valid JSON only, no markdown formatting

Itinerary text:
{itinerary_text}"""


class ExtractionError(RuntimeError):
    """The extraction call failed or returned something other than a waypoint list."""


def _strip_fences(text: str) -> str:
    return _FENCE_PATTERN.sub("", text.strip()).strip()


def parse_waypoint_payload(raw_text: str) -> list[ExtractedWaypoint]:
    """Validate the model output and return waypoints sorted by sequence.

    A list with any malformed entry is rejected as a whole.
    """
    try:
        payload: Any = json.loads(_strip_fences(raw_text))
    except json.JSONDecodeError as exc:
        raise ExtractionError(f"Failed to parse LLM response as JSON: {exc}") from exc

    if not isinstance(payload, list):
        raise ExtractionError("LLM response is not an array")

    waypoints: list[ExtractedWaypoint] = []
    for index, entry in enumerate(payload):
        if not isinstance(entry, dict):
            raise ExtractionError(f"Waypoint {index} is not an object")
        name = entry.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ExtractionError(f"Waypoint {index} missing valid name")
        sequence = entry.get("sequence")
        if isinstance(sequence, bool) or not isinstance(sequence, (int, float)):
            raise ExtractionError(f"Waypoint {index} missing valid sequence number")
        context = entry.get("context")
        waypoints.append(
            ExtractedWaypoint(
                name=name.strip(),
                sequence=int(sequence),
                context=context.strip() if isinstance(context, str) and context.strip() else None,
            )
        )

    waypoints.sort(key=lambda item: item.sequence)
    return waypoints


class AnthropicWaypointExtractor:
    def __init__(
        self,
        client: AsyncAnthropic | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
    ) -> None:
        if client is None:
            if not settings.anthropic_api_key:
                raise ValueError("Anthropic API key is not configured.")
            client = AsyncAnthropic(api_key=settings.anthropic_api_key)
        self.client = client
        self.model = model or settings.anthropic_model
        self.max_tokens = max_tokens or settings.anthropic_max_tokens

    async def extract(self, itinerary_text: str) -> list[ExtractedWaypoint]:
        if not itinerary_text or not itinerary_text.strip():
            raise ValueError("Itinerary text is required")

        logger.info("Requesting waypoint extraction (%d characters)", len(itinerary_text))
        message = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[
                {
                    "role": "user",
                    "content": _EXTRACTION_PROMPT.format(itinerary_text=itinerary_text),
                }
            ],
        )

        text_blocks = [block.text for block in message.content if getattr(block, "type", None) == "text"]
        if not text_blocks:
            raise ExtractionError("LLM response contained no text")
        waypoints = parse_waypoint_payload(text_blocks[0])
        logger.info("Extracted %d waypoints", len(waypoints))
        return waypoints


async def extract_waypoints_with_retry(
    extractor: WaypointExtractor,
    itinerary_text: str,
    *,
    max_retries: int | None = None,
    backoff_seconds: float | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> list[ExtractedWaypoint]:
    """Call the extractor, retrying transient and malformed-output failures with exponential backoff."""
    if not itinerary_text or not itinerary_text.strip():
        raise ValueError("Itinerary text is required")

    retries = max_retries if max_retries is not None else settings.extraction_max_retries
    backoff = backoff_seconds if backoff_seconds is not None else settings.extraction_backoff_seconds

    last_error: Optional[Exception] = None
    for attempt in range(retries + 1):
        try:
            return await extractor.extract(itinerary_text)
        except _NON_RETRYABLE_API_ERRORS as exc:
            raise ExtractionError(f"Anthropic API error: {exc}") from exc
        except (anthropic.APIError, ExtractionError) as exc:
            last_error = exc
            logger.warning(
                "Waypoint extraction failed (attempt %d/%d): %s", attempt + 1, retries + 1, exc
            )
        if attempt < retries:
            await sleep(backoff * (2 ** attempt))

    if isinstance(last_error, ExtractionError):
        raise last_error
    raise ExtractionError(f"Anthropic API error: {last_error}") from last_error
