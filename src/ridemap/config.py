"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="RIDEMAP_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Ride Itinerary Mapper API"
    app_version: str = "1.0.0"
    api_prefix: str = "/api"
    data_root: Path = Field(default=Path("data"), description="Root directory for stored routes and backups.")
    storage_backend: Literal["file", "memory", "supabase"] = Field(
        default="file",
        description="Where routes are persisted.",
    )
    legacy_routes_file: Optional[Path] = Field(
        default=None,
        description="Flat JSON file ({\"routes\": [...]}) migrated into the route store once at startup.",
    )

    # LLM extraction
    anthropic_api_key: Optional[str] = Field(default=None, description="API key for waypoint extraction.")
    anthropic_model: str = Field(default="claude-haiku-4-5-20251001")
    anthropic_max_tokens: int = Field(default=4096, ge=1)
    extraction_max_retries: int = Field(default=2, ge=0)
    extraction_backoff_seconds: float = Field(default=1.0, ge=0.0)

    # Geocoding
    nominatim_base_url: str = Field(default="https://nominatim.openstreetmap.org")
    nominatim_user_agent: str = Field(default="RideItineraryMapper/1.0")
    geocode_country_code: Optional[str] = Field(default="IN", description="Region hint passed to the geocoder.")
    geocode_limit: int = Field(default=5, ge=1)
    search_limit: int = Field(default=5, ge=1)
    search_min_chars: int = Field(default=2, ge=1)
    geocode_min_interval_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Minimum spacing between consecutive geocoder calls (usage policy).",
    )
    geocode_timeout_seconds: float = Field(default=15.0, gt=0.0)

    # Routing
    ors_base_url: str = Field(default="https://api.openrouteservice.org")
    ors_api_key: Optional[str] = Field(default=None, description="OpenRouteService API key.")
    ors_profile: str = Field(default="driving-car", description="Directions profile.")
    routing_timeout_seconds: float = Field(default=30.0, gt=0.0)
    routing_max_retries: int = Field(default=2, ge=0)
    routing_backoff_seconds: float = Field(default=1.0, ge=0.0)
    fallback_step_meters: float = Field(
        default=1000.0,
        gt=0.0,
        description="Step used when probing for a routable substitute coordinate.",
    )

    # Trip days / calendar
    max_trip_day: int = Field(default=999, ge=1)
    calendar_buffer_days: int = Field(default=3, ge=0)
    autosave_debounce_seconds: float = Field(default=2.0, ge=0.0)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )
    supabase_routes_table: str = Field(default="routes")

    @field_validator("data_root", "legacy_routes_file", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path | None:
        if value is None or value == "":
            return None
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
