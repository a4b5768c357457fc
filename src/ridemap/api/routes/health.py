"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok", "version": settings.app_version}


@router.get("/health/capabilities", status_code=status.HTTP_200_OK)
def health_capabilities() -> dict:
    """Report which external capabilities are configured. No network calls are made."""
    return {
        "extraction": {
            "configured": bool(settings.anthropic_api_key),
            "model": settings.anthropic_model,
        },
        "geocoding": {
            "configured": bool(settings.nominatim_base_url),
            "baseUrl": settings.nominatim_base_url,
            "countryCode": settings.geocode_country_code,
        },
        "routing": {
            "configured": bool(settings.ors_api_key),
            "profile": settings.ors_profile,
        },
        "storage": {
            "backend": settings.storage_backend,
            "supabaseConfigured": bool(settings.supabase_url and settings.supabase_key),
        },
    }
