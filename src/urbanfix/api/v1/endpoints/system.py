"""System and transparency endpoints for the UrbanFix API."""

from __future__ import annotations

from fastapi import APIRouter

from urbanfix.core.settings import settings
from urbanfix.services.geocoding import get_reverse_geocoder

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/config")
async def get_public_config() -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes secrets and connection strings. Clients use the report
    constraints to validate forms before submitting.
    """
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "debug": settings.debug,
        },
        "duplicates": settings.duplicate_policy,
        "lifecycle": {
            "crowd_verify_threshold": settings.crowd_verify_threshold,
        },
        "reports": {
            "max_issues_per_day": settings.max_issues_per_day,
            "title_min_length": settings.title_min_length,
            "title_max_length": settings.title_max_length,
            "description_max_length": settings.description_max_length,
        },
        "geocoding": {
            "enabled": get_reverse_geocoder().enabled,
        },
    }
