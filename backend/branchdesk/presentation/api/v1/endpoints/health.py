"""Health check endpoint: no dependencies, always available."""

from fastapi import APIRouter

from branchdesk.config import get_settings

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict:
    """Returns the current application health status."""
    settings = get_settings()
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.app_env,
        "store_configured": bool(settings.airtable_api_key and settings.airtable_base_id),
    }
