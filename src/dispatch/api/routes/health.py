"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/geocoder", status_code=status.HTTP_200_OK)
def health_geocoder() -> dict:
    """Check the configured geocoding provider."""
    if settings.geocoder_provider != "opencage":
        return {"service": "geocoder", "provider": settings.geocoder_provider, "healthy": True}
    from ...services.geocoding.opencage import check_health

    return {"service": "geocoder", "provider": "opencage", "healthy": check_health()}


@router.get("/health/database", status_code=status.HTTP_200_OK)
def check_database() -> dict:
    """Report which store backend is active."""
    from ...db.supabase import get_supabase_client

    supabase = get_supabase_client()
    if not supabase:
        return {
            "configured": False,
            "message": "Supabase not configured. Set DISPATCH_SUPABASE_URL and DISPATCH_SUPABASE_KEY; using in-memory stores.",
        }

    try:
        supabase.table("batches").select("id").limit(1).execute()
        return {"configured": True, "connected": True}
    except Exception as exc:
        return {
            "configured": True,
            "connected": False,
            "error": str(exc),
            "message": f"Database connection error: {exc}",
        }
