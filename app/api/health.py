"""
Health check and status endpoints
"""
from datetime import datetime

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app import __version__
from app.config import get_settings
from app.models.base import engine
from app.utils.logger import log

settings = get_settings()

router = APIRouter()


def _database_reachable() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        log.error(f"Health check database error: {str(e)}")
        return False


@router.get("/health")
async def health_check():
    """Liveness plus a database round-trip; 503 when the database is unreachable"""
    database_ok = _database_reachable()
    body = {
        "status": "healthy" if database_ok else "degraded",
        "database": "ok" if database_ok else "unreachable",
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__
    }
    return JSONResponse(status_code=200 if database_ok else 503, content=body)


@router.get("/status")
async def get_status():
    """Which integrations are configured"""
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "integrations": {
            "google_oauth_configured": bool(settings.google_client_id and settings.google_client_secret),
            "llm_configured": bool(settings.enable_llm_insights and settings.anthropic_api_key),
        },
        "defaults": {
            "site_url": settings.gsc_default_site_url,
            "opportunity_lookback_days": settings.opportunity_lookback_days,
            "recommendation_ttl_days": settings.recommendation_ttl_days,
        },
        "timestamp": datetime.utcnow().isoformat()
    }
