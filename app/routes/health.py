# app/routes/health.py
"""
Health check endpoints.
"""

import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.config import settings
from app.db.pool import db_health_check

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "scheduling-assistant"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check. The database is only checked when DATABASE_URL is set;
    provider and completion settings are reported, not contacted.
    """
    checks = {}
    overall_ok = True

    if settings.DATABASE_URL:
        t0 = time.time()
        db_health = await db_health_check()
        is_healthy = db_health.get("healthy", False)
        checks["database"] = {
            "ok": is_healthy,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        if not is_healthy:
            checks["database"]["error"] = db_health.get("error")
        overall_ok = overall_ok and is_healthy
    else:
        checks["database"] = {"ok": True, "mode": "in_memory"}

    checks["providers"] = {
        "google": bool(settings.GOOGLE_CLIENT_ID),
        "microsoft": bool(settings.MICROSOFT_CLIENT_ID),
    }
    checks["completion_service"] = {"configured": bool(settings.OPENAI_API_KEY)}

    body = {"status": "ok" if overall_ok else "degraded", "checks": checks}
    return JSONResponse(status_code=200 if overall_ok else 503, content=body)
