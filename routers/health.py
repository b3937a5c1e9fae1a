# routers/health.py

from fastapi import APIRouter, Depends

from core.config import settings
from core.store import RequestStore, get_store

router = APIRouter(
    prefix="/health",
    tags=["Health"],
)


# -----------------------------------------------------
# GET /health/db
# Checks store connectivity + per-table queries
# No auth required
# -----------------------------------------------------
@router.get("/db", summary="Store / DB health check")
def health_db(store: RequestStore = Depends(get_store)):
    """
    Verifies the request store is reachable.
    - Reports the configured backend
    - Returns row-count + status per table

    Safe for external health monitors (no auth required).
    """
    try:
        status = store.ping()
        return {
            "service": status.get("service", settings.STORE_BACKEND),
            "status": status.get("status", "unknown"),
            "details": status,
        }

    except Exception as e:
        return {
            "service": settings.STORE_BACKEND,
            "status": "error",
            "error": str(e),
        }


# -----------------------------------------------------
# GET /health/app
# Simple API health check for uptime monitors
# -----------------------------------------------------
@router.get("/app", summary="App health check")
async def health_app():
    return {
        "service": settings.PROJECT_NAME,
        "status": "ok",
    }
