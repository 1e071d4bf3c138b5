"""
API endpoints for health checks and readiness probes.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Response

from letterbox.api.v1.models import HealthResponse
from letterbox.core.observability import health_monitor, get_logger
from letterbox.db.session import db_manager
from letterbox.storage.base import BlobStoreFactory


logger = get_logger(__name__)
router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Run all registered health checks.

    Used by load balancers and orchestrators for liveness probes.
    """
    try:
        health_status = await health_monitor.check_health()
        return HealthResponse(**health_status)
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return HealthResponse(
            status="unhealthy",
            timestamp=datetime.now(timezone.utc),
            checks={"error": {"status": "unhealthy", "error": str(e)}}
        )


@router.get("/ready")
async def readiness_check(response: Response):
    """
    Readiness probe: database reachable and blob store usable.
    """
    checks = {}
    is_ready = True

    db_healthy = await db_manager.health_check()
    checks["database"] = {"status": "healthy" if db_healthy else "unhealthy"}
    is_ready = is_ready and db_healthy

    try:
        store = BlobStoreFactory.get_store()
        store_healthy = await store.health_check()
        checks["blob_store"] = {
            "status": "healthy" if store_healthy else "unhealthy",
            "backend": store.name,
        }
    except Exception as e:
        store_healthy = False
        checks["blob_store"] = {"status": "unhealthy", "error": str(e)}
    is_ready = is_ready and store_healthy

    if not is_ready:
        response.status_code = 503

    return {"ready": is_ready, "timestamp": _now(), "checks": checks}


@router.get("/live")
async def liveness_check():
    """Returns 200 while the process is up; no dependency checks."""
    return {"status": "alive", "timestamp": _now()}
