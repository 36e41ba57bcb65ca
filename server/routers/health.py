"""
Health check endpoints for production deployment.

Provides:
- /health - Basic liveness check (is the app running?)
- /ready - Readiness check (can the app handle requests?)
- /metrics - Application metrics for monitoring
"""

import json
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Service references (set during app initialization)
_redis_client = None
_sessions = None


def set_health_dependencies(
    redis_client=None,
    sessions=None,
):
    """Set dependencies for health checks."""
    global _redis_client, _sessions
    _redis_client = redis_client
    _sessions = sessions


@router.get("/health")
async def health_check():
    """
    Basic liveness check - is the app running?

    This endpoint should always return 200 if the process is alive.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check - can the app handle requests?

    Redis carries both the room records and the broadcast channels, so the
    app is not ready without it. Returns 503 when Redis is unavailable.
    """
    checks = {}
    overall_healthy = True

    if _redis_client is not None:
        try:
            await _redis_client.ping()
            checks["redis"] = {"status": "ok"}
        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            checks["redis"] = {"status": "error", "message": str(e)}
            overall_healthy = False
    else:
        checks["redis"] = {"status": "not_configured"}
        overall_healthy = False

    status_code = 200 if overall_healthy else 503
    return Response(
        content=json.dumps({
            "status": "ok" if overall_healthy else "degraded",
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }),
        status_code=status_code,
        media_type="application/json",
    )


@router.get("/metrics")
async def metrics():
    """
    Expose application metrics for monitoring.

    Reports the card sync sessions currently open on this process.
    """
    metrics_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if _sessions is not None:
        sessions = list(_sessions)
        metrics_data.update({
            "open_sessions": len(sessions),
            "active_rooms": len({s.room_id for s in sessions}),
            "initialized_sessions": sum(1 for s in sessions if s.is_initialized),
        })

    return metrics_data
