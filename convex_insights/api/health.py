"""
Health check endpoints - used by load balancers and container healthchecks.

- GET /health       - basic liveness (always 200 "OK" if the app is running)
- GET /health/ready - readiness check (analytics store reachable)
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from convex_insights.schemas.api_responses import ReadinessResponse
from convex_insights.store import AnalyticsStore, get_store

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health", response_class=PlainTextResponse)
async def health_check():
    """Basic liveness check."""
    return "OK"


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(store: AnalyticsStore = Depends(get_store)):
    """Readiness check - verifies the analytics store answers a ping."""
    checks = {"store": await store.ping()}
    if not checks["store"]:
        logger.error("Readiness check failed: analytics store unreachable")

    return {
        "status": "ready" if all(checks.values()) else "degraded",
        "checks": checks,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
