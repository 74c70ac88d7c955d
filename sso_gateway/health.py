"""
Health Checks
=============
Liveness and readiness endpoints with state store status.
"""

import time
from enum import Enum
from typing import Dict, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import structlog

from .errors import StoreUnavailable

logger = structlog.get_logger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentHealth(BaseModel):
    status: str
    latency_ms: Optional[float] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: HealthStatus
    service: str
    version: str
    components: Dict[str, ComponentHealth]
    timestamp: float


async def check_store(store) -> ComponentHealth:
    """Check state store connectivity and latency."""
    try:
        start = time.time()
        await store.ping()
        latency = (time.time() - start) * 1000
        return ComponentHealth(status="connected", latency_ms=round(latency, 2))
    except StoreUnavailable:
        logger.error("State store health check failed")
        return ComponentHealth(status="error", error="unavailable")


def create_health_router(service_name: str, version: str) -> APIRouter:
    """
    Create the health router.

    The state store is read from ``request.app.state.store`` so the router
    can be built before the app's components exist.

    Returns:
        FastAPI router with /health, /health/live, and /health/ready endpoints
    """
    router = APIRouter(tags=["Health"])

    @router.get("/health", response_model=HealthResponse)
    async def health_check(request: Request) -> HealthResponse:
        """Health check with state store status."""
        store_health = await check_store(request.app.state.store)
        overall_status = (
            HealthStatus.HEALTHY if store_health.status == "connected"
            else HealthStatus.UNHEALTHY
        )
        return HealthResponse(
            status=overall_status,
            service=service_name,
            version=version,
            components={"store": store_health},
            timestamp=time.time(),
        )

    @router.get("/health/live")
    async def liveness_probe():
        """Liveness probe - always returns 200 if the process is running."""
        return {"status": "alive"}

    @router.get("/health/ready")
    async def readiness_probe(request: Request):
        """Readiness probe - the gateway cannot serve logins without its store."""
        store_health = await check_store(request.app.state.store)
        if store_health.status == "error":
            return JSONResponse(
                status_code=503,
                content={"status": "not_ready", "reason": "store_unavailable"},
            )
        return {"status": "ready"}

    return router
