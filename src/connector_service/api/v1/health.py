"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from connector_service import __version__
from connector_service.config import Settings, get_settings
from connector_service.infrastructure.redis import CacheService, get_cache
from connector_service.middleware.timing import get_endpoint_stats

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str
    timestamp: str
    dependencies: dict[str, Any]


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    ready: bool
    checks: dict[str, bool]


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """
    Basic health check endpoint.

    Returns the service status, version, and which provider OAuth apps
    are configured.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc).isoformat(),
        dependencies={
            "redis": "configured",
            "printful_oauth": "configured" if settings.printful_client_id else "missing",
            "webflow_oauth": "configured" if settings.webflow_client_id else "missing",
        },
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(cache: CacheService = Depends(get_cache)) -> ReadinessResponse:
    """
    Readiness check endpoint.

    Pings Redis. Without it tokens only live in this process's memory.
    """
    checks = {"redis": bool(await cache.health_check())}
    return ReadinessResponse(ready=all(checks.values()), checks=checks)


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Returns 200 while the process is serving requests."""
    return {"status": "alive"}


@router.get("/health/stats")
async def latency_stats() -> dict[str, Any]:
    """Per-path request latency collected by the request context middleware."""
    return {"endpoint_latencies": get_endpoint_stats()}
