"""
Health API routes.

Liveness with optional provider/circuit-breaker/error detail, maintenance
actions, and a readiness probe.
"""

import logging
import platform
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from convospace.api.schemas import HealthActionRequest
from convospace.config import settings
from convospace.db.connection import check_connection
from convospace.exceptions import ProviderError
from convospace.providers import get_error_tracker, get_registry
from convospace.providers.errors import ErrorTracker
from convospace.providers.registry import ProviderRegistry
from convospace.startup import check_readiness, startup_metrics

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health(
    detailed: bool = Query(False),
    registry: ProviderRegistry = Depends(get_registry),
    error_tracker: ErrorTracker = Depends(get_error_tracker),
) -> dict:
    """Health check endpoint."""
    now = datetime.now(timezone.utc)
    result = {
        "status": "healthy",
        "timestamp": now.isoformat(),
        "uptime": (now - startup_metrics.started_at).total_seconds(),
        "version": settings.version,
    }
    if not detailed:
        return result

    provider_health = registry.health()
    db_status = "healthy" if check_connection() else "unhealthy"
    if db_status != "healthy":
        result["status"] = "degraded"

    result.update(
        {
            "providers": {
                "available": [spec.id for spec in registry.available()],
                "health": provider_health,
                "total": len(provider_health),
            },
            "circuitBreakers": registry.breaker_stats(),
            "errors": {
                "stats": error_tracker.stats(),
                "frequent": error_tracker.frequent(3),
            },
            "database": db_status,
            "system": {
                "pythonVersion": platform.python_version(),
                "platform": platform.system().lower(),
            },
        }
    )
    return result


@router.post("/health")
def health_action(
    body: HealthActionRequest,
    registry: ProviderRegistry = Depends(get_registry),
    error_tracker: ErrorTracker = Depends(get_error_tracker),
) -> dict:
    """Maintenance actions: reset breakers, clear error stats, test a provider."""
    if body.action == "reset-circuit-breaker":
        registry.reset(body.provider)
        return {
            "success": True,
            "message": (
                f"Circuit breaker reset for {body.provider}"
                if body.provider
                else "All circuit breakers reset"
            ),
        }

    if body.action == "clear-error-stats":
        error_tracker.clear()
        return {"success": True, "message": "Error statistics cleared"}

    if body.action == "test-provider":
        if not body.provider:
            raise HTTPException(status_code=400, detail="Provider parameter required for test")
        if registry.get_spec(body.provider) is None:
            raise HTTPException(status_code=400, detail=f"Unknown provider: {body.provider}")
        return _test_provider(body.provider, registry, error_tracker)

    raise HTTPException(status_code=400, detail="Invalid action")


def _test_provider(provider_id: str, registry: ProviderRegistry, error_tracker: ErrorTracker) -> dict:
    """Send a tiny request to a provider and report whether it answered."""
    breaker = registry.breaker(provider_id)
    try:
        provider = registry.create_provider(provider_id)
        provider.complete([{"role": "user", "content": "Hello"}], max_tokens=10)
    except ProviderError as e:
        breaker.record_failure()
        error_tracker.process(e, {"provider": provider_id, "operation": "test"})
        return {
            "success": False,
            "message": f"Provider {provider_id} test failed",
            "error": str(e),
        }

    breaker.record_success()
    return {"success": True, "message": f"Provider {provider_id} is healthy"}


@router.get("/ready")
def ready():
    """
    Readiness probe endpoint for load balancers.

    Returns 200 OK if ready to serve requests, 503 Service Unavailable otherwise.
    """
    is_ready, details = check_readiness()
    if not is_ready:
        return JSONResponse(content=details, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return details
