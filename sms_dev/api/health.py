"""
Health check endpoints for liveness and readiness probes.
"""
from fastapi import APIRouter, Request, Response

from sms_dev.core.errors import utc_timestamp
from sms_dev.core.logging import get_logger
from sms_dev.schemas.message import HealthResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get(
    "",
    response_model=HealthResponse,
    summary="Service health",
    description="Service identity and whether webhook delivery is configured."
)
async def health(request: Request) -> HealthResponse:
    components = request.app.state.components
    config = components.webhooks.get_config()
    return HealthResponse(
        status="ok",
        service=components.settings.app_name,
        version=components.settings.app_version,
        timestamp=utc_timestamp(),
        webhook={
            "configured": config["url"] is not None and config["enabled"],
            "url": config["url"],
        },
    )


@router.get(
    "/live",
    response_model=HealthResponse,
    summary="Liveness probe",
    description="Always returns 200 to indicate the service is alive."
)
async def liveness() -> HealthResponse:
    return HealthResponse(status="ok")


@router.get(
    "/ready",
    response_model=HealthResponse,
    summary="Readiness probe",
    description="Returns 200 once the simulator components are wired up."
)
async def readiness(request: Request, response: Response) -> HealthResponse:
    """
    Readiness probe - checks if the service can handle traffic.
    
    Checks:
    - the message store and hub exist (lifespan has run)
    """
    components = getattr(request.app.state, "components", None)
    checks = {"components": "ok" if components is not None else "not initialized"}
    
    if components is None:
        logger.warning("Readiness check failed: components not initialized")
        response.status_code = 503
        return HealthResponse(status="not ready", checks=checks)
    
    checks["subscribers"] = str(components.hub.subscriber_count)
    checks["pending_lifecycles"] = str(components.scheduler.pending)
    return HealthResponse(status="ok", checks=checks)
