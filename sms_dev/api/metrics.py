"""
Prometheus-style metrics endpoint.
"""
import time
from typing import Callable

from fastapi import APIRouter, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

from sms_dev.core.logging import get_logger
from sms_dev.core.metrics import generate_prometheus_metrics, record_request

logger = get_logger(__name__)

router = APIRouter(tags=["Metrics"])

UNMATCHED_ROUTE = "<unmatched>"


def _route_template(request: Request) -> str:
    """Route template for the request, so message ids stay out of the label set."""
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", UNMATCHED_ROUTE)
    return UNMATCHED_ROUTE


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect request metrics and log each request."""
    
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)
        
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time
        
        path = _route_template(request)
        
        record_request(
            method=request.method,
            path=path,
            status_code=response.status_code,
            duration=duration,
        )
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} - {duration * 1000:.0f}ms",
            extra={
                "extra_data": {
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "latency_ms": round(duration * 1000, 2),
                }
            }
        )
        
        return response


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Returns metrics in Prometheus exposition format.",
    response_class=Response,
)
async def metrics(request: Request) -> Response:
    settings = request.app.state.components.settings
    return Response(
        content=generate_prometheus_metrics(version=settings.app_version),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
