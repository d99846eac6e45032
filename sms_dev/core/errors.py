"""
Error taxonomy and the JSON error envelope returned by the API.
"""
from datetime import datetime, timezone
from typing import Any, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sms_dev.core.logging import get_logger

logger = get_logger(__name__)


class SmsDevError(Exception):
    """Base class for errors the simulator reports to callers."""
    
    kind = "internal_error"
    title = "Internal Server Error"
    status_code = 500
    
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SmsDevError):
    """Malformed ingress data, rejected before touching the store."""
    
    kind = "validation_error"
    title = "Validation Error"
    status_code = 400


class NotFoundError(SmsDevError):
    """Lookup by an unknown id."""
    
    kind = "not_found"
    title = "Not Found"
    status_code = 404


class InvalidTransitionError(SmsDevError):
    """A status change that would move a message backwards or out of a terminal state."""
    
    kind = "invalid_transition"
    title = "Conflict"
    status_code = 409


class TransportError(SmsDevError):
    """Network failure or timeout while delivering a webhook."""
    
    kind = "transport_error"
    title = "Bad Gateway"
    status_code = 502


class ConfigurationError(SmsDevError):
    """Webhook delivery requested without a usable target."""
    
    kind = "configuration_error"
    title = "Webhook Not Configured"
    status_code = 400


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def error_body(title: str, kind: str, message: str, details: Optional[List[Any]] = None) -> dict:
    """Build the error envelope shared by every failing endpoint."""
    body = {
        "error": title,
        "kind": kind,
        "message": message,
        "timestamp": utc_timestamp(),
    }
    if details is not None:
        body["details"] = details
    return body


async def handle_sms_dev_error(request: Request, exc: SmsDevError) -> JSONResponse:
    logger.info(
        f"Request rejected: {exc.message}",
        extra={"extra_data": {"kind": exc.kind, "path": request.url.path}}
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.title, exc.kind, exc.message),
    )


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "loc": list(error.get("loc", ())),
            "msg": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    logger.info(
        "Request validation failed",
        extra={"extra_data": {"path": request.url.path, "errors": len(details)}}
    )
    return JSONResponse(
        status_code=400,
        content=error_body("Validation Error", ValidationError.kind, "Invalid request data", details),
    )


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        message = f"Route {request.url.path} not found"
        kind = NotFoundError.kind
        title = NotFoundError.title
    else:
        message = str(exc.detail)
        kind = "http_error"
        title = message
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(title, kind, message),
        headers=getattr(exc, "headers", None),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the simulator's error envelope to an application."""
    app.add_exception_handler(SmsDevError, handle_sms_dev_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
