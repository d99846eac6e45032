"""
Webhook administration endpoints.
"""
import uuid
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Body, Depends

from sms_dev.core.components import get_settings_dep, get_webhook_service
from sms_dev.core.config import Settings
from sms_dev.core.errors import ValidationError, utc_timestamp
from sms_dev.core.logging import get_logger
from sms_dev.core.security import validate_webhook_url
from sms_dev.models.message import Message, MessageStatus, utcnow
from sms_dev.schemas.message import ErrorResponse, MessageResponse
from sms_dev.schemas.webhook import (
    SimulateInboundRequest,
    SimulateInboundResponse,
    WebhookConfigResponse,
    WebhookConfigureRequest,
    WebhookConfigureResponse,
    WebhookEventResponse,
    WebhookHistoryResponse,
)
from sms_dev.services.webhook import WebhookService

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/webhooks", tags=["Webhooks"])


@router.post(
    "/test",
    summary="Webhook echo",
    description="A local endpoint that accepts any JSON, handy as a webhook target while testing."
)
async def receive_test_webhook(body: Annotated[Optional[Any], Body()] = None) -> dict:
    logger.info("Webhook test received", extra={"extra_data": {"body": body}})
    return {
        "status": "received",
        "timestamp": utc_timestamp(),
        "body": body,
    }


@router.post(
    "/configure",
    response_model=WebhookConfigureResponse,
    responses={400: {"model": ErrorResponse, "description": "Missing or invalid URL"}},
    summary="Configure webhook delivery"
)
async def configure_webhook(
    request: WebhookConfigureRequest,
    webhooks: Annotated[WebhookService, Depends(get_webhook_service)],
) -> WebhookConfigureResponse:
    """
    Point inbound message delivery at a new URL, or switch it off.
    
    A URL is required unless `enabled` is false.
    """
    if not request.url and request.enabled:
        raise ValidationError("Please provide a webhook URL to configure")
    
    warnings = []
    if request.url:
        check = validate_webhook_url(request.url)
        if not check.valid:
            raise ValidationError("; ".join(check.errors))
        warnings = check.warnings
    
    changes = {"url": request.url or None, "enabled": request.enabled}
    if request.retries is not None:
        changes["retries"] = request.retries
    if request.timeout is not None:
        changes["timeout_ms"] = request.timeout
    webhooks.update_config(**changes)
    
    return WebhookConfigureResponse(
        message="Webhook configuration updated",
        config=WebhookConfigResponse(**webhooks.get_config()),
        warnings=warnings,
        timestamp=utc_timestamp(),
    )


@router.get(
    "/config",
    response_model=WebhookConfigResponse,
    summary="Current webhook configuration",
    description="The URL itself is never returned, only whether one is configured."
)
async def get_webhook_config(
    webhooks: Annotated[WebhookService, Depends(get_webhook_service)],
) -> WebhookConfigResponse:
    return WebhookConfigResponse(**webhooks.get_config())


@router.get(
    "/history",
    response_model=WebhookHistoryResponse,
    summary="Webhook delivery history",
    description="The most recent delivery outcomes, newest first."
)
async def get_webhook_history(
    webhooks: Annotated[WebhookService, Depends(get_webhook_service)],
) -> WebhookHistoryResponse:
    history = webhooks.get_history()
    return WebhookHistoryResponse(
        history=[WebhookEventResponse(**event.to_dict()) for event in history],
        total=len(history),
        timestamp=utc_timestamp(),
    )


@router.delete("/history", summary="Clear webhook history")
async def clear_webhook_history(
    webhooks: Annotated[WebhookService, Depends(get_webhook_service)],
) -> dict:
    webhooks.clear_history()
    return {
        "message": "Webhook history cleared",
        "timestamp": utc_timestamp(),
    }


@router.post(
    "/simulate",
    response_model=SimulateInboundResponse,
    responses={400: {"model": ErrorResponse, "description": "Missing fields"}},
    summary="Simulate an inbound message",
    description="Deliver a synthetic inbound SMS to the configured webhook and wait for the outcome."
)
async def simulate_inbound(
    request: SimulateInboundRequest,
    webhooks: Annotated[WebhookService, Depends(get_webhook_service)],
    settings: Annotated[Settings, Depends(get_settings_dep)],
) -> SimulateInboundResponse:
    now = utcnow()
    simulated = Message(
        id=f"sim_{uuid.uuid4().hex}",
        to=request.to,
        from_=request.from_,
        body=request.body,
        status=MessageStatus.DELIVERED,
        created_at=now,
        delivered_at=now,
        cost=settings.message_cost,
    )
    event = await webhooks.deliver(simulated)
    
    return SimulateInboundResponse(
        message="Webhook simulation completed",
        webhook_event=WebhookEventResponse(**event.to_dict()),
        simulated_message=MessageResponse.from_message(simulated),
        timestamp=utc_timestamp(),
    )
