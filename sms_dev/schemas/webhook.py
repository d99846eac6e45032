"""
Pydantic schemas for the webhook administration endpoints.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from sms_dev.schemas.message import MessageResponse


class WebhookConfigureRequest(BaseModel):
    """Request schema for POST /v1/webhooks/configure."""
    url: Optional[str] = Field(default=None, description="Target endpoint for inbound messages")
    enabled: bool = Field(default=True)
    retries: Optional[int] = Field(default=None, ge=1, le=10)
    timeout: Optional[int] = Field(default=None, gt=0, le=60000, description="Per-attempt timeout in milliseconds")


class WebhookConfigResponse(BaseModel):
    """Redacted view of the live webhook configuration."""
    url: Optional[str] = None
    enabled: bool
    retries: int
    timeout: int


class WebhookConfigureResponse(BaseModel):
    message: str
    config: WebhookConfigResponse
    warnings: List[str] = []
    timestamp: str


class WebhookEventResponse(BaseModel):
    id: str
    url: str
    payload: Dict[str, Any]
    status: int
    timestamp: str
    duration: int
    attempts: int
    error: Optional[str] = None


class WebhookHistoryResponse(BaseModel):
    history: List[WebhookEventResponse]
    total: int
    timestamp: str


class SimulateInboundRequest(BaseModel):
    """Request schema for POST /v1/webhooks/simulate."""
    to: str = Field(..., min_length=1)
    from_: str = Field(..., alias="from", min_length=1)
    body: str = Field(..., min_length=1, max_length=1600)
    
    model_config = {
        "populate_by_name": True,
    }


class SimulateInboundResponse(BaseModel):
    message: str
    webhook_event: WebhookEventResponse
    simulated_message: MessageResponse
    timestamp: str
