"""
Pydantic schemas for message request/response validation.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from sms_dev.models.message import Message, MessageStatus


MAX_BODY_LENGTH = 1600


class SendMessageRequest(BaseModel):
    """Request schema for POST /v1/messages."""
    
    to: str = Field(
        ...,
        min_length=1,
        description="Recipient phone number"
    )
    from_: Optional[str] = Field(
        default=None,
        alias="from",
        description="Sender phone number, defaults to the simulator number"
    )
    body: str = Field(
        ...,
        min_length=1,
        max_length=MAX_BODY_LENGTH,
        description="Message text"
    )
    
    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {
                "to": "+15550001111",
                "from": "+15551234567",
                "body": "Hello from sms-dev"
            }
        }
    }
    
    @field_validator("to", "body")
    @classmethod
    def reject_blank(cls, v: str) -> str:
        """Whitespace-only values count as missing."""
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class MessageResponse(BaseModel):
    """Schema for a single message in responses."""
    id: str
    to: str
    from_: str = Field(alias="from")
    body: str
    status: MessageStatus
    created_at: datetime
    delivered_at: Optional[datetime] = None
    cost: float
    
    model_config = {
        "populate_by_name": True,
    }
    
    @classmethod
    def from_message(cls, message: Message) -> "MessageResponse":
        return cls(
            id=message.id,
            to=message.to,
            from_=message.from_,
            body=message.body,
            status=message.status,
            created_at=message.created_at,
            delivered_at=message.delivered_at,
            cost=message.cost,
        )


class Pagination(BaseModel):
    limit: int
    offset: int
    total: int
    has_more: bool


class MessagesListResponse(BaseModel):
    """Response schema for GET /v1/messages."""
    messages: List[MessageResponse]
    pagination: Pagination


class ConversationResponse(BaseModel):
    """A thread of messages with one counterparty."""
    phoneNumber: str
    messages: List[MessageResponse]
    lastActivity: datetime
    unreadCount: int = 0


class ConversationsListResponse(BaseModel):
    """Response schema for GET /v1/dev/conversations."""
    conversations: List[ConversationResponse]
    total: int


class HealthResponse(BaseModel):
    """Response schema for health endpoints."""
    status: str
    service: Optional[str] = None
    version: Optional[str] = None
    timestamp: Optional[str] = None
    webhook: Optional[Dict[str, Any]] = None
    checks: Optional[Dict[str, str]] = None


class ErrorResponse(BaseModel):
    """Standard error response schema."""
    error: str
    kind: str
    message: str
    timestamp: str
    details: Optional[List[Any]] = None
