"""WebSocket message envelope models."""
from typing import Any, Dict

from pydantic import BaseModel, Field


class WsInbound(BaseModel):
    """Client -> Server."""

    type: str  # conversation:join | conversation:leave | reply:send | ping
    data: Dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server -> Client."""

    type: str  # message:new | message:updated | webhook:sent | conversation:joined | error | pong
    data: Dict[str, Any] = {}

    model_config = {"frozen": True}


class JoinPayload(BaseModel):
    phoneNumber: str = Field(..., min_length=1)


class ReplyPayload(BaseModel):
    to: str = Field(..., min_length=1)
    from_: str = Field(..., alias="from", min_length=1)
    body: str = Field(..., min_length=1, max_length=1600)
    conversationId: str = ""

    model_config = {"populate_by_name": True}
