"""
Webhook delivery records and configuration.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sms_dev.models.message import Message, to_iso

# Status sentinels for events that never got an HTTP response
STATUS_SKIPPED = -1
STATUS_NO_RESPONSE = 0


def new_webhook_id() -> str:
    return f"whk_{uuid.uuid4().hex}"


def inbound_payload(message: Message) -> dict:
    """JSON body POSTed to the developer's endpoint for an inbound SMS."""
    return {
        "id": message.id,
        "to": message.to,
        "from": message.from_,
        "body": message.body,
        "received_at": to_iso(message.created_at),
        "type": "sms",
    }


@dataclass(frozen=True)
class WebhookConfig:
    """Process-wide delivery settings. Replaced wholesale, never mutated."""
    
    url: Optional[str] = None
    enabled: bool = False
    retries: int = 3
    timeout_ms: int = 5000
    
    @property
    def is_deliverable(self) -> bool:
        return self.enabled and bool(self.url)
    
    def redacted(self) -> dict:
        return {
            "url": "[CONFIGURED]" if self.url else None,
            "enabled": self.enabled,
            "retries": self.retries,
            "timeout": self.timeout_ms,
        }


@dataclass(frozen=True)
class WebhookEvent:
    """Outcome of one logical delivery (all of its attempts)."""
    
    url: str
    payload: dict
    status: int
    timestamp: datetime
    duration: int = 0
    attempts: int = 0
    error: Optional[str] = None
    id: str = field(default_factory=new_webhook_id)
    
    @property
    def succeeded(self) -> bool:
        return self.error is None and 200 <= self.status < 300
    
    @property
    def outcome(self) -> str:
        if self.status == STATUS_SKIPPED:
            return "skipped"
        if self.status == STATUS_NO_RESPONSE:
            return "no_response"
        return "delivered" if self.succeeded else "http_error"
    
    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "payload": self.payload,
            "status": self.status,
            "timestamp": to_iso(self.timestamp),
            "duration": self.duration,
            "attempts": self.attempts,
            "error": self.error,
        }
