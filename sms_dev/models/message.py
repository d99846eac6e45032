"""
Message domain model.
"""
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sms_dev.core.errors import InvalidTransitionError


class MessageStatus(str, Enum):
    """Delivery lifecycle of a simulated SMS."""
    
    QUEUED = "queued"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    
    @property
    def rank(self) -> int:
        return _RANK[self]
    
    @property
    def is_terminal(self) -> bool:
        return self in (MessageStatus.DELIVERED, MessageStatus.FAILED)


_RANK = {
    MessageStatus.QUEUED: 0,
    MessageStatus.SENT: 1,
    MessageStatus.DELIVERED: 2,
    MessageStatus.FAILED: 2,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Datetimes without an offset are read as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Render a UTC timestamp the way carrier APIs do (millisecond precision, Z suffix)."""
    if value is None:
        return None
    return as_utc(value).astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_message_id() -> str:
    return f"msg_{uuid.uuid4().hex}"


@dataclass(frozen=True)
class Message:
    """A single SMS record. The store hands out these immutable snapshots."""
    
    id: str
    to: str
    from_: str
    body: str
    status: MessageStatus
    created_at: datetime
    cost: float
    delivered_at: Optional[datetime] = None
    error: Optional[str] = None
    
    def with_status(self, status: MessageStatus, at: Optional[datetime] = None,
                    error: Optional[str] = None) -> "Message":
        """Return a copy advanced to `status`; regressions and exits from terminal states are refused."""
        if self.status.is_terminal or status.rank <= self.status.rank:
            raise InvalidTransitionError(
                f"Cannot move message {self.id} from {self.status.value} to {status.value}"
            )
        changes = {"status": status}
        if status is MessageStatus.SENT:
            changes["error"] = None
        elif status is MessageStatus.DELIVERED:
            changes["delivered_at"] = at or utcnow()
            changes["error"] = None
        elif status is MessageStatus.FAILED:
            changes["error"] = error or "Delivery failed"
        return replace(self, **changes)
    
    def to_dict(self) -> dict:
        """Wire representation used for events and exports."""
        return {
            "id": self.id,
            "to": self.to,
            "from": self.from_,
            "body": self.body,
            "status": self.status.value,
            "created_at": to_iso(self.created_at),
            "delivered_at": to_iso(self.delivered_at),
            "cost": self.cost,
        }
