"""
In-memory message store.

The store owns the canonical copy of every message. Records are frozen
dataclasses, so everything handed out is a snapshot that later updates
cannot change underneath the reader.
"""
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sms_dev.core.errors import NotFoundError, ValidationError
from sms_dev.core.logging import get_logger
from sms_dev.models.message import Message, MessageStatus, as_utc, new_message_id, utcnow

logger = get_logger(__name__)

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class MessageFilter:
    """Predicate used by listing and export."""
    
    search: Optional[str] = None
    status: Optional[MessageStatus] = None
    phone: Optional[str] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    
    def matches(self, message: Message) -> bool:
        if self.search:
            needle = self.search.lower()
            if not (needle in message.body.lower()
                    or needle in message.to.lower()
                    or needle in message.from_.lower()):
                return False
        if self.status is not None and message.status != self.status:
            return False
        if self.phone:
            needle = self.phone.lower()
            if needle not in message.to.lower() and needle not in message.from_.lower():
                return False
        if self.from_date is not None and message.created_at < as_utc(self.from_date):
            return False
        if self.to_date is not None and message.created_at > as_utc(self.to_date):
            return False
        return True


@dataclass(frozen=True)
class MessagePage:
    items: List[Message]
    total: int
    limit: int
    offset: int
    
    @property
    def has_more(self) -> bool:
        return self.offset + self.limit < self.total


class MessageStore:
    """Thread-safe in-memory message store; one lock held per operation."""
    
    def __init__(self, cost: float = 0.01):
        self._cost = cost
        self._messages: Dict[str, Message] = {}
        self._lock = threading.Lock()
    
    def create(self, to: str, from_: str, body: str) -> Message:
        """Accept an outbound message in the `queued` state."""
        if not to or not to.strip():
            raise ValidationError("to is required")
        if not body or not body.strip():
            raise ValidationError("body is required")
        if not from_ or not from_.strip():
            raise ValidationError("from is required")
        
        message = Message(
            id=new_message_id(),
            to=to,
            from_=from_,
            body=body,
            status=MessageStatus.QUEUED,
            created_at=utcnow(),
            cost=self._cost,
        )
        with self._lock:
            self._messages[message.id] = message
        
        logger.info(
            "Message queued",
            extra={"extra_data": {"message_id": message.id, "to": to}}
        )
        return message
    
    def record_inbound(self, to: str, from_: str, body: str) -> Message:
        """Store a reply from the simulated counterparty, already delivered on arrival."""
        if not to or not to.strip() or not from_ or not from_.strip() or not body or not body.strip():
            raise ValidationError("to, from and body are required")
        
        now = utcnow()
        message = Message(
            id=new_message_id(),
            to=to,
            from_=from_,
            body=body,
            status=MessageStatus.DELIVERED,
            created_at=now,
            delivered_at=now,
            cost=self._cost,
        )
        with self._lock:
            self._messages[message.id] = message
        
        logger.info(
            "Inbound message recorded",
            extra={"extra_data": {"message_id": message.id, "from": from_}}
        )
        return message
    
    def get(self, message_id: str) -> Message:
        with self._lock:
            message = self._messages.get(message_id)
        if message is None:
            raise NotFoundError("Message not found")
        return message
    
    def update(self, message_id: str, mutator: Callable[[Message], Message]) -> Optional[Message]:
        """
        Replace a record with `mutator(record)`.
        
        Unknown ids are a no-op returning None; a timer can outlive its
        message and that is not an error.
        """
        with self._lock:
            current = self._messages.get(message_id)
            if current is None:
                return None
            updated = mutator(current)
            self._messages[message_id] = updated
        return updated
    
    def delete(self, message_id: str) -> bool:
        with self._lock:
            removed = self._messages.pop(message_id, None)
        return removed is not None
    
    def list(self, message_filter: Optional[MessageFilter] = None,
             limit: int = 20, offset: int = 0) -> MessagePage:
        """Newest-first page of the messages matching `message_filter`."""
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
        if offset < 0:
            raise ValidationError("Offset must be non-negative")
        
        matched = self._select(message_filter)
        # reversed() keeps later inserts first among equal timestamps
        matched = sorted(reversed(matched), key=lambda m: m.created_at, reverse=True)
        return MessagePage(
            items=matched[offset:offset + limit],
            total=len(matched),
            limit=limit,
            offset=offset,
        )
    
    def export(self, message_filter: Optional[MessageFilter] = None) -> List[Message]:
        """All matching messages, oldest first."""
        return sorted(self._select(message_filter), key=lambda m: m.created_at)
    
    def all(self) -> List[Message]:
        with self._lock:
            return list(self._messages.values())
    
    def count(self) -> int:
        with self._lock:
            return len(self._messages)
    
    def _select(self, message_filter: Optional[MessageFilter]) -> List[Message]:
        snapshot = self.all()
        if message_filter is None:
            return snapshot
        return [m for m in snapshot if message_filter.matches(m)]
