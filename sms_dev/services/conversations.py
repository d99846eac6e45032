"""
Conversation views derived from the message store.

Nothing here is cached: every call regroups the current store contents.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Tuple

from sms_dev.models.message import Message, to_iso
from sms_dev.services.message_store import MessageStore


@dataclass(frozen=True)
class Conversation:
    phone_number: str
    messages: Tuple[Message, ...]
    last_activity: datetime
    unread_count: int = 0
    
    def to_dict(self) -> dict:
        return {
            "phoneNumber": self.phone_number,
            "messages": [m.to_dict() for m in self.messages],
            "lastActivity": to_iso(self.last_activity),
            "unreadCount": self.unread_count,
        }


@dataclass(frozen=True)
class Thread:
    """Messages exchanged between one pair of numbers, for exports."""
    
    participants: Tuple[str, str]
    messages: Tuple[Message, ...]
    
    @property
    def id(self) -> str:
        return "|".join(self.participants)
    
    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "participants": list(self.participants),
            "message_count": len(self.messages),
            "first_message": to_iso(self.messages[0].created_at) if self.messages else None,
            "last_message": to_iso(self.messages[-1].created_at) if self.messages else None,
            "messages": [m.to_dict() for m in self.messages],
        }


def counterparty(message: Message, system_number: str, system_prefix: str) -> str:
    """
    The number on the other side of the simulator.
    
    The simulator's own sending number is matched exactly first. Failing
    that, a recipient in the reserved prefix range means the sender is the
    counterparty. Everything else, including traffic between two external
    numbers, belongs to the recipient.
    """
    if message.from_ == system_number:
        return message.to
    if message.to == system_number:
        return message.from_
    if message.to.startswith(system_prefix) and not message.from_.startswith(system_prefix):
        return message.from_
    return message.to


def group_conversations(messages: Iterable[Message], system_number: str,
                        system_prefix: str) -> List[Conversation]:
    grouped: Dict[str, List[Message]] = {}
    for message in messages:
        grouped.setdefault(counterparty(message, system_number, system_prefix), []).append(message)
    
    conversations = []
    for phone_number, items in grouped.items():
        ordered = tuple(sorted(items, key=lambda m: (m.created_at, m.id)))
        conversations.append(Conversation(
            phone_number=phone_number,
            messages=ordered,
            last_activity=ordered[-1].created_at,
        ))
    
    conversations.sort(key=lambda c: c.phone_number)
    conversations.sort(key=lambda c: c.last_activity, reverse=True)
    return conversations


def group_threads(messages: Iterable[Message]) -> List[Thread]:
    grouped: Dict[Tuple[str, str], List[Message]] = {}
    for message in messages:
        low, high = sorted((message.to, message.from_))
        grouped.setdefault((low, high), []).append(message)
    
    return [
        Thread(participants=pair, messages=tuple(sorted(items, key=lambda m: (m.created_at, m.id))))
        for pair, items in sorted(grouped.items())
    ]


class ConversationIndex:
    """Read-side grouping of the store by counterparty phone number."""
    
    def __init__(self, store: MessageStore, system_number: str = "+15551234567",
                 system_prefix: str = "+1555"):
        self._store = store
        self._system_number = system_number
        self._system_prefix = system_prefix
    
    def list_conversations(self) -> List[Conversation]:
        return group_conversations(self._store.all(), self._system_number, self._system_prefix)
    
    def list_threads(self) -> List[Thread]:
        return group_threads(self._store.all())
