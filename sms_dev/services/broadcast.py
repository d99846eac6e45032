"""
Real-time fan-out of message and webhook events.

Subscribers are connected viewers. Each owns a bounded queue that the hub
fills without ever awaiting, so a stalled viewer loses its own events and
nobody else's.
"""
import asyncio
import uuid
from typing import Awaitable, Callable, Dict, Iterable, Optional, Set

from sms_dev.core.logging import get_logger
from sms_dev.core.metrics import record_message_created
from sms_dev.models.message import Message
from sms_dev.schemas.realtime import WsOutbound
from sms_dev.services.message_store import MessageStore

logger = get_logger(__name__)

DeliverFn = Callable[[Message], Awaitable[object]]


class Subscriber:
    """One connected viewer and its pending outbound events."""
    
    def __init__(self, subscriber_id: str, max_pending: int = 100):
        self.id = subscriber_id
        self.dropped = 0
        self._queue: "asyncio.Queue[WsOutbound]" = asyncio.Queue(maxsize=max_pending)
    
    def push(self, event: WsOutbound) -> bool:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Subscriber queue full, dropping event",
                extra={"extra_data": {"subscriber_id": self.id, "event": event.type, "dropped": self.dropped}}
            )
            return False
        return True
    
    async def next_event(self) -> WsOutbound:
        return await self._queue.get()
    
    def pending(self) -> int:
        return self._queue.qsize()


class BroadcastHub:
    """Pub/sub keyed by phone number ("rooms") plus server-wide broadcast."""
    
    def __init__(self, store: MessageStore, max_pending: int = 100):
        self._store = store
        self._max_pending = max_pending
        self._subscribers: Dict[str, Subscriber] = {}
        self._rooms: Dict[str, Set[str]] = {}
        self._deliver: Optional[DeliverFn] = None
        self._deliveries: Set[asyncio.Task] = set()
    
    def bind_delivery(self, deliver: DeliverFn) -> None:
        """Set the coroutine that forwards inbound replies to the developer's webhook."""
        self._deliver = deliver
    
    # Membership
    
    def connect(self, subscriber_id: Optional[str] = None) -> Subscriber:
        subscriber = Subscriber(subscriber_id or f"sub_{uuid.uuid4().hex[:12]}", self._max_pending)
        self._subscribers[subscriber.id] = subscriber
        logger.info("Client connected", extra={"extra_data": {"subscriber_id": subscriber.id}})
        return subscriber
    
    def disconnect(self, subscriber_id: str) -> None:
        self._subscribers.pop(subscriber_id, None)
        for phone_number in list(self._rooms):
            self._discard(subscriber_id, phone_number)
        logger.info("Client disconnected", extra={"extra_data": {"subscriber_id": subscriber_id}})
    
    def join(self, subscriber_id: str, phone_number: str) -> None:
        if subscriber_id not in self._subscribers:
            return
        self._rooms.setdefault(phone_number, set()).add(subscriber_id)
        logger.debug(
            "Client joined conversation",
            extra={"extra_data": {"subscriber_id": subscriber_id, "phone": phone_number}}
        )
    
    def leave(self, subscriber_id: str, phone_number: str) -> None:
        self._discard(subscriber_id, phone_number)
    
    def members(self, phone_number: str) -> Set[str]:
        return set(self._rooms.get(phone_number, ()))
    
    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
    
    def _discard(self, subscriber_id: str, phone_number: str) -> None:
        room = self._rooms.get(phone_number)
        if room is None:
            return
        room.discard(subscriber_id)
        if not room:
            del self._rooms[phone_number]
    
    # Publication
    
    def publish_to_conversation(self, phone_number: str, event: WsOutbound,
                                exclude: Optional[str] = None) -> int:
        """Send to every member of the room except `exclude`; returns how many accepted it."""
        targets = [sid for sid in self.members(phone_number) if sid != exclude]
        return self._fan_out(targets, event)
    
    def publish_global(self, event: WsOutbound) -> int:
        return self._fan_out(list(self._subscribers), event)
    
    def _fan_out(self, subscriber_ids: Iterable[str], event: WsOutbound) -> int:
        delivered = 0
        for subscriber_id in subscriber_ids:
            subscriber = self._subscribers.get(subscriber_id)
            if subscriber is not None and subscriber.push(event):
                delivered += 1
        return delivered
    
    # Replies from the virtual phone
    
    def submit_reply(self, to: str, from_: str, body: str, origin: Optional[str] = None) -> Message:
        """
        Inject a reply from the simulated counterparty.
        
        The message is stored as delivered, pushed to the `to` room (minus
        the sender's own connection) and then handed to webhook delivery in
        the background. Webhook problems never surface here.
        """
        message = self._store.record_inbound(to, from_, body)
        record_message_created("inbound")
        
        self.publish_to_conversation(
            to,
            WsOutbound(type="message:new", data=message.to_dict()),
            exclude=origin,
        )
        
        if self._deliver is not None:
            task = asyncio.create_task(self._deliver(message))
            self._deliveries.add(task)
            task.add_done_callback(self._delivery_done)
        return message
    
    def _delivery_done(self, task: asyncio.Task) -> None:
        self._deliveries.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Webhook delivery task crashed",
                exc_info=(type(exc), exc, exc.__traceback__),
            )
    
    async def close(self) -> None:
        """Abandon in-flight deliveries and drop every subscriber."""
        pending = list(self._deliveries)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._deliveries.clear()
        self._subscribers.clear()
        self._rooms.clear()
