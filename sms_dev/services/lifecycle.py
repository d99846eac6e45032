"""
Timer-driven status progression for outbound messages.

queued --T1--> sent --T2--> delivered. One asyncio task per message; the
store write always happens before the matching broadcast.
"""
import asyncio
from typing import Dict

from sms_dev.core.errors import InvalidTransitionError
from sms_dev.core.logging import get_logger
from sms_dev.models.message import MessageStatus, utcnow
from sms_dev.schemas.realtime import WsOutbound
from sms_dev.services.broadcast import BroadcastHub
from sms_dev.services.message_store import MessageStore

logger = get_logger(__name__)


class LifecycleScheduler:
    """Owns the pending status transitions of every queued message."""
    
    def __init__(self, store: MessageStore, hub: BroadcastHub,
                 sent_delay: float = 0.5, delivered_delay: float = 1.0):
        self._store = store
        self._hub = hub
        self._sent_delay = sent_delay
        self._delivered_delay = delivered_delay
        self._tasks: Dict[str, asyncio.Task] = {}
    
    @property
    def pending(self) -> int:
        return len(self._tasks)
    
    def schedule(self, message_id: str) -> asyncio.Task:
        """Start the lifecycle of a freshly created message."""
        task = asyncio.create_task(self._run(message_id), name=f"lifecycle:{message_id}")
        self._tasks[message_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(message_id, None))
        return task
    
    def cancel(self, message_id: str) -> bool:
        task = self._tasks.pop(message_id, None)
        if task is None:
            return False
        task.cancel()
        logger.debug("Lifecycle cancelled", extra={"extra_data": {"message_id": message_id}})
        return True
    
    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
    
    async def _run(self, message_id: str) -> None:
        await asyncio.sleep(self._sent_delay)
        if not self._advance(message_id, MessageStatus.SENT):
            return
        await asyncio.sleep(self._delivered_delay)
        self._advance(message_id, MessageStatus.DELIVERED)
    
    def _advance(self, message_id: str, status: MessageStatus) -> bool:
        now = utcnow()
        try:
            message = self._store.update(message_id, lambda m: m.with_status(status, at=now))
        except InvalidTransitionError as exc:
            logger.debug(exc.message, extra={"extra_data": {"message_id": message_id}})
            return False
        if message is None:
            # deleted while the timer was pending
            logger.debug(
                "Dropping transition for missing message",
                extra={"extra_data": {"message_id": message_id, "status": status.value}}
            )
            return False
        
        self._hub.publish_global(WsOutbound(type="message:updated", data=message.to_dict()))
        logger.info(
            f"Message {status.value}",
            extra={"extra_data": {"message_id": message_id, "status": status.value}}
        )
        return True

