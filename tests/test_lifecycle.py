"""
Tests for the timer-driven message lifecycle.
"""
import asyncio

from sms_dev.models.message import MessageStatus
from sms_dev.services.broadcast import BroadcastHub
from sms_dev.services.lifecycle import LifecycleScheduler
from sms_dev.services.message_store import MessageStore


def build(sent_delay=0.01, delivered_delay=0.01):
    store = MessageStore()
    hub = BroadcastHub(store)
    scheduler = LifecycleScheduler(store, hub, sent_delay=sent_delay, delivered_delay=delivered_delay)
    return store, hub, scheduler


class TestLifecycleScheduler:
    
    def test_message_advances_to_delivered(self):
        async def scenario():
            store, hub, scheduler = build()
            viewer = hub.connect()
            message = store.create("+15550001111", "+15551234567", "hi")
            
            await scheduler.schedule(message.id)
            
            events = [await viewer.next_event(), await viewer.next_event()]
            return store.get(message.id), events, scheduler.pending
        
        final, events, pending = asyncio.run(scenario())
        
        assert final.status is MessageStatus.DELIVERED
        assert final.delivered_at is not None
        assert [e.type for e in events] == ["message:updated", "message:updated"]
        assert [e.data["status"] for e in events] == ["sent", "delivered"]
        assert pending == 0
    
    def test_store_is_written_before_broadcast(self):
        async def scenario():
            store, hub, scheduler = build()
            viewer = hub.connect()
            message = store.create("+15550001111", "+15551234567", "hi")
            scheduler.schedule(message.id)
            
            event = await viewer.next_event()
            return event, store.get(message.id)
        
        event, current = asyncio.run(scenario())
        assert event.data["status"] == "sent"
        assert current.status.rank >= MessageStatus.SENT.rank
    
    def test_deleted_message_is_dropped_silently(self):
        async def scenario():
            store, hub, scheduler = build()
            viewer = hub.connect()
            message = store.create("+15550001111", "+15551234567", "hi")
            task = scheduler.schedule(message.id)
            store.delete(message.id)
            
            await task
            return viewer.pending()
        
        assert asyncio.run(scenario()) == 0
    
    def test_terminal_message_is_not_regressed(self):
        async def scenario():
            store, hub, scheduler = build()
            viewer = hub.connect()
            message = store.create("+15550001111", "+15551234567", "hi")
            store.update(message.id, lambda m: m.with_status(MessageStatus.FAILED, error="rejected"))
            
            await scheduler.schedule(message.id)
            return store.get(message.id), viewer.pending()
        
        current, pending = asyncio.run(scenario())
        assert current.status is MessageStatus.FAILED
        assert pending == 0
    
    def test_cancel_stops_pending_transitions(self):
        async def scenario():
            store, hub, scheduler = build(sent_delay=0.05)
            message = store.create("+15550001111", "+15551234567", "hi")
            scheduler.schedule(message.id)
            
            cancelled = scheduler.cancel(message.id)
            again = scheduler.cancel(message.id)
            await asyncio.sleep(0.1)
            return cancelled, again, store.get(message.id).status, scheduler.pending
        
        cancelled, again, status, pending = asyncio.run(scenario())
        assert cancelled is True
        assert again is False
        assert status is MessageStatus.QUEUED
        assert pending == 0
    
    def test_shutdown_abandons_all_timers(self):
        async def scenario():
            store, hub, scheduler = build(sent_delay=60, delivered_delay=60)
            ids = [store.create("+15550001111", "+15551234567", f"m{i}").id for i in range(3)]
            for message_id in ids:
                scheduler.schedule(message_id)
            
            before = scheduler.pending
            await scheduler.shutdown()
            return before, scheduler.pending, [store.get(i).status for i in ids]
        
        before, after, statuses = asyncio.run(scenario())
        assert before == 3
        assert after == 0
        assert statuses == [MessageStatus.QUEUED] * 3
