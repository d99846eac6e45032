"""
Tests for the broadcast hub and reply injection.
"""
import asyncio

from sms_dev.models.message import MessageStatus
from sms_dev.schemas.realtime import WsOutbound
from sms_dev.services.broadcast import BroadcastHub
from sms_dev.services.message_store import MessageStore


ROOM = "+15550001111"
OTHER_ROOM = "+15550002222"


def event(n=0):
    return WsOutbound(type="message:new", data={"n": n})


class TestMembership:
    
    def test_join_and_leave_are_idempotent(self):
        hub = BroadcastHub(MessageStore())
        viewer = hub.connect()
        
        hub.join(viewer.id, ROOM)
        hub.join(viewer.id, ROOM)
        assert hub.members(ROOM) == {viewer.id}
        
        hub.leave(viewer.id, ROOM)
        hub.leave(viewer.id, ROOM)
        assert hub.members(ROOM) == set()
    
    def test_join_by_unknown_subscriber_is_ignored(self):
        hub = BroadcastHub(MessageStore())
        hub.join("sub_ghost", ROOM)
        assert hub.members(ROOM) == set()
    
    def test_disconnect_removes_from_every_room(self):
        hub = BroadcastHub(MessageStore())
        viewer = hub.connect()
        hub.join(viewer.id, ROOM)
        hub.join(viewer.id, OTHER_ROOM)
        
        hub.disconnect(viewer.id)
        
        assert hub.subscriber_count == 0
        assert hub.members(ROOM) == set()
        assert hub.members(OTHER_ROOM) == set()


class TestPublication:
    
    def test_room_publish_excludes_origin_and_other_rooms(self):
        hub = BroadcastHub(MessageStore())
        a, b, c, outsider = hub.connect(), hub.connect(), hub.connect(), hub.connect()
        for viewer in (a, b, c):
            hub.join(viewer.id, ROOM)
        hub.join(outsider.id, OTHER_ROOM)
        
        reached = hub.publish_to_conversation(ROOM, event(), exclude=c.id)
        
        assert reached == 2
        assert (a.pending(), b.pending(), c.pending(), outsider.pending()) == (1, 1, 0, 0)
    
    def test_global_publish_reaches_everyone(self):
        hub = BroadcastHub(MessageStore())
        viewers = [hub.connect() for _ in range(3)]
        hub.join(viewers[0].id, ROOM)
        
        assert hub.publish_global(event()) == 3
        assert [v.pending() for v in viewers] == [1, 1, 1]
    
    def test_publish_to_empty_room(self):
        hub = BroadcastHub(MessageStore())
        assert hub.publish_to_conversation(ROOM, event()) == 0
    
    def test_slow_subscriber_drops_its_own_events_only(self):
        async def scenario():
            hub = BroadcastHub(MessageStore(), max_pending=2)
            slow, fast = hub.connect(), hub.connect()
            received = []
            for n in range(3):
                hub.publish_global(event(n))
                received.append((await fast.next_event()).data["n"])
            return slow, fast, received
        
        slow, fast, received = asyncio.run(scenario())
        
        assert received == [0, 1, 2]
        assert slow.pending() == 2
        assert slow.dropped == 1
        assert fast.dropped == 0
    
    def test_events_arrive_in_publication_order(self):
        async def scenario():
            hub = BroadcastHub(MessageStore())
            viewer = hub.connect()
            for n in range(5):
                hub.publish_global(event(n))
            return [(await viewer.next_event()).data["n"] for _ in range(5)]
        
        assert asyncio.run(scenario()) == [0, 1, 2, 3, 4]


class TestReplies:
    
    def test_reply_is_stored_published_and_delivered(self):
        delivered = []
        
        async def deliver(message):
            delivered.append(message.id)
        
        async def scenario():
            store = MessageStore()
            hub = BroadcastHub(store)
            hub.bind_delivery(deliver)
            sender, listener = hub.connect(), hub.connect()
            hub.join(sender.id, ROOM)
            hub.join(listener.id, ROOM)
            
            message = hub.submit_reply(ROOM, "+15559990000", "hello", origin=sender.id)
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            return store, message, sender.pending(), await listener.next_event()
        
        store, message, sender_pending, received = asyncio.run(scenario())
        
        assert store.get(message.id).status is MessageStatus.DELIVERED
        assert sender_pending == 0
        assert received.type == "message:new"
        assert received.data["id"] == message.id
        assert delivered == [message.id]
    
    def test_slow_delivery_does_not_block_submit(self):
        started = []
        
        async def deliver(message):
            started.append(message.id)
            await asyncio.sleep(60)
        
        async def scenario():
            hub = BroadcastHub(MessageStore())
            hub.bind_delivery(deliver)
            message = hub.submit_reply(ROOM, "+15559990000", "hello")
            await asyncio.sleep(0)
            await hub.close()
            return message
        
        message = asyncio.run(scenario())
        assert started == [message.id]
    
    def test_crashing_delivery_is_contained(self):
        async def deliver(message):
            raise RuntimeError("boom")
        
        async def scenario():
            hub = BroadcastHub(MessageStore())
            hub.bind_delivery(deliver)
            hub.submit_reply(ROOM, "+15559990000", "hello")
            await asyncio.sleep(0.01)
            await hub.close()
            return hub
        
        assert asyncio.run(scenario()).subscriber_count == 0
