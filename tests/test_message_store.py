"""
Tests for the in-memory message store and the message model.
"""
from datetime import datetime, timedelta, timezone

import pytest

from sms_dev.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from sms_dev.models.message import Message, MessageStatus, to_iso
from sms_dev.services.message_store import MessageFilter, MessageStore


T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_message(status=MessageStatus.QUEUED, **overrides):
    values = {
        "id": "msg_test",
        "to": "+15550001111",
        "from_": "+15551234567",
        "body": "hi",
        "status": status,
        "created_at": T0,
        "cost": 0.01,
    }
    values.update(overrides)
    return Message(**values)


class TestCreate:
    
    def test_create_returns_queued_message(self):
        store = MessageStore(cost=0.02)
        message = store.create("+15550001111", "+15551234567", "hi")
        
        assert message.id.startswith("msg_")
        assert message.status is MessageStatus.QUEUED
        assert message.cost == 0.02
        assert message.delivered_at is None
        assert store.get(message.id) == message
    
    @pytest.mark.parametrize("to,from_,body", [
        ("", "+15551234567", "hi"),
        ("   ", "+15551234567", "hi"),
        ("+15550001111", "+15551234567", ""),
        ("+15550001111", "", "hi"),
    ])
    def test_create_rejects_missing_fields(self, to, from_, body):
        store = MessageStore()
        with pytest.raises(ValidationError):
            store.create(to, from_, body)
        assert store.count() == 0
    
    @pytest.mark.parametrize("to,from_,body", [
        ("   ", "+15550001111", "reply"),
        ("+15551234567", "  ", "reply"),
        ("+15551234567", "+15550001111", "\t\n"),
    ])
    def test_record_inbound_rejects_blank_fields(self, to, from_, body):
        store = MessageStore()
        with pytest.raises(ValidationError):
            store.record_inbound(to, from_, body)
        assert store.count() == 0
    
    def test_record_inbound_is_delivered_on_arrival(self):
        store = MessageStore()
        message = store.record_inbound("+15551234567", "+15550001111", "reply")
        
        assert message.status is MessageStatus.DELIVERED
        assert message.delivered_at == message.created_at


class TestLookup:
    
    def test_get_unknown_raises_not_found(self):
        with pytest.raises(NotFoundError):
            MessageStore().get("msg_missing")
    
    def test_update_unknown_returns_none(self):
        assert MessageStore().update("msg_missing", lambda m: m) is None
    
    def test_delete(self):
        store = MessageStore()
        message = store.create("+15550001111", "+15551234567", "hi")
        
        assert store.delete(message.id) is True
        assert store.delete(message.id) is False
        with pytest.raises(NotFoundError):
            store.get(message.id)
    
    def test_snapshots_are_not_affected_by_updates(self):
        store = MessageStore()
        before = store.create("+15550001111", "+15551234567", "hi")
        store.update(before.id, lambda m: m.with_status(MessageStatus.SENT))
        
        assert before.status is MessageStatus.QUEUED
        assert store.get(before.id).status is MessageStatus.SENT


class TestStatusTransitions:
    
    def test_forward_transitions(self):
        sent = make_message().with_status(MessageStatus.SENT)
        delivered = sent.with_status(MessageStatus.DELIVERED, at=T0 + timedelta(seconds=1))
        
        assert sent.status is MessageStatus.SENT
        assert sent.delivered_at is None
        assert delivered.status is MessageStatus.DELIVERED
        assert delivered.delivered_at == T0 + timedelta(seconds=1)
    
    def test_queued_may_skip_to_delivered(self):
        assert make_message().with_status(MessageStatus.DELIVERED).delivered_at is not None
    
    @pytest.mark.parametrize("current,target", [
        (MessageStatus.SENT, MessageStatus.QUEUED),
        (MessageStatus.SENT, MessageStatus.SENT),
        (MessageStatus.DELIVERED, MessageStatus.SENT),
        (MessageStatus.DELIVERED, MessageStatus.FAILED),
        (MessageStatus.FAILED, MessageStatus.DELIVERED),
    ])
    def test_regressions_and_terminal_exits_are_refused(self, current, target):
        with pytest.raises(InvalidTransitionError):
            make_message(status=current).with_status(target)
    
    def test_failure_records_error(self):
        failed = make_message(status=MessageStatus.SENT).with_status(MessageStatus.FAILED, error="carrier rejected")
        assert failed.error == "carrier rejected"
        assert failed.delivered_at is None
    
    def test_wire_form_uses_from_key_and_z_timestamps(self):
        data = make_message().to_dict()
        assert data["from"] == "+15551234567"
        assert data["created_at"] == "2024-01-01T12:00:00.000Z"
        assert data["delivered_at"] is None
        assert to_iso(None) is None
    
    def test_naive_timestamps_render_as_utc(self):
        assert to_iso(datetime(2026, 1, 1)) == "2026-01-01T00:00:00.000Z"


class TestListing:
    
    @pytest.fixture
    def store(self):
        store = MessageStore()
        store.create("+15550001111", "+15551234567", "Your code is 1234")
        store.create("+15550002222", "+15551234567", "Welcome")
        store.create("+15550001111", "+15551234567", "Bye")
        return store
    
    def test_newest_first(self, store):
        page = store.list()
        assert [m.body for m in page.items] == ["Bye", "Welcome", "Your code is 1234"]
        assert page.total == 3
        assert page.has_more is False
    
    def test_pagination(self, store):
        page = store.list(limit=2, offset=0)
        assert len(page.items) == 2
        assert page.has_more is True
        
        rest = store.list(limit=2, offset=2)
        assert [m.body for m in rest.items] == ["Your code is 1234"]
        assert rest.has_more is False
    
    @pytest.mark.parametrize("limit,offset", [(0, 0), (101, 0), (20, -1)])
    def test_invalid_paging_is_rejected(self, store, limit, offset):
        with pytest.raises(ValidationError):
            store.list(limit=limit, offset=offset)
    
    def test_search_is_case_insensitive(self, store):
        assert store.list(MessageFilter(search="CODE")).total == 1
    
    def test_phone_filter(self, store):
        assert store.list(MessageFilter(phone="0001111")).total == 2
    
    def test_status_filter(self, store):
        assert store.list(MessageFilter(status=MessageStatus.QUEUED)).total == 3
        assert store.list(MessageFilter(status=MessageStatus.SENT)).total == 0
    
    def test_date_range_is_inclusive(self):
        store = MessageStore()
        message = store.create("+15550001111", "+15551234567", "hi")
        at = message.created_at
        
        assert store.list(MessageFilter(from_date=at, to_date=at)).total == 1
        assert store.list(MessageFilter(from_date=at + timedelta(microseconds=1))).total == 0
        assert store.list(MessageFilter(to_date=at - timedelta(microseconds=1))).total == 0
    
    def test_naive_dates_are_read_as_utc(self):
        store = MessageStore()
        store.create("+15550001111", "+15551234567", "hi")
        assert store.list(MessageFilter(from_date=datetime(2000, 1, 1))).total == 1
    
    def test_export_is_oldest_first(self, store):
        assert [m.body for m in store.export()] == ["Your code is 1234", "Welcome", "Bye"]
        assert [m.body for m in store.export(MessageFilter(phone="+15550002222"))] == ["Welcome"]
