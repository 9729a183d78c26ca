"""Integration tests for the change-feed adapters.

The Redis feed is exercised against a MagicMock client; no Redis server
is needed.
"""

import json
from unittest.mock import MagicMock

import pytest
import redis

from backoffice.adapters.outbound.change_feed import (
    ALL_TABLES,
    InMemoryChangeFeed,
    RedisChangeFeed,
    decode_event,
    encode_event,
    publish_change,
)
from domain.models import ChangeEvent, ChangeType
from domain.ports import ChangeFeedPort


def _event(table="payments", change_type=ChangeType.INSERT, **new):
    return ChangeEvent(table=table, change_type=change_type, new=new)


class TestEventCodec:
    def test_encode_shape(self):
        payload = json.loads(encode_event(_event(amount="10.00")))
        assert payload == {"table": "payments", "type": "INSERT", "old": {}, "new": {"amount": "10.00"}}

    def test_decode_bytes(self):
        raw = b'{"table": "invoices", "type": "DELETE", "old": {"id": "INV-1"}}'
        event = decode_event(raw)
        assert event.table == "invoices"
        assert event.change_type is ChangeType.DELETE
        assert event.old == {"id": "INV-1"}
        assert event.new == {}


class TestInMemoryChangeFeed:
    def test_implements_port(self):
        assert isinstance(InMemoryChangeFeed(), ChangeFeedPort)

    def test_delivers_to_table_subscribers(self):
        feed = InMemoryChangeFeed()
        payments, invoices = [], []
        feed.subscribe("payments", payments.append)
        feed.subscribe("invoices", invoices.append)

        feed.publish(_event("payments"))
        assert len(payments) == 1
        assert invoices == []

    def test_wildcard_receives_everything(self):
        feed = InMemoryChangeFeed()
        seen = []
        feed.subscribe(ALL_TABLES, seen.append)
        feed.publish(_event("payments"))
        feed.publish(_event("merchants"))
        assert [e.table for e in seen] == ["payments", "merchants"]

    def test_unsubscribe_stops_delivery(self):
        feed = InMemoryChangeFeed()
        seen = []
        subscription = feed.subscribe("payments", seen.append)
        subscription.unsubscribe()
        feed.publish(_event())
        assert seen == []
        assert not subscription.active
        assert feed.subscriber_count == 0

    def test_unsubscribe_twice_is_harmless(self):
        feed = InMemoryChangeFeed()
        subscription = feed.subscribe("payments", lambda e: None)
        subscription.unsubscribe()
        subscription.unsubscribe()

    def test_context_manager(self):
        feed = InMemoryChangeFeed()
        with feed.subscribe("payments", lambda e: None):
            assert feed.subscriber_count == 1
        assert feed.subscriber_count == 0

    def test_failing_handler_does_not_block_others(self):
        feed = InMemoryChangeFeed()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        feed.subscribe("payments", broken)
        feed.subscribe("payments", seen.append)
        feed.publish(_event())
        assert len(seen) == 1


class TestRedisChangeFeed:
    @pytest.fixture
    def client(self):
        return MagicMock()

    def test_publish_uses_table_channel(self, client):
        feed = RedisChangeFeed(client)
        feed.publish(_event("invoices", ChangeType.UPDATE, status="paid"))
        channel, payload = client.publish.call_args.args
        assert channel == "ledger:changes:invoices"
        assert json.loads(payload)["new"] == {"status": "paid"}

    def test_subscribe_table(self, client):
        feed = RedisChangeFeed(client, channel_prefix="shop:")
        seen = []
        feed.subscribe("payments", seen.append)

        pubsub = client.pubsub.return_value
        handler = pubsub.subscribe.call_args.kwargs["shop:payments"]
        pubsub.run_in_thread.assert_called_once()

        handler({"channel": b"shop:payments", "data": encode_event(_event())})
        assert len(seen) == 1
        assert seen[0].change_type is ChangeType.INSERT

    def test_subscribe_all_uses_pattern(self, client):
        feed = RedisChangeFeed(client)
        feed.subscribe(ALL_TABLES, lambda e: None)
        pubsub = client.pubsub.return_value
        assert "ledger:changes:*" in pubsub.psubscribe.call_args.kwargs
        pubsub.subscribe.assert_not_called()

    def test_malformed_message_dropped(self, client):
        feed = RedisChangeFeed(client)
        seen = []
        feed.subscribe("payments", seen.append)
        handler = client.pubsub.return_value.subscribe.call_args.kwargs["ledger:changes:payments"]
        handler({"channel": "ledger:changes:payments", "data": "not json"})
        assert seen == []

    def test_unsubscribe_stops_worker(self, client):
        feed = RedisChangeFeed(client)
        subscription = feed.subscribe("payments", lambda e: None)
        pubsub = client.pubsub.return_value
        worker = pubsub.run_in_thread.return_value

        subscription.unsubscribe()
        subscription.unsubscribe()
        worker.stop.assert_called_once()
        pubsub.close.assert_called_once()
        assert not subscription.active


class TestPublishChange:
    def test_delivers(self):
        feed = InMemoryChangeFeed()
        assert publish_change(feed, _event(id=1)) is True
        assert len(feed.published) == 1

    def test_transport_error_is_contained(self):
        client = MagicMock()
        client.publish.side_effect = redis.exceptions.ConnectionError("down")
        assert publish_change(RedisChangeFeed(client), _event(id=1)) is False
