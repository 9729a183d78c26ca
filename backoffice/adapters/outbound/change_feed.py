"""Change-feed adapters implementing ChangeFeedPort.

The hosted store pushes a notification for each inserted, updated or
deleted row. ``InMemoryChangeFeed`` delivers events synchronously inside
the process; ``RedisChangeFeed`` carries them over Redis pub/sub so other
processes (workers, other app instances) see the same stream.

Subscribing to ``"*"`` receives events for every table.
"""

from __future__ import annotations

import json
import logging
import threading

from domain.models import ChangeEvent, ChangeType
from domain.ports import ChangeFeedPort, Subscription

logger = logging.getLogger(__name__)

ALL_TABLES = "*"


def encode_event(event: ChangeEvent) -> str:
    return json.dumps(
        {
            "table": event.table,
            "type": event.change_type.value,
            "old": event.old,
            "new": event.new,
        },
        default=str,
    )


def decode_event(raw) -> ChangeEvent:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    payload = json.loads(raw)
    return ChangeEvent(
        table=payload["table"],
        change_type=ChangeType(payload["type"]),
        old=payload.get("old") or {},
        new=payload.get("new") or {},
    )


def publish_change(feed: ChangeFeedPort, event: ChangeEvent) -> bool:
    """Announce a committed change; a feed failure is logged, never raised.

    The row is already committed when this runs, so callers carry on
    (and recompute) whatever happens to the notification channel.
    """
    try:
        feed.publish(event)
    except Exception:
        logger.exception(
            "Change notification failed for %s %s (row is committed)",
            event.change_type.value, event.table,
        )
        return False
    return True


# ── In-process feed ──────────────────────────────────────────────────────


class _LocalSubscription(Subscription):
    def __init__(self, feed: "InMemoryChangeFeed", table: str, handler):
        self._feed = feed
        self.table = table
        self.handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._feed._remove(self)
            self._active = False


class InMemoryChangeFeed(ChangeFeedPort):
    """Synchronous in-process publish/subscribe.

    A handler that raises is logged and skipped; the remaining handlers
    still receive the event.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: list[_LocalSubscription] = []
        self.published: list[ChangeEvent] = []

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            self.published.append(event)
            targets = [
                s for s in self._subscriptions if s.table in (event.table, ALL_TABLES)
            ]
        for subscription in targets:
            try:
                subscription.handler(event)
            except Exception:
                logger.exception(
                    "Change handler failed for %s %s", event.change_type.value, event.table
                )

    def subscribe(self, table: str, handler) -> Subscription:
        subscription = _LocalSubscription(self, table, handler)
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug("Subscribed to %s changes", table)
        return subscription

    def _remove(self, subscription: _LocalSubscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)


# ── Redis pub/sub feed ───────────────────────────────────────────────────


class _RedisSubscription(Subscription):
    def __init__(self, pubsub, worker):
        self._pubsub = pubsub
        self._worker = worker
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._worker.stop()
        self._pubsub.close()


class RedisChangeFeed(ChangeFeedPort):
    """ChangeFeedPort over Redis pub/sub, one channel per table.

    Each subscription owns a pub/sub connection and a worker thread that
    invokes the handler; closing the subscription stops both.
    """

    def __init__(self, redis_client, channel_prefix: str = "ledger:changes:", poll_interval: float = 0.1):
        self._redis = redis_client
        self._prefix = channel_prefix
        self._poll_interval = poll_interval

    def channel(self, table: str) -> str:
        return f"{self._prefix}{table}"

    def publish(self, event: ChangeEvent) -> None:
        self._redis.publish(self.channel(event.table), encode_event(event))

    def subscribe(self, table: str, handler) -> Subscription:
        def on_message(message):
            try:
                event = decode_event(message["data"])
            except (ValueError, KeyError) as exc:
                logger.warning("Dropping malformed change message on %s: %s", message.get("channel"), exc)
                return
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Change handler failed for %s %s", event.change_type.value, event.table
                )

        pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
        if table == ALL_TABLES:
            pubsub.psubscribe(**{self.channel(ALL_TABLES): on_message})
        else:
            pubsub.subscribe(**{self.channel(table): on_message})
        worker = pubsub.run_in_thread(sleep_time=self._poll_interval, daemon=True)
        logger.debug("Subscribed to Redis channel %s", self.channel(table))
        return _RedisSubscription(pubsub, worker)
