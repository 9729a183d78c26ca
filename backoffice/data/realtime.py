"""Cache invalidation driven by the store's change feed.

Consumes row-change events and drops the cached read models that depend on
the changed table. Subscriptions are opened by :meth:`CacheInvalidator.start`
and released by :meth:`CacheInvalidator.stop` (or by leaving the ``with``
block), so the invalidator's lifetime is explicit.
"""

from __future__ import annotations

import logging

from domain.models import ChangeEvent, ChangeType
from domain.ports import CachePort, ChangeFeedPort
from domain.reporting import (
    INVOICES_PREFIX,
    MERCHANTS_PREFIX,
    PAYMENT_STATS_PREFIX,
    PAYMENTS_PREFIX,
)

logger = logging.getLogger(__name__)

ALL_PREFIXES = (PAYMENTS_PREFIX, INVOICES_PREFIX, MERCHANTS_PREFIX, PAYMENT_STATS_PREFIX)

# Invoice columns whose change affects payment-derived read models.
PAYMENT_FIELDS = ("paid_amount", "remaining_amount", "status")

WATCHED_TABLES = ("payments", "invoices", "merchants")


def prefixes_for(event: ChangeEvent) -> tuple[str, ...]:
    """Cache prefixes made stale by *event*."""
    if event.table == "payments":
        return ALL_PREFIXES
    if event.table == "invoices":
        if event.change_type is ChangeType.UPDATE and any(
            event.old.get(f) != event.new.get(f) for f in PAYMENT_FIELDS
        ):
            return ALL_PREFIXES
        return (INVOICES_PREFIX, MERCHANTS_PREFIX)
    if event.table == "merchants":
        return (MERCHANTS_PREFIX, INVOICES_PREFIX, PAYMENTS_PREFIX)
    return ()


class CacheInvalidator:
    """Subscribes to the change feed and invalidates cache prefixes."""

    def __init__(self, feed: ChangeFeedPort, cache: CachePort, tables=WATCHED_TABLES) -> None:
        self._feed = feed
        self._cache = cache
        self._tables = tuple(tables)
        self._subscriptions = []

    @property
    def running(self) -> bool:
        return bool(self._subscriptions)

    def start(self) -> "CacheInvalidator":
        if self._subscriptions:
            return self
        self._subscriptions = [self._feed.subscribe(t, self.handle) for t in self._tables]
        logger.info("Cache invalidator listening on %s", ", ".join(self._tables))
        return self

    def stop(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        logger.info("Cache invalidator stopped")

    def handle(self, event: ChangeEvent) -> None:
        prefixes = prefixes_for(event)
        for prefix in prefixes:
            self._cache.invalidate(prefix)
        logger.debug(
            "%s on %s invalidated %s", event.change_type.value, event.table, prefixes or "nothing"
        )

    def refresh_all(self) -> None:
        """Drop every cached read model regardless of events."""
        for prefix in ALL_PREFIXES:
            self._cache.invalidate(prefix)

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False
