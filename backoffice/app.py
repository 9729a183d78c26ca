"""Composition root: wires store adapters, cache, change feed and services.

Every collaborator is created here and injected explicitly; nothing else in
the code base holds a module-wide store client.

    with create_app(load_config()) as app:
        app.ledger.record_payment(...)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from backoffice.adapters.outbound.change_feed import InMemoryChangeFeed, RedisChangeFeed
from backoffice.adapters.outbound.memory_repos import (
    InMemoryInvoiceRepository,
    InMemoryMerchantRepository,
    InMemoryPaymentRepository,
)
from backoffice.adapters.outbound.redis_cache import (
    InMemoryCacheAdapter,
    RedisCacheAdapter,
    connect_redis,
)
from backoffice.adapters.outbound.sqlalchemy_repos import (
    SqlAlchemyInvoiceRepository,
    SqlAlchemyMerchantRepository,
    SqlAlchemyPaymentRepository,
)
from backoffice.data.db import check_schema, get_engine, get_session, init_db
from backoffice.data.realtime import CacheInvalidator
from domain.ledger_service import InvoiceLedgerService
from domain.ports import (
    CachePort,
    ChangeFeedPort,
    InvoiceRepository,
    MerchantRepository,
    PaymentRepository,
)
from domain.reporting import LedgerReports

logger = logging.getLogger(__name__)

MEMORY_STORE = "memory"


@dataclass
class BackOffice:
    merchants: MerchantRepository
    invoices: InvoiceRepository
    payments: PaymentRepository
    cache: CachePort
    feed: ChangeFeedPort
    invalidator: CacheInvalidator
    ledger: InvoiceLedgerService
    reports: LedgerReports
    config: dict
    engine: object = None
    session: object = None

    def close(self) -> None:
        self.invalidator.stop()
        if self.session is not None:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def _build_feed(config: dict, redis_client) -> ChangeFeedPort:
    realtime = config.get("realtime", {})
    if realtime.get("backend") == "redis":
        if redis_client is not None:
            return RedisChangeFeed(
                redis_client, channel_prefix=realtime.get("channel_prefix", "ledger:changes:")
            )
        logger.warning("Redis change feed requested but Redis is unavailable, using in-process feed")
    return InMemoryChangeFeed()


def create_app(config: dict, create_schema: bool = True, verify_schema: bool = True) -> BackOffice:
    """Build a :class:`BackOffice` from a loaded config dict."""
    cache_cfg = config.get("cache", {})
    redis_client = connect_redis(cache_cfg.get("redis_url"))
    if redis_client is not None:
        cache: CachePort = RedisCacheAdapter(redis_client, namespace=cache_cfg.get("namespace", "ledger:"))
    else:
        cache = InMemoryCacheAdapter()
    feed = _build_feed(config, redis_client)

    engine = session = None
    db_url = config.get("database", {}).get("url")
    if db_url == MEMORY_STORE:
        payments = InMemoryPaymentRepository(feed)
        invoices = InMemoryInvoiceRepository(feed, payments=payments)
        merchants = InMemoryMerchantRepository(feed)
    else:
        engine = get_engine(db_url)
        if create_schema:
            init_db(engine)
        if verify_schema:
            check_schema(engine)
        session = get_session(engine)
        merchants = SqlAlchemyMerchantRepository(session, feed)
        invoices = SqlAlchemyInvoiceRepository(session, feed)
        payments = SqlAlchemyPaymentRepository(session, feed)

    rec_cfg = config.get("reconciliation", {})
    mark_overdue = bool(rec_cfg.get("mark_overdue", False))
    ledger = InvoiceLedgerService(invoices, payments, mark_overdue=mark_overdue)
    reports = LedgerReports(
        invoices, payments, merchants, cache,
        ttl=int(cache_cfg.get("ttl", 300)),
        mark_overdue=mark_overdue,
    )
    invalidator = CacheInvalidator(feed, cache).start()

    return BackOffice(
        merchants=merchants,
        invoices=invoices,
        payments=payments,
        cache=cache,
        feed=feed,
        invalidator=invalidator,
        ledger=ledger,
        reports=reports,
        config=config,
        engine=engine,
        session=session,
    )
