"""Tests for domain port interfaces (ABC contracts).

Every port must be an ABC that cannot be instantiated directly.
"""

from __future__ import annotations

import pytest
from abc import ABC

from domain.ports import (
    # Repository ports
    InvoiceRepository,
    PaymentRepository,
    MerchantRepository,
    # Infrastructure ports
    CachePort,
    ChangeFeedPort,
    Subscription,
)


# ── Repository ports are ABCs ────────────────────────────────────────────


class TestInvoiceRepository:
    def test_is_abstract(self):
        assert issubclass(InvoiceRepository, ABC)

    def test_cannot_instantiate(self):
        with pytest.raises(TypeError):
            InvoiceRepository()


class TestPaymentRepository:
    def test_is_abstract(self):
        assert issubclass(PaymentRepository, ABC)

    def test_cannot_instantiate(self):
        with pytest.raises(TypeError):
            PaymentRepository()


class TestMerchantRepository:
    def test_is_abstract(self):
        assert issubclass(MerchantRepository, ABC)

    def test_cannot_instantiate(self):
        with pytest.raises(TypeError):
            MerchantRepository()


# ── Infrastructure ports are ABCs ────────────────────────────────────────


class TestCachePort:
    def test_is_abstract(self):
        assert issubclass(CachePort, ABC)

    def test_cannot_instantiate(self):
        with pytest.raises(TypeError):
            CachePort()


class TestChangeFeedPort:
    def test_is_abstract(self):
        assert issubclass(ChangeFeedPort, ABC)

    def test_cannot_instantiate(self):
        with pytest.raises(TypeError):
            ChangeFeedPort()


class TestSubscription:
    def test_is_abstract(self):
        assert issubclass(Subscription, ABC)

    def test_cannot_instantiate(self):
        with pytest.raises(TypeError):
            Subscription()

    def test_context_manager_unsubscribes(self):
        class _Handle(Subscription):
            def __init__(self):
                self._active = True

            def unsubscribe(self):
                self._active = False

            @property
            def active(self):
                return self._active

        with _Handle() as handle:
            assert handle.active
        assert not handle.active


# ── Concrete implementations satisfy the ports ───────────────────────────


class TestConcreteAdapters:
    def test_in_memory_repositories(self):
        from backoffice.adapters.outbound.memory_repos import (
            InMemoryInvoiceRepository,
            InMemoryMerchantRepository,
            InMemoryPaymentRepository,
        )
        assert isinstance(InMemoryInvoiceRepository(), InvoiceRepository)
        assert isinstance(InMemoryPaymentRepository(), PaymentRepository)
        assert isinstance(InMemoryMerchantRepository(), MerchantRepository)

    def test_cache_adapters(self):
        from backoffice.adapters.outbound.redis_cache import (
            InMemoryCacheAdapter,
            RedisCacheAdapter,
        )
        assert isinstance(InMemoryCacheAdapter(), CachePort)
        assert isinstance(RedisCacheAdapter(), CachePort)

    def test_change_feed(self):
        from backoffice.adapters.outbound.change_feed import InMemoryChangeFeed
        assert isinstance(InMemoryChangeFeed(), ChangeFeedPort)
