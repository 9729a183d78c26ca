"""Domain ports — abstract interfaces for repositories and infrastructure.

Only stdlib (abc) and domain.models imports allowed. Implementations are
injected into services explicitly; there is no module-wide store client.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from decimal import Decimal

from domain.models import ChangeEvent, Invoice, InvoiceStatus, Merchant, Payment


# ── Repository Ports ──────────────────────────────────────────────────────


class InvoiceRepository(ABC):
    """Persistence port for invoices."""

    @abstractmethod
    def get(self, invoice_id: str) -> Invoice | None: ...

    @abstractmethod
    def list_all(self) -> list[Invoice]: ...

    @abstractmethod
    def list_by_merchant(self, merchant_id: int) -> list[Invoice]: ...

    @abstractmethod
    def add(self, invoice: Invoice) -> Invoice: ...

    @abstractmethod
    def update(self, invoice: Invoice) -> Invoice: ...

    @abstractmethod
    def save_reconciliation(
        self, invoice_id: str, paid: Decimal, remaining: Decimal, status: InvoiceStatus
    ) -> None: ...

    @abstractmethod
    def delete(self, invoice_id: str) -> None: ...


class PaymentRepository(ABC):
    """Persistence port for payments."""

    @abstractmethod
    def get(self, payment_id: int) -> Payment | None: ...

    @abstractmethod
    def list_by_invoice(self, invoice_id: str) -> list[Payment]: ...

    @abstractmethod
    def list_all(self) -> list[Payment]: ...

    @abstractmethod
    def add(self, payment: Payment) -> Payment: ...

    @abstractmethod
    def update(self, payment: Payment) -> Payment: ...

    @abstractmethod
    def delete(self, payment_id: int) -> Payment | None: ...


class MerchantRepository(ABC):
    """Persistence port for merchants."""

    @abstractmethod
    def get(self, merchant_id: int) -> Merchant | None: ...

    @abstractmethod
    def list_all(self) -> list[Merchant]: ...

    @abstractmethod
    def add(self, merchant: Merchant) -> Merchant: ...

    @abstractmethod
    def update(self, merchant: Merchant) -> Merchant: ...

    @abstractmethod
    def delete(self, merchant_id: int) -> None: ...


# ── Infrastructure Ports ──────────────────────────────────────────────────


class CachePort(ABC):
    """Port for key-value caching (Redis, in-memory, etc.)."""

    @abstractmethod
    def get(self, key: str) -> object | None: ...

    @abstractmethod
    def set(self, key: str, value: object, ttl: int = 3600) -> None: ...

    @abstractmethod
    def invalidate(self, prefix: str) -> None: ...


class Subscription(ABC):
    """Handle on a change-feed subscription; closing it stops delivery."""

    @abstractmethod
    def unsubscribe(self) -> None: ...

    @property
    @abstractmethod
    def active(self) -> bool: ...

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.unsubscribe()
        return False


class ChangeFeedPort(ABC):
    """Port for the store's push notifications of row changes."""

    @abstractmethod
    def publish(self, event: ChangeEvent) -> None: ...

    @abstractmethod
    def subscribe(
        self, table: str, handler: Callable[[ChangeEvent], None]
    ) -> Subscription: ...
