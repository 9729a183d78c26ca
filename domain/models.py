"""Domain models — pure Python, zero external dependencies.

Only stdlib imports allowed: dataclasses, datetime, decimal, enum.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class InvoiceStatus(Enum):
    """Lifecycle status of an invoice."""

    DRAFT = "draft"
    PENDING = "pending"
    PARTIALLY_PAID = "partially-paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


# Statuses that automatic recomputation must never overwrite.
STICKY_STATUSES = frozenset({InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED})


class PaymentMethod(Enum):
    """How a payment was made."""

    CASH = "cash"
    BANK_TRANSFER = "bank-transfer"
    CHEQUE = "cheque"
    CREDIT_CARD = "credit-card"


class MerchantStatus(Enum):
    """Account status of a merchant."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


class MerchantCategory(Enum):
    """Business category of a merchant."""

    RETAIL = "retail"
    WHOLESALE = "wholesale"
    SERVICES = "services"


class ChangeType(Enum):
    """Kind of row change pushed by the store."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


# ── Value Objects ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class LineItem:
    """A single line on an invoice."""

    name: str
    quantity: int = 1
    price: Decimal = Decimal(0)

    @property
    def total(self) -> Decimal:
        return Decimal(self.quantity) * self.price


# ── Entities ────────────────────────────────────────────────────────────


@dataclass
class Merchant:
    """A merchant billed through invoices."""

    name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    status: MerchantStatus = MerchantStatus.ACTIVE
    category: MerchantCategory = MerchantCategory.RETAIL
    join_date: date | None = None
    id: int | None = None


@dataclass
class Invoice:
    """An invoice issued to a merchant.

    ``paid_amount`` and ``remaining_amount`` are the stored aggregates; they
    are derived from the payment rows and may be stale until recomputed.
    """

    id: str
    amount: Decimal
    merchant_id: int | None = None
    status: InvoiceStatus = InvoiceStatus.PENDING
    issue_date: date | None = None
    due_date: date | None = None
    items: list[LineItem] = field(default_factory=list)
    paid_amount: Decimal = Decimal(0)
    remaining_amount: Decimal | None = None
    merchant_name: str | None = None
    created_at: datetime | None = None


@dataclass
class Payment:
    """A (possibly partial) payment recorded against an invoice."""

    invoice_id: str
    amount: Decimal
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_date: date | None = None
    notes: str | None = None
    merchant_id: int | None = None
    id: int | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class ChangeEvent:
    """A row change notification from the store's push channel."""

    table: str
    change_type: ChangeType
    old: dict = field(default_factory=dict)
    new: dict = field(default_factory=dict)


# ── Result Value Objects ────────────────────────────────────────────────


@dataclass(frozen=True)
class Reconciliation:
    """Read-only result of reconciling an invoice against its payments."""

    invoice_id: str
    amount: Decimal
    total_paid: Decimal
    remaining: Decimal
    percentage: Decimal
    status: InvoiceStatus


@dataclass(frozen=True)
class SyncReport:
    """Outcome of a batch recomputation over many invoices."""

    total: int
    succeeded: int
    failed: int
    failed_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class SyncCheck:
    """Comparison of an invoice's stored paid amount with its payment rows."""

    invoice_id: str
    invoice_amount: Decimal
    stored_paid: Decimal
    actual_paid: Decimal
    in_sync: bool
    status: InvoiceStatus


@dataclass(frozen=True)
class LedgerTotals:
    """Aggregated invoice figures for a merchant or the whole ledger."""

    invoice_count: int = 0
    total_amount: Decimal = Decimal(0)
    total_paid: Decimal = Decimal(0)
    total_remaining: Decimal = Decimal(0)


@dataclass(frozen=True)
class PaymentStats:
    """Ledger-wide payment statistics."""

    total_paid: Decimal
    total_invoiced: Decimal
    total_remaining: Decimal
    by_method: dict = field(default_factory=dict)
    payment_count: int = 0
    fully_paid_invoices: int = 0
    partially_paid_invoices: int = 0
    unpaid_invoices: int = 0
    average_payment: Decimal = Decimal(0)
