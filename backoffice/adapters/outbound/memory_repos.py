"""In-memory implementations of the repository ports.

Intended for tests, demos and dry runs. Rows are copied on the way in and
out so callers never share mutable state with the store, and the same
change events as the SQLAlchemy adapters are published when a feed is
attached.
"""

from __future__ import annotations

import copy
from datetime import date, datetime, timezone

from backoffice.adapters.outbound.change_feed import publish_change
from domain.errors import InvoiceNotFoundError, MerchantNotFoundError, PaymentNotFoundError
from domain.models import ChangeEvent, ChangeType, Invoice, Merchant, Payment
from domain.ports import ChangeFeedPort, InvoiceRepository, MerchantRepository, PaymentRepository


def _snapshot(obj) -> dict:
    row = {}
    for key, value in vars(obj).items():
        if hasattr(value, "value"):
            value = value.value
        elif isinstance(value, (date, datetime)):
            value = value.isoformat()
        elif not isinstance(value, (str, int, type(None), list)):
            value = str(value)
        row[key] = value
    row.pop("items", None)
    return row


class _InMemoryRepository:
    table = ""

    def __init__(self, change_feed: ChangeFeedPort | None = None) -> None:
        self._rows: dict = {}
        self._feed = change_feed

    def _publish(self, change_type, old=None, new=None):
        if self._feed is not None:
            publish_change(
                self._feed,
                ChangeEvent(table=self.table, change_type=change_type, old=old or {}, new=new or {}),
            )


class InMemoryInvoiceRepository(_InMemoryRepository, InvoiceRepository):
    table = "invoices"

    def __init__(self, change_feed=None, payments: "InMemoryPaymentRepository | None" = None):
        super().__init__(change_feed)
        self._payments = payments

    def get(self, invoice_id):
        row = self._rows.get(invoice_id)
        return copy.deepcopy(row) if row is not None else None

    def list_all(self):
        return [copy.deepcopy(row) for row in reversed(list(self._rows.values()))]

    def list_by_merchant(self, merchant_id):
        return [row for row in self.list_all() if row.merchant_id == merchant_id]

    def add(self, invoice: Invoice) -> Invoice:
        if invoice.remaining_amount is None:
            invoice.remaining_amount = invoice.amount
        invoice.created_at = invoice.created_at or datetime.now(timezone.utc)
        self._rows[invoice.id] = copy.deepcopy(invoice)
        self._publish(ChangeType.INSERT, new=_snapshot(invoice))
        return invoice

    def update(self, invoice: Invoice) -> Invoice:
        current = self._rows.get(invoice.id)
        if current is None:
            raise InvoiceNotFoundError(invoice.id)
        old = _snapshot(current)
        updated = copy.deepcopy(invoice)
        updated.paid_amount = current.paid_amount
        updated.remaining_amount = current.remaining_amount
        self._rows[invoice.id] = updated
        self._publish(ChangeType.UPDATE, old=old, new=_snapshot(updated))
        return invoice

    def save_reconciliation(self, invoice_id, paid, remaining, status):
        current = self._rows.get(invoice_id)
        if current is None:
            raise InvoiceNotFoundError(invoice_id)
        old = _snapshot(current)
        current.paid_amount = paid
        current.remaining_amount = remaining
        current.status = status
        self._publish(ChangeType.UPDATE, old=old, new=_snapshot(current))

    def delete(self, invoice_id):
        current = self._rows.pop(invoice_id, None)
        if current is None:
            raise InvoiceNotFoundError(invoice_id)
        if self._payments is not None:
            self._payments.delete_by_invoice(invoice_id)
        self._publish(ChangeType.DELETE, old=_snapshot(current))


class InMemoryPaymentRepository(_InMemoryRepository, PaymentRepository):
    table = "payments"

    def __init__(self, change_feed=None):
        super().__init__(change_feed)
        self._next_id = 1

    def get(self, payment_id):
        row = self._rows.get(payment_id)
        return copy.deepcopy(row) if row is not None else None

    def list_by_invoice(self, invoice_id):
        return [row for row in self.list_all() if row.invoice_id == invoice_id]

    def list_all(self):
        return [copy.deepcopy(row) for row in reversed(list(self._rows.values()))]

    def add(self, payment: Payment) -> Payment:
        payment.id = self._next_id
        self._next_id += 1
        payment.payment_date = payment.payment_date or date.today()
        payment.created_at = payment.created_at or datetime.now(timezone.utc)
        self._rows[payment.id] = copy.deepcopy(payment)
        self._publish(ChangeType.INSERT, new=_snapshot(payment))
        return payment

    def update(self, payment: Payment) -> Payment:
        current = self._rows.get(payment.id)
        if current is None:
            raise PaymentNotFoundError(payment.id)
        self._rows[payment.id] = copy.deepcopy(payment)
        self._publish(ChangeType.UPDATE, old=_snapshot(current), new=_snapshot(payment))
        return payment

    def delete(self, payment_id):
        current = self._rows.pop(payment_id, None)
        if current is None:
            return None
        self._publish(ChangeType.DELETE, old=_snapshot(current))
        return copy.deepcopy(current)

    def delete_by_invoice(self, invoice_id) -> int:
        """Cascade helper used when the owning invoice is deleted."""
        doomed = [pid for pid, row in self._rows.items() if row.invoice_id == invoice_id]
        for payment_id in doomed:
            self.delete(payment_id)
        return len(doomed)


class InMemoryMerchantRepository(_InMemoryRepository, MerchantRepository):
    table = "merchants"

    def __init__(self, change_feed=None):
        super().__init__(change_feed)
        self._next_id = 1

    def get(self, merchant_id):
        row = self._rows.get(merchant_id)
        return copy.deepcopy(row) if row is not None else None

    def list_all(self):
        return [copy.deepcopy(row) for row in reversed(list(self._rows.values()))]

    def add(self, merchant: Merchant) -> Merchant:
        merchant.id = self._next_id
        self._next_id += 1
        merchant.join_date = merchant.join_date or date.today()
        self._rows[merchant.id] = copy.deepcopy(merchant)
        self._publish(ChangeType.INSERT, new=_snapshot(merchant))
        return merchant

    def update(self, merchant: Merchant) -> Merchant:
        current = self._rows.get(merchant.id)
        if current is None:
            raise MerchantNotFoundError(merchant.id)
        self._rows[merchant.id] = copy.deepcopy(merchant)
        self._publish(ChangeType.UPDATE, old=_snapshot(current), new=_snapshot(merchant))
        return merchant

    def delete(self, merchant_id):
        current = self._rows.pop(merchant_id, None)
        if current is None:
            raise MerchantNotFoundError(merchant_id)
        self._publish(ChangeType.DELETE, old=_snapshot(current))
