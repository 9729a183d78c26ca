"""Invoice ledger service — reconciliation glue over the repository ports."""

from __future__ import annotations

import logging
from decimal import Decimal

from domain.errors import (
    InvoiceNotFoundError,
    LedgerError,
    PaymentNotFoundError,
)
from domain.models import Invoice, Payment, Reconciliation, SyncCheck, SyncReport
from domain.ports import InvoiceRepository, PaymentRepository
from domain.reconciliation import reconcile, to_decimal, total_paid
from domain.validation import validate_new_invoice, validate_new_payment

logger = logging.getLogger(__name__)

SYNC_TOLERANCE = Decimal("0.01")


class InvoiceLedgerService:
    """Keeps each invoice's stored paid / remaining / status in step with its payments.

    Every payment mutation recomputes the owning invoice from scratch; the
    stored aggregates are never adjusted incrementally.

    Args:
        invoices: Invoice repository.
        payments: Payment repository.
        mark_overdue: Derive ``overdue`` for unpaid invoices past their due
            date. Off by default, so ``overdue`` is only ever set by hand.
        today: Optional callable returning the current date (for tests).
    """

    def __init__(
        self,
        invoices: InvoiceRepository,
        payments: PaymentRepository,
        mark_overdue: bool = False,
        today=None,
    ) -> None:
        self._invoices = invoices
        self._payments = payments
        self._mark_overdue = mark_overdue
        self._today = today

    # ── Reconciliation ──────────────────────────────────────────────────

    def reconciliation_for(self, invoice_id: str) -> Reconciliation:
        """Compute, without persisting, the reconciliation of one invoice."""
        invoice = self._require_invoice(invoice_id)
        payments = self._payments.list_by_invoice(invoice_id)
        today = self._today() if self._today else None
        return reconcile(invoice, payments, mark_overdue=self._mark_overdue, today=today)

    def recompute(self, invoice_id: str) -> Reconciliation:
        """Recompute and persist paid / remaining / status for one invoice."""
        result = self.reconciliation_for(invoice_id)
        self._invoices.save_reconciliation(
            invoice_id, result.total_paid, result.remaining, result.status
        )
        logger.info(
            "Invoice %s reconciled: paid=%s remaining=%s status=%s",
            invoice_id, result.total_paid, result.remaining, result.status.value,
        )
        return result

    def recompute_all(self) -> SyncReport:
        """Recompute every invoice; one failing invoice does not stop the batch."""
        invoices = self._invoices.list_all()
        succeeded = 0
        failed_ids = []
        for invoice in invoices:
            try:
                self.recompute(invoice.id)
            except LedgerError as exc:
                logger.error("Failed to reconcile invoice %s: %s", invoice.id, exc)
                failed_ids.append(invoice.id)
            else:
                succeeded += 1
        report = SyncReport(
            total=len(invoices),
            succeeded=succeeded,
            failed=len(failed_ids),
            failed_ids=tuple(failed_ids),
        )
        logger.info(
            "Re-sync finished: %d invoices, %d updated, %d failed",
            report.total, report.succeeded, report.failed,
        )
        return report

    def check_sync(self, limit: int | None = 5) -> list[SyncCheck]:
        """Compare stored ``paid_amount`` with the payment rows of a sample of invoices."""
        invoices = self._invoices.list_all()
        if limit is not None:
            invoices = invoices[:limit]
        checks = []
        for invoice in invoices:
            actual = total_paid(self._payments.list_by_invoice(invoice.id))
            stored = to_decimal(invoice.paid_amount)
            checks.append(
                SyncCheck(
                    invoice_id=invoice.id,
                    invoice_amount=to_decimal(invoice.amount),
                    stored_paid=stored,
                    actual_paid=actual,
                    in_sync=abs(stored - actual) < SYNC_TOLERANCE,
                    status=invoice.status,
                )
            )
        return checks

    # ── Invoice commands ────────────────────────────────────────────────

    def create_invoice(self, invoice: Invoice) -> Invoice:
        invoice = validate_new_invoice(invoice)
        invoice.paid_amount = Decimal(0)
        invoice.remaining_amount = invoice.amount
        saved = self._invoices.add(invoice)
        logger.info("Invoice %s created for %s", saved.id, saved.amount)
        return saved

    def delete_invoice(self, invoice_id: str) -> None:
        """Delete an invoice; its payments go with it through the store's cascade."""
        self._require_invoice(invoice_id)
        self._invoices.delete(invoice_id)
        logger.info("Invoice %s deleted", invoice_id)

    # ── Payment commands ────────────────────────────────────────────────

    def record_payment(self, payment: Payment) -> tuple[Payment, Reconciliation]:
        payment = validate_new_payment(payment)
        invoice = self._require_invoice(payment.invoice_id)
        if payment.merchant_id is None:
            payment.merchant_id = invoice.merchant_id
        saved = self._payments.add(payment)
        logger.info("Payment %s of %s recorded on invoice %s", saved.id, saved.amount, saved.invoice_id)
        return saved, self.recompute(saved.invoice_id)

    def update_payment(self, payment: Payment) -> tuple[Payment, Reconciliation]:
        """Update a payment and recompute its invoice (and its previous one if it moved)."""
        if payment.id is None:
            raise PaymentNotFoundError(None)
        previous = self._payments.get(payment.id)
        if previous is None:
            raise PaymentNotFoundError(payment.id)
        payment = validate_new_payment(payment)
        self._require_invoice(payment.invoice_id)
        saved = self._payments.update(payment)
        if previous.invoice_id != saved.invoice_id:
            self.recompute(previous.invoice_id)
        return saved, self.recompute(saved.invoice_id)

    def delete_payment(self, payment_id: int) -> Reconciliation:
        deleted = self._payments.delete(payment_id)
        if deleted is None:
            raise PaymentNotFoundError(payment_id)
        logger.info("Payment %s removed from invoice %s", payment_id, deleted.invoice_id)
        return self.recompute(deleted.invoice_id)

    # ── Internal helpers ────────────────────────────────────────────────

    def _require_invoice(self, invoice_id: str) -> Invoice:
        invoice = self._invoices.get(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        return invoice
