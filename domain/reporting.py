"""Cached read models for invoice, merchant and payment screens.

Values are plain JSON-ready dicts (amounts rendered with two decimals) so
any :class:`CachePort` implementation can store them. Entries are dropped
by prefix when the change feed reports a relevant row change.
"""

from __future__ import annotations

from collections import defaultdict

from domain.analytics.ledger import merchant_totals, payment_stats
from domain.ports import CachePort, InvoiceRepository, MerchantRepository, PaymentRepository
from domain.reconciliation import format_amount, group_payments_by_date, reconcile

INVOICES_PREFIX = "invoices:"
MERCHANTS_PREFIX = "merchants:"
PAYMENTS_PREFIX = "payments:"
PAYMENT_STATS_PREFIX = "payment-stats:"


class LedgerReports:
    """Get-or-compute read models backed by a :class:`CachePort`.

    *mark_overdue* and *today* mirror :class:`InvoiceLedgerService` so the
    overview shows the same status the service would persist.
    """

    def __init__(
        self,
        invoices: InvoiceRepository,
        payments: PaymentRepository,
        merchants: MerchantRepository,
        cache: CachePort,
        ttl: int = 300,
        mark_overdue: bool = False,
        today=None,
    ) -> None:
        self._invoices = invoices
        self._payments = payments
        self._merchants = merchants
        self._cache = cache
        self._ttl = ttl
        self._mark_overdue = mark_overdue
        self._today = today

    def _cached(self, key, compute):
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        value = compute()
        self._cache.set(key, value, ttl=self._ttl)
        return value

    def _payments_by_invoice(self):
        grouped = defaultdict(list)
        for payment in self._payments.list_all():
            grouped[payment.invoice_id].append(payment)
        return grouped

    # ── Read models ─────────────────────────────────────────────────────

    def invoices_overview(self) -> list[dict]:
        """Every invoice reconciled live against its payment rows."""
        return self._cached(f"{INVOICES_PREFIX}overview", self._compute_invoices_overview)

    def _compute_invoices_overview(self):
        by_invoice = self._payments_by_invoice()
        today = self._today() if self._today else None
        rows = []
        for invoice in self._invoices.list_all():
            payments = by_invoice.get(invoice.id, [])
            result = reconcile(invoice, payments, mark_overdue=self._mark_overdue, today=today)
            rows.append({
                "id": invoice.id,
                "merchant_id": invoice.merchant_id,
                "merchant_name": invoice.merchant_name,
                "amount": format_amount(result.amount),
                "paid_amount": format_amount(result.total_paid),
                "remaining_amount": format_amount(result.remaining),
                "percentage": format_amount(result.percentage),
                "status": result.status.value,
                "due_date": invoice.due_date.isoformat() if invoice.due_date else None,
                "payment_count": len(payments),
            })
        return rows

    def merchant_summaries(self) -> list[dict]:
        """Per-merchant invoice totals."""
        return self._cached(f"{MERCHANTS_PREFIX}summaries", self._compute_merchant_summaries)

    def _compute_merchant_summaries(self):
        by_invoice = self._payments_by_invoice()
        rows = []
        for merchant in self._merchants.list_all():
            invoices = self._invoices.list_by_merchant(merchant.id)
            totals = merchant_totals(invoices, by_invoice)
            rows.append({
                "id": merchant.id,
                "name": merchant.name,
                "status": merchant.status.value,
                "category": merchant.category.value,
                "invoice_count": totals.invoice_count,
                "total_amount": format_amount(totals.total_amount),
                "total_paid": format_amount(totals.total_paid),
                "total_remaining": format_amount(totals.total_remaining),
            })
        return rows

    def payment_stats(self) -> dict:
        return self._cached(f"{PAYMENT_STATS_PREFIX}summary", self._compute_payment_stats)

    def _compute_payment_stats(self):
        payments = self._payments.list_all()
        stats = payment_stats(payments, self._invoices.list_all())
        return {
            "total_paid": format_amount(stats.total_paid),
            "total_invoiced": format_amount(stats.total_invoiced),
            "total_remaining": format_amount(stats.total_remaining),
            "by_method": {m.value: format_amount(v) for m, v in stats.by_method.items()},
            "payment_count": stats.payment_count,
            "fully_paid_invoices": stats.fully_paid_invoices,
            "partially_paid_invoices": stats.partially_paid_invoices,
            "unpaid_invoices": stats.unpaid_invoices,
            "average_payment": format_amount(stats.average_payment),
            "by_date": {
                (day.isoformat() if day else "undated"): format_amount(total)
                for day, total in group_payments_by_date(payments).items()
            },
        }
