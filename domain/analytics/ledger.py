"""Domain ledger analytics — pure functions, zero external dependencies.

Only stdlib and domain imports allowed.
"""

from decimal import localcontext

from domain.models import InvoiceStatus, LedgerTotals, PaymentMethod, PaymentStats
from domain.reconciliation import (
    LEDGER_CONTEXT,
    ZERO,
    average_payment,
    remaining,
    to_decimal,
    total_paid,
)


def merchant_totals(invoices, payments_by_invoice=None):
    """Aggregate a merchant's invoices.

    Paid amounts come from the invoice's payment rows when any exist in
    *payments_by_invoice*, otherwise from the stored ``paid_amount``.
    Remaining is clamped per invoice, so one overpaid invoice never offsets
    another's balance.
    """
    payments_by_invoice = payments_by_invoice or {}
    count = 0
    amount_sum = ZERO
    paid_sum = ZERO
    remaining_sum = ZERO
    with localcontext(LEDGER_CONTEXT):
        for invoice in invoices:
            count += 1
            amount = to_decimal(invoice.amount)
            payments = payments_by_invoice.get(invoice.id)
            if payments:
                paid = total_paid(payments)
            else:
                paid = to_decimal(invoice.paid_amount)
            amount_sum += amount
            paid_sum += paid
            remaining_sum += remaining(amount, paid)
    return LedgerTotals(
        invoice_count=count,
        total_amount=amount_sum,
        total_paid=paid_sum,
        total_remaining=remaining_sum,
    )


def overall_totals(per_merchant):
    """Sum a collection of :class:`LedgerTotals`."""
    count = 0
    amount_sum = ZERO
    paid_sum = ZERO
    remaining_sum = ZERO
    with localcontext(LEDGER_CONTEXT):
        for totals in per_merchant:
            count += totals.invoice_count
            amount_sum += totals.total_amount
            paid_sum += totals.total_paid
            remaining_sum += totals.total_remaining
    return LedgerTotals(
        invoice_count=count,
        total_amount=amount_sum,
        total_paid=paid_sum,
        total_remaining=remaining_sum,
    )


def payment_stats(payments, invoices):
    """Ledger-wide payment figures used by the statistics page."""
    payments = list(payments)
    invoices = list(invoices)
    by_method = {method: ZERO for method in PaymentMethod}
    with localcontext(LEDGER_CONTEXT):
        for payment in payments:
            by_method[payment.payment_method] += to_decimal(payment.amount)
        total_invoiced = sum((to_decimal(i.amount) for i in invoices), ZERO)
        total_remaining = sum(
            (
                to_decimal(i.remaining_amount)
                if i.remaining_amount is not None
                else to_decimal(i.amount)
                for i in invoices
            ),
            ZERO,
        )
    statuses = [i.status for i in invoices]
    return PaymentStats(
        total_paid=total_paid(payments),
        total_invoiced=total_invoiced,
        total_remaining=total_remaining,
        by_method=by_method,
        payment_count=len(payments),
        fully_paid_invoices=statuses.count(InvoiceStatus.PAID),
        partially_paid_invoices=statuses.count(InvoiceStatus.PARTIALLY_PAID),
        unpaid_invoices=statuses.count(InvoiceStatus.PENDING),
        average_payment=average_payment(payments),
    )
