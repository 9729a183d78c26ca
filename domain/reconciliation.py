"""Invoice reconciliation — pure functions, zero external dependencies.

Computes paid / remaining amounts, payment percentage and derived status
from an invoice amount and its payment records. All arithmetic runs in a
fixed decimal context (28 significant digits, round-half-up); binary
floats are converted through their shortest repr before use.

Malformed or missing amounts coerce to zero instead of raising. Strict
parsing for user input lives in ``domain.validation``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, localcontext

from domain.models import STICKY_STATUSES, Invoice, InvoiceStatus, Reconciliation

ZERO = Decimal(0)
HUNDRED = Decimal(100)
CENT = Decimal("0.01")

LEDGER_CONTEXT = Context(prec=28, rounding=ROUND_HALF_UP)


def to_decimal(value) -> Decimal:
    """Convert *value* to a finite Decimal, coercing anything unusable to 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        result = value
    else:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return ZERO
        elif isinstance(value, float):
            value = repr(value)
        try:
            result = Decimal(value)
        except (InvalidOperation, TypeError, ValueError):
            return ZERO
    if not result.is_finite():
        return ZERO
    return result


def _amount_of(payment):
    if isinstance(payment, Mapping):
        return payment.get("amount")
    return getattr(payment, "amount", None)


def total_paid(payments: Iterable | None) -> Decimal:
    """Exact decimal sum of payment amounts. Empty or None yields 0."""
    total = ZERO
    if not payments:
        return total
    with localcontext(LEDGER_CONTEXT):
        for payment in payments:
            total += to_decimal(_amount_of(payment))
    return total


def remaining(amount, paid) -> Decimal:
    """Outstanding balance, clamped at zero when overpaid."""
    with localcontext(LEDGER_CONTEXT):
        balance = to_decimal(amount) - to_decimal(paid)
    return max(ZERO, balance)


def _as_status(status) -> InvoiceStatus:
    if isinstance(status, InvoiceStatus):
        return status
    return InvoiceStatus(status)


def derive_status(amount, paid, current_status) -> InvoiceStatus:
    """Recompute an invoice status from its amount and total paid.

    ``draft`` and ``cancelled`` are returned unchanged. Otherwise nothing
    paid gives ``pending``, paid in full (or more) gives ``paid`` and
    anything in between ``partially-paid``. Never yields ``overdue``.
    """
    current = _as_status(current_status)
    if current in STICKY_STATUSES:
        return current
    invoice_amount = to_decimal(amount)
    paid_amount = to_decimal(paid)
    if paid_amount == ZERO:
        return InvoiceStatus.PENDING
    if paid_amount >= invoice_amount:
        return InvoiceStatus.PAID
    return InvoiceStatus.PARTIALLY_PAID


def derive_status_with_due_date(amount, paid, current_status, due_date, today=None) -> InvoiceStatus:
    """Like :func:`derive_status`, but an unpaid invoice past due is ``overdue``."""
    status = derive_status(amount, paid, current_status)
    if status is not InvoiceStatus.PENDING or due_date is None:
        return status
    today = today or date.today()
    if due_date < today:
        return InvoiceStatus.OVERDUE
    return status


def payment_percentage(amount, paid) -> Decimal:
    """Share of the invoice already paid, in percent, clamped to [0, 100]."""
    invoice_amount = to_decimal(amount)
    if invoice_amount == ZERO:
        return ZERO
    with localcontext(LEDGER_CONTEXT):
        percentage = to_decimal(paid) / invoice_amount * HUNDRED
    return min(HUNDRED, max(ZERO, percentage))


def reconcile(invoice: Invoice, payments, mark_overdue=False, today=None) -> Reconciliation:
    """Run the whole engine for one invoice and its payments."""
    paid = total_paid(payments)
    if mark_overdue:
        status = derive_status_with_due_date(
            invoice.amount, paid, invoice.status, invoice.due_date, today
        )
    else:
        status = derive_status(invoice.amount, paid, invoice.status)
    return Reconciliation(
        invoice_id=invoice.id,
        amount=to_decimal(invoice.amount),
        total_paid=paid,
        remaining=remaining(invoice.amount, paid),
        percentage=payment_percentage(invoice.amount, paid),
        status=status,
    )


# ── Display and aggregate helpers ───────────────────────────────────────


def format_amount(value) -> str:
    """Render an amount with exactly two fractional digits."""
    return str(to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def is_valid_amount(value) -> bool:
    """True when *value* parses to a finite amount strictly greater than 0."""
    return to_decimal(value) > ZERO


def average_payment(payments) -> Decimal:
    payments = list(payments or [])
    if not payments:
        return ZERO
    with localcontext(LEDGER_CONTEXT):
        return total_paid(payments) / len(payments)


def group_payments_by_date(payments) -> dict:
    """Sum payment amounts per payment date, preserving first-seen order."""
    grouped: dict = {}
    with localcontext(LEDGER_CONTEXT):
        for payment in payments or []:
            if isinstance(payment, Mapping):
                key = payment.get("payment_date")
            else:
                key = getattr(payment, "payment_date", None)
            grouped[key] = grouped.get(key, ZERO) + to_decimal(_amount_of(payment))
    return grouped


def line_items_total(items) -> Decimal:
    """Sum of ``quantity * price`` over invoice line items."""
    total = ZERO
    with localcontext(LEDGER_CONTEXT):
        for item in items or []:
            if isinstance(item, Mapping):
                total += to_decimal(item.get("quantity")) * to_decimal(item.get("price"))
            else:
                total += to_decimal(item.quantity) * to_decimal(item.price)
    return total
