"""Boundary validation — pure functions, zero external dependencies.

Raw strings coming from forms, scripts or storage are parsed into the
closed domain enumerations here. Unlike the reconciliation engine, these
helpers are strict and raise :class:`ValidationError`.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal, InvalidOperation

from domain.errors import ValidationError
from domain.models import (
    Invoice,
    InvoiceStatus,
    Merchant,
    MerchantCategory,
    MerchantStatus,
    Payment,
    PaymentMethod,
)
from domain.reconciliation import CENT, line_items_total

CREATION_STATUSES = frozenset({InvoiceStatus.DRAFT, InvoiceStatus.PENDING})

# Stored amounts are NUMERIC(12, 2).
MAX_AMOUNT = Decimal("9999999999.99")


def _parse_enum(enum_cls, value, field):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(
            f"Invalid {field} {value!r} (expected one of: {allowed})", field=field
        ) from None


def parse_status(value) -> InvoiceStatus:
    return _parse_enum(InvoiceStatus, value, "status")


def parse_payment_method(value) -> PaymentMethod:
    return _parse_enum(PaymentMethod, value, "payment_method")


def parse_merchant_status(value) -> MerchantStatus:
    return _parse_enum(MerchantStatus, value, "status")


def parse_merchant_category(value) -> MerchantCategory:
    return _parse_enum(MerchantCategory, value, "category")


def parse_amount(value, field="amount", allow_zero=False, cents=True) -> Decimal:
    """Parse a user-supplied amount, rejecting anything non-finite or non-positive.

    With *cents* (the default) the amount must also fit the stored column:
    at most two decimal places and no more than ``MAX_AMOUNT``. Line item
    prices pass ``cents=False`` because only their total is stored as money.
    """
    if value is None or isinstance(value, bool) or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required", field=field)
    try:
        amount = Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number, got {value!r}", field=field) from None
    if not amount.is_finite():
        raise ValidationError(f"{field} must be finite", field=field)
    if amount < 0 or (amount == 0 and not allow_zero):
        qualifier = "zero or greater" if allow_zero else "greater than zero"
        raise ValidationError(f"{field} must be {qualifier}", field=field)
    if cents:
        if amount > MAX_AMOUNT:
            raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}", field=field)
        if amount != amount.quantize(CENT):
            raise ValidationError(f"{field} cannot have more than two decimal places", field=field)
    return amount


def parse_quantity(value, field="quantity") -> int:
    """Parse a line item quantity: a whole number of at least 1."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a whole number, got {value!r}", field=field)
    try:
        quantity = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{field} must be a whole number, got {value!r}", field=field) from None
    if not isinstance(value, str) and quantity != value:
        raise ValidationError(f"{field} must be a whole number, got {value!r}", field=field)
    if quantity < 1:
        raise ValidationError(f"{field} must be at least 1", field=field)
    return quantity


def validate_new_payment(payment: Payment) -> Payment:
    """Check a payment before it is written; normalises amount and method."""
    if not payment.invoice_id:
        raise ValidationError("invoice_id is required", field="invoice_id")
    payment.amount = parse_amount(payment.amount)
    payment.payment_method = parse_payment_method(payment.payment_method)
    return payment


def validate_new_invoice(invoice: Invoice) -> Invoice:
    """Check an invoice at creation time.

    When line items are present their total must equal the invoice amount;
    a missing amount is filled in from the items.
    """
    if not invoice.id:
        raise ValidationError("id is required", field="id")
    invoice.status = parse_status(invoice.status)
    if invoice.status not in CREATION_STATUSES:
        raise ValidationError(
            f"New invoices must be draft or pending, got {invoice.status.value}",
            field="status",
        )
    items = []
    for index, item in enumerate(invoice.items, start=1):
        if not item.name:
            raise ValidationError(f"Line {index}: name is required", field="items")
        try:
            quantity = parse_quantity(item.quantity)
        except ValidationError as exc:
            raise ValidationError(f"Line {index}: {exc}", field="items") from None
        price = parse_amount(item.price, field=f"items[{index}].price", allow_zero=True, cents=False)
        items.append(replace(item, quantity=quantity, price=price))
    invoice.items = items
    if invoice.amount is None and invoice.items:
        invoice.amount = line_items_total(invoice.items)
    invoice.amount = parse_amount(invoice.amount, allow_zero=True)
    if invoice.items:
        items_total = line_items_total(invoice.items)
        if items_total != invoice.amount:
            raise ValidationError(
                f"Line items total {items_total} does not match amount {invoice.amount}",
                field="amount",
            )
    return invoice


def validate_merchant(merchant: Merchant) -> Merchant:
    if not merchant.name or not merchant.name.strip():
        raise ValidationError("name is required", field="name")
    merchant.status = parse_merchant_status(merchant.status)
    merchant.category = parse_merchant_category(merchant.category)
    return merchant
