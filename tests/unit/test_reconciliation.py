"""Tests for domain.reconciliation: totals, balance, status, percentage."""

from datetime import date
from decimal import Decimal

import pytest

from domain.models import Invoice, InvoiceStatus, Payment
from domain.reconciliation import (
    average_payment,
    derive_status,
    derive_status_with_due_date,
    format_amount,
    group_payments_by_date,
    is_valid_amount,
    line_items_total,
    payment_percentage,
    reconcile,
    remaining,
    to_decimal,
    total_paid,
)


class TestToDecimal:
    """Tests for lenient decimal coercion."""

    @pytest.mark.parametrize("value", [None, "", "   ", "abc", float("nan"), float("inf"), [1], True])
    def test_unusable_values_become_zero(self, value):
        assert to_decimal(value) == Decimal(0)

    def test_float_uses_shortest_repr(self):
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal(45.5) == Decimal("45.5")

    def test_numeric_strings(self):
        assert to_decimal(" 12.30 ") == Decimal("12.30")

    def test_decimal_passthrough(self):
        value = Decimal("7.25")
        assert to_decimal(value) is value


class TestTotalPaid:
    """Tests for total_paid."""

    def test_empty_list(self):
        assert total_paid([]) == 0

    def test_none(self):
        assert total_paid(None) == 0

    def test_exact_decimal_sum(self):
        assert total_paid([{"amount": 30}, {"amount": 45.5}]) == Decimal("75.5")

    def test_no_binary_drift(self):
        # 0.1 + 0.2 in binary floating point is 0.30000000000000004
        assert total_paid([{"amount": 0.1}, {"amount": 0.2}]) == Decimal("0.3")

    def test_accepts_payment_objects(self):
        payments = [
            Payment(invoice_id="INV-1", amount=Decimal("10.10")),
            Payment(invoice_id="INV-1", amount=Decimal("20.20")),
        ]
        assert total_paid(payments) == Decimal("30.30")

    def test_malformed_amounts_count_as_zero(self):
        payments = [{"amount": "12.50"}, {"amount": "oops"}, {}, {"amount": None}]
        assert total_paid(payments) == Decimal("12.50")

    def test_accepts_generator(self):
        assert total_paid({"amount": n} for n in (1, 2, 3)) == 6

    def test_many_cents_stay_exact(self):
        assert total_paid([{"amount": "0.01"}] * 1000) == Decimal("10.00")


class TestRemaining:
    """Tests for remaining."""

    def test_partial(self):
        assert remaining(100, 40) == 60

    def test_overpayment_clamps_to_zero(self):
        assert remaining(100, 150) == 0

    def test_exact_payment(self):
        assert remaining(Decimal("99.99"), Decimal("99.99")) == 0

    @pytest.mark.parametrize("amount,paid", [(0, 0), (0, 10), (10, 0), (10, 10), (1, 1000)])
    def test_never_negative(self, amount, paid):
        assert remaining(amount, paid) >= 0


class TestDeriveStatus:
    """Tests for derive_status."""

    def test_nothing_paid_is_pending(self):
        assert derive_status(100, 0, "pending") is InvoiceStatus.PENDING

    def test_fully_paid(self):
        assert derive_status(100, 100, "pending") is InvoiceStatus.PAID

    def test_overpaid_is_paid(self):
        assert derive_status(100, 120, InvoiceStatus.PARTIALLY_PAID) is InvoiceStatus.PAID

    def test_partially_paid(self):
        assert derive_status(100, 40, "pending") is InvoiceStatus.PARTIALLY_PAID

    def test_draft_is_sticky(self):
        assert derive_status(100, 40, "draft") is InvoiceStatus.DRAFT

    def test_cancelled_is_sticky(self):
        assert derive_status(100, 40, "cancelled") is InvoiceStatus.CANCELLED

    def test_overdue_is_recomputed(self):
        assert derive_status(100, 0, InvoiceStatus.OVERDUE) is InvoiceStatus.PENDING

    def test_never_yields_overdue(self):
        for paid in (0, 50, 100):
            assert derive_status(100, paid, "pending") is not InvoiceStatus.OVERDUE

    def test_idempotent(self):
        first = derive_status(100, 40, "pending")
        second = derive_status(100, 40, "pending")
        assert first is second

    def test_paid_back_to_pending_when_payments_removed(self):
        assert derive_status(100, 0, InvoiceStatus.PAID) is InvoiceStatus.PENDING


class TestDeriveStatusWithDueDate:
    """Tests for the due-date aware variant."""

    def test_unpaid_past_due_is_overdue(self):
        result = derive_status_with_due_date(
            100, 0, "pending", due_date=date(2024, 1, 1), today=date(2024, 2, 1)
        )
        assert result is InvoiceStatus.OVERDUE

    def test_unpaid_not_yet_due_is_pending(self):
        result = derive_status_with_due_date(
            100, 0, "pending", due_date=date(2024, 3, 1), today=date(2024, 2, 1)
        )
        assert result is InvoiceStatus.PENDING

    def test_partially_paid_past_due_stays_partial(self):
        result = derive_status_with_due_date(
            100, 40, "pending", due_date=date(2024, 1, 1), today=date(2024, 2, 1)
        )
        assert result is InvoiceStatus.PARTIALLY_PAID

    def test_draft_past_due_stays_draft(self):
        result = derive_status_with_due_date(
            100, 0, "draft", due_date=date(2024, 1, 1), today=date(2024, 2, 1)
        )
        assert result is InvoiceStatus.DRAFT

    def test_no_due_date(self):
        assert derive_status_with_due_date(100, 0, "pending", None) is InvoiceStatus.PENDING


class TestPaymentPercentage:
    """Tests for payment_percentage."""

    def test_zero_amount_guarded(self):
        assert payment_percentage(0, 50) == 0

    def test_quarter(self):
        assert payment_percentage(200, 50) == 25

    def test_clamped_to_hundred(self):
        assert payment_percentage(100, 250) == 100

    def test_third(self):
        assert payment_percentage(3, 1).quantize(Decimal("0.01")) == Decimal("33.33")


class TestHelpers:
    """Tests for formatting and aggregate helpers."""

    def test_format_amount_two_digits(self):
        assert format_amount(5) == "5.00"
        assert format_amount("75.5") == "75.50"

    def test_format_amount_rounds_half_up(self):
        assert format_amount("2.675") == "2.68"
        assert format_amount("2.665") == "2.67"

    def test_format_amount_malformed(self):
        assert format_amount(None) == "0.00"

    def test_is_valid_amount(self):
        assert is_valid_amount("10")
        assert not is_valid_amount(0)
        assert not is_valid_amount(-5)
        assert not is_valid_amount("abc")

    def test_average_payment(self):
        assert average_payment([{"amount": 10}, {"amount": 20}]) == 15
        assert average_payment([]) == 0

    def test_group_payments_by_date(self):
        payments = [
            {"amount": "10.10", "payment_date": "2024-01-01"},
            {"amount": "5.05", "payment_date": "2024-01-02"},
            {"amount": "0.90", "payment_date": "2024-01-01"},
        ]
        assert group_payments_by_date(payments) == {
            "2024-01-01": Decimal("11.00"),
            "2024-01-02": Decimal("5.05"),
        }

    def test_line_items_total(self):
        items = [{"name": "a", "quantity": 2, "price": "12.50"}, {"name": "b", "quantity": 1, "price": 5}]
        assert line_items_total(items) == Decimal("30.00")


class TestReconcileScenario:
    """End-to-end: add and remove partial payments on a 1000 invoice."""

    def _payments(self, *amounts):
        return [Payment(invoice_id="INV-1", amount=Decimal(a)) for a in amounts]

    def test_payment_lifecycle(self):
        invoice = Invoice(id="INV-1", amount=Decimal("1000"), status=InvoiceStatus.PENDING)

        result = reconcile(invoice, self._payments("300", "200"))
        assert result.total_paid == 500
        assert result.remaining == 500
        assert result.status is InvoiceStatus.PARTIALLY_PAID
        assert result.percentage == 50

        invoice.status = result.status
        result = reconcile(invoice, self._payments("300", "200", "500"))
        assert result.total_paid == 1000
        assert result.remaining == 0
        assert result.status is InvoiceStatus.PAID

        invoice.status = result.status
        result = reconcile(invoice, self._payments("300", "200"))
        assert result.total_paid == 500
        assert result.status is InvoiceStatus.PARTIALLY_PAID

    def test_mark_overdue_flag(self):
        invoice = Invoice(
            id="INV-2", amount=Decimal("80"), due_date=date(2024, 1, 1)
        )
        plain = reconcile(invoice, [])
        flagged = reconcile(invoice, [], mark_overdue=True, today=date(2024, 6, 1))
        assert plain.status is InvoiceStatus.PENDING
        assert flagged.status is InvoiceStatus.OVERDUE
