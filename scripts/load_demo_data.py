#!/usr/bin/env python3
"""Load sample merchants, invoices and partial payments for demo purposes.

Usage:
    PYTHONPATH=. python scripts/load_demo_data.py

Creates 2 merchants and 4 invoices in every payment state, going through
the ledger service so paid / remaining / status are reconciled.
"""
import os
import sys
from datetime import date, timedelta
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backoffice.app import create_app
from backoffice.config import configure_logging, load_config
from domain.models import (
    Invoice, InvoiceStatus, LineItem, Merchant, MerchantCategory, Payment, PaymentMethod,
)
from domain.reconciliation import format_amount


def main():
    config = load_config()
    configure_logging(config)
    today = date.today()

    with create_app(config) as app:
        m1 = app.merchants.add(Merchant(
            name="Northwind Grocers", email="billing@northwind.example", phone="+1 555 0100",
            category=MerchantCategory.RETAIL,
        ))
        m2 = app.merchants.add(Merchant(
            name="Contoso Wholesale", email="ap@contoso.example", phone="+1 555 0199",
            category=MerchantCategory.WHOLESALE,
        ))

        # Invoice 1: settled in two instalments
        app.ledger.create_invoice(Invoice(
            id="INV-DEMO-001", amount=None, merchant_id=m1.id,
            issue_date=today - timedelta(days=40), due_date=today - timedelta(days=10),
            items=[LineItem("Olive oil 5L", 10, Decimal("45.00")), LineItem("Flour 25kg", 5, Decimal("10.00"))],
        ))
        app.ledger.record_payment(Payment(
            invoice_id="INV-DEMO-001", amount=Decimal("300.00"), payment_method=PaymentMethod.CASH,
            payment_date=today - timedelta(days=30),
        ))
        app.ledger.record_payment(Payment(
            invoice_id="INV-DEMO-001", amount=Decimal("200.00"), payment_method=PaymentMethod.BANK_TRANSFER,
            payment_date=today - timedelta(days=12),
        ))

        # Invoice 2: partially paid
        app.ledger.create_invoice(Invoice(
            id="INV-DEMO-002", amount=Decimal("1000.00"), merchant_id=m2.id,
            issue_date=today - timedelta(days=20), due_date=today + timedelta(days=10),
        ))
        app.ledger.record_payment(Payment(
            invoice_id="INV-DEMO-002", amount=Decimal("250.50"), payment_method=PaymentMethod.CHEQUE,
            notes="Cheque #10442",
        ))

        # Invoice 3: unpaid and past due (overdue only if mark_overdue is on)
        app.ledger.create_invoice(Invoice(
            id="INV-DEMO-003", amount=Decimal("780.00"), merchant_id=m2.id,
            issue_date=today - timedelta(days=60), due_date=today - timedelta(days=30),
        ))

        # Invoice 4: draft, stays draft whatever is paid
        app.ledger.create_invoice(Invoice(
            id="INV-DEMO-004", amount=Decimal("120.00"), merchant_id=m1.id,
            status=InvoiceStatus.DRAFT, due_date=today + timedelta(days=30),
        ))

        app.ledger.recompute_all()
        for row in app.reports.invoices_overview():
            print(
                f"{row['id']}: amount={row['amount']} paid={row['paid_amount']} "
                f"remaining={row['remaining_amount']} status={row['status']}"
            )
        stats = app.reports.payment_stats()
        print(f"Total collected: {stats['total_paid']} over {stats['payment_count']} payments")
        print(f"Outstanding: {format_amount(stats['total_remaining'])}")


if __name__ == "__main__":
    main()
