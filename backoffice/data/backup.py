"""JSON backup and restore of merchants, invoices and payments.

Backups are written through the repository ports, so they work against any
store adapter. On restore, merchants and payments receive new identifiers
(the target store assigns them) and references are remapped; invoices
keep their string identifiers. A row that fails to restore is logged and
counted without stopping the rest.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal

from domain.errors import LedgerError
from domain.models import Invoice, LineItem, Merchant, Payment
from domain.ports import InvoiceRepository, MerchantRepository, PaymentRepository
from domain.reconciliation import to_decimal
from domain.validation import (
    parse_amount,
    parse_merchant_category,
    parse_merchant_status,
    parse_payment_method,
    parse_quantity,
    parse_status,
)

logger = logging.getLogger(__name__)

LATEST_BACKUP = "latest-backup.json"


@dataclass
class RestoreReport:
    merchants: int = 0
    invoices: int = 0
    payments: int = 0
    failures: list[str] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)


# ── Serialization ─────────────────────────────────────────────────────────


def _iso(value):
    return value.isoformat() if value is not None else None


def _date(value):
    return date.fromisoformat(value) if value else None


def merchant_to_dict(m: Merchant) -> dict:
    return {
        "id": m.id, "name": m.name, "email": m.email, "phone": m.phone,
        "address": m.address, "status": m.status.value, "category": m.category.value,
        "join_date": _iso(m.join_date),
    }


def invoice_to_dict(i: Invoice) -> dict:
    return {
        "id": i.id, "merchant_id": i.merchant_id, "merchant_name": i.merchant_name,
        "amount": str(i.amount), "paid_amount": str(i.paid_amount),
        "remaining_amount": str(i.remaining_amount) if i.remaining_amount is not None else None,
        "status": i.status.value, "date": _iso(i.issue_date), "due_date": _iso(i.due_date),
        "items": [
            {"name": it.name, "quantity": it.quantity, "price": str(it.price)} for it in i.items
        ],
    }


def payment_to_dict(p: Payment) -> dict:
    return {
        "id": p.id, "invoice_id": p.invoice_id, "merchant_id": p.merchant_id,
        "amount": str(p.amount), "payment_method": p.payment_method.value,
        "payment_date": _iso(p.payment_date), "notes": p.notes,
    }


def merchant_from_dict(row: dict) -> Merchant:
    return Merchant(
        name=row["name"],
        email=row.get("email"),
        phone=row.get("phone"),
        address=row.get("address"),
        status=parse_merchant_status(row.get("status", "active")),
        category=parse_merchant_category(row.get("category", "retail")),
        join_date=_date(row.get("join_date")),
    )


def invoice_from_dict(row: dict, merchant_id=None) -> Invoice:
    return Invoice(
        id=row["id"],
        amount=parse_amount(row["amount"], allow_zero=True),
        merchant_id=merchant_id,
        status=parse_status(row.get("status", "pending")),
        issue_date=_date(row.get("date")),
        due_date=_date(row.get("due_date")),
        items=[
            LineItem(name=it["name"], quantity=parse_quantity(it.get("quantity", 1)), price=to_decimal(it.get("price")))
            for it in row.get("items") or []
        ],
        paid_amount=to_decimal(row.get("paid_amount")),
        remaining_amount=(
            to_decimal(row["remaining_amount"]) if row.get("remaining_amount") is not None else None
        ),
        merchant_name=row.get("merchant_name"),
    )


def payment_from_dict(row: dict, merchant_id=None) -> Payment:
    return Payment(
        invoice_id=row["invoice_id"],
        amount=parse_amount(row["amount"]),
        payment_method=parse_payment_method(row.get("payment_method", "cash")),
        payment_date=_date(row.get("payment_date")),
        notes=row.get("notes"),
        merchant_id=merchant_id,
    )


# ── Backup / restore ──────────────────────────────────────────────────────


def build_backup(merchants: MerchantRepository, invoices: InvoiceRepository,
                 payments: PaymentRepository) -> dict:
    """Snapshot every row into a JSON-ready dict."""
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": {
            "merchants": [merchant_to_dict(m) for m in merchants.list_all()],
            "invoices": [invoice_to_dict(i) for i in invoices.list_all()],
            "payments": [payment_to_dict(p) for p in payments.list_all()],
        },
    }


def write_backup(backup: dict, backup_dir: str) -> str:
    """Write *backup* to a timestamped file and to ``latest-backup.json``; return the path."""
    os.makedirs(backup_dir, exist_ok=True)
    stamp = backup["timestamp"].replace(":", "-").replace(".", "-")
    path = os.path.join(backup_dir, f"backup-{stamp}.json")
    for target in (path, os.path.join(backup_dir, LATEST_BACKUP)):
        with open(target, "w", encoding="utf-8") as f:
            json.dump(backup, f, ensure_ascii=False, indent=2)
    counts = {k: len(v) for k, v in backup["data"].items()}
    logger.info("Backup written to %s (%s)", path, counts)
    return path


def read_backup(path: str) -> dict:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def restore_backup(backup: dict, merchants: MerchantRepository, invoices: InvoiceRepository,
                   payments: PaymentRepository) -> RestoreReport:
    """Insert the rows of *backup* into the given repositories."""
    data = backup.get("data", {})
    report = RestoreReport()
    merchant_ids: dict = {}

    for row in data.get("merchants", []):
        try:
            saved = merchants.add(merchant_from_dict(row))
        except (LedgerError, KeyError, ValueError) as exc:
            report.failures.append(f"merchant {row.get('name')}: {exc}")
            logger.error("Failed to restore merchant %s: %s", row.get("name"), exc)
            continue
        merchant_ids[row.get("id")] = saved.id
        report.merchants += 1

    restored_invoices = set()
    for row in data.get("invoices", []):
        try:
            invoice = invoice_from_dict(row, merchant_ids.get(row.get("merchant_id")))
            invoices.add(invoice)
        except (LedgerError, KeyError, ValueError) as exc:
            report.failures.append(f"invoice {row.get('id')}: {exc}")
            logger.error("Failed to restore invoice %s: %s", row.get("id"), exc)
            continue
        restored_invoices.add(invoice.id)
        report.invoices += 1

    for row in data.get("payments", []):
        if row.get("invoice_id") not in restored_invoices:
            report.failures.append(f"payment {row.get('id')}: invoice {row.get('invoice_id')} not restored")
            logger.error("Skipping payment %s: invoice %s not restored", row.get("id"), row.get("invoice_id"))
            continue
        try:
            payments.add(payment_from_dict(row, merchant_ids.get(row.get("merchant_id"))))
        except (LedgerError, KeyError, ValueError) as exc:
            report.failures.append(f"payment {row.get('id')}: {exc}")
            logger.error("Failed to restore payment %s: %s", row.get("id"), exc)
            continue
        report.payments += 1

    logger.info(
        "Restore finished: %d merchants, %d invoices, %d payments, %d failures",
        report.merchants, report.invoices, report.payments, report.failed,
    )
    return report


def total_amount(rows) -> Decimal:
    return sum((to_decimal(r.get("amount")) for r in rows), Decimal(0))
