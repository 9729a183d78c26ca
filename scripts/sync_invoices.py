#!/usr/bin/env python3
"""Recompute paid / remaining / status of invoices from their payment rows.

Usage:
    PYTHONPATH=. python scripts/sync_invoices.py              # every invoice
    PYTHONPATH=. python scripts/sync_invoices.py --invoice INV-001
    PYTHONPATH=. python scripts/sync_invoices.py --check      # report only

Whether unpaid invoices past their due date become "overdue" follows
``reconciliation.mark_overdue`` in backoffice/config.yaml unless
--mark-overdue is given.
"""
import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backoffice.app import create_app
from backoffice.config import configure_logging, load_config
from domain.errors import LedgerError
from domain.messages import describe_error
from domain.reconciliation import format_amount

logger = logging.getLogger("sync_invoices")


def print_check(checks):
    for c in checks:
        flag = "ok " if c.in_sync else "OUT"
        print(
            f"[{flag}] {c.invoice_id}: amount={format_amount(c.invoice_amount)} "
            f"stored_paid={format_amount(c.stored_paid)} actual_paid={format_amount(c.actual_paid)} "
            f"status={c.status.value}"
        )
    out_of_sync = sum(1 for c in checks if not c.in_sync)
    print(f"{len(checks)} invoices checked, {out_of_sync} out of sync")


def main():
    parser = argparse.ArgumentParser(description="Re-sync invoice payment aggregates")
    parser.add_argument("--invoice", help="Only recompute this invoice id")
    parser.add_argument("--check", action="store_true", help="Compare stored vs actual paid amounts, change nothing")
    parser.add_argument("--limit", type=int, default=None, help="Number of invoices to check (with --check)")
    parser.add_argument("--mark-overdue", action="store_true", help="Derive 'overdue' for unpaid invoices past due")
    args = parser.parse_args()

    overrides = {"reconciliation": {"mark_overdue": True}} if args.mark_overdue else None
    config = load_config(overrides=overrides)
    configure_logging(config)

    try:
        with create_app(config) as app:
            if args.check:
                limit = args.limit or config.get("reconciliation", {}).get("sync_sample_size", 5)
                print_check(app.ledger.check_sync(limit=limit))
                return 0
            if args.invoice:
                result = app.ledger.recompute(args.invoice)
                print(
                    f"{result.invoice_id}: paid={format_amount(result.total_paid)} "
                    f"remaining={format_amount(result.remaining)} status={result.status.value}"
                )
                return 0
            report = app.ledger.recompute_all()
    except LedgerError as exc:
        logger.error("Re-sync failed: %s", exc)
        print(describe_error(exc, "Re-sync failed."))
        return 1

    print(f"Invoices: {report.total}  updated: {report.succeeded}  failed: {report.failed}")
    for invoice_id in report.failed_ids:
        print(f"  failed: {invoice_id}")
    return 0 if report.failed == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
