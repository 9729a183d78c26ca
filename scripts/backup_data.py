#!/usr/bin/env python3
"""Write a JSON backup of merchants, invoices and payments.

Usage:
    PYTHONPATH=. python scripts/backup_data.py [--output-dir backup/]
"""
import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backoffice.app import create_app
from backoffice.config import configure_logging, load_config
from backoffice.data.backup import build_backup, total_amount, write_backup
from domain.errors import LedgerError
from domain.messages import describe_error
from domain.reconciliation import format_amount

logger = logging.getLogger("backup_data")


def main():
    config = load_config()
    parser = argparse.ArgumentParser(description="Backup ledger data to JSON")
    parser.add_argument("--output-dir", default=config.get("backup", {}).get("directory", "backup"))
    args = parser.parse_args()
    configure_logging(config)

    try:
        with create_app(config) as app:
            backup = build_backup(app.merchants, app.invoices, app.payments)
    except LedgerError as exc:
        logger.error("Backup failed: %s", exc)
        print(describe_error(exc, "Backup failed."))
        return 1

    path = write_backup(backup, args.output_dir)
    data = backup["data"]
    print(f"Backup written: {path}")
    print(f"  merchants: {len(data['merchants'])}")
    print(f"  invoices:  {len(data['invoices'])} (total {format_amount(total_amount(data['invoices']))})")
    print(f"  payments:  {len(data['payments'])} (total {format_amount(total_amount(data['payments']))})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
