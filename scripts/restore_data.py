#!/usr/bin/env python3
"""Restore a JSON backup into the configured store, then re-sync invoices.

Usage:
    PYTHONPATH=. python scripts/restore_data.py [backup/latest-backup.json]
"""
import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backoffice.app import create_app
from backoffice.config import configure_logging, load_config
from backoffice.data.backup import LATEST_BACKUP, read_backup, restore_backup
from domain.errors import LedgerError
from domain.messages import describe_error

logger = logging.getLogger("restore_data")


def main():
    config = load_config()
    default_path = os.path.join(config.get("backup", {}).get("directory", "backup"), LATEST_BACKUP)
    parser = argparse.ArgumentParser(description="Restore ledger data from a JSON backup")
    parser.add_argument("path", nargs="?", default=default_path)
    parser.add_argument("--no-sync", action="store_true", help="Skip recomputing invoices afterwards")
    args = parser.parse_args()
    configure_logging(config)

    if not os.path.exists(args.path):
        print(f"Backup file not found: {args.path}")
        return 1
    backup = read_backup(args.path)

    try:
        with create_app(config) as app:
            report = restore_backup(backup, app.merchants, app.invoices, app.payments)
            sync = None if args.no_sync else app.ledger.recompute_all()
    except LedgerError as exc:
        logger.error("Restore failed: %s", exc)
        print(describe_error(exc, "Restore failed."))
        return 1

    print(f"Restored merchants: {report.merchants}  invoices: {report.invoices}  payments: {report.payments}")
    for failure in report.failures:
        print(f"  failed: {failure}")
    if sync is not None:
        print(f"Re-synced {sync.succeeded}/{sync.total} invoices")
    return 0 if report.failed == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
