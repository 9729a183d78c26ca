#!/usr/bin/env python3
"""Create missing tables and backfill reconciliation columns.

Usage:
    PYTHONPATH=. python scripts/setup_database.py [--database-url URL]

Safe to run repeatedly: existing tables are left alone, and only invoices
whose paid/remaining amounts are NULL are backfilled.
"""
import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backoffice.config import configure_logging, load_config
from backoffice.data.db import backfill_reconciliation_columns, check_schema, get_engine, get_session, init_db
from domain.errors import LedgerError
from domain.messages import describe_error

logger = logging.getLogger("setup_database")


def main():
    parser = argparse.ArgumentParser(description="Create or repair the ledger schema")
    parser.add_argument("--database-url", help="SQLAlchemy URL (defaults to config / DATABASE_URL)")
    args = parser.parse_args()

    config = load_config()
    configure_logging(config)
    engine = get_engine(args.database_url or config["database"]["url"])

    try:
        init_db(engine)
        with get_session(engine) as session:
            backfilled = backfill_reconciliation_columns(session)
        check_schema(engine)
    except LedgerError as exc:
        logger.error("Schema setup failed: %s", exc)
        print(describe_error(exc, "Schema setup failed."))
        return 1

    print(f"Schema ready ({engine.url.render_as_string(hide_password=True)}).")
    print(f"Invoices backfilled: {backfilled}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
