#!/usr/bin/env python3
"""Print payment reports, or export them as CSV files.

Usage:
    PYTHONPATH=. python scripts/payment_report.py                    # all reports
    PYTHONPATH=. python scripts/payment_report.py --report daily
    PYTHONPATH=. python scripts/payment_report.py --csv reports/     # one CSV per report
"""
import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backoffice.analytics.payments import REPORT_NAMES, build_reports, export_csv
from backoffice.app import create_app
from backoffice.config import configure_logging, load_config
from domain.errors import LedgerError
from domain.messages import describe_error

logger = logging.getLogger("payment_report")

TITLES = {
    "by_method": "Payments by method",
    "daily": "Payments per day",
    "merchants": "Collection by merchant",
}


def main(argv=None):
    parser = argparse.ArgumentParser(description="Payment reports")
    parser.add_argument("--report", choices=REPORT_NAMES, help="Only this report")
    parser.add_argument("--csv", metavar="DIR", help="Write CSV files to DIR instead of printing")
    args = parser.parse_args(argv)

    config = load_config()
    configure_logging(config)

    try:
        with create_app(config) as app:
            frames = build_reports(app.merchants, app.invoices, app.payments)
    except LedgerError as exc:
        logger.error("Payment report failed: %s", exc)
        print(describe_error(exc, "Payment report failed."))
        return 1

    if args.report:
        frames = {args.report: frames[args.report]}

    if args.csv:
        for path in export_csv(frames, args.csv):
            print(f"Wrote {path}")
        return 0

    for name, df in frames.items():
        print(f"== {TITLES[name]} ==")
        print(df.to_string(index=False) if not df.empty else "(no payments)")
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
