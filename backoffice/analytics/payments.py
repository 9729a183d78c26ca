"""Payment reports -- pandas facade over domain/analytics/ledger.py.

This module shapes payment rows into DataFrames for export and charts.
Amount columns hold ``Decimal`` objects and are aggregated with
``domain.reconciliation.total_paid`` so report totals match the
reconciliation engine to the cent.
"""

from pathlib import Path

import pandas as pd

from domain.models import PaymentMethod
from domain.ports import InvoiceRepository, MerchantRepository, PaymentRepository
from domain.reconciliation import payment_percentage, remaining, to_decimal, total_paid

PAYMENT_COLUMNS = [
    "id", "invoice_id", "merchant_id", "amount", "payment_method", "payment_date", "notes",
]


def _decimal_sum(series: pd.Series):
    return total_paid({"amount": v} for v in series)


def payments_dataframe(payments: PaymentRepository) -> pd.DataFrame:
    """One row per payment; ``amount`` is an object column of Decimals."""
    rows = [
        (p.id, p.invoice_id, p.merchant_id, p.amount, p.payment_method.value, p.payment_date, p.notes)
        for p in payments.list_all()
    ]
    return pd.DataFrame(rows, columns=PAYMENT_COLUMNS)


def totals_by_method(df: pd.DataFrame) -> pd.DataFrame:
    """Amount and count per payment method, including methods with no payments."""
    methods = [m.value for m in PaymentMethod]
    if df.empty:
        return pd.DataFrame({
            "payment_method": methods,
            "total": [to_decimal(0)] * len(methods),
            "count": [0] * len(methods),
        })
    grouped = df.groupby("payment_method")["amount"].agg(total=_decimal_sum, count="count")
    grouped = grouped.reindex(methods)
    grouped["total"] = grouped["total"].map(to_decimal)
    grouped["count"] = grouped["count"].fillna(0).astype(int)
    return grouped.reset_index()


def daily_totals(df: pd.DataFrame) -> pd.DataFrame:
    """Amount collected per payment date, oldest first."""
    if df.empty:
        return pd.DataFrame(columns=["payment_date", "total", "count"])
    result = (
        df.groupby("payment_date")["amount"]
        .agg(total=_decimal_sum, count="count")
        .sort_index()
        .reset_index()
    )
    return result


def merchant_collection(
    merchants: MerchantRepository, invoices: InvoiceRepository, payments: PaymentRepository,
) -> pd.DataFrame:
    """Per-merchant invoiced / collected / outstanding amounts and collection rate (%)."""
    by_invoice: dict = {}
    for p in payments.list_all():
        by_invoice.setdefault(p.invoice_id, []).append(p)

    rows = []
    for merchant in merchants.list_all():
        merchant_invoices = invoices.list_by_merchant(merchant.id)
        invoiced = sum((to_decimal(i.amount) for i in merchant_invoices), to_decimal(0))
        collected = total_paid(
            p for i in merchant_invoices for p in by_invoice.get(i.id, [])
        )
        outstanding = sum(
            (remaining(i.amount, total_paid(by_invoice.get(i.id, []))) for i in merchant_invoices),
            to_decimal(0),
        )
        rows.append({
            "merchant": merchant.name,
            "invoices": len(merchant_invoices),
            "invoiced": invoiced,
            "collected": collected,
            "outstanding": outstanding,
            "collection_rate": payment_percentage(invoiced, collected),
        })
    df = pd.DataFrame(
        rows,
        columns=["merchant", "invoices", "invoiced", "collected", "outstanding", "collection_rate"],
    )
    return df.sort_values("outstanding", ascending=False, key=lambda s: s.map(float)).reset_index(drop=True)


REPORT_NAMES = ("by_method", "daily", "merchants")


def build_reports(
    merchants: MerchantRepository, invoices: InvoiceRepository, payments: PaymentRepository,
) -> dict:
    """All payment reports keyed by name (see ``REPORT_NAMES``)."""
    df = payments_dataframe(payments)
    return {
        "by_method": totals_by_method(df),
        "daily": daily_totals(df),
        "merchants": merchant_collection(merchants, invoices, payments),
    }


def export_csv(frames: dict, out_dir) -> list:
    """Write each report to ``<out_dir>/<name>.csv``; returns the paths written."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for name, df in frames.items():
        path = out_dir / f"{name}.csv"
        df.to_csv(path, index=False)
        written.append(path)
    return written
