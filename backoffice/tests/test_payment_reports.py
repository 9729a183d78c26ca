"""Tests for backoffice.analytics.payments: pandas payment reports."""

import importlib.util
from datetime import date
from decimal import Decimal
from pathlib import Path

import pandas as pd
import pytest

from backoffice.adapters.outbound.memory_repos import (
    InMemoryInvoiceRepository,
    InMemoryMerchantRepository,
    InMemoryPaymentRepository,
)
from backoffice.analytics.payments import (
    PAYMENT_COLUMNS,
    REPORT_NAMES,
    build_reports,
    daily_totals,
    export_csv,
    merchant_collection,
    payments_dataframe,
    totals_by_method,
)
from domain.models import Invoice, Merchant, Payment, PaymentMethod


@pytest.fixture
def stores():
    payments = InMemoryPaymentRepository()
    invoices = InMemoryInvoiceRepository(payments=payments)
    merchants = InMemoryMerchantRepository()

    north = merchants.add(Merchant(name="North"))
    south = merchants.add(Merchant(name="South"))
    invoices.add(Invoice(id="N-1", amount=Decimal("100.00"), merchant_id=north.id))
    invoices.add(Invoice(id="S-1", amount=Decimal("300.00"), merchant_id=south.id))

    payments.add(Payment(invoice_id="N-1", amount=Decimal("0.10"), payment_date=date(2024, 1, 1)))
    payments.add(Payment(invoice_id="N-1", amount=Decimal("0.20"), payment_date=date(2024, 1, 1)))
    payments.add(Payment(
        invoice_id="S-1", amount=Decimal("75.00"), payment_method=PaymentMethod.BANK_TRANSFER,
        payment_date=date(2024, 1, 2),
    ))
    return merchants, invoices, payments


class TestPaymentsDataframe:
    def test_columns_and_rows(self, stores):
        df = payments_dataframe(stores[2])
        assert list(df.columns) == PAYMENT_COLUMNS
        assert len(df) == 3
        assert set(df["payment_method"]) == {"cash", "bank-transfer"}

    def test_empty(self):
        df = payments_dataframe(InMemoryPaymentRepository())
        assert df.empty
        assert list(df.columns) == PAYMENT_COLUMNS


class TestTotalsByMethod:
    def test_exact_totals(self, stores):
        result = totals_by_method(payments_dataframe(stores[2])).set_index("payment_method")
        assert result.loc["cash", "total"] == Decimal("0.30")
        assert result.loc["cash", "count"] == 2
        assert result.loc["bank-transfer", "total"] == Decimal("75.00")
        assert result.loc["cheque", "total"] == 0
        assert result.loc["cheque", "count"] == 0

    def test_empty_lists_every_method(self):
        result = totals_by_method(payments_dataframe(InMemoryPaymentRepository()))
        assert list(result["payment_method"]) == [m.value for m in PaymentMethod]
        assert list(result["count"]) == [0, 0, 0, 0]


class TestDailyTotals:
    def test_per_day(self, stores):
        result = daily_totals(payments_dataframe(stores[2]))
        assert list(result["payment_date"]) == [date(2024, 1, 1), date(2024, 1, 2)]
        assert list(result["total"]) == [Decimal("0.30"), Decimal("75.00")]
        assert list(result["count"]) == [2, 1]

    def test_empty(self):
        assert daily_totals(payments_dataframe(InMemoryPaymentRepository())).empty


class TestMerchantCollection:
    def test_sorted_by_outstanding(self, stores):
        df = merchant_collection(*stores)
        assert list(df["merchant"]) == ["South", "North"]
        south = df.iloc[0]
        assert south["invoiced"] == Decimal("300.00")
        assert south["collected"] == Decimal("75.00")
        assert south["outstanding"] == Decimal("225.00")
        assert south["collection_rate"] == 25


class TestExport:
    def test_build_reports_names(self, stores):
        frames = build_reports(*stores)
        assert tuple(frames) == REPORT_NAMES
        assert len(frames["daily"]) == 2

    def test_export_csv_writes_one_file_per_report(self, stores, tmp_path):
        written = export_csv(build_reports(*stores), tmp_path / "out")
        assert sorted(p.name for p in written) == ["by_method.csv", "daily.csv", "merchants.csv"]

        daily = pd.read_csv(tmp_path / "out" / "daily.csv", dtype=str)
        assert list(daily["total"]) == ["0.30", "75.00"]
        merchants = pd.read_csv(tmp_path / "out" / "merchants.csv", dtype=str)
        assert list(merchants["merchant"]) == ["South", "North"]


def _load_script():
    path = Path(__file__).resolve().parents[2] / "scripts" / "payment_report.py"
    module_spec = importlib.util.spec_from_file_location("payment_report", path)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


class TestPaymentReportScript:
    @pytest.fixture
    def script(self, monkeypatch):
        monkeypatch.delenv("REDIS_URL", raising=False)
        module = _load_script()
        config = {
            "database": {"url": "memory"},
            "cache": {"redis_url": None},
            "realtime": {"backend": "memory"},
        }
        monkeypatch.setattr(module, "load_config", lambda: config)
        return module

    def test_csv_export(self, script, tmp_path, capsys):
        assert script.main(["--csv", str(tmp_path)]) == 0
        assert (tmp_path / "by_method.csv").exists()
        assert (tmp_path / "merchants.csv").exists()
        assert "Wrote" in capsys.readouterr().out

    def test_prints_single_report(self, script, capsys):
        assert script.main(["--report", "by_method"]) == 0
        out = capsys.readouterr().out
        assert "Payments by method" in out
        assert "bank-transfer" in out
        assert "Payments per day" not in out
