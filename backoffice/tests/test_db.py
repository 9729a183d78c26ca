"""Tests for backoffice.data.db: engine setup, schema probe and backfill."""

from decimal import Decimal

import pytest
from sqlalchemy import text

from backoffice.data.db import (
    backfill_reconciliation_columns,
    check_schema,
    get_engine,
    get_session,
    init_db,
    ping,
)
from domain.errors import SchemaDriftError


@pytest.fixture
def engine():
    engine = get_engine("sqlite:///:memory:")
    yield engine
    engine.dispose()


class TestGetEngine:
    def test_sqlite_foreign_keys_enabled(self, engine):
        with engine.connect() as conn:
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1

    def test_absolute_file_path_untouched(self, tmp_path):
        db_file = tmp_path / "ledger.db"
        engine = get_engine(f"sqlite:///{db_file}")
        try:
            init_db(engine)
            assert db_file.exists()
        finally:
            engine.dispose()


class TestCheckSchema:
    def test_complete_schema_passes(self, engine):
        init_db(engine)
        check_schema(engine)

    def test_empty_database_lists_all_tables(self, engine):
        with pytest.raises(SchemaDriftError) as excinfo:
            check_schema(engine)
        assert set(excinfo.value.missing) == {"merchants", "invoices", "payments"}
        assert "setup_database.py" in excinfo.value.remediation

    def test_missing_columns_reported(self, engine):
        with engine.begin() as conn:
            conn.execute(text("CREATE TABLE merchants (id INTEGER PRIMARY KEY, name TEXT, status TEXT, category TEXT)"))
            conn.execute(text(
                "CREATE TABLE invoices (id TEXT PRIMARY KEY, merchant_id INTEGER, amount NUMERIC, "
                "status TEXT, due_date DATE)"
            ))
            conn.execute(text(
                "CREATE TABLE payments (id INTEGER PRIMARY KEY, invoice_id TEXT, amount NUMERIC, "
                "payment_method TEXT, payment_date DATE)"
            ))
        with pytest.raises(SchemaDriftError) as excinfo:
            check_schema(engine)
        assert excinfo.value.missing == ["invoices.paid_amount", "invoices.remaining_amount"]


class TestBackfill:
    def test_fills_null_aggregates(self, engine):
        init_db(engine)
        session = get_session(engine)
        try:
            session.execute(text(
                "INSERT INTO invoices (id, amount, paid_amount, remaining_amount, status) "
                "VALUES ('OLD', 42.50, NULL, NULL, 'pending')"
            ))
            session.commit()
            assert backfill_reconciliation_columns(session) == 1
            row = session.execute(
                text("SELECT paid_amount, remaining_amount FROM invoices WHERE id = 'OLD'")
            ).one()
            assert Decimal(str(row.paid_amount)) == 0
            assert Decimal(str(row.remaining_amount)) == Decimal("42.50")
        finally:
            session.close()


class TestPing:
    def test_reachable(self, engine):
        ping(engine)
