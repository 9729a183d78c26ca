import logging
import os

from sqlalchemy import create_engine, event, inspect, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from backoffice.adapters.outbound.sqlalchemy_models import Base, Invoice
from domain.errors import SchemaDriftError, StoreUnavailableError

logger = logging.getLogger(__name__)

# Resolve DB path relative to the backoffice directory
_BACKOFFICE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_DEFAULT_DB = os.path.join(_BACKOFFICE_DIR, "data", "ledger.db")

# Columns the reconciliation path reads or writes, per table.
REQUIRED_COLUMNS = {
    "merchants": {"id", "name", "status", "category"},
    "invoices": {"id", "merchant_id", "amount", "paid_amount", "remaining_amount", "status", "due_date"},
    "payments": {"id", "invoice_id", "amount", "payment_method", "payment_date"},
}


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(url: str | None = None):
    db_url = url or os.environ.get("DATABASE_URL", f"sqlite:///{_DEFAULT_DB}")
    # Resolve relative sqlite paths from the backoffice directory
    if (
        db_url.startswith("sqlite:///")
        and not db_url.startswith("sqlite:////")
        and db_url != "sqlite:///:memory:"
    ):
        rel_path = db_url.replace("sqlite:///", "")
        if not os.path.isabs(rel_path):
            abs_path = os.path.join(_BACKOFFICE_DIR, rel_path)
            os.makedirs(os.path.dirname(abs_path), exist_ok=True)
            db_url = f"sqlite:///{abs_path}"
    engine = create_engine(db_url, echo=False)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def init_db(engine=None):
    if engine is None:
        engine = get_engine()
    Base.metadata.create_all(engine)
    return engine


def get_session(engine=None) -> Session:
    if engine is None:
        engine = get_engine()
    SessionFactory = sessionmaker(bind=engine)
    return SessionFactory()


def check_schema(engine) -> None:
    """Probe the store for the tables and columns the ledger depends on.

    Raises:
        SchemaDriftError: listing every missing ``table`` or ``table.column``.
        StoreUnavailableError: when the store cannot be reached at all.
    """
    try:
        inspector = inspect(engine)
        tables = set(inspector.get_table_names())
        missing = []
        for table, columns in REQUIRED_COLUMNS.items():
            if table not in tables:
                missing.append(table)
                continue
            present = {col["name"] for col in inspector.get_columns(table)}
            missing.extend(f"{table}.{col}" for col in sorted(columns - present))
    except SQLAlchemyError as exc:
        raise StoreUnavailableError(f"Cannot inspect database schema: {exc}") from exc
    if missing:
        logger.warning("Schema drift detected, missing: %s", ", ".join(missing))
        raise SchemaDriftError(
            f"Database schema is missing: {', '.join(missing)}", missing=missing
        )


def backfill_reconciliation_columns(session: Session) -> int:
    """Fill NULL paid/remaining amounts left by rows created before those columns existed."""
    paid = session.execute(
        update(Invoice).where(Invoice.paid_amount.is_(None)).values(paid_amount=0)
    ).rowcount
    remaining = session.execute(
        update(Invoice)
        .where(Invoice.remaining_amount.is_(None))
        .values(remaining_amount=Invoice.amount)
    ).rowcount
    session.commit()
    return max(paid, remaining)


def ping(engine) -> None:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        raise StoreUnavailableError(f"Database unreachable: {exc}") from exc
