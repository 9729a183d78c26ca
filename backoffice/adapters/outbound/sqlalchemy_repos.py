"""SQLAlchemy implementations of domain repository ports.

Each adapter translates between ORM models (sqlalchemy_models) and
pure domain models (domain.models), keeping the domain layer free
of any infrastructure dependency. Driver errors are re-raised as
domain errors, and every committed mutation is announced on the
optional change feed, the way the hosted store pushes row changes.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from backoffice.adapters.outbound.change_feed import publish_change
from backoffice.adapters.outbound.sqlalchemy_models import (
    Invoice as OrmInvoice,
    Merchant as OrmMerchant,
    Payment as OrmPayment,
)
from domain.errors import (
    IntegrityViolationError,
    InvoiceNotFoundError,
    MerchantNotFoundError,
    PaymentNotFoundError,
    SchemaDriftError,
    StoreError,
    StoreUnavailableError,
)
from domain.models import (
    ChangeEvent,
    ChangeType,
    Invoice as DomainInvoice,
    InvoiceStatus,
    LineItem,
    Merchant as DomainMerchant,
    MerchantCategory,
    MerchantStatus,
    Payment as DomainPayment,
    PaymentMethod,
)
from domain.ports import ChangeFeedPort, InvoiceRepository, MerchantRepository, PaymentRepository
from domain.reconciliation import is_valid_amount, to_decimal

logger = logging.getLogger(__name__)

_SCHEMA_MARKERS = ("no such table", "no such column", "does not exist", "undefined column")


@contextmanager
def store_errors(session: Session):
    """Roll back and translate SQLAlchemy errors into domain errors."""
    try:
        yield
    except IntegrityError as exc:
        session.rollback()
        raise IntegrityViolationError(str(exc.orig)) from exc
    except (OperationalError, ProgrammingError) as exc:
        session.rollback()
        message = str(exc.orig)
        if any(marker in message.lower() for marker in _SCHEMA_MARKERS):
            raise SchemaDriftError(message) from exc
        raise StoreUnavailableError(message) from exc
    except DBAPIError as exc:
        session.rollback()
        raise StoreError(str(exc.orig)) from exc


def _json_value(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def row_snapshot(orm) -> dict:
    """Column values of an ORM row as a JSON-ready dict."""
    return {
        column.key: _json_value(getattr(orm, column.key))
        for column in orm.__table__.columns
    }


def _parse_stored(enum_cls, value, default, what):
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning("Unknown %s %r in store, using %s", what, value, default.value)
        return default


def _stored_quantity(value, invoice_id):
    try:
        quantity = int(value)
    except (TypeError, ValueError, OverflowError):
        logger.warning("Invalid line quantity %r on invoice %s, using 1", value, invoice_id)
        return 1
    return quantity if quantity >= 1 else 1


class _SqlAlchemyRepository:
    table = ""

    def __init__(self, session: Session, change_feed: ChangeFeedPort | None = None) -> None:
        self._session = session
        self._feed = change_feed

    def _commit(self, change_type: ChangeType, old: dict | None = None, new: dict | None = None):
        self._session.commit()
        if self._feed is not None:
            publish_change(
                self._feed,
                ChangeEvent(table=self.table, change_type=change_type, old=old or {}, new=new or {}),
            )


class SqlAlchemyInvoiceRepository(_SqlAlchemyRepository, InvoiceRepository):
    """SQLAlchemy adapter for the InvoiceRepository port."""

    table = "invoices"

    # ── Queries ────────────────────────────────────────────────────────

    def get(self, invoice_id: str) -> DomainInvoice | None:
        with store_errors(self._session):
            orm = self._session.get(OrmInvoice, invoice_id)
        return self._to_domain(orm) if orm is not None else None

    def list_all(self) -> list[DomainInvoice]:
        """Return all invoices, newest first."""
        stmt = select(OrmInvoice).order_by(OrmInvoice.created_at.desc(), OrmInvoice.id)
        with store_errors(self._session):
            return [self._to_domain(orm) for orm in self._session.scalars(stmt)]

    def list_by_merchant(self, merchant_id: int) -> list[DomainInvoice]:
        stmt = (
            select(OrmInvoice)
            .where(OrmInvoice.merchant_id == merchant_id)
            .order_by(OrmInvoice.created_at.desc(), OrmInvoice.id)
        )
        with store_errors(self._session):
            return [self._to_domain(orm) for orm in self._session.scalars(stmt)]

    # ── Commands ───────────────────────────────────────────────────────

    def add(self, invoice: DomainInvoice) -> DomainInvoice:
        """Persist a new invoice; merchant name is denormalised from the merchant row."""
        with store_errors(self._session):
            merchant = (
                self._session.get(OrmMerchant, invoice.merchant_id)
                if invoice.merchant_id is not None
                else None
            )
            orm = OrmInvoice(id=invoice.id)
            self._apply(orm, invoice)
            orm.paid_amount = invoice.paid_amount
            orm.remaining_amount = (
                invoice.remaining_amount
                if invoice.remaining_amount is not None
                else invoice.amount
            )
            if merchant is not None:
                orm.merchant_name = merchant.name
                orm.merchant_phone = merchant.phone
            self._session.add(orm)
            self._session.flush()
            invoice.merchant_name = orm.merchant_name
            invoice.created_at = orm.created_at
            self._commit(ChangeType.INSERT, new=row_snapshot(orm))
        return invoice

    def update(self, invoice: DomainInvoice) -> DomainInvoice:
        """Update the editable fields of an invoice (not its payment aggregates)."""
        with store_errors(self._session):
            orm = self._session.get(OrmInvoice, invoice.id)
            if orm is None:
                raise InvoiceNotFoundError(invoice.id)
            old = row_snapshot(orm)
            self._apply(orm, invoice)
            self._session.flush()
            self._commit(ChangeType.UPDATE, old=old, new=row_snapshot(orm))
        return invoice

    def save_reconciliation(self, invoice_id, paid, remaining, status) -> None:
        with store_errors(self._session):
            orm = self._session.get(OrmInvoice, invoice_id)
            if orm is None:
                raise InvoiceNotFoundError(invoice_id)
            old = row_snapshot(orm)
            orm.paid_amount = paid
            orm.remaining_amount = remaining
            orm.status = status.value
            self._session.flush()
            self._commit(ChangeType.UPDATE, old=old, new=row_snapshot(orm))

    def delete(self, invoice_id: str) -> None:
        """Delete an invoice; the ORM cascade removes its payments."""
        with store_errors(self._session):
            orm = self._session.get(OrmInvoice, invoice_id)
            if orm is None:
                raise InvoiceNotFoundError(invoice_id)
            old = row_snapshot(orm)
            self._session.delete(orm)
            self._session.flush()
            self._commit(ChangeType.DELETE, old=old)

    # ── Internal helpers ───────────────────────────────────────────────

    @staticmethod
    def _apply(orm: OrmInvoice, invoice: DomainInvoice) -> None:
        orm.merchant_id = invoice.merchant_id
        orm.amount = invoice.amount
        orm.status = invoice.status.value
        orm.date = invoice.issue_date
        orm.due_date = invoice.due_date
        orm.items = [
            {"name": item.name, "quantity": item.quantity, "price": str(item.price)}
            for item in invoice.items
        ]
        if invoice.merchant_name is not None:
            orm.merchant_name = invoice.merchant_name

    @staticmethod
    def _to_domain(orm: OrmInvoice) -> DomainInvoice:
        """Convert an ORM Invoice row to a domain Invoice."""
        items = [
            LineItem(
                name=item.get("name", ""),
                quantity=_stored_quantity(item.get("quantity", 1), orm.id),
                price=to_decimal(item.get("price")),
            )
            for item in (orm.items or [])
        ]
        return DomainInvoice(
            id=orm.id,
            amount=to_decimal(orm.amount),
            merchant_id=orm.merchant_id,
            status=_parse_stored(InvoiceStatus, orm.status, InvoiceStatus.PENDING, "invoice status"),
            issue_date=orm.date,
            due_date=orm.due_date,
            items=items,
            paid_amount=to_decimal(orm.paid_amount),
            # Rows created before the column existed carry NULL: treat as unpaid.
            remaining_amount=(
                to_decimal(orm.remaining_amount)
                if orm.remaining_amount is not None
                else to_decimal(orm.amount)
            ),
            merchant_name=orm.merchant_name,
            created_at=orm.created_at,
        )


class SqlAlchemyPaymentRepository(_SqlAlchemyRepository, PaymentRepository):
    """SQLAlchemy adapter for the PaymentRepository port."""

    table = "payments"

    # ── Queries ────────────────────────────────────────────────────────

    def get(self, payment_id: int) -> DomainPayment | None:
        with store_errors(self._session):
            orm = self._session.get(OrmPayment, payment_id)
        return self._to_domain(orm) if orm is not None else None

    def list_by_invoice(self, invoice_id: str) -> list[DomainPayment]:
        """Return an invoice's payments, most recent first."""
        stmt = (
            select(OrmPayment)
            .where(OrmPayment.invoice_id == invoice_id)
            .order_by(OrmPayment.created_at.desc(), OrmPayment.id.desc())
        )
        with store_errors(self._session):
            return [self._to_domain(orm) for orm in self._session.scalars(stmt)]

    def list_all(self) -> list[DomainPayment]:
        stmt = select(OrmPayment).order_by(OrmPayment.created_at.desc(), OrmPayment.id.desc())
        with store_errors(self._session):
            return [self._to_domain(orm) for orm in self._session.scalars(stmt)]

    # ── Commands ───────────────────────────────────────────────────────

    def add(self, payment: DomainPayment) -> DomainPayment:
        with store_errors(self._session):
            orm = OrmPayment()
            self._apply(orm, payment)
            self._session.add(orm)
            self._session.flush()
            payment.id = orm.id
            payment.payment_date = orm.payment_date
            payment.created_at = orm.created_at
            self._commit(ChangeType.INSERT, new=row_snapshot(orm))
        return payment

    def update(self, payment: DomainPayment) -> DomainPayment:
        with store_errors(self._session):
            orm = self._session.get(OrmPayment, payment.id)
            if orm is None:
                raise PaymentNotFoundError(payment.id)
            old = row_snapshot(orm)
            self._apply(orm, payment)
            self._session.flush()
            self._commit(ChangeType.UPDATE, old=old, new=row_snapshot(orm))
        return payment

    def delete(self, payment_id: int) -> DomainPayment | None:
        """Delete a payment and return it, or None when it does not exist."""
        with store_errors(self._session):
            orm = self._session.get(OrmPayment, payment_id)
            if orm is None:
                return None
            deleted = self._to_domain(orm)
            old = row_snapshot(orm)
            self._session.delete(orm)
            self._session.flush()
            self._commit(ChangeType.DELETE, old=old)
        return deleted

    # ── Internal helpers ───────────────────────────────────────────────

    @staticmethod
    def _apply(orm: OrmPayment, payment: DomainPayment) -> None:
        orm.invoice_id = payment.invoice_id
        orm.merchant_id = payment.merchant_id
        orm.amount = payment.amount
        orm.payment_method = payment.payment_method.value
        if payment.payment_date is not None:
            orm.payment_date = payment.payment_date
        orm.notes = payment.notes

    @staticmethod
    def _to_domain(orm: OrmPayment) -> DomainPayment:
        """Convert an ORM Payment row to a domain Payment."""
        if not is_valid_amount(orm.amount):
            # The CHECK constraint is missing on hand-migrated tables.
            logger.warning("Payment %s has invalid amount %r in store", orm.id, orm.amount)
        return DomainPayment(
            invoice_id=orm.invoice_id,
            amount=to_decimal(orm.amount),
            payment_method=_parse_stored(
                PaymentMethod, orm.payment_method, PaymentMethod.CASH, "payment method"
            ),
            payment_date=orm.payment_date,
            notes=orm.notes,
            merchant_id=orm.merchant_id,
            id=orm.id,
            created_at=orm.created_at,
        )


class SqlAlchemyMerchantRepository(_SqlAlchemyRepository, MerchantRepository):
    """SQLAlchemy adapter for the MerchantRepository port."""

    table = "merchants"

    def get(self, merchant_id: int) -> DomainMerchant | None:
        with store_errors(self._session):
            orm = self._session.get(OrmMerchant, merchant_id)
        return self._to_domain(orm) if orm is not None else None

    def list_all(self) -> list[DomainMerchant]:
        stmt = select(OrmMerchant).order_by(OrmMerchant.created_at.desc(), OrmMerchant.id)
        with store_errors(self._session):
            return [self._to_domain(orm) for orm in self._session.scalars(stmt)]

    def add(self, merchant: DomainMerchant) -> DomainMerchant:
        with store_errors(self._session):
            orm = OrmMerchant()
            self._apply(orm, merchant)
            self._session.add(orm)
            self._session.flush()
            merchant.id = orm.id
            merchant.join_date = orm.join_date
            self._commit(ChangeType.INSERT, new=row_snapshot(orm))
        return merchant

    def update(self, merchant: DomainMerchant) -> DomainMerchant:
        with store_errors(self._session):
            orm = self._session.get(OrmMerchant, merchant.id)
            if orm is None:
                raise MerchantNotFoundError(merchant.id)
            old = row_snapshot(orm)
            self._apply(orm, merchant)
            self._session.flush()
            self._commit(ChangeType.UPDATE, old=old, new=row_snapshot(orm))
        return merchant

    def delete(self, merchant_id: int) -> None:
        with store_errors(self._session):
            orm = self._session.get(OrmMerchant, merchant_id)
            if orm is None:
                raise MerchantNotFoundError(merchant_id)
            old = row_snapshot(orm)
            self._session.delete(orm)
            self._session.flush()
            self._commit(ChangeType.DELETE, old=old)

    @staticmethod
    def _apply(orm: OrmMerchant, merchant: DomainMerchant) -> None:
        orm.name = merchant.name
        orm.email = merchant.email
        orm.phone = merchant.phone
        orm.address = merchant.address
        orm.status = merchant.status.value
        orm.category = merchant.category.value
        if merchant.join_date is not None:
            orm.join_date = merchant.join_date

    @staticmethod
    def _to_domain(orm: OrmMerchant) -> DomainMerchant:
        return DomainMerchant(
            name=orm.name,
            email=orm.email,
            phone=orm.phone,
            address=orm.address,
            status=_parse_stored(MerchantStatus, orm.status, MerchantStatus.ACTIVE, "merchant status"),
            category=_parse_stored(
                MerchantCategory, orm.category, MerchantCategory.RETAIL, "merchant category"
            ),
            join_date=orm.join_date,
            id=orm.id,
        )
