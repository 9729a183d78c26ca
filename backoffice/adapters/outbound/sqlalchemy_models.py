from datetime import date, datetime, timezone
from sqlalchemy import (
    JSON, Column, Integer, String, Numeric, Date, DateTime, Text, ForeignKey, Index, CheckConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def _utcnow():
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Merchant(Base):
    __tablename__ = "merchants"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String)
    phone = Column(String)
    address = Column(Text)
    status = Column(String, default="active")  # "active", "suspended", "inactive"
    category = Column(String, default="retail")  # "retail", "wholesale", "services"
    join_date = Column(Date, default=date.today)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    invoices = relationship("Invoice", back_populates="merchant")


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(String(50), primary_key=True)
    merchant_id = Column(Integer, ForeignKey("merchants.id"))
    merchant_name = Column(String)
    merchant_phone = Column(String)
    amount = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), default=0)
    remaining_amount = Column(Numeric(12, 2))
    status = Column(String, default="pending")
    date = Column(Date)
    due_date = Column(Date)
    items = Column(JSON, default=list)  # [{"name", "quantity", "price"}]
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    merchant = relationship("Merchant", back_populates="invoices")
    payments = relationship(
        "Payment", back_populates="invoice", cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_invoices_merchant", "merchant_id"),
        Index("idx_invoices_status", "status"),
    )


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    invoice_id = Column(String(50), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    merchant_id = Column(Integer, ForeignKey("merchants.id"))
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(20), default="cash")  # "cash", "bank-transfer", "cheque", "credit-card"
    payment_date = Column(Date, default=date.today)
    notes = Column(Text)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    invoice = relationship("Invoice", back_populates="payments")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        Index("idx_payments_invoice", "invoice_id"),
        Index("idx_payments_date", "payment_date"),
    )
