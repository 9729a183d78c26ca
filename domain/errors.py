"""Domain error taxonomy — pure Python, zero external dependencies.

Adapters translate driver/library exceptions into these types so services
and scripts only ever handle ``LedgerError`` subclasses.
"""


class LedgerError(Exception):
    """Base class for every error raised by the ledger."""


class ValidationError(LedgerError):
    """Input rejected before reaching the store or the reconciliation engine."""

    def __init__(self, message, field=None):
        super().__init__(message)
        self.field = field


class NotFoundError(LedgerError):
    """A requested row does not exist."""


class InvoiceNotFoundError(NotFoundError):
    def __init__(self, invoice_id):
        super().__init__(f"Invoice {invoice_id} not found")
        self.invoice_id = invoice_id


class PaymentNotFoundError(NotFoundError):
    def __init__(self, payment_id):
        super().__init__(f"Payment {payment_id} not found")
        self.payment_id = payment_id


class MerchantNotFoundError(NotFoundError):
    def __init__(self, merchant_id):
        super().__init__(f"Merchant {merchant_id} not found")
        self.merchant_id = merchant_id


class StoreError(LedgerError):
    """The external store rejected or failed an operation."""


class StoreUnavailableError(StoreError):
    """Transient I/O failure; the user action may be retried."""


class SchemaDriftError(StoreError):
    """An expected table or column is absent from the store."""

    DEFAULT_REMEDIATION = "Run scripts/setup_database.py to create the missing schema."

    def __init__(self, message, missing=None, remediation=None):
        super().__init__(message)
        self.missing = list(missing or [])
        self.remediation = remediation or self.DEFAULT_REMEDIATION


class IntegrityViolationError(StoreError):
    """A constraint (unique, foreign key, check, not null) was violated."""
