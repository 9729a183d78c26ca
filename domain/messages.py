"""User-facing error messages — pure functions, zero external dependencies.

Turns exceptions into short human-readable messages with a suggested fix.
Each operation fails independently; nothing here aborts the application.
"""

from domain.errors import (
    IntegrityViolationError,
    NotFoundError,
    SchemaDriftError,
    StoreUnavailableError,
    ValidationError,
)

SETUP_HINT = "Fix: run scripts/setup_database.py to repair the schema."
RETRY_HINT = "Check your connection and try again."

# (fragments, message) checked in order against the lower-cased error text.
_MESSAGE_RULES = [
    (("foreign key",), "Related record is missing or still referenced.\n" + SETUP_HINT),
    (("does not exist", "no such table", "no such column"),
     "A required table or column is missing from the database.\n" + SETUP_HINT),
    (("check constraint",), "Invalid data: make sure the amount is greater than zero."),
    (("null value", "not null constraint"), "Required data is missing: fill in all required fields."),
    (("duplicate key", "unique constraint"), "This record already exists and cannot be added twice."),
    (("permission denied", "insufficient privilege"),
     "You are not allowed to perform this action. Check your account settings."),
    (("network", "fetch failed", "connection"), "Network problem.\n" + RETRY_HINT),
    (("timeout", "timed out"), "The request timed out.\nTry again in a moment."),
    (("internal server error", "server error"), "Server error.\nTry again in a few minutes."),
    (("unauthorized",), "You are not authorised.\nCheck that you are signed in."),
    (("forbidden",), "Access forbidden.\nCheck your account settings."),
    (("not found",), "The requested data could not be found.\nCheck the values you entered."),
    (("bad request",), "Invalid request: check the data you entered."),
    (("jwt", "token"), "Your session has expired.\nReload and sign in again."),
    (("invalid input", "syntax error"), "Invalid data: check the format of what you entered."),
    (("out of range",), "The number entered is too large or too small."),
    (("invalid date", "date format"), "Invalid date: check the date format."),
    (("quota", "limit exceeded"), "Usage limit exceeded.\nTry again later."),
    (("maintenance", "service unavailable"), "The service is down for maintenance.\nTry again later."),
]

MAX_ECHO_LENGTH = 100


def translate_error(exc) -> str:
    """Return a readable message (with remediation hint) for *exc*."""
    if exc is None or not str(exc):
        return "An unknown error occurred."

    if isinstance(exc, SchemaDriftError):
        return f"A required table or column is missing from the database.\nFix: {exc.remediation}"
    if isinstance(exc, StoreUnavailableError):
        return "The database is unreachable.\n" + RETRY_HINT
    if isinstance(exc, ValidationError):
        return f"Invalid data: {exc}"
    if isinstance(exc, NotFoundError):
        return f"{exc}.\nIt may have been deleted by someone else; refresh and try again."

    text = str(exc)
    lowered = text.lower()
    for fragments, message in _MESSAGE_RULES:
        if any(fragment in lowered for fragment in fragments):
            return message

    if isinstance(exc, IntegrityViolationError):
        return "The database rejected the change because it breaks a data rule."
    if len(text) > MAX_ECHO_LENGTH:
        return "A system error occurred.\nTry again or contact support."
    return f"Error: {text}"


def describe_error(exc, context=""):
    """:func:`translate_error` prefixed with a line describing what failed."""
    message = translate_error(exc)
    if context:
        return f"{context}\n\n{message}"
    return message
