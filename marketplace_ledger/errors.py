"""
Typed business errors raised by the service layer.

Services raise these; the API layer rolls back and maps
`status_code` onto the HTTP response. Every error is a
ValueError so callers that only care about "the request
was rejected" can keep catching ValueError.
"""


class LedgerError(ValueError):
    """Base class for every business-rule rejection."""
    status_code = 400


class ValidationError(LedgerError):
    """Non-positive amount, malformed period, malformed code."""
    status_code = 400


class InsufficientBalance(LedgerError):
    status_code = 400


class Forbidden(LedgerError):
    """Wrong actor role or wrong intended rider."""
    status_code = 403


class NotFound(LedgerError):
    status_code = 404


class Conflict(LedgerError):
    """Duplicate period, code already consumed, invalid transition."""
    status_code = 409


class Immutable(LedgerError):
    """Attempt to change a settlement that has been paid."""
    status_code = 409


class InvariantViolation(LedgerError):
    """
    Cached balance no longer matches the ledger.

    Internal only. Should never reach a user and is always
    logged at CRITICAL before being raised.
    """
    status_code = 500
