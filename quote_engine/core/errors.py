"""
Error taxonomy for the quote engine.

Every error is raised synchronously to the caller; nothing here is retried,
logged or suppressed.
"""

from typing import Optional


class QuoteEngineError(Exception):
    """Base class for all quote engine errors."""


class ValidationError(QuoteEngineError, ValueError):
    """Raised when pricing input is malformed.

    Inputs are never clamped: a bad value in a financial document is a
    data-entry mistake the caller must surface.
    """
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidTransition(QuoteEngineError):
    """Raised when a status change is not in the transition table."""
    def __init__(self, from_status, to_status, message: Optional[str] = None):
        if message is None:
            message = (
                f"Invalid transition from '{from_status.value}' "
                f"to '{to_status.value}'"
            )
        super().__init__(message)
        self.from_status = from_status
        self.to_status = to_status


class NotEditable(QuoteEngineError):
    """Raised when line items or terms are edited on a read-only quote."""
    def __init__(self, status):
        super().__init__(f"Quote in status '{status.value}' cannot be edited")
        self.status = status


class StaleQuoteState(QuoteEngineError):
    """Raised when a caller's quote status disagrees with the audit ledger."""
    def __init__(self, quote_id: str, expected, actual):
        super().__init__(
            f"Quote {quote_id} is '{actual.value}' in the status ledger, "
            f"caller holds '{expected.value}'"
        )
        self.quote_id = quote_id
        self.expected = expected
        self.actual = actual
