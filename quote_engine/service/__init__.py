"""
Service layer for the quote engine.

Connects the pure engine to the status ledger.
"""

from .lifecycle import QuoteLifecycleService

__all__ = ["QuoteLifecycleService"]
