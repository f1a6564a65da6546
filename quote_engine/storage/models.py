"""
Data models for quotes and their audit trail.

Defines the quote aggregate, its line items and the status change ledger entries.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from quote_engine.core.discount import Discount

ZERO = Decimal("0")


class QuoteStatus(Enum):
    """Lifecycle states of a quote."""
    DRAFT = "draft"
    PENDING = "pending"
    SENT = "sent"
    VIEWED = "viewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CONVERTED = "converted"


@dataclass(frozen=True)
class QuoteTerms:
    """Commercial terms attached to a quote.

    Opaque to the engine except for the currency, which selects
    presentation precision.
    """
    currency: str = "USD"
    validity_days: int = 30
    deposit_required: bool = False
    deposit_percentage: Optional[Decimal] = None
    payment_terms: str = ""
    delivery_terms: str = ""
    notes: str = ""


@dataclass(frozen=True)
class LineItem:
    """One priced entry on a quote.

    Derived fields are stale as soon as an input changes and must be
    refreshed with ``recompute_line_item`` before being trusted.
    """
    id: str
    quantity: int
    unit_price: Decimal
    discount: Optional[Discount] = None
    tax_rate: Decimal = ZERO
    title: str = ""
    sku: str = ""
    description: str = ""
    # Derived
    subtotal: Decimal = ZERO
    discount_amount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total: Decimal = ZERO


@dataclass(frozen=True)
class Quote:
    """The quote aggregate.

    Aggregate money fields are written only by ``reprice_quote``; status
    and lifecycle timestamps only by ``apply_transition``.
    """
    id: str
    quote_number: str
    created_at: datetime
    updated_at: datetime
    status: QuoteStatus = QuoteStatus.DRAFT
    line_items: Tuple[LineItem, ...] = ()
    shipping_total: Decimal = ZERO
    terms: QuoteTerms = field(default_factory=QuoteTerms)
    # Derived aggregates
    subtotal: Decimal = ZERO
    discount_total: Decimal = ZERO
    tax_total: Decimal = ZERO
    total: Decimal = ZERO
    # Lifecycle timestamps
    sent_at: Optional[datetime] = None
    viewed_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    converted_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None


@dataclass(frozen=True)
class StatusChangeRecord:
    """Immutable audit entry for one status transition.

    Append-only: the ordered sequence of records for a quote, replayed
    from DRAFT, reproduces the quote's current status.
    """
    id: str
    quote_id: str
    from_status: QuoteStatus
    to_status: QuoteStatus
    changed_at: datetime
    changed_by: str
    changed_by_name: str
    comment: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
