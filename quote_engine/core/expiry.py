"""
Quote expiry detection.

Exposes the expiry predicate and the pure core of the scheduled sweep. The
current time is always passed in so results are deterministic.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from .workflow import SYSTEM_ACTOR, SYSTEM_ACTOR_NAME, apply_transition
from quote_engine.storage.models import Quote, QuoteStatus, StatusChangeRecord

OUTSTANDING_STATUSES = frozenset({QuoteStatus.SENT, QuoteStatus.VIEWED})

DEFAULT_REMINDER_DAYS = (7, 3, 1)

_SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class ExpiryState:
    """Expiry status of a quote at a point in time."""
    is_expired: bool
    days_remaining: int


def compute_expiry_state(expires_at: datetime, now: datetime) -> ExpiryState:
    """Compute whether a deadline has passed and how many days are left.

    days_remaining is ceil((expires_at - now) / 1 day), so it is negative
    once a full day has elapsed past the deadline and never increases as
    now advances.
    """
    delta = (expires_at - now).total_seconds()
    return ExpiryState(
        is_expired=now > expires_at,
        days_remaining=math.ceil(delta / _SECONDS_PER_DAY),
    )


def compute_expires_at(start: datetime, validity_days: int) -> datetime:
    """Deadline for a quote valid for validity_days from start."""
    if validity_days <= 0:
        raise ValueError("validity_days must be > 0")
    return start + timedelta(days=validity_days)


def is_expiry_eligible(quote: Quote, now: datetime) -> bool:
    """True when an outstanding quote has passed its deadline."""
    if quote.status not in OUTSTANDING_STATUSES or quote.expires_at is None:
        return False
    return compute_expiry_state(quote.expires_at, now).is_expired


def reminder_due(
    quote: Quote,
    now: datetime,
    reminder_days: Sequence[int] = DEFAULT_REMINDER_DAYS,
) -> Optional[int]:
    """Return the reminder threshold that applies to the quote today.

    Args:
        quote: Quote to check
        now: Current time
        reminder_days: Days-before-expiry thresholds, e.g. (7, 3, 1)

    Returns:
        The matching threshold, or None if no reminder is due
    """
    if quote.status not in OUTSTANDING_STATUSES or quote.expires_at is None:
        return None
    state = compute_expiry_state(quote.expires_at, now)
    if state.is_expired:
        return None
    if state.days_remaining in reminder_days:
        return state.days_remaining
    return None


def sweep_expired_quotes(
    quotes: Iterable[Quote],
    now: datetime,
) -> List[Tuple[Quote, StatusChangeRecord]]:
    """Expire every outstanding quote whose deadline has passed.

    Returns:
        List of (expired quote, status change record) pairs; quotes that
        are not eligible are left out
    """
    results = []
    for quote in quotes:
        if not is_expiry_eligible(quote, now):
            continue
        results.append(apply_transition(
            quote,
            QuoteStatus.EXPIRED,
            actor=SYSTEM_ACTOR,
            actor_name=SYSTEM_ACTOR_NAME,
            comment="Quote automatically expired",
            metadata={"reason": "expired", "auto": True},
            now=now,
        ))
    return results
