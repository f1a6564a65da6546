"""
Quote status workflow.

Holds the authoritative transition table and the pure operations built on
it. Action lists offered to a UI are derived from the same table, and the
table is checked again when a transition is committed.

Transition table:
    DRAFT    -> SENT, PENDING
    PENDING  -> SENT
    SENT     -> VIEWED, ACCEPTED, REJECTED, SENT (resend), EXPIRED
    VIEWED   -> ACCEPTED, REJECTED, SENT (resend), EXPIRED
    ACCEPTED -> CONVERTED
    REJECTED, EXPIRED, CONVERTED are terminal.

PENDING, VIEWED, EXPIRED and CONVERTED are entered by the system (wizard,
view tracking, expiry sweep, order conversion), never by a user action.
"""

import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from .errors import InvalidTransition, NotEditable
from quote_engine.storage.models import Quote, QuoteStatus, StatusChangeRecord

SYSTEM_ACTOR = "system"
SYSTEM_ACTOR_NAME = "System"

INITIAL_STATUS = QuoteStatus.DRAFT

TRANSITIONS: Mapping[QuoteStatus, FrozenSet[QuoteStatus]] = {
    QuoteStatus.DRAFT: frozenset({QuoteStatus.SENT, QuoteStatus.PENDING}),
    QuoteStatus.PENDING: frozenset({QuoteStatus.SENT}),
    QuoteStatus.SENT: frozenset({
        QuoteStatus.VIEWED,
        QuoteStatus.ACCEPTED,
        QuoteStatus.REJECTED,
        QuoteStatus.SENT,
        QuoteStatus.EXPIRED,
    }),
    QuoteStatus.VIEWED: frozenset({
        QuoteStatus.ACCEPTED,
        QuoteStatus.REJECTED,
        QuoteStatus.SENT,
        QuoteStatus.EXPIRED,
    }),
    QuoteStatus.ACCEPTED: frozenset({QuoteStatus.CONVERTED}),
    QuoteStatus.REJECTED: frozenset(),
    QuoteStatus.EXPIRED: frozenset(),
    QuoteStatus.CONVERTED: frozenset(),
}

TERMINAL_STATUSES = frozenset({
    QuoteStatus.REJECTED,
    QuoteStatus.EXPIRED,
    QuoteStatus.CONVERTED,
})

EDITABLE_STATUSES = frozenset({QuoteStatus.DRAFT, QuoteStatus.PENDING})


@dataclass(frozen=True)
class StatusAction:
    """A user-facing action that moves a quote to another status."""
    id: str
    label: str
    target_status: QuoteStatus
    requires_confirmation: bool
    confirmation_message: Optional[str] = None


@dataclass(frozen=True)
class StatusInfo:
    """Display metadata for a status."""
    label: str
    description: str
    is_terminal: bool
    can_edit: bool


SEND = StatusAction(
    id="send",
    label="Send",
    target_status=QuoteStatus.SENT,
    requires_confirmation=False,
)
ACCEPT = StatusAction(
    id="accept",
    label="Mark Accepted",
    target_status=QuoteStatus.ACCEPTED,
    requires_confirmation=True,
    confirmation_message=(
        "Are you sure you want to mark this quote as accepted? "
        "This action cannot be undone."
    ),
)
REJECT = StatusAction(
    id="reject",
    label="Mark Rejected",
    target_status=QuoteStatus.REJECTED,
    requires_confirmation=True,
    confirmation_message=(
        "Are you sure you want to mark this quote as rejected? "
        "This action cannot be undone."
    ),
)
RESEND = StatusAction(
    id="resend",
    label="Resend",
    target_status=QuoteStatus.SENT,
    requires_confirmation=False,
)

STATUS_ACTIONS: Mapping[QuoteStatus, Tuple[StatusAction, ...]] = {
    QuoteStatus.DRAFT: (SEND,),
    QuoteStatus.PENDING: (SEND,),
    QuoteStatus.SENT: (ACCEPT, REJECT, RESEND),
    QuoteStatus.VIEWED: (ACCEPT, REJECT, RESEND),
}

STATUS_METADATA: Mapping[QuoteStatus, StatusInfo] = {
    QuoteStatus.DRAFT: StatusInfo("Draft", "Quote is being prepared", False, True),
    QuoteStatus.PENDING: StatusInfo("Pending", "Quote is ready to be sent", False, True),
    QuoteStatus.SENT: StatusInfo("Sent", "Quote has been sent to customer", False, False),
    QuoteStatus.VIEWED: StatusInfo("Viewed", "Customer has viewed the quote", False, False),
    QuoteStatus.ACCEPTED: StatusInfo(
        "Accepted", "Quote has been accepted by customer", False, False
    ),
    QuoteStatus.REJECTED: StatusInfo("Rejected", "Quote has been declined", True, False),
    QuoteStatus.EXPIRED: StatusInfo("Expired", "Quote has expired", True, False),
    QuoteStatus.CONVERTED: StatusInfo("Converted", "Quote converted to order", True, False),
}

# Timestamp field stamped when a quote enters each status
_TIMESTAMP_FIELDS = {
    QuoteStatus.SENT: "sent_at",
    QuoteStatus.VIEWED: "viewed_at",
    QuoteStatus.ACCEPTED: "accepted_at",
    QuoteStatus.REJECTED: "rejected_at",
    QuoteStatus.CONVERTED: "converted_at",
}


def get_available_actions(status: QuoteStatus) -> List[StatusAction]:
    """Get user actions offered for a quote in the given status.

    Terminal and accepted quotes have no actions; the caller offers
    duplication into a new draft instead.
    """
    return [
        action for action in STATUS_ACTIONS.get(status, ())
        if action.target_status in TRANSITIONS[status]
    ]


def is_editable(status: QuoteStatus) -> bool:
    """Line items and terms may change only while DRAFT or PENDING."""
    return status in EDITABLE_STATUSES


def ensure_editable(status: QuoteStatus) -> None:
    """Raise NotEditable unless the status allows edits."""
    if not is_editable(status):
        raise NotEditable(status)


def is_terminal(status: QuoteStatus) -> bool:
    return status in TERMINAL_STATUSES


def validate_transition(from_status: QuoteStatus, to_status: QuoteStatus) -> None:
    """Check a status change against the transition table.

    Args:
        from_status: Current status of the quote
        to_status: Requested status

    Raises:
        InvalidTransition: If the edge is not in the table
    """
    if to_status not in TRANSITIONS.get(from_status, frozenset()):
        if is_terminal(from_status):
            raise InvalidTransition(
                from_status,
                to_status,
                f"Cannot transition from terminal status '{from_status.value}' "
                f"to '{to_status.value}'",
            )
        raise InvalidTransition(from_status, to_status)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def apply_transition(
    quote: Quote,
    to_status: QuoteStatus,
    actor: str,
    actor_name: Optional[str] = None,
    comment: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Tuple[Quote, StatusChangeRecord]:
    """Move a quote to a new status and produce its audit record.

    The quote passed in is not modified; persistence and notification of
    the returned values belong to the caller.

    Args:
        quote: Quote in its current state
        to_status: Requested status
        actor: Id of the user making the change, or "system"
        actor_name: Display name of the actor
        comment: Optional free-text comment (rejection reason for REJECTED)
        metadata: Optional free-form data stored on the record
        now: Current time; defaults to the UTC wall clock

    Returns:
        Tuple of (updated quote, status change record)

    Raises:
        InvalidTransition: If the transition is not allowed
    """
    validate_transition(quote.status, to_status)

    changed_at = now if now is not None else _utcnow()
    if actor_name is None:
        actor_name = SYSTEM_ACTOR_NAME if actor == SYSTEM_ACTOR else actor

    changes: Dict[str, Any] = {"status": to_status, "updated_at": changed_at}
    timestamp_field = _TIMESTAMP_FIELDS.get(to_status)
    if timestamp_field:
        changes[timestamp_field] = changed_at
    if to_status == QuoteStatus.REJECTED and comment:
        changes["rejection_reason"] = comment

    record = StatusChangeRecord(
        id=f"hist_{uuid.uuid4().hex}",
        quote_id=quote.id,
        from_status=quote.status,
        to_status=to_status,
        changed_at=changed_at,
        changed_by=actor,
        changed_by_name=actor_name,
        comment=comment,
        metadata=dict(metadata) if metadata else None,
    )
    return replace(quote, **changes), record


def replay_status_history(
    records: Iterable[StatusChangeRecord],
    initial: QuoteStatus = INITIAL_STATUS,
) -> QuoteStatus:
    """Replay an ordered audit log and return the resulting status.

    Raises:
        InvalidTransition: If a record does not start from the status the
            previous one ended in, or its edge is not in the table
    """
    status = initial
    for record in records:
        if record.from_status != status:
            raise InvalidTransition(
                record.from_status,
                record.to_status,
                f"History record {record.id} starts from '{record.from_status.value}' "
                f"but the quote was '{status.value}'",
            )
        validate_transition(record.from_status, record.to_status)
        status = record.to_status
    return status
