"""
Quote lifecycle service.

Sequences the pure engine with the status ledger: validates and applies
transitions, records them, and keeps line item edits behind the
editability gate.
"""

import logging
import threading
import weakref
from contextlib import ExitStack
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from quote_engine.config.loader import EngineConfig, default_engine_config
from quote_engine.core.errors import StaleQuoteState
from quote_engine.core.expiry import compute_expires_at, is_expiry_eligible, sweep_expired_quotes
from quote_engine.core.pricing import reprice_quote
from quote_engine.core.workflow import INITIAL_STATUS, apply_transition, ensure_editable
from quote_engine.storage.models import LineItem, Quote, QuoteStatus, StatusChangeRecord
from quote_engine.storage.repository import StatusHistoryRepository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuoteLifecycleService:
    """Applies quote status changes and records them in the ledger.

    Changes to the same quote are serialized with a per-quote lock, and
    the ledger is consulted before each change so a caller holding a stale
    copy of the quote is rejected instead of corrupting the history. The
    ledger repeats the check inside its write transaction, which covers
    other processes sharing the database file.
    """

    def __init__(
        self,
        repository: StatusHistoryRepository,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the service.

        Args:
            repository: Status ledger to append to
            config: Engine configuration (defaults used if omitted)
            clock: Callable returning the current time (UTC wall clock if omitted)
        """
        self.repository = repository
        self.config = config or default_engine_config()
        self.clock = clock or _utcnow
        # Entries disappear once no caller holds the lock.
        self._locks = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _lock_for(self, quote_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(quote_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[quote_id] = lock
            return lock

    def _check_current(self, quote: Quote) -> None:
        recorded = self.repository.current_status(quote.id) or INITIAL_STATUS
        if recorded != quote.status:
            raise StaleQuoteState(quote.id, expected=quote.status, actual=recorded)

    def transition(
        self,
        quote: Quote,
        to_status: QuoteStatus,
        actor: str,
        actor_name: Optional[str] = None,
        comment: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Quote, StatusChangeRecord]:
        """Apply and record a status change.

        Raises:
            StaleQuoteState: If the ledger shows a different current status,
                including one written by another process before the append
            InvalidTransition: If the change is not allowed
        """
        with self._lock_for(quote.id):
            self._check_current(quote)
            now = self.clock()
            updated, record = apply_transition(
                quote, to_status, actor,
                actor_name=actor_name,
                comment=comment,
                metadata=metadata,
                now=now,
            )
            if to_status == QuoteStatus.SENT and updated.expires_at is None:
                validity_days = quote.terms.validity_days or self.config.expiry.validity_days
                updated = replace(updated, expires_at=compute_expires_at(now, validity_days))
            self.repository.append(record)

        logger.info(
            "Quote %s moved from %s to %s by %s",
            quote.quote_number, record.from_status.value, record.to_status.value, actor,
            extra={
                "quote_id": quote.id,
                "quote_number": quote.quote_number,
                "from_status": record.from_status.value,
                "to_status": record.to_status.value,
                "actor": actor,
            },
        )
        return updated, record

    def revise_line_items(self, quote: Quote, line_items: Sequence[LineItem]) -> Quote:
        """Replace a quote's line items and re-derive its totals.

        Raises:
            NotEditable: If the quote is past PENDING
            ValidationError: If any line item is invalid
        """
        ensure_editable(quote.status)
        revised = reprice_quote(replace(quote, line_items=tuple(line_items)))
        revised = replace(revised, updated_at=self.clock())
        logger.debug(
            "Repriced quote %s: %d items, total %s",
            quote.quote_number, len(revised.line_items), revised.total,
        )
        return revised

    def expire_overdue(self, quotes: Iterable[Quote]) -> List[Tuple[Quote, StatusChangeRecord]]:
        """Expire outstanding quotes past their deadline and record the changes.

        Each eligible quote's lock is held while its status is re-checked
        against the ledger and the batch is written. Locks are taken in
        quote id order. Quotes whose ledger status has moved on are skipped.

        Raises:
            StaleQuoteState: If another process records a change for one of
                the quotes between the re-check and the write; nothing from
                the batch is kept
        """
        now = self.clock()
        candidates = list(quotes)
        eligible = {}
        for quote in candidates:
            if is_expiry_eligible(quote, now):
                eligible[quote.id] = quote

        with ExitStack() as stack:
            for quote_id in sorted(eligible):
                stack.enter_context(self._lock_for(quote_id))

            current = []
            for quote_id in sorted(eligible):
                quote = eligible[quote_id]
                recorded = self.repository.current_status(quote_id) or INITIAL_STATUS
                if recorded != quote.status:
                    logger.warning(
                        "Skipping expiry of quote %s: ledger has %s, sweep saw %s",
                        quote.quote_number, recorded.value, quote.status.value,
                        extra={"quote_id": quote.id, "quote_number": quote.quote_number},
                    )
                    continue
                current.append(quote)

            expired = sweep_expired_quotes(current, now)
            if expired:
                self.repository.append_many([record for _, record in expired])

        logger.info("Expiry sweep: %d of %d quotes expired", len(expired), len(candidates))
        return expired
