"""
Tests for the quote status workflow.
"""
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from itertools import product

import pytest

from quote_engine.core.errors import InvalidTransition, NotEditable
from quote_engine.core.pricing import new_quote
from quote_engine.core.workflow import (
    TRANSITIONS,
    STATUS_METADATA,
    apply_transition,
    ensure_editable,
    get_available_actions,
    is_editable,
    is_terminal,
    replay_status_history,
    validate_transition,
)
from quote_engine.storage.models import QuoteStatus, StatusChangeRecord

NOW = datetime(2026, 2, 5, 10, 30, tzinfo=timezone.utc)

LEGAL_EDGES = {
    (QuoteStatus.DRAFT, QuoteStatus.SENT),
    (QuoteStatus.DRAFT, QuoteStatus.PENDING),
    (QuoteStatus.PENDING, QuoteStatus.SENT),
    (QuoteStatus.SENT, QuoteStatus.VIEWED),
    (QuoteStatus.SENT, QuoteStatus.ACCEPTED),
    (QuoteStatus.SENT, QuoteStatus.REJECTED),
    (QuoteStatus.SENT, QuoteStatus.SENT),
    (QuoteStatus.SENT, QuoteStatus.EXPIRED),
    (QuoteStatus.VIEWED, QuoteStatus.ACCEPTED),
    (QuoteStatus.VIEWED, QuoteStatus.REJECTED),
    (QuoteStatus.VIEWED, QuoteStatus.SENT),
    (QuoteStatus.VIEWED, QuoteStatus.EXPIRED),
    (QuoteStatus.ACCEPTED, QuoteStatus.CONVERTED),
}


def make_quote(status=QuoteStatus.DRAFT):
    quote = new_quote("q_1", "QT-0001", NOW - timedelta(days=1))
    return replace(quote, status=status)


class TestTransitionTable:
    """Test the authoritative transition table."""

    def test_table_matches_legal_edges(self):
        """Verify the table holds exactly the legal edges."""
        edges = {(src, dst) for src, targets in TRANSITIONS.items() for dst in targets}
        assert edges == LEGAL_EDGES

    def test_every_status_has_an_entry(self):
        """Verify every status is present in the table and metadata."""
        assert set(TRANSITIONS) == set(QuoteStatus)
        assert set(STATUS_METADATA) == set(QuoteStatus)

    @pytest.mark.parametrize("from_status,to_status", sorted(LEGAL_EDGES, key=lambda e: (e[0].value, e[1].value)))
    def test_legal_edges_validate(self, from_status, to_status):
        """Verify every legal edge passes validation."""
        assert validate_transition(from_status, to_status) is None

    def test_illegal_edges_rejected(self):
        """Verify every pair outside the table raises InvalidTransition."""
        for from_status, to_status in product(QuoteStatus, QuoteStatus):
            if (from_status, to_status) in LEGAL_EDGES:
                continue
            with pytest.raises(InvalidTransition) as excinfo:
                validate_transition(from_status, to_status)
            assert excinfo.value.from_status == from_status
            assert excinfo.value.to_status == to_status

    def test_error_names_both_states(self):
        """Verify the error message names the source and target."""
        with pytest.raises(InvalidTransition) as excinfo:
            validate_transition(QuoteStatus.ACCEPTED, QuoteStatus.SENT)
        assert "accepted" in str(excinfo.value)
        assert "sent" in str(excinfo.value)

    @pytest.mark.parametrize("status", [QuoteStatus.REJECTED, QuoteStatus.EXPIRED, QuoteStatus.CONVERTED])
    def test_terminal_states_have_no_exits(self, status):
        """Verify terminal states have no outbound transitions."""
        assert is_terminal(status)
        assert TRANSITIONS[status] == frozenset()
        with pytest.raises(InvalidTransition, match="terminal"):
            validate_transition(status, QuoteStatus.DRAFT)


class TestAvailableActions:
    """Test user-facing action lists."""

    @pytest.mark.parametrize("status", [QuoteStatus.DRAFT, QuoteStatus.PENDING])
    def test_send_from_editable(self, status):
        """Verify DRAFT and PENDING offer only Send."""
        actions = get_available_actions(status)
        assert [a.id for a in actions] == ["send"]
        assert actions[0].label == "Send"
        assert actions[0].target_status == QuoteStatus.SENT
        assert actions[0].requires_confirmation is False

    @pytest.mark.parametrize("status", [QuoteStatus.SENT, QuoteStatus.VIEWED])
    def test_outstanding_actions(self, status):
        """Verify SENT and VIEWED offer accept, reject and resend."""
        actions = {a.id: a for a in get_available_actions(status)}
        assert set(actions) == {"accept", "reject", "resend"}

        assert actions["accept"].label == "Mark Accepted"
        assert actions["accept"].target_status == QuoteStatus.ACCEPTED
        assert actions["accept"].requires_confirmation is True
        assert actions["accept"].confirmation_message

        assert actions["reject"].label == "Mark Rejected"
        assert actions["reject"].target_status == QuoteStatus.REJECTED
        assert actions["reject"].requires_confirmation is True

        assert actions["resend"].label == "Resend"
        assert actions["resend"].target_status == QuoteStatus.SENT
        assert actions["resend"].requires_confirmation is False

    @pytest.mark.parametrize("status", [
        QuoteStatus.ACCEPTED, QuoteStatus.REJECTED, QuoteStatus.EXPIRED, QuoteStatus.CONVERTED,
    ])
    def test_no_actions(self, status):
        """Verify accepted and terminal quotes offer no actions."""
        assert get_available_actions(status) == []

    def test_actions_are_legal_transitions(self):
        """Verify every offered action passes validation."""
        for status in QuoteStatus:
            for action in get_available_actions(status):
                validate_transition(status, action.target_status)


class TestEditability:
    """Test the editability gate."""

    def test_editable_statuses(self):
        """Verify only DRAFT and PENDING are editable."""
        editable = {status for status in QuoteStatus if is_editable(status)}
        assert editable == {QuoteStatus.DRAFT, QuoteStatus.PENDING}

    def test_ensure_editable_raises(self):
        """Verify NotEditable is raised for read-only quotes."""
        ensure_editable(QuoteStatus.PENDING)
        with pytest.raises(NotEditable) as excinfo:
            ensure_editable(QuoteStatus.SENT)
        assert excinfo.value.status == QuoteStatus.SENT


class TestApplyTransition:
    """Test applying transitions to quotes."""

    def test_accept_sent_quote(self):
        """Verify SENT -> ACCEPTED stamps accepted_at and records the change."""
        quote = make_quote(QuoteStatus.SENT)
        updated, record = apply_transition(quote, QuoteStatus.ACCEPTED, "user_1", "Ada", now=NOW)

        assert updated.status == QuoteStatus.ACCEPTED
        assert updated.accepted_at == NOW
        assert updated.updated_at == NOW
        assert record.from_status == QuoteStatus.SENT
        assert record.to_status == QuoteStatus.ACCEPTED
        assert record.quote_id == quote.id
        assert record.changed_by == "user_1"
        assert record.changed_by_name == "Ada"
        assert record.changed_at == NOW

    def test_accept_without_explicit_clock(self):
        """Verify the wall clock is used when no time is injected."""
        quote = make_quote(QuoteStatus.SENT)
        updated, record = apply_transition(quote, QuoteStatus.ACCEPTED, "user_1")
        assert updated.status == QuoteStatus.ACCEPTED
        assert updated.accepted_at is not None
        assert record.changed_at == updated.accepted_at

    def test_accepted_to_sent_rejected(self):
        """Verify ACCEPTED -> SENT fails with InvalidTransition."""
        quote = make_quote(QuoteStatus.ACCEPTED)
        with pytest.raises(InvalidTransition):
            apply_transition(quote, QuoteStatus.SENT, "user_1", now=NOW)

    def test_original_quote_unchanged(self):
        """Verify the input quote is not modified."""
        quote = make_quote(QuoteStatus.DRAFT)
        apply_transition(quote, QuoteStatus.SENT, "user_1", now=NOW)
        assert quote.status == QuoteStatus.DRAFT
        assert quote.sent_at is None

    def test_send_stamps_sent_at(self):
        """Verify sending stamps sent_at."""
        updated, _ = apply_transition(make_quote(), QuoteStatus.SENT, "user_1", now=NOW)
        assert updated.sent_at == NOW

    def test_resend_restamps_sent_at(self):
        """Verify resend keeps SENT and moves sent_at forward."""
        first, _ = apply_transition(make_quote(), QuoteStatus.SENT, "user_1", now=NOW)
        later = NOW + timedelta(days=2)
        resent, record = apply_transition(first, QuoteStatus.SENT, "user_1", now=later)
        assert resent.status == QuoteStatus.SENT
        assert resent.sent_at == later
        assert record.from_status == record.to_status == QuoteStatus.SENT

    def test_reject_records_reason(self):
        """Verify rejection stamps rejected_at and keeps the comment."""
        quote = make_quote(QuoteStatus.VIEWED)
        updated, record = apply_transition(
            quote, QuoteStatus.REJECTED, "user_1", comment="Over budget", now=NOW
        )
        assert updated.rejected_at == NOW
        assert updated.rejection_reason == "Over budget"
        assert record.comment == "Over budget"

    def test_system_actor_name(self):
        """Verify the system actor gets a display name."""
        quote = make_quote(QuoteStatus.ACCEPTED)
        _, record = apply_transition(quote, QuoteStatus.CONVERTED, "system", now=NOW)
        assert record.changed_by == "system"
        assert record.changed_by_name == "System"

    def test_convert_stamps_converted_at(self):
        """Verify conversion stamps converted_at."""
        updated, _ = apply_transition(make_quote(QuoteStatus.ACCEPTED), QuoteStatus.CONVERTED, "system", now=NOW)
        assert updated.converted_at == NOW

    def test_metadata_copied(self):
        """Verify metadata is copied into the record."""
        metadata = {"channel": "email"}
        _, record = apply_transition(make_quote(), QuoteStatus.SENT, "user_1", metadata=metadata, now=NOW)
        metadata["channel"] = "changed"
        assert record.metadata == {"channel": "email"}

    def test_record_ids_unique(self):
        """Verify each record gets its own id."""
        quote = make_quote(QuoteStatus.SENT)
        _, first = apply_transition(quote, QuoteStatus.SENT, "user_1", now=NOW)
        _, second = apply_transition(quote, QuoteStatus.SENT, "user_1", now=NOW)
        assert first.id != second.id


class TestReplay:
    """Test replaying the audit log."""

    def test_replay_reproduces_status(self):
        """Verify replaying records reproduces the final status."""
        quote = make_quote()
        records = []
        for target in (QuoteStatus.PENDING, QuoteStatus.SENT, QuoteStatus.VIEWED,
                       QuoteStatus.SENT, QuoteStatus.ACCEPTED, QuoteStatus.CONVERTED):
            quote, record = apply_transition(quote, target, "user_1", now=NOW)
            records.append(record)

        assert replay_status_history(records) == quote.status == QuoteStatus.CONVERTED

    def test_empty_history_is_draft(self):
        """Verify an empty log replays to DRAFT."""
        assert replay_status_history([]) == QuoteStatus.DRAFT

    def test_gap_in_history_rejected(self):
        """Verify a record that does not follow the previous one is rejected."""
        record = StatusChangeRecord(
            id="hist_1",
            quote_id="q_1",
            from_status=QuoteStatus.SENT,
            to_status=QuoteStatus.ACCEPTED,
            changed_at=NOW,
            changed_by="user_1",
            changed_by_name="Ada",
        )
        with pytest.raises(InvalidTransition, match="hist_1"):
            replay_status_history([record])
