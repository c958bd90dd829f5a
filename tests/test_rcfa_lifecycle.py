"""
Investigation state machine tests.

    intake -> investigation          start_investigation
    investigation -> actions_open    finalize  (≥1 final root cause, ≥1 action item)
                                               (opens complete draft action items)
    actions_open -> closed           close     (≥1 final root cause, all items done/canceled)
    closed -> actions_open           reopen    (admin only)

Every valid edge returns the new status and appends ``status_changed``;
every other (status, action) pair is a Conflict.
"""

from datetime import date

import pytest

from rcfa.core.exceptions import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from rcfa.models import db
from rcfa.models.audit import (
    EVENT_DRAFT_ITEMS_ACTIVATED,
    EVENT_OWNER_CHANGED,
    EVENT_STATUS_CHANGED,
    AuditEvent,
)
from rcfa.models.commitment import ActionItem
from rcfa.models.investigation import (
    RCFA_STATUSES,
    RCFA_TRANSITIONS,
    STATUS_ACTIONS_OPEN,
    STATUS_CLOSED,
    STATUS_INTAKE,
    STATUS_INVESTIGATION,
    Rcfa,
)
from rcfa.services import rcfa_lifecycle
from rcfa.services.rcfa_lifecycle import (
    can_answer_followup,
    can_promote_action_item,
    get_available_transitions,
    reassign_owner,
    transition_rcfa,
    validate_rcfa_transition,
)
from rcfa.utils.errors import E

INVALID_EDGES = [
    (status, action)
    for action, rule in RCFA_TRANSITIONS.items()
    for status in RCFA_STATUSES
    if status not in rule["from"]
]


def _status_events(rcfa_id):
    return (
        AuditEvent.query
        .filter_by(rcfa_id=rcfa_id, event_type=EVENT_STATUS_CHANGED)
        .order_by(AuditEvent.seq)
        .all()
    )


# ═════════════════════════════════════════════════════════════════════════════
# Valid edges
# ═════════════════════════════════════════════════════════════════════════════


class TestValidTransitions:

    def test_start_investigation(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INTAKE)

        result = transition_rcfa(rcfa.id, "start_investigation", owner)

        assert result == {
            "rcfa_id": rcfa.id,
            "previous_status": STATUS_INTAKE,
            "new_status": STATUS_INVESTIGATION,
            "action": "start_investigation",
        }
        assert db.session.get(Rcfa, rcfa.id).status == STATUS_INVESTIGATION
        events = _status_events(rcfa.id)
        assert len(events) == 1
        assert events[0].payload == {"from": STATUS_INTAKE, "to": STATUS_INVESTIGATION}
        assert events[0].actor_user_id == owner.user_id

    def test_finalize_with_root_cause_and_action_item(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INVESTIGATION)
        factories.root_cause_final(rcfa, owner.user_id)
        factories.action_item(rcfa, owner.user_id)

        result = transition_rcfa(rcfa.id, "finalize", owner)

        assert result["new_status"] == STATUS_ACTIONS_OPEN

    def test_close_records_closure_fields(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_ACTIONS_OPEN)
        factories.root_cause_final(rcfa, owner.user_id)
        factories.action_item(rcfa, owner.user_id, status="done")
        factories.action_item(rcfa, owner.user_id, status="canceled")

        transition_rcfa(rcfa.id, "close", owner, closing_notes="  Seal replaced, dry-run trip fitted ")

        stored = db.session.get(Rcfa, rcfa.id)
        assert stored.status == STATUS_CLOSED
        assert stored.closed_at is not None
        assert stored.closed_by_user_id == owner.user_id
        assert stored.closing_notes == "Seal replaced, dry-run trip fitted"
        assert _status_events(rcfa.id)[-1].payload["closingNotes"] == stored.closing_notes

    def test_reopen_by_admin_clears_closure(self, factories, owner, admin):
        rcfa = factories.rcfa(
            owner.user_id, status=STATUS_CLOSED,
            closed_by_user_id=owner.user_id, closing_notes="Done",
        )

        result = transition_rcfa(rcfa.id, "reopen", admin)

        assert result["new_status"] == STATUS_ACTIONS_OPEN
        stored = db.session.get(Rcfa, rcfa.id)
        assert stored.closed_at is None
        assert stored.closed_by_user_id is None
        assert stored.closing_notes is None
        payload = _status_events(rcfa.id)[-1].payload
        assert payload["reason"] == "reopened"
        assert payload["previousClosingNotes"] == "Done"
        assert payload["previousClosedByUserId"] == owner.user_id

    def test_full_lifecycle_audit_order(self, factories, owner, admin):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INTAKE)

        transition_rcfa(rcfa.id, "start_investigation", owner)
        factories.root_cause_final(rcfa, owner.user_id)
        factories.action_item(rcfa, owner.user_id, status="done")
        transition_rcfa(rcfa.id, "finalize", owner)
        transition_rcfa(rcfa.id, "close", owner)
        transition_rcfa(rcfa.id, "reopen", admin)

        assert [e.payload["to"] for e in _status_events(rcfa.id)] == [
            STATUS_INVESTIGATION, STATUS_ACTIONS_OPEN, STATUS_CLOSED, STATUS_ACTIONS_OPEN,
        ]


# ═════════════════════════════════════════════════════════════════════════════
# Invalid edges and preconditions
# ═════════════════════════════════════════════════════════════════════════════


class TestInvalidTransitions:

    @pytest.mark.parametrize("status,action", INVALID_EDGES)
    def test_invalid_edge_is_conflict(self, factories, admin, status, action):
        rcfa = factories.rcfa(admin.user_id, status=status)

        with pytest.raises(ConflictError) as exc:
            transition_rcfa(rcfa.id, action, admin)

        assert exc.value.code == E.RCFA_INVALID_TRANSITION
        assert db.session.get(Rcfa, rcfa.id).status == status
        assert _status_events(rcfa.id) == []

    def test_finalize_without_root_cause(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INVESTIGATION)
        factories.action_item(rcfa, owner.user_id)

        with pytest.raises(ConflictError) as exc:
            transition_rcfa(rcfa.id, "finalize", owner)
        assert exc.value.code == E.RCFA_NO_ROOT_CAUSES

    def test_finalize_without_action_items(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INVESTIGATION)
        factories.root_cause_final(rcfa, owner.user_id)

        with pytest.raises(ConflictError) as exc:
            transition_rcfa(rcfa.id, "finalize", owner)
        assert exc.value.code == E.RCFA_NO_ACTION_ITEMS
        assert db.session.get(Rcfa, rcfa.id).status == STATUS_INVESTIGATION

    def test_close_with_open_action_items(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_ACTIONS_OPEN)
        factories.root_cause_final(rcfa, owner.user_id)
        factories.action_item(rcfa, owner.user_id, status="done")
        factories.action_item(rcfa, owner.user_id, status="in_progress")

        with pytest.raises(ConflictError) as exc:
            transition_rcfa(rcfa.id, "close", owner)
        assert exc.value.code == E.RCFA_INCOMPLETE_ACTIONS
        assert exc.value.details == {"incomplete_count": 1}

    def test_close_without_root_cause(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_ACTIONS_OPEN)

        with pytest.raises(ConflictError) as exc:
            transition_rcfa(rcfa.id, "close", owner)
        assert exc.value.code == E.RCFA_NO_ROOT_CAUSES

    def test_closing_notes_too_long(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_ACTIONS_OPEN)
        factories.root_cause_final(rcfa, owner.user_id)

        with pytest.raises(InvalidInputError):
            transition_rcfa(rcfa.id, "close", owner, closing_notes="x" * 10_001)

    def test_unknown_action_is_rejected(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id)

        with pytest.raises(ValueError):
            transition_rcfa(rcfa.id, "archive", owner)


# ═════════════════════════════════════════════════════════════════════════════
# Authorization
# ═════════════════════════════════════════════════════════════════════════════


class TestTransitionAuthorization:

    def test_reopen_by_owner_is_forbidden(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_CLOSED)

        with pytest.raises(ForbiddenError):
            transition_rcfa(rcfa.id, "reopen", owner)
        assert db.session.get(Rcfa, rcfa.id).status == STATUS_CLOSED

    def test_other_user_cannot_start(self, factories, owner, other_user):
        rcfa = factories.rcfa(owner.user_id)

        with pytest.raises(ForbiddenError):
            transition_rcfa(rcfa.id, "start_investigation", other_user)

    def test_admin_can_start_someone_elses(self, factories, owner, admin):
        rcfa = factories.rcfa(owner.user_id)

        assert transition_rcfa(rcfa.id, "start_investigation", admin)["new_status"] == STATUS_INVESTIGATION

    def test_tombstoned_is_not_found(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id)
        rcfa.soft_delete(owner.user_id)
        db.session.commit()

        with pytest.raises(NotFoundError):
            transition_rcfa(rcfa.id, "start_investigation", owner)


class TestGatePredicates:

    def test_validate_rcfa_transition(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INVESTIGATION)

        assert validate_rcfa_transition(rcfa, "finalize")["valid"] is True
        assert validate_rcfa_transition(rcfa, "close")["valid"] is False
        assert validate_rcfa_transition(rcfa, "explode")["reason"] == "Unknown action: explode"

    def test_can_promote_only_in_investigation(self, factories, owner):
        for status in RCFA_STATUSES:
            rcfa = factories.rcfa(owner.user_id, status=status, title=status)
            assert can_promote_action_item(rcfa) is (status == STATUS_INVESTIGATION)
        assert can_promote_action_item(None) is False

    def test_answer_has_no_admin_override(self, factories, owner, admin):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INVESTIGATION)

        assert can_answer_followup(rcfa, owner) is True
        assert can_answer_followup(rcfa, admin) is False

    def test_asymmetry_between_promote_and_answer(self, factories, owner, other_user, admin):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INVESTIGATION)

        assert rcfa_lifecycle.is_authorized("promote_action_item", rcfa, admin)
        assert not rcfa_lifecycle.is_authorized("answer_followup", rcfa, admin)
        assert not rcfa_lifecycle.is_authorized("promote_action_item", rcfa, other_user)
        assert not rcfa_lifecycle.is_authorized("answer_followup", rcfa, other_user)

    def test_available_transitions(self, factories, owner, admin):
        closed = factories.rcfa(owner.user_id, status=STATUS_CLOSED)

        assert get_available_transitions(closed, owner) == []
        assert get_available_transitions(closed, admin) == ["reopen"]


# ═════════════════════════════════════════════════════════════════════════════
# Draft action items on finalize
# ═════════════════════════════════════════════════════════════════════════════


def _complete_draft(factories, rcfa, user_id):
    return factories.action_item(
        rcfa, user_id,
        status="draft",
        action_description="Interlock pump start on suction pressure",
        owner_user_id=user_id,
        due_date=date(2026, 12, 1),
        priority="high",
    )


class TestDraftActivation:

    def test_finalize_opens_complete_drafts(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INVESTIGATION)
        factories.root_cause_final(rcfa, owner.user_id)
        first = _complete_draft(factories, rcfa, owner.user_id)
        second = _complete_draft(factories, rcfa, owner.user_id)
        already_open = factories.action_item(rcfa, owner.user_id, status="open")

        result = transition_rcfa(rcfa.id, "finalize", owner)

        assert sorted(result["activated_item_ids"]) == sorted([first.id, second.id])
        statuses = {i.id: i.status for i in ActionItem.query.filter_by(rcfa_id=rcfa.id)}
        assert statuses == {first.id: "open", second.id: "open", already_open.id: "open"}

        events = AuditEvent.query.filter_by(
            rcfa_id=rcfa.id, event_type=EVENT_DRAFT_ITEMS_ACTIVATED,
        ).all()
        assert len(events) == 1
        assert events[0].actor_user_id == owner.user_id
        assert events[0].payload["count"] == 2
        assert sorted(events[0].payload["activatedItemIds"]) == sorted([first.id, second.id])

    def test_no_drafts_writes_no_activation_event(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INVESTIGATION)
        factories.root_cause_final(rcfa, owner.user_id)
        factories.action_item(rcfa, owner.user_id)

        result = transition_rcfa(rcfa.id, "finalize", owner)

        assert result["activated_item_ids"] == []
        assert AuditEvent.query.filter_by(event_type=EVENT_DRAFT_ITEMS_ACTIVATED).count() == 0

    def test_incomplete_draft_blocks_finalize(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INVESTIGATION)
        factories.root_cause_final(rcfa, owner.user_id)
        complete = _complete_draft(factories, rcfa, owner.user_id)
        bare = factories.action_item(rcfa, owner.user_id, status="draft")

        with pytest.raises(ConflictError) as exc:
            transition_rcfa(rcfa.id, "finalize", owner)

        assert exc.value.code == E.RCFA_DRAFT_ITEMS_INCOMPLETE
        assert exc.value.details["incompleteItems"] == [{
            "actionItemId": bare.id,
            "missingFields": ["actionDescription", "ownerUserId", "dueDate"],
        }]
        # the whole unit rolled back
        assert db.session.get(Rcfa, rcfa.id).status == STATUS_INVESTIGATION
        assert db.session.get(ActionItem, complete.id).status == "draft"
        assert AuditEvent.query.filter_by(rcfa_id=rcfa.id).count() == 0

    def test_whitespace_description_counts_as_missing(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INVESTIGATION)
        item = _complete_draft(factories, rcfa, owner.user_id)
        item.action_description = "   "
        db.session.commit()

        assert item.missing_activation_fields() == ["actionDescription"]


# ═════════════════════════════════════════════════════════════════════════════
# Owner reassignment
# ═════════════════════════════════════════════════════════════════════════════


class TestReassignOwner:

    def test_admin_reassigns_and_audits(self, factories, owner, other_user, admin):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INVESTIGATION)

        result = reassign_owner(rcfa.id, other_user.user_id, admin)

        assert result["changed"] is True
        assert result["previous_owner_user_id"] == owner.user_id
        assert db.session.get(Rcfa, rcfa.id).owner_user_id == other_user.user_id

        events = AuditEvent.query.filter_by(rcfa_id=rcfa.id, event_type=EVENT_OWNER_CHANGED).all()
        assert len(events) == 1
        assert events[0].actor_user_id == admin.user_id
        assert events[0].payload == {
            "previousOwnerId": owner.user_id,
            "newOwnerId": other_user.user_id,
        }

    def test_new_owner_inherits_owner_only_gate(self, factories, owner, other_user, admin):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INVESTIGATION)

        reassign_owner(rcfa.id, other_user.user_id, admin)

        stored = db.session.get(Rcfa, rcfa.id)
        assert can_answer_followup(stored, other_user) is True
        assert can_answer_followup(stored, owner) is False

    def test_same_owner_is_noop(self, factories, owner, admin):
        rcfa = factories.rcfa(owner.user_id)

        result = reassign_owner(rcfa.id, owner.user_id, admin)

        assert result["changed"] is False
        assert AuditEvent.query.count() == 0

    def test_allowed_on_closed_investigation(self, factories, owner, other_user, admin):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_CLOSED)

        reassign_owner(rcfa.id, other_user.user_id, admin)

        assert db.session.get(Rcfa, rcfa.id).owner_user_id == other_user.user_id

    def test_owner_cannot_reassign(self, factories, owner, other_user):
        rcfa = factories.rcfa(owner.user_id)

        with pytest.raises(ForbiddenError):
            reassign_owner(rcfa.id, other_user.user_id, owner)

        assert db.session.get(Rcfa, rcfa.id).owner_user_id == owner.user_id
        assert AuditEvent.query.count() == 0

    @pytest.mark.parametrize("new_owner", [None, "", "   ", 42, "x" * 37])
    def test_invalid_new_owner_is_invalid_input(self, factories, owner, admin, new_owner):
        rcfa = factories.rcfa(owner.user_id)

        with pytest.raises(InvalidInputError):
            reassign_owner(rcfa.id, new_owner, admin)

    def test_tombstoned_is_not_found(self, factories, owner, other_user, admin):
        rcfa = factories.rcfa(owner.user_id)
        rcfa.soft_delete(admin.user_id)
        db.session.commit()

        with pytest.raises(NotFoundError):
            reassign_owner(rcfa.id, other_user.user_id, admin)
