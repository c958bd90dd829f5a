"""
Candidate ingestion tests: batch storage, validation, status gate and the
``candidate_generated`` audit event.
"""

import datetime

import pytest

from rcfa.core.exceptions import ConflictError, ForbiddenError, InvalidInputError
from rcfa.models.audit import EVENT_CANDIDATE_GENERATED, AuditEvent
from rcfa.models.candidate import ActionItemCandidate, FollowupQuestion, RootCauseCandidate
from rcfa.models.investigation import STATUS_ACTIONS_OPEN, STATUS_INTAKE, STATUS_INVESTIGATION
from rcfa.services.candidate_service import record_candidates


def _batch():
    return {
        "root_causes": [
            {"cause_text": "Dry running at start-up", "confidence_label": "high"},
            {"cause_text": "Wrong seal material", "rationale_text": "Fluid is abrasive"},
        ],
        "followup_questions": [
            {"question_text": "Was the suction valve open?", "question_category": "operating_context"},
        ],
        "action_items": [
            {
                "action_text": "Install dry-run protection",
                "priority": "high",
                "suggested_due_date": "2026-11-30",
                "success_criteria": "No dry-run trips in 90 days",
            },
        ],
    }


class TestRecordCandidates:

    def test_batch_is_stored_with_one_audit_event(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INTAKE)

        result = record_candidates(rcfa.id, owner, source="ai_initial_analysis", **_batch())

        assert len(result["rootCauseCandidateIds"]) == 2
        assert len(result["followupQuestionIds"]) == 1
        assert len(result["actionItemCandidateIds"]) == 1
        assert RootCauseCandidate.query.filter_by(rcfa_id=rcfa.id).count() == 2

        action = ActionItemCandidate.query.filter_by(rcfa_id=rcfa.id).one()
        assert action.suggested_due_date == datetime.date(2026, 11, 30)
        assert action.generated_by == "ai"

        question = FollowupQuestion.query.filter_by(rcfa_id=rcfa.id).one()
        assert question.question_category == "operating_context"
        assert question.answer_text is None

        event = AuditEvent.query.filter_by(event_type=EVENT_CANDIDATE_GENERATED).one()
        assert event.payload["source"] == "ai_initial_analysis"
        assert event.payload["actionItemCandidateIds"] == result["actionItemCandidateIds"]

    def test_defaults_for_optional_fields(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INVESTIGATION)

        record_candidates(rcfa.id, owner, root_causes=[{"cause_text": "Misalignment"}], source="human")

        cand = RootCauseCandidate.query.one()
        assert cand.confidence_label == "medium"
        assert cand.generated_by == "human"

    def test_admin_may_record_for_someone_else(self, factories, owner, admin):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INVESTIGATION)

        record_candidates(rcfa.id, admin, source="ai_reanalysis", **_batch())

        assert AuditEvent.query.one().actor_user_id == admin.user_id

    def test_other_user_is_forbidden(self, factories, owner, other_user):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INVESTIGATION)

        with pytest.raises(ForbiddenError):
            record_candidates(rcfa.id, other_user, **_batch())

    def test_after_finalize_is_conflict(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_ACTIONS_OPEN)

        with pytest.raises(ConflictError):
            record_candidates(rcfa.id, owner, **_batch())
        assert RootCauseCandidate.query.count() == 0

    @pytest.mark.parametrize("field,items", [
        ("root_causes", [{"cause_text": "x", "confidence_label": "certain"}]),
        ("root_causes", [{"rationale_text": "no cause"}]),
        ("followup_questions", [{"question_text": "?", "question_category": "gossip"}]),
        ("action_items", [{"action_text": "Fix", "priority": "urgent"}]),
        ("action_items", [{"action_text": "Fix", "suggested_due_date": "next week"}]),
        ("action_items", "not a list"),
    ])
    def test_invalid_items_store_nothing(self, factories, owner, field, items):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INVESTIGATION)
        batch = _batch()
        batch[field] = items

        with pytest.raises(InvalidInputError):
            record_candidates(rcfa.id, owner, **batch)
        assert RootCauseCandidate.query.count() == 0
        assert AuditEvent.query.count() == 0

    def test_unknown_source_is_invalid(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INVESTIGATION)

        with pytest.raises(InvalidInputError):
            record_candidates(rcfa.id, owner, source="crystal_ball", **_batch())

    def test_empty_batch_is_invalid(self, factories, owner):
        rcfa = factories.rcfa(owner.user_id, status=STATUS_INVESTIGATION)

        with pytest.raises(InvalidInputError):
            record_candidates(rcfa.id, owner)
