"""
Candidate Service — stores one batch of generated candidates.

The external analysis producer (or a human entering hypotheses by hand)
hands over root causes, follow-up questions and action items in one call.
The whole batch is written in one unit of work together with a single
``candidate_generated`` audit event, so a half-stored batch never exists.

Input item shapes (snake_case, as sent by the producer):

    root_causes:        {"cause_text", "rationale_text"?, "confidence_label"?}
    followup_questions: {"question_text", "question_category"?}
    action_items:       {"action_text", "rationale_text"?, "priority"?,
                         "suggested_due_date"?, "timeframe_text"?,
                         "success_criteria"?}
"""

import logging

from rcfa.core.exceptions import InvalidInputError
from rcfa.core.principal import Principal
from rcfa.models.audit import AUDIT_SOURCES, EVENT_CANDIDATE_GENERATED
from rcfa.models.candidate import (
    CONFIDENCE_LABELS,
    PRIORITIES,
    QUESTION_CATEGORIES,
    ActionItemCandidate,
    FollowupQuestion,
    RootCauseCandidate,
)
from rcfa.services import rcfa_lifecycle
from rcfa.services.helpers.unit_of_work import UnitOfWork
from rcfa.utils.helpers import clean_text, parse_date_input

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 10_000


def _choice(value, allowed, label: str, default: str) -> str:
    if value is None:
        return default
    if value not in allowed:
        raise InvalidInputError(
            f"Invalid {label}: {value}",
            details={label: f"must be one of {', '.join(allowed)}"},
        )
    return value


def _items(value, label: str) -> list[dict]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, dict) for v in value):
        raise InvalidInputError(f"{label} must be a list of objects")
    return value


def _build_root_cause(data: dict, generated_by: str) -> RootCauseCandidate:
    return RootCauseCandidate(
        cause_text=clean_text(data.get("cause_text"), "cause_text", max_length=MAX_TEXT_LENGTH),
        rationale_text=clean_text(
            data.get("rationale_text"), "rationale_text",
            max_length=MAX_TEXT_LENGTH, required=False,
        ),
        confidence_label=_choice(
            data.get("confidence_label"), CONFIDENCE_LABELS, "confidence_label", "medium",
        ),
        generated_by=generated_by,
    )


def _build_question(data: dict, generated_by: str) -> FollowupQuestion:
    return FollowupQuestion(
        question_text=clean_text(
            data.get("question_text"), "question_text", max_length=MAX_TEXT_LENGTH,
        ),
        question_category=_choice(
            data.get("question_category"), QUESTION_CATEGORIES, "question_category", "other",
        ),
        generated_by=generated_by,
    )


def _build_action_item(data: dict, generated_by: str) -> ActionItemCandidate:
    return ActionItemCandidate(
        action_text=clean_text(data.get("action_text"), "action_text", max_length=MAX_TEXT_LENGTH),
        rationale_text=clean_text(
            data.get("rationale_text"), "rationale_text",
            max_length=MAX_TEXT_LENGTH, required=False,
        ),
        priority=_choice(data.get("priority"), PRIORITIES, "priority", "medium"),
        suggested_due_date=parse_date_input(data.get("suggested_due_date"), "suggested_due_date"),
        timeframe_text=clean_text(
            data.get("timeframe_text"), "timeframe_text",
            max_length=MAX_TEXT_LENGTH, required=False,
        ),
        success_criteria=clean_text(
            data.get("success_criteria"), "success_criteria",
            max_length=MAX_TEXT_LENGTH, required=False,
        ),
        generated_by=generated_by,
    )


def record_candidates(
    rcfa_id: str,
    principal: Principal,
    *,
    root_causes=None,
    followup_questions=None,
    action_items=None,
    source: str = "ai_initial_analysis",
    uow_factory=UnitOfWork,
) -> dict:
    """
    Store a batch of candidates against an investigation.

    Allowed for the owner or an admin while the investigation is in
    ``intake`` or ``investigation``. Every item is validated before
    anything is written.

    Returns:
        {"rootCauseCandidateIds", "followupQuestionIds", "actionItemCandidateIds"}

    Raises:
        InvalidInputError, NotFoundError, ForbiddenError, ConflictError
    """
    if not isinstance(source, str) or source not in AUDIT_SOURCES:
        raise InvalidInputError(
            f"Invalid source: {source}",
            details={"source": f"must be one of {', '.join(sorted(AUDIT_SOURCES))}"},
        )
    generated_by = "human" if source == "human" else "ai"

    causes = [_build_root_cause(d, generated_by) for d in _items(root_causes, "root_causes")]
    questions = [
        _build_question(d, generated_by) for d in _items(followup_questions, "followup_questions")
    ]
    actions = [_build_action_item(d, generated_by) for d in _items(action_items, "action_items")]
    if not (causes or questions or actions):
        raise InvalidInputError("At least one candidate is required")

    rcfa_lifecycle.check_operation("record_candidates", rcfa_id, principal)

    with uow_factory() as uow:
        rcfa_lifecycle.recheck_locked(uow, "record_candidates", rcfa_id)
        for obj in (*causes, *questions, *actions):
            obj.rcfa_id = rcfa_id
            uow.session.add(obj)
        uow.session.flush()

        result = {
            "rootCauseCandidateIds": [c.id for c in causes],
            "followupQuestionIds": [q.id for q in questions],
            "actionItemCandidateIds": [a.id for a in actions],
        }
        uow.append_event(
            rcfa_id=rcfa_id,
            event_type=EVENT_CANDIDATE_GENERATED,
            actor_user_id=principal.user_id,
            payload={"source": source, **result},
        )

    logger.info(
        "Recorded %d root causes, %d questions, %d action items (%s)",
        len(causes), len(questions), len(actions), source,
        extra={"rcfa_id": rcfa_id, "event_type": EVENT_CANDIDATE_GENERATED},
    )
    return result
