"""
Follow-up Service — the investigation owner's answers to generated questions.

Only the owner may answer. Anyone else, admin included, is told the
investigation does not exist. A new answer overwrites the previous one.

When ``RCFA_AUDIT_FOLLOWUP_ANSWERS`` is on (the default) every answer is
also written to the audit trail in the same unit of work:

    first answer  → answer_submitted {questionId, questionText, answerText}
    overwrite     → answer_updated   {questionId, questionText,
                                      previousAnswer, newAnswer}
"""

import logging
from datetime import datetime, timezone

from flask import current_app

from rcfa.core.exceptions import NotFoundError
from rcfa.core.principal import Principal
from rcfa.models.audit import EVENT_ANSWER_SUBMITTED, EVENT_ANSWER_UPDATED
from rcfa.models.candidate import FollowupQuestion
from rcfa.services import rcfa_lifecycle
from rcfa.services.helpers.unit_of_work import UnitOfWork
from rcfa.utils.helpers import clean_text, require_uuid

logger = logging.getLogger(__name__)

DEFAULT_MAX_ANSWER_LENGTH = 10_000


def _max_answer_length() -> int:
    return int(current_app.config.get("RCFA_MAX_ANSWER_LENGTH", DEFAULT_MAX_ANSWER_LENGTH))


def _audit_enabled(audit: bool | None) -> bool:
    if audit is not None:
        return audit
    return bool(current_app.config.get("RCFA_AUDIT_FOLLOWUP_ANSWERS", True))


def answer_followup(
    rcfa_id: str,
    question_id: str,
    principal: Principal,
    answer_text,
    *,
    audit: bool | None = None,
    uow_factory=UnitOfWork,
) -> FollowupQuestion:
    """
    Record the owner's answer to a follow-up question.

    Args:
        rcfa_id: UUID of the investigation
        question_id: UUID of the FollowupQuestion
        principal: Verified caller (must own the investigation)
        answer_text: Free text, trimmed, 1..RCFA_MAX_ANSWER_LENGTH characters
        audit: Override ``RCFA_AUDIT_FOLLOWUP_ANSWERS`` for this call
        uow_factory: Atomic-unit factory (injectable for tests)

    Returns:
        The updated FollowupQuestion.

    Raises:
        InvalidInputError, NotFoundError, InternalError
    """
    require_uuid(rcfa_id, "RCFA id")
    require_uuid(question_id, "question id")
    text = clean_text(answer_text, "answerText", max_length=_max_answer_length())

    rcfa = rcfa_lifecycle.get_live_rcfa(rcfa_id)
    rcfa_lifecycle.authorize("answer_followup", rcfa, principal)

    with uow_factory() as uow:
        question = uow.fresh_get(FollowupQuestion, question_id, rcfa_id=rcfa_id)
        if question is None:
            raise NotFoundError("FollowupQuestion", question_id)

        previous = question.answer_text
        question.answer_text = text
        question.answered_by_user_id = principal.user_id
        question.answered_at = datetime.now(timezone.utc)

        if _audit_enabled(audit):
            if previous is None:
                uow.append_event(
                    rcfa_id=rcfa_id,
                    event_type=EVENT_ANSWER_SUBMITTED,
                    actor_user_id=principal.user_id,
                    payload={
                        "questionId": question_id,
                        "questionText": question.question_text,
                        "answerText": text,
                    },
                )
            else:
                uow.append_event(
                    rcfa_id=rcfa_id,
                    event_type=EVENT_ANSWER_UPDATED,
                    actor_user_id=principal.user_id,
                    payload={
                        "questionId": question_id,
                        "questionText": question.question_text,
                        "previousAnswer": previous,
                        "newAnswer": text,
                    },
                )

    logger.info(
        "Answered follow-up question %s (%s)", question_id,
        "overwrite" if previous is not None else "first",
        extra={"rcfa_id": rcfa_id},
    )
    return question
