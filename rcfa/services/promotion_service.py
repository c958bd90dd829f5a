"""
Promotion Service — turns a generated candidate into a committed artifact.

    promote_action_item:  ActionItemCandidate → ActionItem     (action_item_promoted)
    promote_root_cause:   RootCauseCandidate  → RootCauseFinal (promoted_to_final)

Protocol (both functions):
  1. Id shape check (InvalidInputError) before storage is touched.
  2. Cheap pre-checks outside the unit of work: investigation exists and is
     live, principal is owner or admin, status is ``investigation``,
     candidate exists and belongs to the investigation.
  3. One unit of work:
       a. re-read the investigation under lock, re-check status
       b. re-read the candidate
       c. refuse if a commitment already points at the candidate
       d. create the commitment (flush)
       e. append the audit event
       f. commit
     A unique-constraint hit on ``selected_from_candidate_id`` at d/f is the
     backstop for two requests that both passed c; it is reported exactly
     like c.

No retries: a caller that loses the race gets ALREADY_PROMOTED.
"""

import logging

from sqlalchemy.exc import IntegrityError

from rcfa.core.exceptions import ConflictError, InternalError, NotFoundError
from rcfa.core.principal import Principal
from rcfa.models import db
from rcfa.models.audit import EVENT_ACTION_ITEM_PROMOTED, EVENT_PROMOTED_TO_FINAL
from rcfa.models.candidate import ActionItemCandidate, RootCauseCandidate
from rcfa.models.commitment import ActionItem, RootCauseFinal
from rcfa.services import rcfa_lifecycle
from rcfa.services.helpers.unit_of_work import UnitOfWork
from rcfa.utils.errors import E
from rcfa.utils.helpers import require_uuid

logger = logging.getLogger(__name__)


_SOURCE_CONSTRAINT_MARKERS = (
    "selected_from_candidate_id",
    "uq_action_item_source_candidate",
    "uq_root_cause_final_source_candidate",
)


def _already_promoted() -> ConflictError:
    return ConflictError(E.ALREADY_PROMOTED, "This candidate has already been promoted")


def _integrity_to_domain(exc: IntegrityError, candidate_id: str, rcfa_id: str, event_type: str):
    """Map a unique hit on the source-candidate column to ALREADY_PROMOTED;
    any other integrity failure is unexpected."""
    detail = str(exc.orig)
    if any(marker in detail for marker in _SOURCE_CONSTRAINT_MARKERS):
        logger.info(
            "Lost promotion race for candidate %s: %s", candidate_id, detail,
            extra={"rcfa_id": rcfa_id, "event_type": event_type},
        )
        return _already_promoted()
    logger.error(
        "Integrity error promoting candidate %s: %s", candidate_id, detail,
        extra={"rcfa_id": rcfa_id, "event_type": event_type},
    )
    return InternalError()


def _precheck(operation: str, candidate_model, rcfa_id: str, candidate_id: str, principal: Principal):
    require_uuid(rcfa_id, "RCFA id")
    require_uuid(candidate_id, "candidate id")

    rcfa_lifecycle.check_operation(operation, rcfa_id, principal)

    candidate = db.session.get(candidate_model, candidate_id)
    if candidate is None or candidate.rcfa_id != rcfa_id:
        raise NotFoundError(candidate_model.__name__, candidate_id)


# ═════════════════════════════════════════════════════════════════════════════
# Action items
# ═════════════════════════════════════════════════════════════════════════════

def promote_action_item(
    rcfa_id: str,
    candidate_id: str,
    principal: Principal,
    *,
    uow_factory=UnitOfWork,
) -> ActionItem:
    """
    Promote one ActionItemCandidate into exactly one ActionItem.

    Args:
        rcfa_id: UUID of the investigation
        candidate_id: UUID of the ActionItemCandidate
        principal: Verified caller (owner or admin)
        uow_factory: Atomic-unit factory (injectable for tests)

    Returns:
        The committed ActionItem.

    Raises:
        InvalidInputError, NotFoundError, ForbiddenError,
        ConflictError (RCFA_NOT_IN_INVESTIGATION | ALREADY_PROMOTED),
        InternalError
    """
    _precheck("promote_action_item", ActionItemCandidate, rcfa_id, candidate_id, principal)

    try:
        with uow_factory() as uow:
            rcfa_lifecycle.recheck_locked(uow, "promote_action_item", rcfa_id)

            candidate = uow.fresh_get(ActionItemCandidate, candidate_id, rcfa_id=rcfa_id)
            if candidate is None:
                raise NotFoundError("ActionItemCandidate", candidate_id)

            if uow.find_promoted_from(ActionItem, candidate_id) is not None:
                raise _already_promoted()

            item = uow.add(ActionItem(
                rcfa_id=rcfa_id,
                action_text=candidate.action_text,
                action_description=candidate.rationale_text,
                priority=candidate.priority,
                due_date=candidate.suggested_due_date,
                status="open",
                selected_from_candidate_id=candidate_id,
                created_by_user_id=principal.user_id,
            ))

            uow.append_event(
                rcfa_id=rcfa_id,
                event_type=EVENT_ACTION_ITEM_PROMOTED,
                actor_user_id=principal.user_id,
                payload={
                    "candidateId": candidate_id,
                    "actionItemId": item.id,
                    "actionText": candidate.action_text,
                    "actionDescription": candidate.rationale_text,
                },
            )
    except IntegrityError as exc:
        raise _integrity_to_domain(exc, candidate_id, rcfa_id, EVENT_ACTION_ITEM_PROMOTED) from exc

    logger.info(
        "Promoted action item candidate %s → %s", candidate_id, item.id,
        extra={"rcfa_id": rcfa_id, "event_type": EVENT_ACTION_ITEM_PROMOTED},
    )
    return item


# ═════════════════════════════════════════════════════════════════════════════
# Root causes
# ═════════════════════════════════════════════════════════════════════════════

def promote_root_cause(
    rcfa_id: str,
    candidate_id: str,
    principal: Principal,
    *,
    uow_factory=UnitOfWork,
) -> RootCauseFinal:
    """Promote one RootCauseCandidate into exactly one RootCauseFinal.

    Same protocol and error contract as ``promote_action_item``.
    """
    _precheck("promote_root_cause", RootCauseCandidate, rcfa_id, candidate_id, principal)

    try:
        with uow_factory() as uow:
            rcfa_lifecycle.recheck_locked(uow, "promote_root_cause", rcfa_id)

            candidate = uow.fresh_get(RootCauseCandidate, candidate_id, rcfa_id=rcfa_id)
            if candidate is None:
                raise NotFoundError("RootCauseCandidate", candidate_id)

            if uow.find_promoted_from(RootCauseFinal, candidate_id) is not None:
                raise _already_promoted()

            final = uow.add(RootCauseFinal(
                rcfa_id=rcfa_id,
                cause_text=candidate.cause_text,
                selected_from_candidate_id=candidate_id,
                selected_by_user_id=principal.user_id,
            ))

            uow.append_event(
                rcfa_id=rcfa_id,
                event_type=EVENT_PROMOTED_TO_FINAL,
                actor_user_id=principal.user_id,
                payload={
                    "candidateId": candidate_id,
                    "finalId": final.id,
                    "causeText": candidate.cause_text,
                },
            )
    except IntegrityError as exc:
        raise _integrity_to_domain(exc, candidate_id, rcfa_id, EVENT_PROMOTED_TO_FINAL) from exc

    logger.info(
        "Promoted root cause candidate %s → %s", candidate_id, final.id,
        extra={"rcfa_id": rcfa_id, "event_type": EVENT_PROMOTED_TO_FINAL},
    )
    return final
