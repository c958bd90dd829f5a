"""
RCFA Lifecycle Service — investigation state machine.

Owns the ``status`` column of ``Rcfa`` and every legality decision the
core makes about an investigation:

  - per-operation authorization (owner / owner-or-admin / admin)
  - per-operation status gates
  - the four status transitions:
        start_investigation, finalize, close, reopen
  - owner reassignment (admin only)

Finalizing also opens every ``draft`` action item; a draft missing any
activation field blocks the transition.

Authorization lives in ONE table (``OPERATION_POLICIES``). Promotion lets
an admin act on someone else's investigation; answering a follow-up
question does not, and a non-owner is told the investigation does not
exist. Keep both rules here so they cannot drift apart at call sites.

Usage:
    from rcfa.services.rcfa_lifecycle import transition_rcfa

    result = transition_rcfa(rcfa_id, "close", principal, closing_notes="Seal replaced")
"""

import logging
from datetime import datetime, timezone

from rcfa.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from rcfa.core.principal import Principal
from rcfa.models.audit import EVENT_DRAFT_ITEMS_ACTIVATED, EVENT_OWNER_CHANGED, EVENT_STATUS_CHANGED
from rcfa.models.commitment import (
    ACTION_ITEM_DRAFT,
    ACTION_ITEM_OPEN,
    ACTION_ITEM_TERMINAL_STATUSES,
    ActionItem,
    RootCauseFinal,
)
from rcfa.models.investigation import (
    RCFA_TRANSITIONS,
    STATUS_INTAKE,
    STATUS_INVESTIGATION,
    Rcfa,
)
from rcfa.services.helpers.unit_of_work import UnitOfWork
from rcfa.utils.errors import E
from rcfa.utils.helpers import clean_text, require_uuid

logger = logging.getLogger(__name__)


# ── Access levels ────────────────────────────────────────────────────────────

ACCESS_ANY = "any"
ACCESS_OWNER = "owner"
ACCESS_OWNER_OR_ADMIN = "owner_or_admin"
ACCESS_ADMIN = "admin"

MAX_CLOSING_NOTES_LENGTH = 10_000

# operation → who may do it, in which statuses, and how a refusal is reported.
#   statuses:     None means any (live) status
#   deny_as:      "forbidden" → ForbiddenError, "not_found" → NotFoundError
#   conflict:     code raised when the status gate fails
OPERATION_POLICIES = {
    "promote_action_item": {
        "access": ACCESS_OWNER_OR_ADMIN,
        "statuses": [STATUS_INVESTIGATION],
        "deny_as": "forbidden",
        "conflict": E.RCFA_NOT_IN_INVESTIGATION,
        "message": "RCFA must be in investigation status to promote action items",
    },
    "promote_root_cause": {
        "access": ACCESS_OWNER_OR_ADMIN,
        "statuses": [STATUS_INVESTIGATION],
        "deny_as": "forbidden",
        "conflict": E.RCFA_NOT_IN_INVESTIGATION,
        "message": "RCFA must be in investigation status to promote root causes",
    },
    "answer_followup": {
        "access": ACCESS_OWNER,
        "statuses": None,
        "deny_as": "not_found",
        "conflict": E.CONFLICT_STATE,
        "message": "",
    },
    "record_candidates": {
        "access": ACCESS_OWNER_OR_ADMIN,
        "statuses": [STATUS_INTAKE, STATUS_INVESTIGATION],
        "deny_as": "forbidden",
        "conflict": E.CONFLICT_STATE,
        "message": "Candidates can only be recorded during intake or investigation",
    },
    "view_audit": {
        "access": ACCESS_ANY,
        "statuses": None,
        "deny_as": "forbidden",
        "conflict": E.CONFLICT_STATE,
        "message": "",
    },
    "reassign_owner": {
        "access": ACCESS_ADMIN,
        "statuses": None,
        "deny_as": "forbidden",
        "conflict": E.CONFLICT_STATE,
        "message": "",
    },
}

for _action, _rule in RCFA_TRANSITIONS.items():
    OPERATION_POLICIES[_action] = {
        "access": ACCESS_ADMIN if _action == "reopen" else ACCESS_OWNER_OR_ADMIN,
        "statuses": list(_rule["from"]),
        "deny_as": "forbidden",
        "conflict": E.RCFA_INVALID_TRANSITION,
        "message": f"Cannot '{_action}' an RCFA unless its status is {' or '.join(_rule['from'])}",
    }


# ── Gate predicates ──────────────────────────────────────────────────────────

def is_live(rcfa: Rcfa | None) -> bool:
    return rcfa is not None and not rcfa.is_deleted


def is_authorized(operation: str, rcfa: Rcfa, principal: Principal) -> bool:
    """Pure authorization decision for *operation* on *rcfa*."""
    access = OPERATION_POLICIES[operation]["access"]
    if access == ACCESS_ANY:
        return True
    if access == ACCESS_OWNER:
        return principal.owns(rcfa)
    if access == ACCESS_OWNER_OR_ADMIN:
        return principal.owns(rcfa) or principal.is_admin
    if access == ACCESS_ADMIN:
        return principal.is_admin
    raise ValueError(f"Unknown access level: {access}")


def status_permits(operation: str, rcfa: Rcfa) -> bool:
    statuses = OPERATION_POLICIES[operation]["statuses"]
    return statuses is None or rcfa.status in statuses


def can_promote_action_item(rcfa: Rcfa | None) -> bool:
    """True iff the investigation is live and in ``investigation`` status."""
    return is_live(rcfa) and status_permits("promote_action_item", rcfa)


def can_answer_followup(rcfa: Rcfa | None, principal: Principal) -> bool:
    """True iff the investigation is live and owned by *principal*.

    No admin override.
    """
    return is_live(rcfa) and is_authorized("answer_followup", rcfa, principal)


# ── Raising checks ───────────────────────────────────────────────────────────

def get_live_rcfa(rcfa_id: str) -> Rcfa:
    """Load a non-tombstoned investigation or raise NotFoundError."""
    require_uuid(rcfa_id, "RCFA id")
    rcfa = Rcfa.query_active().filter(Rcfa.id == rcfa_id).first()
    if rcfa is None:
        raise NotFoundError("Rcfa", rcfa_id)
    return rcfa


def authorize(operation: str, rcfa: Rcfa, principal: Principal) -> None:
    if is_authorized(operation, rcfa, principal):
        return
    logger.info(
        "Denied %s on rcfa=%s for user=%s",
        operation, rcfa.id, principal.user_id,
        extra={"rcfa_id": rcfa.id, "event_type": "authz_denied"},
    )
    if OPERATION_POLICIES[operation]["deny_as"] == "not_found":
        raise NotFoundError("Rcfa", rcfa.id)
    raise ForbiddenError(operation, principal.user_id)


def ensure_status(operation: str, rcfa: Rcfa) -> None:
    if status_permits(operation, rcfa):
        return
    policy = OPERATION_POLICIES[operation]
    raise ConflictError(
        policy["conflict"],
        policy["message"] or f"Cannot {operation} in status {rcfa.status}",
        details={"status": rcfa.status},
    )


def check_operation(operation: str, rcfa_id: str, principal: Principal) -> Rcfa:
    """Pre-check outside any unit of work: exists → authorized → status.

    Returns the investigation for callers that need it.
    """
    rcfa = get_live_rcfa(rcfa_id)
    authorize(operation, rcfa, principal)
    ensure_status(operation, rcfa)
    return rcfa


def recheck_locked(uow: UnitOfWork, operation: str, rcfa_id: str) -> Rcfa:
    """Inside a unit of work: re-read the investigation under lock and
    re-verify the status gate against the committed row."""
    locked = uow.lock_rcfa(rcfa_id)
    if locked is None:
        raise NotFoundError("Rcfa", rcfa_id)
    ensure_status(operation, locked)
    return locked


# ── Transitions ──────────────────────────────────────────────────────────────

def validate_rcfa_transition(rcfa: Rcfa, action: str) -> dict:
    """Validate whether an action is valid for the investigation's status."""
    rule = RCFA_TRANSITIONS.get(action)
    if not rule:
        return {"valid": False, "from": rcfa.status, "to": None,
                "reason": f"Unknown action: {action}"}

    if rcfa.status not in rule["from"]:
        return {"valid": False, "from": rcfa.status, "to": rule["to"],
                "reason": f"Cannot '{action}' from status '{rcfa.status}'"}

    return {"valid": True, "from": rcfa.status, "to": rule["to"], "reason": None}


def _check_finalize_preconditions(uow: UnitOfWork, rcfa: Rcfa) -> list[ActionItem]:
    """Raise if finalize cannot proceed; otherwise return the drafts to open."""
    if uow.count(RootCauseFinal, RootCauseFinal.rcfa_id == rcfa.id) == 0:
        raise ConflictError(
            E.RCFA_NO_ROOT_CAUSES,
            "At least one root cause must be finalized before advancing",
        )
    if uow.count(ActionItem, ActionItem.rcfa_id == rcfa.id) == 0:
        raise ConflictError(
            E.RCFA_NO_ACTION_ITEMS,
            "At least one action item is required before finalizing investigation",
        )

    drafts = (
        uow.session.query(ActionItem)
        .filter(ActionItem.rcfa_id == rcfa.id, ActionItem.status == ACTION_ITEM_DRAFT)
        .order_by(ActionItem.created_at, ActionItem.id)
        .all()
    )
    incomplete = [
        {"actionItemId": item.id, "missingFields": missing}
        for item in drafts
        if (missing := item.missing_activation_fields())
    ]
    if incomplete:
        raise ConflictError(
            E.RCFA_DRAFT_ITEMS_INCOMPLETE,
            "Some action items are incomplete",
            details={"incompleteItems": incomplete},
        )
    return drafts


def _check_close_preconditions(uow: UnitOfWork, rcfa: Rcfa) -> None:
    if uow.count(RootCauseFinal, RootCauseFinal.rcfa_id == rcfa.id) == 0:
        raise ConflictError(
            E.RCFA_NO_ROOT_CAUSES,
            "At least one final root cause is required to close the RCFA",
        )
    incomplete = uow.count(
        ActionItem,
        ActionItem.rcfa_id == rcfa.id,
        ActionItem.status.notin_(ACTION_ITEM_TERMINAL_STATUSES),
    )
    if incomplete:
        raise ConflictError(
            E.RCFA_INCOMPLETE_ACTIONS,
            "All action items must be done or canceled before closing",
            details={"incomplete_count": incomplete},
        )


def transition_rcfa(
    rcfa_id: str,
    action: str,
    principal: Principal,
    *,
    closing_notes: str | None = None,
    uow_factory=UnitOfWork,
) -> dict:
    """
    Execute an investigation lifecycle transition.

    Args:
        rcfa_id: UUID of the investigation
        action: One of ``RCFA_TRANSITIONS``
        principal: Verified caller
        closing_notes: Optional, ``close`` only
        uow_factory: Atomic-unit factory (injectable for tests)

    Returns:
        {"rcfa_id", "previous_status", "new_status", "action",
         "activated_item_ids"} (draft items opened by ``finalize``)

    Raises:
        InvalidInputError, NotFoundError, ForbiddenError, ConflictError
    """
    if action not in RCFA_TRANSITIONS:
        raise ValueError(f"Unknown RCFA transition: {action}")
    if action == "close":
        closing_notes = clean_text(
            closing_notes, "closingNotes",
            max_length=MAX_CLOSING_NOTES_LENGTH, required=False,
        )

    # 1. Pre-checks (exists, permission, status)
    check_operation(action, rcfa_id, principal)

    # 2. Atomic unit: re-check under lock, preconditions, write, audit
    with uow_factory() as uow:
        rcfa = recheck_locked(uow, action, rcfa_id)
        validation = validate_rcfa_transition(rcfa, action)
        previous_status = validation["from"]
        payload = {"from": previous_status, "to": validation["to"]}
        activated_ids = []

        if action == "finalize":
            drafts = _check_finalize_preconditions(uow, rcfa)
            for item in drafts:
                item.status = ACTION_ITEM_OPEN
            activated_ids = [item.id for item in drafts]
        elif action == "close":
            _check_close_preconditions(uow, rcfa)
            rcfa.closed_at = datetime.now(timezone.utc)
            rcfa.closed_by_user_id = principal.user_id
            rcfa.closing_notes = closing_notes
            payload["closingNotes"] = closing_notes
        elif action == "reopen":
            payload.update({
                "reason": "reopened",
                "previousClosedAt": rcfa.closed_at,
                "previousClosedByUserId": rcfa.closed_by_user_id,
                "previousClosingNotes": rcfa.closing_notes,
            })
            rcfa.closed_at = None
            rcfa.closed_by_user_id = None
            rcfa.closing_notes = None

        rcfa.status = validation["to"]
        uow.append_event(
            rcfa_id=rcfa.id,
            event_type=EVENT_STATUS_CHANGED,
            actor_user_id=principal.user_id,
            payload=payload,
        )
        if activated_ids:
            uow.append_event(
                rcfa_id=rcfa.id,
                event_type=EVENT_DRAFT_ITEMS_ACTIVATED,
                actor_user_id=principal.user_id,
                payload={"activatedItemIds": activated_ids, "count": len(activated_ids)},
            )

    logger.info(
        "RCFA %s: %s → %s (%s)", rcfa_id, previous_status, validation["to"], action,
        extra={"rcfa_id": rcfa_id, "event_type": EVENT_STATUS_CHANGED},
    )
    return {
        "rcfa_id": rcfa_id,
        "previous_status": previous_status,
        "new_status": validation["to"],
        "action": action,
        "activated_item_ids": activated_ids,
    }


def get_available_transitions(rcfa: Rcfa, principal: Principal) -> list[str]:
    """Transitions *principal* could currently request on *rcfa*."""
    if not is_live(rcfa):
        return []
    return [
        action for action, rule in RCFA_TRANSITIONS.items()
        if rcfa.status in rule["from"] and is_authorized(action, rcfa, principal)
    ]


# ── Ownership ────────────────────────────────────────────────────────────────

def reassign_owner(
    rcfa_id: str,
    new_owner_user_id: str,
    principal: Principal,
    *,
    uow_factory=UnitOfWork,
) -> dict:
    """
    Hand an investigation to another user. Admin only, any status.

    Ownership feeds both authorization gates, so the change and its
    ``owner_changed`` event are written in one unit. Reassigning to the
    current owner is a no-op and writes no event.

    Returns:
        {"rcfa_id", "previous_owner_user_id", "owner_user_id", "changed"}

    Raises:
        InvalidInputError, NotFoundError, ForbiddenError
    """
    new_owner_user_id = clean_text(new_owner_user_id, "newOwnerUserId", max_length=36)

    check_operation("reassign_owner", rcfa_id, principal)

    with uow_factory() as uow:
        rcfa = recheck_locked(uow, "reassign_owner", rcfa_id)
        previous_owner = rcfa.owner_user_id
        changed = previous_owner != new_owner_user_id
        if changed:
            rcfa.owner_user_id = new_owner_user_id
            uow.append_event(
                rcfa_id=rcfa.id,
                event_type=EVENT_OWNER_CHANGED,
                actor_user_id=principal.user_id,
                payload={"previousOwnerId": previous_owner, "newOwnerId": new_owner_user_id},
            )

    if changed:
        logger.info(
            "RCFA %s owner %s → %s", rcfa_id, previous_owner, new_owner_user_id,
            extra={"rcfa_id": rcfa_id, "event_type": EVENT_OWNER_CHANGED},
        )
    return {
        "rcfa_id": rcfa_id,
        "previous_owner_user_id": previous_owner,
        "owner_user_id": new_owner_user_id,
        "changed": changed,
    }
