"""
RCFA Blueprint — investigation core HTTP surface.

Endpoints (all under /api/v1/rcfa/<rcfa_id>):
  Promotion:   POST  /action-items/<candidate_id>/promote
               POST  /root-causes/<candidate_id>/promote
  Follow-up:   PATCH /followup-questions/<question_id>      body {answerText}
  Candidates:  POST  /candidates
  Lifecycle:   POST  /start-investigation | /finalize | /close | /reopen
  Ownership:   PATCH /owner                                 body {newOwnerUserId}
  Audit:       GET   /audit-events?event_type=

Every view needs ``g.principal`` (401 otherwise). Service errors are
mapped by the ``RcfaError`` handler below; anything else is logged and
answered with an opaque 500.
"""

import logging
from functools import wraps

from flask import Blueprint, g, jsonify, request
from werkzeug.exceptions import HTTPException

from rcfa.core.exceptions import InvalidInputError, RcfaError
from rcfa.services import audit_service, candidate_service, followup_service, promotion_service
from rcfa.services.rcfa_lifecycle import reassign_owner, transition_rcfa
from rcfa.utils.errors import E, api_error

logger = logging.getLogger(__name__)

rcfa_bp = Blueprint("rcfa", __name__, url_prefix="/api/v1/rcfa")


# ── Error handlers ───────────────────────────────────────────────────────────

@rcfa_bp.errorhandler(RcfaError)
def _handle_rcfa_error(error: RcfaError):
    return api_error(error.code, str(error), status=error.http_status, details=error.details)


@rcfa_bp.errorhandler(Exception)
def _handle_unexpected(error: Exception):
    if isinstance(error, HTTPException):
        return error
    logger.exception("Unexpected error in rcfa_bp endpoint=%s", request.endpoint)
    return api_error(E.INTERNAL, "Internal server error", status=500)


# ── Request body ─────────────────────────────────────────────────────────────

def _json_body() -> dict:
    """Parsed JSON object body; a missing body counts as empty."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInputError("Request body must be a JSON object")
    return data


# ── Auth guard ───────────────────────────────────────────────────────────────

def principal_required(fn):
    """Reject the request with 401 unless the JWT middleware set a principal."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "principal", None) is None:
            return api_error(E.UNAUTHENTICATED, "Authentication required", status=401)
        return fn(*args, **kwargs)

    return wrapper


# ═════════════════════════════════════════════════════════════════════════════
# Promotion
# ═════════════════════════════════════════════════════════════════════════════

@rcfa_bp.route("/<rcfa_id>/action-items/<candidate_id>/promote", methods=["POST"])
@principal_required
def promote_action_item(rcfa_id, candidate_id):
    item = promotion_service.promote_action_item(rcfa_id, candidate_id, g.principal)
    return jsonify({"id": item.id}), 201


@rcfa_bp.route("/<rcfa_id>/root-causes/<candidate_id>/promote", methods=["POST"])
@principal_required
def promote_root_cause(rcfa_id, candidate_id):
    final = promotion_service.promote_root_cause(rcfa_id, candidate_id, g.principal)
    return jsonify({"id": final.id}), 201


# ═════════════════════════════════════════════════════════════════════════════
# Follow-up answers
# ═════════════════════════════════════════════════════════════════════════════

@rcfa_bp.route("/<rcfa_id>/followup-questions/<question_id>", methods=["PATCH"])
@principal_required
def answer_followup(rcfa_id, question_id):
    data = _json_body()
    question = followup_service.answer_followup(
        rcfa_id, question_id, g.principal, data.get("answerText"),
    )
    return jsonify(question.to_dict()), 200


# ═════════════════════════════════════════════════════════════════════════════
# Candidates
# ═════════════════════════════════════════════════════════════════════════════

@rcfa_bp.route("/<rcfa_id>/candidates", methods=["POST"])
@principal_required
def record_candidates(rcfa_id):
    data = _json_body()
    result = candidate_service.record_candidates(
        rcfa_id,
        g.principal,
        root_causes=data.get("root_causes"),
        followup_questions=data.get("followup_questions"),
        action_items=data.get("action_items"),
        source=data.get("source", "ai_initial_analysis"),
    )
    return jsonify(result), 201


# ═════════════════════════════════════════════════════════════════════════════
# Lifecycle transitions
# ═════════════════════════════════════════════════════════════════════════════

def _transition(rcfa_id, action, **kwargs):
    result = transition_rcfa(rcfa_id, action, g.principal, **kwargs)
    return jsonify({"status": result["new_status"], "previous_status": result["previous_status"]}), 200


@rcfa_bp.route("/<rcfa_id>/start-investigation", methods=["POST"])
@principal_required
def start_investigation(rcfa_id):
    return _transition(rcfa_id, "start_investigation")


@rcfa_bp.route("/<rcfa_id>/finalize", methods=["POST"])
@principal_required
def finalize(rcfa_id):
    return _transition(rcfa_id, "finalize")


@rcfa_bp.route("/<rcfa_id>/close", methods=["POST"])
@principal_required
def close(rcfa_id):
    data = _json_body()
    return _transition(rcfa_id, "close", closing_notes=data.get("closingNotes"))


@rcfa_bp.route("/<rcfa_id>/reopen", methods=["POST"])
@principal_required
def reopen(rcfa_id):
    return _transition(rcfa_id, "reopen")


# ═════════════════════════════════════════════════════════════════════════════
# Ownership
# ═════════════════════════════════════════════════════════════════════════════

@rcfa_bp.route("/<rcfa_id>/owner", methods=["PATCH"])
@principal_required
def change_owner(rcfa_id):
    data = _json_body()
    result = reassign_owner(rcfa_id, data.get("newOwnerUserId"), g.principal)
    return jsonify({
        "owner_user_id": result["owner_user_id"],
        "previous_owner_user_id": result["previous_owner_user_id"],
        "changed": result["changed"],
    }), 200


# ═════════════════════════════════════════════════════════════════════════════
# Audit trail
# ═════════════════════════════════════════════════════════════════════════════

@rcfa_bp.route("/<rcfa_id>/audit-events", methods=["GET"])
@principal_required
def list_audit_events(rcfa_id):
    events = audit_service.list_events(
        rcfa_id,
        event_type=request.args.get("event_type"),
        principal=g.principal,
    )
    return jsonify({"items": [e.to_dict() for e in events], "total": len(events)}), 200
