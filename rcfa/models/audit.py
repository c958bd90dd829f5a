"""
RCFA Core
Audit domain model.

Models:
    - AuditEvent: immutable, append-only trail of every state-changing
      action on an investigation.
"""

import json

from sqlalchemy import event

from rcfa.models import db
from rcfa.models.investigation import _utcnow, _uuid


# ── Constants ────────────────────────────────────────────────────────────────

EVENT_STATUS_CHANGED = "status_changed"
EVENT_ACTION_ITEM_PROMOTED = "action_item_promoted"
EVENT_PROMOTED_TO_FINAL = "promoted_to_final"
EVENT_CANDIDATE_GENERATED = "candidate_generated"
EVENT_ANSWER_SUBMITTED = "answer_submitted"
EVENT_ANSWER_UPDATED = "answer_updated"
EVENT_DRAFT_ITEMS_ACTIVATED = "draft_items_activated"
EVENT_OWNER_CHANGED = "owner_changed"

AUDIT_EVENT_TYPES = {
    EVENT_STATUS_CHANGED,
    EVENT_ACTION_ITEM_PROMOTED,
    EVENT_PROMOTED_TO_FINAL,
    EVENT_CANDIDATE_GENERATED,
    EVENT_ANSWER_SUBMITTED,
    EVENT_ANSWER_UPDATED,
    EVENT_DRAFT_ITEMS_ACTIVATED,
    EVENT_OWNER_CHANGED,
}

AUDIT_SOURCES = {
    "ai_initial_analysis",
    "ai_reanalysis",
    "human",
}


class AuditImmutableError(RuntimeError):
    """Raised when code tries to rewrite or remove an audit row."""


class AuditEvent(db.Model):
    """
    Immutable audit trail entry.

    One row per action. ``seq`` is a monotonic surrogate key used to break
    ties between events with the same ``created_at``; ``id`` is the public
    UUID. ``event_payload_json`` carries the event-type specific payload.
    """

    __tablename__ = "rcfa_audit_event"
    __table_args__ = (
        db.Index("idx_audit_event_rcfa_created", "rcfa_id", "created_at", "seq"),
        db.Index("idx_audit_event_type", "event_type"),
    )

    seq = db.Column(db.Integer, primary_key=True, autoincrement=True)
    id = db.Column(db.String(36), nullable=False, unique=True, default=_uuid)
    rcfa_id = db.Column(
        db.String(36), db.ForeignKey("rcfa.id"),
        nullable=False, index=True,
    )
    actor_user_id = db.Column(
        db.String(36), nullable=True,
        comment="NULL for system-generated entries",
    )
    event_type = db.Column(
        db.String(60), nullable=False,
        comment="status_changed | action_item_promoted | promoted_to_final | …",
    )
    event_payload_json = db.Column(db.Text, nullable=False, default="{}")
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow,
    )

    # ── Helpers ──────────────────────────────────────────────────────────

    @property
    def payload(self) -> dict:
        """Deserialise *event_payload_json* to a Python dict."""
        try:
            return json.loads(self.event_payload_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "seq": self.seq,
            "rcfa_id": self.rcfa_id,
            "actor_user_id": self.actor_user_id,
            "event_type": self.event_type,
            "event_payload": self.payload,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<AuditEvent {self.seq}: {self.event_type} on rcfa/{self.rcfa_id}>"


@event.listens_for(AuditEvent, "before_update")
def _refuse_update(mapper, connection, target):
    raise AuditImmutableError(f"AuditEvent {target.id} is append-only")


@event.listens_for(AuditEvent, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise AuditImmutableError(f"AuditEvent {target.id} is append-only")


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    rcfa_id: str,
    event_type: str,
    actor_user_id: str | None = None,
    payload: dict | None = None,
    session=None,
) -> AuditEvent:
    """
    Append a single audit row. Uses ``flush`` so callers keep
    transaction control.

    Returns the (flushed) AuditEvent instance.
    """
    if event_type not in AUDIT_EVENT_TYPES:
        raise ValueError(f"Unknown audit event type: {event_type}")

    session = session or db.session
    entry = AuditEvent(
        rcfa_id=rcfa_id,
        actor_user_id=actor_user_id,
        event_type=event_type,
        event_payload_json=json.dumps(payload or {}, default=str),
    )
    session.add(entry)
    session.flush()
    return entry
