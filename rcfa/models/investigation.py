"""
RCFA Core
Investigation domain model.

Models:
    - Rcfa: one root-cause-failure-analysis case and its lifecycle status.

The status column is owned by ``rcfa.services.rcfa_lifecycle``; nothing
else assigns it after creation.
"""

import uuid
from datetime import datetime, timezone

from rcfa.models import db
from rcfa.models.soft_delete import SoftDeleteMixin


__all__ = [
    "Rcfa",
    "RCFA_STATUSES",
    "RCFA_TRANSITIONS",
    "STATUS_INTAKE",
    "STATUS_INVESTIGATION",
    "STATUS_ACTIONS_OPEN",
    "STATUS_CLOSED",
    "format_rcfa_number",
]


# ── Helpers ──────────────────────────────────────────────────────────────────

def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


# ── Status constants ─────────────────────────────────────────────────────────

STATUS_INTAKE = "intake"
STATUS_INVESTIGATION = "investigation"
STATUS_ACTIONS_OPEN = "actions_open"
STATUS_CLOSED = "closed"

RCFA_STATUSES = (
    STATUS_INTAKE,
    STATUS_INVESTIGATION,
    STATUS_ACTIONS_OPEN,
    STATUS_CLOSED,
)

# Valid status transitions for the investigation lifecycle
RCFA_TRANSITIONS = {
    "start_investigation": {"from": [STATUS_INTAKE], "to": STATUS_INVESTIGATION},
    "finalize": {"from": [STATUS_INVESTIGATION], "to": STATUS_ACTIONS_OPEN},
    "close": {"from": [STATUS_ACTIONS_OPEN], "to": STATUS_CLOSED},
    "reopen": {"from": [STATUS_CLOSED], "to": STATUS_ACTIONS_OPEN},
}


def format_rcfa_number(rcfa_number: int | None) -> str | None:
    """RCFA-001 style display code."""
    if rcfa_number is None:
        return None
    return f"RCFA-{rcfa_number:03d}"


# ═════════════════════════════════════════════════════════════════════════════
# Rcfa: the investigation
# ═════════════════════════════════════════════════════════════════════════════

class Rcfa(SoftDeleteMixin, db.Model):
    """
    A root-cause-failure-analysis investigation.

    Created by intake (outside the core) in ``intake`` status, advanced only
    through the lifecycle service, tombstoned (never hard-deleted) by an
    admin action. Owns its candidates and commitments by FK.
    """

    __tablename__ = "rcfa"
    __table_args__ = (
        db.Index("idx_rcfa_status", "status"),
        db.Index("idx_rcfa_owner", "owner_user_id"),
        db.Index("idx_rcfa_created_at", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    rcfa_number = db.Column(db.Integer, nullable=True, unique=True)

    # Intake fields (opaque to the core)
    title = db.Column(db.String(300), nullable=False, default="")
    equipment_description = db.Column(db.Text, nullable=False, default="")
    failure_description = db.Column(db.Text, nullable=False, default="")

    status = db.Column(
        db.String(20), nullable=False, default=STATUS_INTAKE,
        comment="intake | investigation | actions_open | closed",
    )

    owner_user_id = db.Column(db.String(36), nullable=False, comment="Principal that owns the case")
    created_by_user_id = db.Column(db.String(36), nullable=False)

    # Closure
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_by_user_id = db.Column(db.String(36), nullable=True)
    closing_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=_utcnow, onupdate=_utcnow,
    )

    # ── Relationships ────────────────────────────────────────────────────
    root_cause_candidates = db.relationship(
        "RootCauseCandidate", backref="rcfa", lazy="dynamic",
    )
    followup_questions = db.relationship(
        "FollowupQuestion", backref="rcfa", lazy="dynamic",
    )
    action_item_candidates = db.relationship(
        "ActionItemCandidate", backref="rcfa", lazy="dynamic",
    )
    root_cause_finals = db.relationship(
        "RootCauseFinal", backref="rcfa", lazy="dynamic",
    )
    action_items = db.relationship(
        "ActionItem", backref="rcfa", lazy="dynamic",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "rcfa_number": self.rcfa_number,
            "code": format_rcfa_number(self.rcfa_number),
            "title": self.title,
            "status": self.status,
            "owner_user_id": self.owner_user_id,
            "created_by_user_id": self.created_by_user_id,
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
            "closed_by_user_id": self.closed_by_user_id,
            "closing_notes": self.closing_notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Rcfa {self.id} status={self.status}>"
