"""
RCFA Core
Commitment store — authoritative artifacts promoted from candidates.

Models:
    - RootCauseFinal
    - ActionItem

``selected_from_candidate_id`` is nullable (direct entries) and UNIQUE:
the database, not the pre-check in the promotion service, is what
guarantees a candidate is promoted at most once.
"""

from rcfa.models import db
from rcfa.models.investigation import _utcnow, _uuid


__all__ = [
    "RootCauseFinal",
    "ActionItem",
    "ACTION_ITEM_STATUSES",
    "ACTION_ITEM_TERMINAL_STATUSES",
    "ACTION_ITEM_DRAFT",
    "ACTION_ITEM_OPEN",
]


ACTION_ITEM_STATUSES = ("draft", "open", "in_progress", "blocked", "done", "canceled")
ACTION_ITEM_TERMINAL_STATUSES = ("done", "canceled")
ACTION_ITEM_DRAFT = "draft"
ACTION_ITEM_OPEN = "open"


# ═════════════════════════════════════════════════════════════════════════════
# RootCauseFinal
# ═════════════════════════════════════════════════════════════════════════════

class RootCauseFinal(db.Model):
    """A root cause the investigation has committed to."""

    __tablename__ = "rcfa_root_cause_final"
    __table_args__ = (
        db.UniqueConstraint(
            "selected_from_candidate_id", name="uq_root_cause_final_source_candidate",
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    rcfa_id = db.Column(
        db.String(36), db.ForeignKey("rcfa.id"),
        nullable=False, index=True,
    )
    cause_text = db.Column(db.Text, nullable=False)
    evidence_summary = db.Column(db.Text, nullable=True)
    selected_from_candidate_id = db.Column(
        db.String(36), db.ForeignKey("rcfa_root_cause_candidate.id", ondelete="SET NULL"),
        nullable=True, comment="NULL for finals entered without a candidate",
    )
    selected_by_user_id = db.Column(db.String(36), nullable=False)
    selected_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=_utcnow, onupdate=_utcnow,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "rcfa_id": self.rcfa_id,
            "cause_text": self.cause_text,
            "evidence_summary": self.evidence_summary,
            "selected_from_candidate_id": self.selected_from_candidate_id,
            "selected_by_user_id": self.selected_by_user_id,
            "selected_at": self.selected_at.isoformat() if self.selected_at else None,
        }

    def __repr__(self):
        return f"<RootCauseFinal {self.id}: {self.cause_text[:40]}>"


# ═════════════════════════════════════════════════════════════════════════════
# ActionItem
# ═════════════════════════════════════════════════════════════════════════════

class ActionItem(db.Model):
    """
    A committed corrective action.

    Created once by the promotion protocol; assignment and completion are
    handled by other workflows.
    """

    __tablename__ = "rcfa_action_item"
    __table_args__ = (
        db.UniqueConstraint(
            "selected_from_candidate_id", name="uq_action_item_source_candidate",
        ),
        db.Index("idx_action_item_rcfa_status", "rcfa_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    rcfa_id = db.Column(
        db.String(36), db.ForeignKey("rcfa.id"),
        nullable=False, index=True,
    )
    action_text = db.Column(db.Text, nullable=False)
    action_description = db.Column(db.Text, nullable=True)
    success_criteria = db.Column(db.Text, nullable=True)
    priority = db.Column(db.String(20), nullable=False, default="medium")
    due_date = db.Column(db.Date, nullable=True)
    status = db.Column(
        db.String(20), nullable=False, default="open",
        comment="draft | open | in_progress | blocked | done | canceled",
    )
    owner_user_id = db.Column(db.String(36), nullable=True, comment="Assignee")
    selected_from_candidate_id = db.Column(
        db.String(36), db.ForeignKey("rcfa_action_item_candidate.id", ondelete="SET NULL"),
        nullable=True, comment="NULL for items entered without a candidate",
    )
    created_by_user_id = db.Column(db.String(36), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=_utcnow, onupdate=_utcnow,
    )

    def missing_activation_fields(self) -> list[str]:
        """Fields a draft must carry before it can be activated (opened)."""
        missing = []
        if not (self.action_text or "").strip():
            missing.append("actionText")
        if not (self.action_description or "").strip():
            missing.append("actionDescription")
        if not self.owner_user_id:
            missing.append("ownerUserId")
        if self.due_date is None:
            missing.append("dueDate")
        if not self.priority:
            missing.append("priority")
        return missing

    def to_dict(self):
        return {
            "id": self.id,
            "rcfa_id": self.rcfa_id,
            "action_text": self.action_text,
            "action_description": self.action_description,
            "success_criteria": self.success_criteria,
            "priority": self.priority,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "status": self.status,
            "owner_user_id": self.owner_user_id,
            "selected_from_candidate_id": self.selected_from_candidate_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<ActionItem {self.id}: {self.action_text[:40]}>"
