"""
RCFA Core
Candidate store — generated, unvetted hypotheses.

Models:
    - RootCauseCandidate
    - FollowupQuestion   (only the answer subset is mutable)
    - ActionItemCandidate

Rows are written by the external analysis producer (via
``candidate_service.record_candidates``) and never deleted.
"""

from rcfa.models import db
from rcfa.models.investigation import _utcnow, _uuid


__all__ = [
    "RootCauseCandidate",
    "FollowupQuestion",
    "ActionItemCandidate",
    "CONFIDENCE_LABELS",
    "PRIORITIES",
    "QUESTION_CATEGORIES",
    "GENERATED_BY",
]


# ── Constants ────────────────────────────────────────────────────────────────

CONFIDENCE_LABELS = ("deprioritized", "low", "medium", "high")
PRIORITIES = ("deprioritized", "low", "medium", "high")
QUESTION_CATEGORIES = (
    "failure_mode",
    "evidence",
    "operating_context",
    "maintenance_history",
    "safety",
    "other",
)
GENERATED_BY = ("ai", "human")


# ═════════════════════════════════════════════════════════════════════════════
# RootCauseCandidate
# ═════════════════════════════════════════════════════════════════════════════

class RootCauseCandidate(db.Model):
    """A proposed root cause awaiting human review."""

    __tablename__ = "rcfa_root_cause_candidate"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    rcfa_id = db.Column(
        db.String(36), db.ForeignKey("rcfa.id"),
        nullable=False, index=True,
    )
    cause_text = db.Column(db.Text, nullable=False)
    rationale_text = db.Column(db.Text, nullable=True)
    confidence_label = db.Column(
        db.String(20), nullable=False, default="medium",
        comment="deprioritized | low | medium | high",
    )
    generated_by = db.Column(db.String(10), nullable=False, default="ai")
    generated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "rcfa_id": self.rcfa_id,
            "cause_text": self.cause_text,
            "rationale_text": self.rationale_text,
            "confidence_label": self.confidence_label,
            "generated_by": self.generated_by,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
        }

    def __repr__(self):
        return f"<RootCauseCandidate {self.id}: {self.cause_text[:40]}>"


# ═════════════════════════════════════════════════════════════════════════════
# FollowupQuestion
# ═════════════════════════════════════════════════════════════════════════════

class FollowupQuestion(db.Model):
    """
    A question the analysis wants answered by the investigation owner.

    ``answer_text`` / ``answered_by_user_id`` / ``answered_at`` are the only
    mutable columns; a new answer overwrites the previous one.
    """

    __tablename__ = "rcfa_followup_question"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    rcfa_id = db.Column(
        db.String(36), db.ForeignKey("rcfa.id"),
        nullable=False, index=True,
    )
    question_text = db.Column(db.Text, nullable=False)
    question_category = db.Column(
        db.String(30), nullable=False, default="other",
        comment="failure_mode | evidence | operating_context | maintenance_history | safety | other",
    )
    generated_by = db.Column(db.String(10), nullable=False, default="ai")
    generated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    # Answer subset
    answer_text = db.Column(db.Text, nullable=True)
    answered_by_user_id = db.Column(db.String(36), nullable=True)
    answered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_answered(self):
        return self.answer_text is not None

    def to_dict(self):
        return {
            "id": self.id,
            "rcfa_id": self.rcfa_id,
            "question_text": self.question_text,
            "question_category": self.question_category,
            "generated_by": self.generated_by,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
            "answer_text": self.answer_text,
            "answered_by_user_id": self.answered_by_user_id,
            "answered_at": self.answered_at.isoformat() if self.answered_at else None,
        }

    def __repr__(self):
        return f"<FollowupQuestion {self.id}: {self.question_text[:40]}>"


# ═════════════════════════════════════════════════════════════════════════════
# ActionItemCandidate
# ═════════════════════════════════════════════════════════════════════════════

class ActionItemCandidate(db.Model):
    """A proposed corrective action awaiting promotion."""

    __tablename__ = "rcfa_action_item_candidate"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    rcfa_id = db.Column(
        db.String(36), db.ForeignKey("rcfa.id"),
        nullable=False, index=True,
    )
    action_text = db.Column(db.Text, nullable=False)
    rationale_text = db.Column(db.Text, nullable=True)
    priority = db.Column(
        db.String(20), nullable=False, default="medium",
        comment="deprioritized | low | medium | high",
    )
    suggested_due_date = db.Column(db.Date, nullable=True)
    timeframe_text = db.Column(db.Text, nullable=True)
    success_criteria = db.Column(db.Text, nullable=True)
    generated_by = db.Column(db.String(10), nullable=False, default="ai")
    generated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "rcfa_id": self.rcfa_id,
            "action_text": self.action_text,
            "rationale_text": self.rationale_text,
            "priority": self.priority,
            "suggested_due_date": (
                self.suggested_due_date.isoformat() if self.suggested_due_date else None
            ),
            "timeframe_text": self.timeframe_text,
            "success_criteria": self.success_criteria,
            "generated_by": self.generated_by,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
        }

    def __repr__(self):
        return f"<ActionItemCandidate {self.id}: {self.action_text[:40]}>"
