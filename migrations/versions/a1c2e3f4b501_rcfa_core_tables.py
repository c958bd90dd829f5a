"""RCFA core tables — investigation, candidates, commitments, audit trail.

Revision ID: a1c2e3f4b501
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "a1c2e3f4b501"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ── Investigation ──
    op.create_table(
        "rcfa",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("rcfa_number", sa.Integer, nullable=True, unique=True),
        sa.Column("title", sa.String(300), nullable=False, server_default=""),
        sa.Column("equipment_description", sa.Text, nullable=False, server_default=""),
        sa.Column("failure_description", sa.Text, nullable=False, server_default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default="intake"),
        sa.Column("owner_user_id", sa.String(36), nullable=False),
        sa.Column("created_by_user_id", sa.String(36), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_by_user_id", sa.String(36), nullable=True),
        sa.Column("closing_notes", sa.Text, nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by_user_id", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )
    op.create_index("idx_rcfa_status", "rcfa", ["status"])
    op.create_index("idx_rcfa_owner", "rcfa", ["owner_user_id"])
    op.create_index("idx_rcfa_created_at", "rcfa", ["created_at"])
    op.create_index("ix_rcfa_deleted_at", "rcfa", ["deleted_at"])

    # ── Candidates ──
    op.create_table(
        "rcfa_root_cause_candidate",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("rcfa_id", sa.String(36), sa.ForeignKey("rcfa.id"), nullable=False, index=True),
        sa.Column("cause_text", sa.Text, nullable=False),
        sa.Column("rationale_text", sa.Text, nullable=True),
        sa.Column("confidence_label", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("generated_by", sa.String(10), nullable=False, server_default="ai"),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )
    op.create_table(
        "rcfa_followup_question",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("rcfa_id", sa.String(36), sa.ForeignKey("rcfa.id"), nullable=False, index=True),
        sa.Column("question_text", sa.Text, nullable=False),
        sa.Column("question_category", sa.String(30), nullable=False, server_default="other"),
        sa.Column("generated_by", sa.String(10), nullable=False, server_default="ai"),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column("answer_text", sa.Text, nullable=True),
        sa.Column("answered_by_user_id", sa.String(36), nullable=True),
        sa.Column("answered_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "rcfa_action_item_candidate",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("rcfa_id", sa.String(36), sa.ForeignKey("rcfa.id"), nullable=False, index=True),
        sa.Column("action_text", sa.Text, nullable=False),
        sa.Column("rationale_text", sa.Text, nullable=True),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("suggested_due_date", sa.Date, nullable=True),
        sa.Column("timeframe_text", sa.Text, nullable=True),
        sa.Column("success_criteria", sa.Text, nullable=True),
        sa.Column("generated_by", sa.String(10), nullable=False, server_default="ai"),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )

    # ── Commitments ──
    op.create_table(
        "rcfa_root_cause_final",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("rcfa_id", sa.String(36), sa.ForeignKey("rcfa.id"), nullable=False, index=True),
        sa.Column("cause_text", sa.Text, nullable=False),
        sa.Column("evidence_summary", sa.Text, nullable=True),
        sa.Column("selected_from_candidate_id", sa.String(36),
                  sa.ForeignKey("rcfa_root_cause_candidate.id", ondelete="SET NULL"),
                  nullable=True),
        sa.Column("selected_by_user_id", sa.String(36), nullable=False),
        sa.Column("selected_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.UniqueConstraint("selected_from_candidate_id",
                            name="uq_root_cause_final_source_candidate"),
    )
    op.create_table(
        "rcfa_action_item",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("rcfa_id", sa.String(36), sa.ForeignKey("rcfa.id"), nullable=False, index=True),
        sa.Column("action_text", sa.Text, nullable=False),
        sa.Column("action_description", sa.Text, nullable=True),
        sa.Column("success_criteria", sa.Text, nullable=True),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("due_date", sa.Date, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("owner_user_id", sa.String(36), nullable=True),
        sa.Column("selected_from_candidate_id", sa.String(36),
                  sa.ForeignKey("rcfa_action_item_candidate.id", ondelete="SET NULL"),
                  nullable=True),
        sa.Column("created_by_user_id", sa.String(36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.UniqueConstraint("selected_from_candidate_id",
                            name="uq_action_item_source_candidate"),
    )
    op.create_index("idx_action_item_rcfa_status", "rcfa_action_item", ["rcfa_id", "status"])

    # ── Audit trail ──
    op.create_table(
        "rcfa_audit_event",
        sa.Column("seq", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("id", sa.String(36), nullable=False, unique=True),
        sa.Column("rcfa_id", sa.String(36), sa.ForeignKey("rcfa.id"), nullable=False, index=True),
        sa.Column("actor_user_id", sa.String(36), nullable=True),
        sa.Column("event_type", sa.String(60), nullable=False),
        sa.Column("event_payload_json", sa.Text, nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )
    op.create_index("idx_audit_event_rcfa_created", "rcfa_audit_event",
                    ["rcfa_id", "created_at", "seq"])
    op.create_index("idx_audit_event_type", "rcfa_audit_event", ["event_type"])


def downgrade():
    op.drop_table("rcfa_audit_event")
    op.drop_table("rcfa_action_item")
    op.drop_table("rcfa_root_cause_final")
    op.drop_table("rcfa_action_item_candidate")
    op.drop_table("rcfa_followup_question")
    op.drop_table("rcfa_root_cause_candidate")
    op.drop_table("rcfa")
