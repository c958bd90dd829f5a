"""
Soft Delete Mixin

Adds `deleted_at` / `deleted_by_user_id` columns and query helpers for
tombstoning. Tombstoned rows stay in the table; every read and mutation
path in the core goes through ``query_active()`` so they behave as absent.

Usage:
    class Rcfa(SoftDeleteMixin, db.Model):
        ...

    rcfa.soft_delete(user_id)     # external admin action
    Rcfa.query_active().filter_by(id=rcfa_id).first()
"""

from datetime import datetime, timezone

from rcfa.models import db


class SoftDeleteMixin:
    """Mixin that adds tombstone support to any SQLAlchemy model."""

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, default=None, index=True)
    deleted_by_user_id = db.Column(db.String(36), nullable=True)

    def soft_delete(self, user_id: str | None = None):
        """Mark this record as deleted."""
        self.deleted_at = datetime.now(timezone.utc)
        self.deleted_by_user_id = user_id

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @classmethod
    def query_active(cls):
        """Return a query that excludes soft-deleted records."""
        return cls.query.filter(cls.deleted_at.is_(None))
