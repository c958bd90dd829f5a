"""
Atomic unit of work.

Services that must read-check-write-audit as one unit receive a
``UnitOfWork`` factory instead of touching ``db.session.commit()`` directly.
The unit exposes the scoped reads the protocols need (fresh, row-locked
where the dialect supports it) and commits on clean exit or rolls back on
any exception, so a caller that gives up half-way never leaves a
commitment without its audit event or the reverse.

Usage:
    with UnitOfWork() as uow:
        rcfa = uow.lock_rcfa(rcfa_id)
        ...
        uow.add(item)
        uow.append_event(rcfa_id=rcfa_id, event_type=..., payload=...)

Error contract:
    - ``RcfaError`` subclasses raised inside the block propagate unchanged.
    - ``IntegrityError`` (flush or commit) propagates unchanged after
      rollback so the caller can map a unique-constraint hit to a domain
      conflict.
    - Any other ``SQLAlchemyError`` is logged and re-raised as
      ``InternalError``.
"""

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from rcfa.core.exceptions import InternalError
from rcfa.models import db
from rcfa.models.audit import write_audit
from rcfa.models.investigation import Rcfa

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Commit-or-rollback scope around the current Flask-SQLAlchemy session."""

    def __init__(self, session=None):
        self.session = session or db.session

    # ── Context management ───────────────────────────────────────────────

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            try:
                self.session.commit()
            except IntegrityError:
                self.session.rollback()
                raise
            except SQLAlchemyError as commit_exc:
                self.session.rollback()
                logger.exception("Commit failed inside unit of work")
                raise InternalError() from commit_exc
            return False

        self.session.rollback()
        if isinstance(exc, SQLAlchemyError) and not isinstance(exc, IntegrityError):
            logger.error("Storage error inside unit of work, rolled back", exc_info=exc)
            raise InternalError() from exc
        return False

    # ── Scoped reads ─────────────────────────────────────────────────────

    def lock_rcfa(self, rcfa_id: str) -> Rcfa | None:
        """Fresh read of a live investigation, row-locked until the unit ends.

        ``populate_existing`` discards whatever the identity map cached during
        the pre-checks so the status seen here is the committed one.
        """
        return (
            self.session.query(Rcfa)
            .filter(Rcfa.id == rcfa_id, Rcfa.deleted_at.is_(None))
            .with_for_update()
            .populate_existing()
            .first()
        )

    def fresh_get(self, model, pk: str, *, rcfa_id: str):
        """Fresh read of a child row scoped to its investigation."""
        return (
            self.session.query(model)
            .filter(model.id == pk, model.rcfa_id == rcfa_id)
            .populate_existing()
            .first()
        )

    def find_promoted_from(self, model, candidate_id: str):
        """Return the commitment already promoted from *candidate_id*, if any."""
        return (
            self.session.query(model)
            .filter(model.selected_from_candidate_id == candidate_id)
            .first()
        )

    def count(self, model, *criteria) -> int:
        return self.session.query(model).filter(*criteria).count()

    # ── Writes ───────────────────────────────────────────────────────────

    def add(self, obj):
        """Stage *obj* and flush so constraint violations surface here."""
        self.session.add(obj)
        self.session.flush()
        return obj

    def append_event(self, *, rcfa_id: str, event_type: str, actor_user_id: str | None, payload: dict):
        return write_audit(
            rcfa_id=rcfa_id,
            event_type=event_type,
            actor_user_id=actor_user_id,
            payload=payload,
            session=self.session,
        )
