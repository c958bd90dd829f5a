"""Audit trail read path."""

from rcfa.core.exceptions import InvalidInputError
from rcfa.core.principal import Principal
from rcfa.models.audit import AUDIT_EVENT_TYPES, AuditEvent
from rcfa.services import rcfa_lifecycle


def list_events(
    rcfa_id: str,
    *,
    event_type: str | None = None,
    principal: Principal | None = None,
) -> list[AuditEvent]:
    """Events for a live investigation in commit order.

    ``created_at`` can tie for events written in the same instant, so
    ``seq`` breaks the tie.
    """
    rcfa = rcfa_lifecycle.get_live_rcfa(rcfa_id)
    if principal is not None:
        rcfa_lifecycle.authorize("view_audit", rcfa, principal)

    q = AuditEvent.query.filter(AuditEvent.rcfa_id == rcfa.id)
    if event_type is not None:
        if event_type not in AUDIT_EVENT_TYPES:
            raise InvalidInputError(f"Unknown event type: {event_type}")
        q = q.filter(AuditEvent.event_type == event_type)
    return q.order_by(AuditEvent.created_at, AuditEvent.seq).all()
