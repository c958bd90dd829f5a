"""
Shared pytest fixtures for the RCFA core test suite.

Provides:
    - app: Flask application (session-scoped, in-memory SQLite)
    - session: Per-test app context with fresh tables (autouse)
    - client: Flask test client (function-scoped)
    - owner / other_user / admin: Principals
    - auth_headers: Bearer-token headers for a Principal

ORM helpers (``make_*``) insert rows directly and COMMIT, so the services'
unit of work sees them and its rollback on failure cannot erase them.
"""

import uuid

import pytest

from rcfa import create_app
from rcfa.core.principal import ROLE_ADMIN, ROLE_USER, Principal
from rcfa.models import db as _db
from rcfa.models.candidate import ActionItemCandidate, FollowupQuestion, RootCauseCandidate
from rcfa.models.commitment import ActionItem, RootCauseFinal
from rcfa.models.investigation import STATUS_INTAKE, Rcfa
from rcfa.services.jwt_service import generate_access_token


def new_id() -> str:
    return str(uuid.uuid4())


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(autouse=True)
def session(app):
    """Per-test: open app context, create tables, drop them afterwards."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Principals ───────────────────────────────────────────────────────────


@pytest.fixture()
def owner():
    return Principal(user_id=new_id(), role=ROLE_USER)


@pytest.fixture()
def other_user():
    return Principal(user_id=new_id(), role=ROLE_USER)


@pytest.fixture()
def admin():
    return Principal(user_id=new_id(), role=ROLE_ADMIN)


@pytest.fixture()
def auth_headers(app):
    """Return a callable: Principal → JWT Authorization + Content-Type headers."""

    def _headers(principal: Principal) -> dict:
        with app.app_context():
            token = generate_access_token(principal.user_id, principal.role)
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    return _headers


# ═════════════════════════════════════════════════════════════════════════════
# ORM Helper Factories (DB-level, bypass services to set arbitrary states)
# ═════════════════════════════════════════════════════════════════════════════


def make_rcfa(owner_user_id: str, status: str = STATUS_INTAKE, **kwargs) -> Rcfa:
    """Create an investigation at the specified status (bypasses guards)."""
    rcfa = Rcfa(
        title=kwargs.pop("title", "Pump P-101 seal leak"),
        equipment_description="Centrifugal pump P-101",
        failure_description="Mechanical seal leaking after 200h",
        status=status,
        owner_user_id=owner_user_id,
        created_by_user_id=owner_user_id,
        **kwargs,
    )
    _db.session.add(rcfa)
    _db.session.commit()
    return rcfa


def make_action_candidate(rcfa: Rcfa, action_text: str = "Replace seal", **kwargs) -> ActionItemCandidate:
    cand = ActionItemCandidate(
        rcfa_id=rcfa.id,
        action_text=action_text,
        rationale_text=kwargs.pop("rationale_text", "Seal faces worn"),
        priority=kwargs.pop("priority", "high"),
        **kwargs,
    )
    _db.session.add(cand)
    _db.session.commit()
    return cand


def make_root_cause_candidate(rcfa: Rcfa, cause_text: str = "Dry running at start-up", **kwargs) -> RootCauseCandidate:
    cand = RootCauseCandidate(
        rcfa_id=rcfa.id,
        cause_text=cause_text,
        confidence_label=kwargs.pop("confidence_label", "high"),
        **kwargs,
    )
    _db.session.add(cand)
    _db.session.commit()
    return cand


def make_question(rcfa: Rcfa, question_text: str = "When was the seal last replaced?", **kwargs) -> FollowupQuestion:
    q = FollowupQuestion(
        rcfa_id=rcfa.id,
        question_text=question_text,
        question_category=kwargs.pop("question_category", "maintenance_history"),
        **kwargs,
    )
    _db.session.add(q)
    _db.session.commit()
    return q


def make_root_cause_final(rcfa: Rcfa, user_id: str, cause_text: str = "Dry running") -> RootCauseFinal:
    final = RootCauseFinal(rcfa_id=rcfa.id, cause_text=cause_text, selected_by_user_id=user_id)
    _db.session.add(final)
    _db.session.commit()
    return final


def make_action_item(rcfa: Rcfa, user_id: str, status: str = "open", **kwargs) -> ActionItem:
    item = ActionItem(
        rcfa_id=rcfa.id,
        action_text=kwargs.pop("action_text", "Install dry-run protection"),
        status=status,
        created_by_user_id=user_id,
        **kwargs,
    )
    _db.session.add(item)
    _db.session.commit()
    return item


@pytest.fixture()
def factories():
    """Expose the ORM helpers to test modules without importing conftest."""

    class _Factories:
        rcfa = staticmethod(make_rcfa)
        action_candidate = staticmethod(make_action_candidate)
        root_cause_candidate = staticmethod(make_root_cause_candidate)
        question = staticmethod(make_question)
        root_cause_final = staticmethod(make_root_cause_final)
        action_item = staticmethod(make_action_item)

    return _Factories
