"""
Shared pytest fixtures for the WorkTrack test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - company / other_company: two tenants
    - super_admin, admin, manager, member, qa: one user per role in ``company``
      (member and qa report to ``manager``)
    - project: created through project_service with ``manager`` as its manager
    - make_user: factory for extra users
    - auth_headers: factory for ``Authorization: Bearer`` headers
"""

from functools import lru_cache

import pytest

from worktrack import create_app
from worktrack.models import db as _db
from worktrack.models.company import Company
from worktrack.models.project import Project
from worktrack.models.user import SystemRole, User
from worktrack.services import project_service
from worktrack.services.jwt_service import generate_access_token
from worktrack.utils.crypto import hash_password

TEST_PASSWORD = "s3cret-pass"


@lru_cache(maxsize=1)
def _password_hash():
    # bcrypt is slow on purpose; hash once per session
    return hash_password(TEST_PASSWORD)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    return app.test_client()


# ── Seed helpers ─────────────────────────────────────────────────────────


def create_company(name="Acme"):
    company = Company(name=name)
    _db.session.add(company)
    _db.session.commit()
    return company


def create_user(company, role, *, email=None, manager=None, first_name=None, last_name="Tester"):
    role = SystemRole(role).value
    user = User(
        company_id=company.id if company is not None else None,
        email=email or f"{role}.{User.query.count() + 1}@example.com",
        password_hash=_password_hash(),
        first_name=first_name or role.replace("_", " ").title(),
        last_name=last_name,
        system_role=role,
        manager_id=manager.id if manager is not None else None,
    )
    _db.session.add(user)
    _db.session.commit()
    return user


def create_project(actor, manager, *, name="Website Relaunch", key="WEB"):
    result = project_service.create_project(actor.id, {"name": name, "key": key, "manager_id": manager.id})
    assert result.ok, result.message
    return _db.session.get(Project, result.data["id"])


@pytest.fixture()
def make_user():
    return create_user


@pytest.fixture()
def company():
    return create_company("Acme")


@pytest.fixture()
def other_company():
    return create_company("Globex")


@pytest.fixture()
def super_admin(company):
    return create_user(company, SystemRole.SUPER_ADMIN, email="root@acme.test")


@pytest.fixture()
def admin(company):
    return create_user(company, SystemRole.ADMIN, email="admin@acme.test")


@pytest.fixture()
def manager(company):
    return create_user(company, SystemRole.MANAGER, email="manager@acme.test", first_name="Mona")


@pytest.fixture()
def member(company, manager):
    return create_user(company, SystemRole.MEMBER, email="member@acme.test", manager=manager, first_name="Max")


@pytest.fixture()
def qa(company, manager):
    return create_user(company, SystemRole.QA, email="qa@acme.test", manager=manager, first_name="Quinn")


@pytest.fixture()
def project(admin, manager):
    return create_project(admin, manager)


@pytest.fixture()
def auth_headers():
    def _headers(user):
        token = generate_access_token(user.id, user.company_id, user.system_role)
        return {"Authorization": f"Bearer {token}"}
    return _headers
