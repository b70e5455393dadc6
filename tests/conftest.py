"""
Shared pytest fixtures for the WSJF Planner test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test app context, rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_user / make_project / make_feature / make_planning: ORM factories
    - auth_header: Authorization header for a user
"""

import itertools

import pytest

from wsjfp import create_app
from wsjfp.models import db as _db
from wsjfp.models.auth import Tenant, User
from wsjfp.models.feature import Feature
from wsjfp.models.planning import Planning
from wsjfp.models.project import Project
from wsjfp.services.jwt_service import generate_access_token
from wsjfp.tenancy import TenantContext

_seq = itertools.count(1)


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
        yield _db.session
        _db.session.rollback()
        _db.session.info.clear()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Factories ────────────────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    """Create a user with their own tenant (plus optional extra memberships)."""

    def _make(name=None, tenant=None):
        n = next(_seq)
        name = name or f"User {n}"
        user = User(name=name, email=f"user{n}@example.com")
        _db.session.add(user)
        _db.session.flush()
        if tenant is None:
            tenant = Tenant(name=f"{name} Tenant", owner_user_id=user.id)
            _db.session.add(tenant)
            _db.session.flush()
        user.tenant_id = tenant.id
        user.current_tenant_id = tenant.id
        user.tenants.append(tenant)
        _db.session.commit()
        return user

    return _make


@pytest.fixture()
def ctx_for():
    """TenantContext of a user's current tenant."""
    return TenantContext.for_user


@pytest.fixture()
def make_project():
    def _make(user, **kw):
        n = next(_seq)
        project = Project(
            tenant_id=kw.pop("tenant_id", user.current_tenant_id),
            project_number=kw.pop("project_number", f"P-{n:04d}"),
            name=kw.pop("name", f"Project {n}"),
            created_by=user.id,
            **kw,
        )
        _db.session.add(project)
        _db.session.commit()
        return project

    return _make


@pytest.fixture()
def make_feature(make_project):
    def _make(user, project=None, **kw):
        n = next(_seq)
        project = project or make_project(user)
        feature = Feature(
            tenant_id=project.tenant_id,
            project_id=project.id,
            jira_key=kw.pop("jira_key", f"WSJF-{n}"),
            name=kw.pop("name", f"Feature {n}"),
            **kw,
        )
        _db.session.add(feature)
        _db.session.commit()
        return feature

    return _make


@pytest.fixture()
def make_planning(make_project):
    def _make(user, project=None, features=(), **kw):
        n = next(_seq)
        project = project or make_project(user)
        planning = Planning(
            tenant_id=project.tenant_id,
            project_id=project.id,
            title=kw.pop("title", f"PI Planning {n}"),
            created_by=kw.pop("created_by", user.id),
            **kw,
        )
        planning.features = list(features)
        _db.session.add(planning)
        _db.session.commit()
        return planning

    return _make


@pytest.fixture()
def auth_header():
    def _header(user):
        return {"Authorization": f"Bearer {generate_access_token(user.id)}"}

    return _header
