"""
Shared pytest fixtures for the Nexus Project Hub test suite.

Provides:
    - app: Flask application (session-scoped, uploads in a temp folder)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - auth_headers: factory for bearer-token headers
    - owner / workspace / project: a signed-in owner with one workspace and project
"""

import pytest

from app import create_app
from app.models import db as _db
from app.models.auth import User, Workspace, WorkspaceMember
from app.models.project import Project
from app.services.jwt_service import generate_identity_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Create the Flask application once per test session."""
    application = create_app("testing")
    application.config["UPLOAD_FOLDER"] = str(tmp_path_factory.mktemp("uploads"))
    return application


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
        # Storage is cached per app; tests may swap UPLOAD_FOLDER or the provider.
        app.extensions.pop("file_storage", None)
        yield
        app.extensions.pop("file_storage", None)
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── ORM helpers ──────────────────────────────────────────────────────────


def make_user(email, external_id=None, display_name=None):
    user = User(
        email=email,
        external_id=external_id,
        display_name=display_name or email.split("@")[0],
    )
    _db.session.add(user)
    _db.session.flush()
    return user


def make_workspace(slug, owner=None, name=None):
    ws = Workspace(name=name or slug.title(), slug=slug)
    _db.session.add(ws)
    _db.session.flush()
    if owner is not None:
        add_membership(ws, owner, "owner")
    return ws


def add_membership(workspace, user, role):
    membership = WorkspaceMember(workspace_id=workspace.id, user_id=user.id, role=role)
    _db.session.add(membership)
    _db.session.flush()
    return membership


def make_project(workspace, name="Launch"):
    project = Project(workspace_id=workspace.id, name=name)
    _db.session.add(project)
    _db.session.commit()
    return project


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def auth_headers():
    """Return a function building Authorization headers for an identity."""

    def _headers(external_id="ext-owner", email="owner@example.com", name="Olivia Owner"):
        token = generate_identity_token(external_id, email=email, name=name)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def owner():
    user = make_user("owner@example.com", external_id="ext-owner", display_name="Olivia Owner")
    _db.session.commit()
    return user


@pytest.fixture()
def workspace(owner):
    ws = make_workspace("acme", owner=owner, name="Acme")
    _db.session.commit()
    return ws


@pytest.fixture()
def project(workspace):
    return make_project(workspace)
