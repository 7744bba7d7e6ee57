"""
Pytest configuration and fixtures for the API tests

Every test gets a fresh app built by create_app() over an in-memory SQLite
database; the lifespan (table creation) runs when the TestClient opens.
"""
import pytest
from fastapi.testclient import TestClient

from app import create_app
from auth_service import AuthService
from auth_utils import hash_password
from models_rbac import User
from permissions import default_matrix, build_matrix, tenant_class_for_role
from rbac_middleware import store_permissions
from settings import Settings

TEST_SECRET = "test-secret-key-not-for-production-use"
DEFAULT_PASSWORD = "password123"


@pytest.fixture
def settings():
    return Settings(
        jwt_secret=TEST_SECRET,
        database_url="sqlite:///:memory:",
        rate_limit_enabled=False,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db_session(app, client):
    """Session on the same database the app uses"""
    session = app.state.session_factory()
    yield session
    session.close()


def make_user(
    db,
    email,
    role="user",
    account_role="admin",
    password=DEFAULT_PASSWORD,
    permissions=None,
    channels=None,
    credits=0,
    status="active",
):
    """
    Insert a user. permissions=None gives the default matrix of the user's
    tenant class; a list of dicts stores exactly those grants.
    """
    user = User(
        name=email.split("@")[0].title(),
        email=email,
        password_hash=hash_password(password),
        role=role,
        account_role=account_role,
        channels_enabled=channels or [],
        credits_available=credits,
        status=status,
    )
    db.add(user)
    db.flush()

    tenant_class = tenant_class_for_role(role)
    if permissions is None:
        matrix = default_matrix(tenant_class)
    else:
        matrix = build_matrix(permissions, tenant_class)
    store_permissions(db, user, matrix)

    db.commit()
    db.refresh(user)
    return user


def auth_headers(db, settings, user):
    token = AuthService(db, settings).issue_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_user(db_session):
    return make_user(db_session, "admin@example.com", role="admin")


@pytest.fixture
def admin_headers(db_session, settings, admin_user):
    return auth_headers(db_session, settings, admin_user)


@pytest.fixture
def tenant_user(db_session):
    return make_user(db_session, "owner@example.com", channels=["sms", "whatsapp"])


@pytest.fixture
def user_headers(db_session, settings, tenant_user):
    return auth_headers(db_session, settings, tenant_user)
