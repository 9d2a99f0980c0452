"""
Central pytest configuration for the e-Estoque tests.

Environment variables are set before any ``estoque`` import so the lazy
engine, the limiter and the auth layer pick up the test configuration.
Every test that touches the database gets freshly created tables on a
shared in-memory SQLite connection.
"""

import os
import sys
from pathlib import Path

import pytest

# Add backend/ to sys.path so "estoque", "manage" and "tests" import
backend_root = Path(__file__).parent.parent
sys.path.insert(0, str(backend_root))

# Test configuration (set early so import-time globals use it)
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["TESTING"] = "true"
os.environ["RATE_LIMIT_ENABLED"] = "0"  # Disable rate limiting in tests
os.environ["LOG_TO_FILE"] = "0"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key"
os.environ["ODATA_CACHE_ENABLED"] = "true"
os.environ["ENABLE_CACHE_PURGE_JOB"] = "false"
os.environ.pop("LOGIN_DISABLED", None)
os.environ.pop("SENTRY_DSN", None)

from tests.config.markers import pytest_collection_modifyitems  # noqa: E402,F401

from estoque.core.odata import odata_cache  # noqa: E402
from estoque.core.security import (  # noqa: E402
    ALL_ROLES,
    ROLE_ADMIN,
    ROLE_READ,
    create_user_token,
)
from estoque.db.session import SessionLocal, create_tables, drop_tables  # noqa: E402

TEST_USER_ID = "11111111-1111-4111-8111-111111111111"
TEST_USER_EMAIL = "tester@estoque.com.br"


@pytest.fixture(autouse=True)
def clear_odata_cache():
    """Every test starts with an empty OData cache."""
    odata_cache.clear()
    yield
    odata_cache.clear()


@pytest.fixture
def db_session():
    """Fresh schema plus an open session; tables are dropped afterwards."""
    drop_tables()
    create_tables()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        drop_tables()


@pytest.fixture
def app(db_session):
    from estoque.main import create_app

    flask_app = create_app()
    flask_app.config.update(TESTING=True, LOGIN_DISABLED=False)
    yield flask_app


@pytest.fixture
def client(app):
    return app.test_client()


def make_auth_headers(*roles, user_id=TEST_USER_ID, email=TEST_USER_EMAIL, **token_kwargs):
    """Authorization headers for a user holding ``roles``."""
    token = create_user_token(
        user_id,
        email,
        roles=list(roles) if roles else [ROLE_READ],
        **token_kwargs,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    """Factory fixture: ``auth_headers("Create", "Update")``."""
    return make_auth_headers


@pytest.fixture
def admin_headers():
    return make_auth_headers(ROLE_ADMIN)


@pytest.fixture
def reader_headers():
    return make_auth_headers(ROLE_READ)


@pytest.fixture
def full_access_headers():
    return make_auth_headers(*ALL_ROLES)
