"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os
import tempfile

# ---------------------------------------------------------------------------
# Environment that must exist before dapdip.api.deps is imported: the JWT
# secret is validated at module load, and uploads land in a scratch dir.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)
os.environ.setdefault("DAPDIP_UPLOAD_DIR", tempfile.mkdtemp(prefix="dapdip-uploads-"))

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# SQLite has no JSONB; render it (and BigInteger) as plain SQLite types.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from dapdip.database.models import Base, User, UserSettings  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent).

    Also maps BigInteger → INTEGER so autoincrement works on SQLite.
    """
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy import BigInteger
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    @compiles(BigInteger, "sqlite")
    def _compile_bigint_as_integer(type_, compiler, **kw):
        return "INTEGER"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with every DapDip table.

    StaticPool keeps one shared connection so the rate limiter's worker
    threads, background tasks and the test body all see the same data.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# Users & tokens
# ---------------------------------------------------------------------------
def create_user(
    session: Session,
    name: str = "Ada",
    *,
    is_admin: bool = False,
    password: str | None = None,
    **settings,
) -> User:
    """Insert a user with a settings row; *settings* override column defaults."""
    from dapdip.services.user_service import pwd_context

    user = User(
        name=name,
        username=name.lower().replace(" ", "_"),
        email=f"{name.lower().replace(' ', '.')}@example.com",
        is_admin=is_admin,
        password_hash=pwd_context.hash(password) if password else None,
    )
    user.settings = UserSettings(**settings)
    session.add(user)
    session.flush()
    return user


@pytest.fixture
def make_user(db_engine: Engine):
    """Factory that commits a user and returns its id (for API tests)."""

    def _make(name: str = "Ada", **kwargs) -> int:
        with Session(db_engine) as session:
            user = create_user(session, name, **kwargs)
            session.commit()
            return user.id

    return _make


def make_token(user_id: int, *, is_admin: bool = False) -> str:
    """Create a user JWT.  Usable as a plain factory from any test."""
    import jwt

    from dapdip.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": str(user_id), "name": f"user-{user_id}", "is_admin": is_admin},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


def auth(user_id: int, *, is_admin: bool = False) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, is_admin=is_admin)}"}


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------
@pytest.fixture
def test_config():
    from dapdip.config import DapDipConfig

    return DapDipConfig(audio_processing_delay=0.0)


@pytest.fixture
def client(db_engine: Engine, test_config):
    """TestClient wired to the in-memory engine.

    The lifespan is not entered, so the limiter is configured here.
    """
    from fastapi.testclient import TestClient

    from dapdip.api.deps import get_config, get_engine
    from dapdip.api.main import app
    from dapdip.api.rate_limit import configure_rate_limiter

    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_config] = lambda: test_config
    configure_rate_limiter(engine=db_engine, config=test_config)

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()
