import os
from datetime import datetime, timedelta, timezone

# Settings are read at import time; pin a hermetic config before importing authcore.
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test_access_secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test_refresh_secret")
os.environ.setdefault("REFRESH_HASH_TIME_COST", "1")
os.environ.setdefault("REFRESH_HASH_MEMORY_COST", "1024")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from authcore.core.base import Base
from authcore.core.security import TokenCodec, TokenSettings
from authcore.services.session_store import RefreshTokenHasher, SessionStore
from authcore.services.sessions import SessionService

# Import models so they register with SQLAlchemy metadata.
from authcore.models.refresh_session import RefreshSession  # noqa: F401


class Clock:
    """Mutable UTC clock for moving a store through time."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="session")
def db_engine():
    # In-memory SQLite for fast, isolated tests.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture()
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture()
def db_session(db_engine, session_factory):
    # The in-memory DB persists across tests (StaticPool). Reset schema per test.
    Base.metadata.drop_all(bind=db_engine)
    Base.metadata.create_all(bind=db_engine)

    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def token_settings():
    return TokenSettings(access_secret="test_access_secret", refresh_secret="test_refresh_secret")


@pytest.fixture()
def codec(token_settings):
    return TokenCodec(token_settings)


@pytest.fixture()
def hasher():
    # Minimal argon2 cost keeps the suite fast; production cost comes from settings.
    return RefreshTokenHasher(time_cost=1, memory_cost=1024)


@pytest.fixture()
def clock():
    return Clock()


@pytest.fixture()
def store(db_session, hasher, clock):
    return SessionStore(db_session, hasher, retention=timedelta(days=7), now_fn=clock)


@pytest.fixture()
def service(db_session, codec, hasher, clock):
    return SessionService(db_session, codec=codec, hasher=hasher, now_fn=clock)


@pytest.fixture()
def login(service):
    """
    Open a session for a user the way a login controller would.

    Usage:
        issued = login(7, user_agent="iPhone")
    """

    def _login(user_id: int, *, role: str = "doctor", user_agent: str | None = None, ip: str | None = None):
        return service.open_session(
            {"sub": str(user_id), "role": role, "email": f"user{user_id}@example.com"},
            user_agent=user_agent,
            ip=ip,
        )

    return _login


@pytest.fixture()
def tamper():
    def _tamper(token: str) -> str:
        # Middle of the signature: every bit there is significant (no base64 padding bits).
        header, payload, signature = token.split(".")
        i = len(signature) // 2
        replacement = "A" if signature[i] != "A" else "B"
        return ".".join([header, payload, signature[:i] + replacement + signature[i + 1 :]])

    return _tamper
