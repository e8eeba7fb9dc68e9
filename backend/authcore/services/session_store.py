# authcore/services/session_store.py
"""
Persistent refresh sessions.

Responsibilities:
- Hash refresh tokens (argon2, salted) before they ever reach the database
- Scoped lookups of a single user's live sessions
- Idempotent revocation and bulk deletion of expired rows
- Rotation: retire a session and insert its successor in one commit

Every mutation is committed before the call returns. Revocation and deletion
are single filtered statements; rotation guards its insert on the filtered
update of the previous row.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator

from passlib.context import CryptContext
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from authcore.core.config import Settings
from authcore.models.refresh_session import RefreshSession
from authcore.schemas.session import SessionStats

logger = logging.getLogger(__name__)


class SessionCoreError(Exception):
    pass


class SessionStoreUnavailableError(SessionCoreError):
    """The session table could not be read or written. Operational, not a trust decision."""


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _clip(value: str | None, limit: int) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value[:limit] or None


class RefreshTokenHasher:
    """
    Slow, salted one-way hash for refresh tokens.
    argon2 has no input length limit, so full JWTs are hashed without truncation.
    """

    def __init__(self, *, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 1):
        self.context = CryptContext(
            schemes=["argon2"],
            deprecated="auto",
            argon2__rounds=time_cost,
            argon2__memory_cost=memory_cost,
            argon2__parallelism=parallelism,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "RefreshTokenHasher":
        return cls(
            time_cost=settings.REFRESH_HASH_TIME_COST,
            memory_cost=settings.REFRESH_HASH_MEMORY_COST,
        )

    def hash(self, raw_token: str) -> str:
        return self.context.hash(raw_token)

    def verify(self, raw_token: str, token_hash: str) -> bool:
        # Comparison happens inside argon2 in constant time.
        try:
            return self.context.verify(raw_token, token_hash)
        except (ValueError, TypeError):
            logger.warning("Unreadable refresh token hash encountered during verification")
            return False


class SessionStore:
    def __init__(
        self,
        db: Session,
        hasher: RefreshTokenHasher,
        *,
        retention: timedelta = timedelta(days=7),
        now_fn: Callable[[], datetime] = _now_utc,
    ):
        if retention <= timedelta(0):
            raise ValueError("retention must be positive")
        self.db = db
        self.hasher = hasher
        self.retention = retention
        self.now_fn = now_fn

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Session store failure during %s: %s", action, exc.__class__.__name__)
            raise SessionStoreUnavailableError(f"Session store unavailable during {action}") from exc

    # -----------------------------
    # Create / read
    # -----------------------------
    def create(
        self,
        user_id: int,
        refresh_token: str,
        user_agent: str | None = None,
        ip: str | None = None,
    ) -> RefreshSession:
        if not refresh_token:
            raise ValueError("refresh_token is required")

        token_hash = self.hasher.hash(refresh_token)
        now = self.now_fn()
        record = RefreshSession(
            user_id=int(user_id),
            token_hash=token_hash,
            created_at=now,
            expires_at=now + self.retention,
            revoked_at=None,
            user_agent=_clip(user_agent, 512),
            ip=_clip(ip, 64),
        )
        with self._guard("create"):
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)

        logger.info("Created refresh session id=%s user_id=%s", record.id, record.user_id)
        return record

    def get(self, session_id: int) -> RefreshSession | None:
        with self._guard("get"):
            return self.db.get(RefreshSession, session_id)

    def find_active_by_user(self, user_id: int) -> list[RefreshSession]:
        """Non-revoked, non-expired sessions of one user (uses the user_id index)."""
        now = self.now_fn()
        with self._guard("find_active_by_user"):
            return (
                self.db.query(RefreshSession)
                .filter(
                    RefreshSession.user_id == user_id,
                    RefreshSession.revoked_at.is_(None),
                    RefreshSession.expires_at > now,
                )
                .order_by(RefreshSession.created_at.desc(), RefreshSession.id.desc())
                .all()
            )

    # -----------------------------
    # Revocation
    # -----------------------------
    def revoke(self, session_id: int) -> bool:
        """
        Marks one session revoked. Returns True if the session exists (including
        when it was already revoked), False if there is no such session.
        """
        now = self.now_fn()
        with self._guard("revoke"):
            updated = (
                self.db.query(RefreshSession)
                .filter(RefreshSession.id == session_id, RefreshSession.revoked_at.is_(None))
                .update({RefreshSession.revoked_at: now}, synchronize_session=False)
            )
            self.db.commit()
            if updated:
                return True
            exists = self.db.query(RefreshSession.id).filter(RefreshSession.id == session_id).first()
        return exists is not None

    def rotate(
        self,
        session_id: int,
        refresh_token: str,
        user_agent: str | None = None,
        ip: str | None = None,
    ) -> RefreshSession | None:
        """
        Retires one live session and records its successor in a single commit.
        Returns None (and writes nothing) if the session is gone, revoked or
        expired, so a refresh token can be rotated at most once.
        """
        if not refresh_token:
            raise ValueError("refresh_token is required")

        token_hash = self.hasher.hash(refresh_token)
        now = self.now_fn()
        with self._guard("rotate"):
            previous = self.db.get(RefreshSession, session_id)
            if previous is None:
                return None
            retired = (
                self.db.query(RefreshSession)
                .filter(
                    RefreshSession.id == session_id,
                    RefreshSession.revoked_at.is_(None),
                    RefreshSession.expires_at > now,
                )
                .update({RefreshSession.revoked_at: now}, synchronize_session=False)
            )
            if not retired:
                self.db.rollback()
                return None

            record = RefreshSession(
                user_id=previous.user_id,
                token_hash=token_hash,
                created_at=now,
                expires_at=now + self.retention,
                revoked_at=None,
                user_agent=_clip(user_agent, 512) if user_agent is not None else previous.user_agent,
                ip=_clip(ip, 64) if ip is not None else previous.ip,
            )
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)

        logger.info("Rotated refresh session id=%s -> id=%s user_id=%s", session_id, record.id, record.user_id)
        return record

    def revoke_all_for_user(self, user_id: int) -> int:
        now = self.now_fn()
        with self._guard("revoke_all_for_user"):
            updated = (
                self.db.query(RefreshSession)
                .filter(
                    RefreshSession.user_id == user_id,
                    RefreshSession.revoked_at.is_(None),
                    RefreshSession.expires_at > now,
                )
                .update({RefreshSession.revoked_at: now}, synchronize_session=False)
            )
            self.db.commit()
        return int(updated or 0)

    # -----------------------------
    # Retention
    # -----------------------------
    def delete_expired(self, before: datetime | None = None) -> int:
        cutoff = before or self.now_fn()
        with self._guard("delete_expired"):
            deleted = (
                self.db.query(RefreshSession)
                .filter(RefreshSession.expires_at < cutoff)
                .delete(synchronize_session=False)
            )
            self.db.commit()
        return int(deleted or 0)

    def delete_stale(self, created_before: datetime) -> int:
        """Deletes old rows that are already dead (revoked or expired). Live rows are never touched."""
        now = self.now_fn()
        with self._guard("delete_stale"):
            deleted = (
                self.db.query(RefreshSession)
                .filter(
                    RefreshSession.created_at < created_before,
                    or_(RefreshSession.revoked_at.isnot(None), RefreshSession.expires_at < now),
                )
                .delete(synchronize_session=False)
            )
            self.db.commit()
        return int(deleted or 0)

    def stats(self, *, stale_before: datetime | None = None) -> SessionStats:
        now = self.now_fn()

        def _count(*criteria) -> int:
            return int(self.db.query(func.count(RefreshSession.id)).filter(*criteria).scalar() or 0)

        with self._guard("stats"):
            total = _count()
            revoked = _count(RefreshSession.revoked_at.isnot(None))
            active = _count(RefreshSession.revoked_at.is_(None), RefreshSession.expires_at > now)
            expired = _count(RefreshSession.revoked_at.is_(None), RefreshSession.expires_at <= now)
            stale = _count(RefreshSession.created_at < stale_before) if stale_before else 0

        return SessionStats(total=total, active=active, expired=expired, revoked=revoked, stale=stale)
