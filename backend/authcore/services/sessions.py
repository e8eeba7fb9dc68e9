# authcore/services/sessions.py
"""
Entry point for collaborators (login/refresh/logout controllers, account
deactivation workflows). Everything the rest of the platform needs from the
session core goes through SessionService.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Callable, Mapping

from sqlalchemy.orm import Session

from authcore.core.config import Settings, settings as app_settings
from authcore.core.security import TokenCodec, TokenSettings, session_claims
from authcore.models.refresh_session import RefreshSession
from authcore.schemas.session import SessionOut, SessionStats, TokenPair
from authcore.services.retention import RetentionSweeper
from authcore.services.revocation import RevocationManager
from authcore.services.session_store import RefreshTokenHasher, SessionStore
from authcore.services.session_verifier import SessionVerifier, subject_to_user_id


@dataclass
class IssuedSession:
    tokens: TokenPair
    session: RefreshSession


@lru_cache(maxsize=1)
def get_token_codec() -> TokenCodec:
    # Secrets are read once per process and treated as immutable afterwards.
    return TokenCodec(TokenSettings.from_settings(app_settings))


@lru_cache(maxsize=1)
def get_token_hasher() -> RefreshTokenHasher:
    return RefreshTokenHasher.from_settings(app_settings)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class SessionService:
    def __init__(
        self,
        db: Session,
        *,
        codec: TokenCodec,
        hasher: RefreshTokenHasher,
        retention: timedelta = timedelta(days=7),
        stale_after: timedelta = timedelta(days=30),
        rotate_after: timedelta | None = None,
        now_fn: Callable[[], datetime] = _now_utc,
    ):
        self.codec = codec
        self.store = SessionStore(db, hasher, retention=retention, now_fn=now_fn)
        self.verifier = SessionVerifier(codec, self.store)
        self.revocation = RevocationManager(self.store, self.verifier)
        self.sweeper = RetentionSweeper(self.store, stale_after=stale_after)
        # Refresh tokens are rotated once a session is past half its lifetime.
        self.rotate_after = rotate_after if rotate_after is not None else retention / 2

    @classmethod
    def from_settings(cls, db: Session, settings: Settings | None = None) -> "SessionService":
        if settings is None or settings is app_settings:
            codec, hasher, settings = get_token_codec(), get_token_hasher(), app_settings
        else:
            codec = TokenCodec(TokenSettings.from_settings(settings))
            hasher = RefreshTokenHasher.from_settings(settings)
        return cls(
            db,
            codec=codec,
            hasher=hasher,
            retention=timedelta(days=settings.SESSION_RETENTION_DAYS),
            stale_after=timedelta(days=settings.STALE_SESSION_MAX_AGE_DAYS),
        )

    # ---------- Issuance ----------
    def issue_token_pair(self, claims: Mapping[str, Any]) -> TokenPair:
        return self.codec.issue_token_pair(claims)

    def create_session(
        self,
        user_id: int,
        refresh_token: str,
        user_agent: str | None = None,
        ip: str | None = None,
    ) -> RefreshSession:
        return self.store.create(user_id, refresh_token, user_agent=user_agent, ip=ip)

    def open_session(
        self,
        claims: Mapping[str, Any],
        *,
        user_agent: str | None = None,
        ip: str | None = None,
    ) -> IssuedSession:
        """Login/registration: mint a pair and persist the refresh half."""
        user_id = subject_to_user_id(claims.get("sub"))
        if user_id is None:
            raise ValueError("claims['sub'] must be the numeric user id")

        tokens = self.issue_token_pair(claims)
        record = self.create_session(user_id, tokens.refresh_token, user_agent=user_agent, ip=ip)
        return IssuedSession(tokens=tokens, session=record)

    # ---------- Use ----------
    def verify_session(self, refresh_token: str) -> RefreshSession | None:
        return self.verifier.verify(refresh_token)

    def refresh(
        self,
        refresh_token: str,
        *,
        user_agent: str | None = None,
        ip: str | None = None,
    ) -> IssuedSession | None:
        """
        Exchange a live refresh token for a new access token.

        While the presented session is younger than `rotate_after` the same refresh
        token is handed back and no record is written. Past that age a new refresh
        token is minted and the presented session is retired in the same commit, so
        each device keeps exactly one live record.
        """
        result = self.verifier.inspect(refresh_token)
        if not result.ok:
            return None

        claims = session_claims(result.claims or {})
        previous = result.record
        if self._session_age(previous) < self.rotate_after:
            tokens = TokenPair(
                access_token=self.codec.issue_access_token(claims),
                refresh_token=refresh_token,
                expires_in=int(self.codec.settings.access_ttl.total_seconds()),
            )
            return IssuedSession(tokens=tokens, session=previous)

        previous_id = previous.id
        tokens = self.codec.issue_token_pair(claims)
        record = self.store.rotate(previous_id, tokens.refresh_token, user_agent=user_agent, ip=ip)
        if record is None:
            # Lost a race with another refresh or a revocation of the same session.
            return None
        return IssuedSession(tokens=tokens, session=record)

    def _session_age(self, record: RefreshSession) -> timedelta:
        created_at = record.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return self.store.now_fn() - created_at

    def list_active_sessions(self, user_id: int) -> list[SessionOut]:
        return [SessionOut.model_validate(r) for r in self.store.find_active_by_user(user_id)]

    # ---------- Termination ----------
    def revoke_session(self, session_id: int) -> bool:
        return self.revocation.revoke(session_id)

    def revoke_session_by_value(self, refresh_token: str) -> bool:
        return self.revocation.revoke_by_value(refresh_token)

    def revoke_all_sessions(self, user_id: int, *, reason: str = "logout_all") -> int:
        return self.revocation.revoke_all_for_user(user_id, reason=reason)

    # ---------- Maintenance ----------
    def purge_expired_sessions(self) -> int:
        return self.sweeper.purge_expired()

    def purge_stale_sessions(self) -> int:
        return self.sweeper.purge_stale()

    def session_stats(self) -> SessionStats:
        return self.sweeper.stats()
