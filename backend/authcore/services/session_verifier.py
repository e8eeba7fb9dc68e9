# authcore/services/session_verifier.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from authcore.core.security import TokenCodec, TokenError, TokenExpiredError
from authcore.models.refresh_session import RefreshSession
from authcore.services.session_store import SessionStore

logger = logging.getLogger(__name__)

# Internal failure reasons. Callers only ever see "record" or None.
REASON_EXPIRED = "token_expired"
REASON_INVALID = "token_invalid"
REASON_NO_SUBJECT = "missing_subject"
REASON_NO_SESSIONS = "no_active_sessions"
REASON_NO_MATCH = "no_matching_session"


@dataclass(frozen=True)
class DecodeResult:
    claims: dict[str, Any] | None = None
    user_id: int | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.user_id is not None


@dataclass(frozen=True)
class ScopedLookup:
    decoded: DecodeResult
    candidates: list[RefreshSession] = field(default_factory=list)


@dataclass(frozen=True)
class MatchResult:
    record: RefreshSession | None = None
    claims: dict[str, Any] | None = None
    reason: str | None = None
    candidates_checked: int = 0

    @property
    def ok(self) -> bool:
        return self.record is not None


# refresh_tokens.user_id is a 32-bit signed INTEGER column.
MAX_USER_ID = 2**31 - 1


def subject_to_user_id(sub: Any) -> int | None:
    """Numeric `sub` claim -> user id, or None if it cannot name a stored user."""
    if sub is None:
        return None
    text = str(sub).strip()
    if not (text.isascii() and text.isdigit()):
        return None
    # Length check first so huge digit strings are never converted.
    if len(text) > len(str(MAX_USER_ID)):
        return None
    user_id = int(text)
    if not 0 < user_id <= MAX_USER_ID:
        return None
    return user_id


class SessionVerifier:
    """
    Two-phase refresh token check:
      decode (cheap signature + exp)  ->  scoped lookup (one user's live rows)  ->  hash match
    Each phase short-circuits so storage is never touched for a token that fails to decode.
    """

    def __init__(self, codec: TokenCodec, store: SessionStore):
        self.codec = codec
        self.store = store

    def decode(self, presented_token: str) -> DecodeResult:
        try:
            claims = self.codec.decode_refresh_token(presented_token)
        except TokenExpiredError:
            return DecodeResult(reason=REASON_EXPIRED)
        except TokenError:
            return DecodeResult(reason=REASON_INVALID)

        user_id = subject_to_user_id(claims.get("sub"))
        if user_id is None:
            return DecodeResult(claims=claims, reason=REASON_NO_SUBJECT)
        return DecodeResult(claims=claims, user_id=user_id)

    def lookup(self, decoded: DecodeResult) -> ScopedLookup:
        if not decoded.ok:
            return ScopedLookup(decoded=decoded)
        return ScopedLookup(decoded=decoded, candidates=self.store.find_active_by_user(decoded.user_id))

    def match(self, presented_token: str, scoped: ScopedLookup) -> MatchResult:
        decoded = scoped.decoded
        if not decoded.ok:
            return MatchResult(reason=decoded.reason)
        if not scoped.candidates:
            return MatchResult(claims=decoded.claims, reason=REASON_NO_SESSIONS)

        checked = 0
        for candidate in scoped.candidates:
            checked += 1
            if self.store.hasher.verify(presented_token, candidate.token_hash):
                return MatchResult(record=candidate, claims=decoded.claims, candidates_checked=checked)
        return MatchResult(claims=decoded.claims, reason=REASON_NO_MATCH, candidates_checked=checked)

    def inspect(self, presented_token: str) -> MatchResult:
        result = self.match(presented_token, self.lookup(self.decode(presented_token)))
        if not result.ok:
            logger.debug("Refresh token rejected: reason=%s checked=%s", result.reason, result.candidates_checked)
        return result

    def verify(self, presented_token: str) -> RefreshSession | None:
        return self.inspect(presented_token).record
