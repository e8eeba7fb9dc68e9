# authcore/core/security.py
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from jose import ExpiredSignatureError, JWTError, jwt

from authcore.core.config import Settings
from authcore.schemas.session import TokenPair

ACCESS_PURPOSE = "access"
REFRESH_PURPOSE = "refresh"

# Claims owned by the codec; caller-supplied values are overwritten.
RESERVED_CLAIMS = frozenset({"purpose", "jti", "iat", "exp", "iss", "aud"})


class TokenError(Exception):
    """Base class for token decoding failures."""


class TokenInvalidError(TokenError):
    pass


class TokenExpiredError(TokenError):
    pass


@dataclass(frozen=True)
class TokenSettings:
    """
    Signing configuration for the access/refresh pair.

    The two secrets must differ so a leaked access secret cannot mint refresh
    tokens (and vice versa).
    """

    access_secret: str
    refresh_secret: str
    algorithm: str = "HS256"
    issuer: str = "medikariyer-api"
    audience: str = "medikariyer-client"
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)

    def __post_init__(self) -> None:
        if not self.access_secret or not self.refresh_secret:
            raise ValueError("Both access and refresh signing secrets are required")
        if self.access_secret == self.refresh_secret:
            raise ValueError("Access and refresh signing secrets must differ")

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenSettings":
        return cls(
            access_secret=settings.JWT_SECRET,
            refresh_secret=settings.JWT_REFRESH_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        )


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def new_jti() -> str:
    return str(uuid.uuid4())


class TokenCodec:
    """
    Signs and decodes access/refresh JWTs. Stateless: nothing here touches storage.
    """

    def __init__(self, token_settings: TokenSettings):
        self.settings = token_settings

    # -------------------------
    # Issuing
    # -------------------------
    def _build_payload(self, claims: Mapping[str, Any], *, purpose: str, ttl: timedelta) -> dict[str, Any]:
        sub = claims.get("sub")
        if sub is None or str(sub).strip() == "":
            raise ValueError("claims must include a non-empty 'sub'")

        now = _now_utc()
        payload = {k: v for k, v in claims.items() if k not in RESERVED_CLAIMS}
        payload.update(
            {
                # jose rejects non-string subjects on decode
                "sub": str(sub),
                "purpose": purpose,
                "jti": new_jti(),
                "iat": int(now.timestamp()),
                "exp": int((now + ttl).timestamp()),
                "iss": self.settings.issuer,
                "aud": self.settings.audience,
            }
        )
        return payload

    def issue_access_token(self, claims: Mapping[str, Any]) -> str:
        payload = self._build_payload(claims, purpose=ACCESS_PURPOSE, ttl=self.settings.access_ttl)
        return jwt.encode(payload, self.settings.access_secret, algorithm=self.settings.algorithm)

    def issue_refresh_token(self, claims: Mapping[str, Any]) -> str:
        payload = self._build_payload(claims, purpose=REFRESH_PURPOSE, ttl=self.settings.refresh_ttl)
        return jwt.encode(payload, self.settings.refresh_secret, algorithm=self.settings.algorithm)

    def issue_token_pair(self, claims: Mapping[str, Any]) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access_token(claims),
            refresh_token=self.issue_refresh_token(claims),
            expires_in=int(self.settings.access_ttl.total_seconds()),
        )

    # -------------------------
    # Decoding
    # -------------------------
    def _decode(self, token: str, *, secret: str, purpose: str) -> dict[str, Any]:
        if not token or not isinstance(token, str):
            raise TokenInvalidError("Token is empty")
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.settings.algorithm],
                audience=self.settings.audience,
                issuer=self.settings.issuer,
            )
        except ExpiredSignatureError as exc:
            raise TokenExpiredError("Token has expired") from exc
        except JWTError as exc:
            raise TokenInvalidError("Token is invalid") from exc

        if payload.get("purpose") != purpose:
            raise TokenInvalidError("Invalid token purpose")
        return payload

    def decode_access_token(self, token: str) -> dict[str, Any]:
        return self._decode(token, secret=self.settings.access_secret, purpose=ACCESS_PURPOSE)

    def decode_refresh_token(self, token: str) -> dict[str, Any]:
        return self._decode(token, secret=self.settings.refresh_secret, purpose=REFRESH_PURPOSE)


def session_claims(payload: Mapping[str, Any]) -> dict[str, Any]:
    """
    Caller claims carried by a decoded token, without the codec-owned ones.
    Used to re-issue a pair on refresh.
    """
    return {k: v for k, v in payload.items() if k not in RESERVED_CLAIMS}
