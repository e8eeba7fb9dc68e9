# authcore/models/refresh_session.py
from sqlalchemy import Column, DateTime, Index, Integer, String, func

from authcore.core.base import Base


class RefreshSession(Base):
    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)

    # Owning subject. Users live in the platform's own tables; no FK from this core.
    user_id = Column(Integer, nullable=False, index=True)

    # Store ONLY a salted argon2 hash of the refresh token (never the raw token)
    token_hash = Column(String(255), nullable=False)

    # Absolute expiration for this session; indexed for the retention sweep
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    # If set, session is permanently invalid
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    # Advisory provenance only, never part of the trust decision
    user_agent = Column(String(512), nullable=True)
    ip = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_refresh_tokens_user_id_revoked_at", "user_id", "revoked_at"),
    )

    def __repr__(self) -> str:
        return f"<RefreshSession id={self.id} user_id={self.user_id} expires_at={self.expires_at}>"
