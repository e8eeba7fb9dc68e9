# authcore/schemas/session.py
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    # access token lifetime in seconds
    expires_in: int


class SessionOut(BaseModel):
    """Public view of a session record. Never carries the token hash."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    user_agent: str | None = None
    ip: str | None = None
    created_at: datetime
    expires_at: datetime
    revoked_at: datetime | None = None


class SessionStats(BaseModel):
    total: int = 0
    active: int = 0
    expired: int = 0
    revoked: int = 0
    stale: int = 0


class SweepResult(BaseModel):
    deleted: int = 0
    errors: int = 0
