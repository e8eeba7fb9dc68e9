# authcore/__init__.py
"""
Refresh-token session core for the MediKariyer platform.

This package contains:
- core/security.py: TokenCodec (access/refresh JWTs, separate secrets)
- services/session_store.py: hashed session records
- services/session_verifier.py: decode -> scoped lookup -> hash match
- services/revocation.py, services/retention.py: termination and cleanup
- services/sessions.py: SessionService, the facade collaborators call
"""
from authcore.services.sessions import IssuedSession, SessionService

__all__ = ["IssuedSession", "SessionService"]
