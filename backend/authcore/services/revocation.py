# authcore/services/revocation.py
from __future__ import annotations

import logging

from authcore.services.session_store import SessionStore
from authcore.services.session_verifier import SessionVerifier

logger = logging.getLogger(__name__)

REVOKE_REASONS = frozenset({"logout_all", "deactivated", "password_changed", "admin"})


class RevocationManager:
    """
    Session termination: one device, one session id, or every session of a user.

    Sessions move active -> revoked once; nothing here ever clears revoked_at.
    """

    def __init__(self, store: SessionStore, verifier: SessionVerifier):
        self.store = store
        self.verifier = verifier

    def revoke(self, session_id: int) -> bool:
        revoked = self.store.revoke(session_id)
        if revoked:
            logger.info("Revoked refresh session id=%s", session_id)
        return revoked

    def revoke_by_value(self, presented_token: str) -> bool:
        """Log out this device. Unknown, invalid and already-revoked tokens return False."""
        record = self.verifier.verify(presented_token)
        if record is None:
            return False
        return self.revoke(record.id)

    def revoke_all_for_user(self, user_id: int, *, reason: str = "logout_all") -> int:
        if reason not in REVOKE_REASONS:
            raise ValueError(f"Unknown revoke reason: {reason}")
        count = self.store.revoke_all_for_user(user_id)
        logger.info("Revoked %s refresh session(s) for user_id=%s reason=%s", count, user_id, reason)
        return count

    # Account lifecycle hooks. Stale sessions must not outlive a credential change.
    def on_account_deactivated(self, user_id: int) -> int:
        return self.revoke_all_for_user(user_id, reason="deactivated")

    def on_password_changed(self, user_id: int) -> int:
        return self.revoke_all_for_user(user_id, reason="password_changed")
