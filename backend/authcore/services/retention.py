# authcore/services/retention.py
from __future__ import annotations

import logging
import time
from datetime import timedelta

from authcore.schemas.session import SessionStats
from authcore.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """
    Storage reclamation for the session table. Verification never depends on
    these having run: expired rows are already rejected at lookup time.
    """

    def __init__(self, store: SessionStore, *, stale_after: timedelta = timedelta(days=30)):
        self.store = store
        self.stale_after = stale_after

    def purge_expired(self) -> int:
        started = time.monotonic()
        deleted = self.store.delete_expired()
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info("Session cleanup completed: %s expired sessions deleted in %sms", deleted, duration_ms)
        return deleted

    def purge_stale(self, max_age: timedelta | None = None) -> int:
        cutoff = self.store.now_fn() - (max_age or self.stale_after)
        started = time.monotonic()
        deleted = self.store.delete_stale(cutoff)
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info("Stale session cleanup completed: %s sessions deleted in %sms", deleted, duration_ms)
        return deleted

    def stats(self) -> SessionStats:
        return self.store.stats(stale_before=self.store.now_fn() - self.stale_after)
