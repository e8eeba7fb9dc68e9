from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from authcore.celery_app import celery_app
from authcore.core.database import SessionLocal
from authcore.schemas.session import SweepResult
from authcore.services.sessions import SessionService


logger = logging.getLogger(__name__)


def _with_db_session() -> Session:
    return SessionLocal()


@celery_app.task(name="sessions.purge_expired")
def purge_expired_sessions() -> dict:
    db = _with_db_session()
    try:
        deleted = SessionService.from_settings(db).purge_expired_sessions()
        return SweepResult(deleted=deleted).model_dump()
    except Exception:  # pylint: disable=broad-except
        # A failed sweep only delays reclamation; the next run picks the rows up.
        logger.exception("Session cleanup failed")
        return SweepResult(deleted=0, errors=1).model_dump()
    finally:
        db.close()


@celery_app.task(name="sessions.purge_stale")
def purge_stale_sessions() -> dict:
    db = _with_db_session()
    try:
        deleted = SessionService.from_settings(db).purge_stale_sessions()
        return SweepResult(deleted=deleted).model_dump()
    except Exception:  # pylint: disable=broad-except
        logger.exception("Stale session cleanup failed")
        return SweepResult(deleted=0, errors=1).model_dump()
    finally:
        db.close()


@celery_app.task(name="sessions.log_stats")
def log_session_stats() -> dict:
    db = _with_db_session()
    try:
        stats = SessionService.from_settings(db).session_stats()
        logger.info(
            "Session statistics: total=%s active=%s expired=%s revoked=%s stale=%s",
            stats.total,
            stats.active,
            stats.expired,
            stats.revoked,
            stats.stale,
        )
        return stats.model_dump()
    except Exception:  # pylint: disable=broad-except
        logger.exception("Failed to collect session statistics")
        return {}
    finally:
        db.close()
