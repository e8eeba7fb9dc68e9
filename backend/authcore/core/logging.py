# authcore/core/logging.py
from __future__ import annotations

import logging

from authcore.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """
    Root logging setup for processes that own their own entrypoint (celery worker/beat).
    Library code only ever calls logging.getLogger(__name__).
    """
    resolved = (level or settings.LOG_LEVEL or "INFO").upper()
    logging.basicConfig(level=getattr(logging, resolved, logging.INFO), format=LOG_FORMAT)
    # SQL echo is controlled separately via LOG_SQL.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
