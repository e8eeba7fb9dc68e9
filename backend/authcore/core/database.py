from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from authcore.core.config import settings


def _build_engine() -> Engine:
    url = settings.database_url
    is_sqlite = url.startswith("sqlite")

    connect_args: dict[str, Any] = {}
    if is_sqlite:
        # Sessions are created from worker threads as well as request threads.
        connect_args["check_same_thread"] = False

    return create_engine(
        url,
        echo=settings.LOG_SQL,
        connect_args=connect_args,
        pool_pre_ping=not is_sqlite,  # checks stale connections
    )


engine = _build_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
