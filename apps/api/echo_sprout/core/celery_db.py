"""Shared SQLAlchemy connection pool for Celery sync tasks.

Celery tasks run in separate processes and cannot use the async engine.
This module exposes a SYNC engine and session factory so that worker
processes reuse one pool across task invocations.
"""

from contextlib import contextmanager
from collections.abc import Generator

import structlog
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from echo_sprout.core.config import settings

logger = structlog.get_logger()

# Convert an asyncpg URL to a plain psycopg2 URL for synchronous use
_sync_url = (
    str(settings.DATABASE_URL_SYNC)
    .replace("postgresql+asyncpg://", "postgresql://")
    .replace("+asyncpg", "")
)

# Pool sizing only applies to PostgreSQL; SQLite (tests) uses its own pool
_pool_kwargs = (
    {"pool_size": 5, "max_overflow": 5, "pool_pre_ping": True, "pool_recycle": 1800}
    if _sync_url.startswith("postgresql")
    else {}
)

_engine = create_engine(_sync_url, **_pool_kwargs)

_SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)


@contextmanager
def get_celery_db_session() -> Generator[Session, None, None]:
    """Yield a sync SQLAlchemy session.

    Commits on clean exit, rolls back on exception, and always closes.
    """
    session: Session = _SessionFactory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
