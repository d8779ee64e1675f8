"""
Module: fx_kernel.db.engine
Responsibility: one process-wide engine and session factory for the
    reference stores, plus a commit-or-rollback session scope.
Architecture position: Kernel > DB.  ``create_tables`` pulls in the module
    ORM registry so every store's tables are on ``Base.metadata``.

Invariants enforced:
    - Sessions never expire loaded rows on commit; stores hand out DTOs built
      from rows they just flushed.
    - SQLite (tests, embedded use) runs on a StaticPool so an in-memory
      database survives across sessions of the same engine.
    - Server databases run READ COMMITTED on a pre-pinged QueuePool.

Failure modes:
    - RuntimeError if a session or the engine is requested before
      ``init_engine_from_url``.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from fx_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Engine not initialized. Call init_engine_from_url() first."


def _engine_options(dialect: str, pool_size: int, max_overflow: int) -> dict:
    if dialect == "sqlite":
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {
        "poolclass": QueuePool,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 1800,
        "isolation_level": "READ COMMITTED",
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
) -> Engine:
    """
    (Re)initialize the engine and session factory for ``database_url``.

    A previous engine is disposed first.

    Args:
        database_url: e.g. ``sqlite://`` or ``postgresql+psycopg://u:p@host/db``
        echo: log every SQL statement.
        pool_size, max_overflow: QueuePool sizing for server databases.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    dialect = make_url(database_url).get_backend_name()
    _engine = create_engine(
        database_url, echo=echo, **_engine_options(dialect, pool_size, max_overflow),
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)
    logger.info("engine_initialized", extra={"dialect": dialect, "echo": echo})
    return _engine


def init_engine_from_settings(settings) -> Engine:
    """Initialize from the ``database`` section of the back-office config."""
    return init_engine_from_url(settings.url, echo=settings.echo)


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session() -> Session:
    """A new session bound to the current engine."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Session that commits on normal exit and rolls back on error; always closed."""
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_scope_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every table registered by the module ORM files."""
    from fx_kernel.db.base import Base
    from fx_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables() -> None:
    from fx_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory (test teardown)."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


atexit.register(reset_engine)
