"""
Module: payroll_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management and
    transactional scope.  The single point of database connection configuration.
Architecture position: Kernel > DB.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED with QueuePool and pre-ping; row locks
      (SELECT ... FOR UPDATE) are taken where stronger isolation is needed.
    - SQLite is accepted for tests.  In-memory databases share one connection
      (StaticPool) so every session sees the same schema.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory is called
      before init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from payroll_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """Create an engine configured for the URL's dialect without registering it."""
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        in_memory = url.database in (None, "", ":memory:")
        kwargs: dict = {
            "connect_args": {"check_same_thread": False},
        }
        if in_memory:
            kwargs["poolclass"] = StaticPool
        else:
            # Writers wait for the database lock instead of failing at once.
            kwargs["connect_args"]["timeout"] = pool_timeout
        return create_engine(url, echo=echo, **kwargs)

    return create_engine(
        url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(database_url: str, echo: bool = False, **pool_options) -> Engine:
    """
    Initialize the module-level engine and session factory.

    A second call replaces the first; call reset_engine() to dispose it.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    _engine = build_engine(database_url, echo=echo, **pool_options)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    return get_session_factory()()


def get_session_factory() -> sessionmaker[Session]:
    """
    Session factory for code that opens its own sessions, e.g. one per worker
    thread in a payroll run.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Transactional scope: commit on normal exit, roll back and re-raise on error.

    Usage:
        with session_scope() as session:
            session.add(entity)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine | None = None) -> None:
    """Create every payroll table on ``engine`` (default: the module engine)."""
    from payroll_kernel.db.base import Base
    from payroll_kernel.models import import_all_models

    import_all_models()
    Base.metadata.create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    """Drop all tables. Testing only."""
    from payroll_kernel.db.base import Base
    from payroll_kernel.models import import_all_models

    import_all_models()
    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None
    _SessionFactory = None


def _atexit_dispose() -> None:
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)
