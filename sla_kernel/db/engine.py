"""
Module: sla_kernel.db.engine
Responsibility: One process-wide engine and session factory, plus the
    ``session_scope`` transaction boundary that callers wrap around service
    calls.  Services only flush; committing is done here or by the caller.
Architecture position: Kernel > DB.  ``create_tables`` / ``drop_tables``
    import the models package so the metadata is complete.

Supported URLs:
    - ``postgresql://...``: pooled, pre-pinged, READ COMMITTED.
    - ``sqlite://`` (tests, single-user installs): in-memory URLs share one
      connection through ``StaticPool``.  pysqlite's own transaction
      handling is switched off so SAVEPOINTs nest correctly, and foreign
      keys are enforced so a contract's checklist goes with it.

Failure modes:
    - RuntimeError when a session or the engine is requested before
      ``init_engine_from_url``.
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from sla_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_sessions: sessionmaker[Session] | None = None


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 5,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the engine for ``database_url`` and replace any previous one.

    Pool arguments apply to server databases only.
    """
    global _engine, _sessions

    url = make_url(database_url)
    backend = url.get_backend_name()

    if backend == "sqlite":
        sqlite_options: dict = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            sqlite_options["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **sqlite_options)
        _enable_sqlite_savepoints(engine)
    else:
        engine = create_engine(
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

    if _engine is not None:
        _engine.dispose()
    _engine = engine
    _sessions = sessionmaker(bind=engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"backend": backend, "echo": echo})
    return engine


def _enable_sqlite_savepoints(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """A new session bound to the current engine."""
    if _sessions is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _sessions()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Commit on success, roll back and re-raise on error, always close.

        with session_scope() as session:
            ExecutionSession(session, contract_id, ...).finalize()
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


def create_tables() -> None:
    from sla_kernel.db.base import Base
    import sla_kernel.models  # noqa: F401  registers the tables on Base.metadata

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    """Drop every table.  Tests and throwaway databases only."""
    from sla_kernel.db.base import Base
    import sla_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    global _engine, _sessions
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _sessions = None


atexit.register(reset_engine)
