"""
Module: mandi_kernel.db.engine
Responsibility: Engine construction, the process-wide session factory and
    the unit-of-work boundary (session_scope) every request runs inside.
Architecture position: Kernel > DB.  Imports logging_config and, lazily,
    models (for create_tables/drop_tables) only.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED; lots and sequence counters are
      additionally locked with SELECT ... FOR UPDATE by the services.
    - SQLite has no row locks.  There the Lot version counter is the only
      guard against a lost bag update, and foreign keys are switched on
      for every connection.
    - One request, one session_scope: commit on success, rollback on any
      exception, so a rejected bid or reversal leaves no partial bag move.

Failure modes:
    - RuntimeError from get_engine/get_session_factory/session_scope before
      init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Any, Iterator
from uuid import UUID

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from mandi_kernel.logging_config import LogContext, configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def build_engine(
    database_url: str,
    *,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Build a configured engine without installing it as the module engine.

    Pool settings apply to PostgreSQL only.  An in-memory SQLite URL gets a
    single shared connection, otherwise each checkout would see an empty
    database.
    """
    url = make_url(database_url)

    if url.get_backend_name() != "sqlite":
        return create_engine(
            url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,
            isolation_level="READ COMMITTED",
        )

    options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    engine = create_engine(url, echo=echo, **options)

    @event.listens_for(engine, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        # pysqlite's implicit BEGIN breaks SAVEPOINT; BEGIN is emitted below
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def init_engine_from_url(database_url: str, *, echo: bool = False, **pool_options: Any) -> Engine:
    """
    Build the process-wide engine and session factory.

    A second call replaces the first.  ``pool_options`` are passed to
    build_engine().
    """
    global _engine, _SessionFactory

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


def get_session_factory() -> sessionmaker[Session]:
    """Session factory, for callers (workers, threads) that need their own session."""
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope(
    *, business_id: str | None = None, actor_id: UUID | None = None
) -> Iterator[Session]:
    """
    Run one unit of work.

    Commits on normal exit; on an exception rolls back, logs and re-raises.
    ``business_id`` and ``actor_id`` are bound into LogContext for every
    record written inside the block.

    Usage:
        with session_scope(business_id=biz, actor_id=user) as session:
            BidService(session).create_bid(biz, lot_id, buyer_id, "20", 40, actor_id=user)
    """
    session = get_session_factory()()
    with LogContext.bind(business_id=business_id, actor_id=actor_id):
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
    """Create every mapped table on ``engine`` (default: the module engine)."""
    from mandi_kernel.db.base import Base
    import mandi_kernel.models  # noqa: F401  registers every table on Base.metadata

    Base.metadata.create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    """Drop every mapped table. Tests only."""
    from mandi_kernel.db.base import Base
    import mandi_kernel.models  # noqa: F401

    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """Dispose the module engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


atexit.register(reset_engine)
