"""
Module: fulfillment_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    transactional scope utilities and the bounded transient-retry wrapper.
    This is the single point of database connection configuration.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from services/, selectors/, or outer layers (except
    create_tables/drop_tables which import models).

Invariants enforced:
    - PostgreSQL sessions run at READ COMMITTED with compare-and-set updates
      and row-level locking (FOR UPDATE SKIP LOCKED) where stronger
      guarantees are needed.
    - SQLite connections emit an explicit BEGIN so that SAVEPOINT / ROLLBACK
      TO behave transactionally (pysqlite otherwise defers BEGIN).
    - Only transient faults are retried, and only a bounded number of times.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory called before
      init_engine_from_url().
    - TransientRepositoryError when run_in_transaction spends its budget.
"""

from __future__ import annotations

import atexit
import time
from collections.abc import Callable
from contextlib import contextmanager
from typing import Generator, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fulfillment_kernel.exceptions import ConcurrencyError, TransientRepositoryError
from fulfillment_kernel.logging_config import get_logger

logger = get_logger("db.engine")

T = TypeVar("T")

# Module-level engine and session factory
_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _install_sqlite_transaction_hooks(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 5,
    pool_pre_ping: bool = True,
) -> Engine:
    """
    Create an engine for PostgreSQL or SQLite without touching module state.

    In-memory SQLite URLs share one connection (StaticPool) so every session
    sees the same database.
    """
    if database_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)
        _install_sqlite_transaction_hooks(engine)
        return engine

    return create_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(database_url: str, echo: bool = False, **pool_options) -> Engine:
    """
    Initialize the module-level engine and session factory.

    Postconditions: All subsequent get_engine/get_session calls use this
        engine.  A second call replaces the first.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = build_engine(database_url, echo=echo, **pool_options)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """
    Get a new session instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    return get_session_factory()()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory for creating sessions.

    Useful for multi-threaded scenarios where each thread needs its own session.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope(
    session_factory: Callable[[], Session] | None = None,
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit, session is committed and closed.
        On exception, session is rolled back and closed.  The exception
        is re-raised to the caller.

    Usage:
        with session_scope() as session:
            FulfillmentService(session, ...).fulfill("ST-32-X-32-STA", "O-1", 1)
    """
    session = (session_factory or get_session_factory())()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def is_transient(exc: BaseException) -> bool:
    """Faults worth retrying: lost CAS races and driver-level operational errors."""
    return isinstance(exc, (ConcurrencyError, OperationalError)) and not isinstance(
        exc, TransientRepositoryError
    )


def run_in_transaction(
    work: Callable[[Session], T],
    *,
    session_factory: Callable[[], Session] | None = None,
    max_attempts: int = 3,
    backoff_seconds: float = 0.05,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``work(session)`` in its own transaction, retrying transient faults.

    Each attempt gets a fresh session; the session is committed when ``work``
    returns and rolled back otherwise.  Non-transient errors propagate on the
    first attempt.  Backoff doubles after each failed attempt.

    Raises:
        TransientRepositoryError: every attempt hit a transient fault.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    factory = session_factory or get_session_factory()
    last_error: BaseException | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            with session_scope(factory) as session:
                return work(session)
        except Exception as exc:
            if not is_transient(exc):
                raise
            last_error = exc
            logger.warning(
                "transaction_retry",
                extra={
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "error_type": type(exc).__name__,
                },
            )
            if attempt < max_attempts:
                sleep(backoff_seconds * (2 ** (attempt - 1)))

    raise TransientRepositoryError(max_attempts, str(last_error)) from last_error


def create_tables(engine: Engine | None = None) -> None:
    """
    Create all tables defined in the models.

    Postconditions: All tables exist in the database.
    """
    from fulfillment_kernel.db.base import Base
    import fulfillment_kernel.models  # noqa: F401

    Base.metadata.create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    """
    Drop all tables. Use with caution - primarily for testing.
    """
    from fulfillment_kernel.db.base import Base
    import fulfillment_kernel.models  # noqa: F401

    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """
    Reset the engine and session factory.

    Useful for test cleanup.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    """Dispose the engine on process exit to release all pooled connections."""
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)


def is_postgres(engine_or_session: Engine | Session | None = None) -> bool:
    """Check if the given (or current) engine is PostgreSQL."""
    if isinstance(engine_or_session, Session):
        bind = engine_or_session.get_bind()
    else:
        bind = engine_or_session or _engine
    if bind is None:
        return False
    return bind.dialect.name == "postgresql"
