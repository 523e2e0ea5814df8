"""
Database configuration and session management for the receipt ledger.

Uses SQLAlchemy ORM. On SQLite the driver's implicit transaction handling is
replaced by explicit BEGIN statements: writers open BEGIN IMMEDIATE (one
writer at a time, lock taken up front) while readers open a deferred BEGIN.
WAL mode is enabled when possible so readers see a committed snapshot and do
not block writers.
"""

import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from receipt_ledger.config import Settings, settings as default_settings
from receipt_ledger.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

# Base class for declarative models
Base = declarative_base()

# Execution option read by the SQLite "begin" hook
SQLITE_BEGIN_OPTION = "sqlite_begin"


def is_sqlite(engine: Engine) -> bool:
    return engine.dialect.name == "sqlite"


def _ensure_sqlite_directory(database: Optional[str]) -> None:
    if not database or database == ":memory:" or database.startswith("file:"):
        return
    db_dir = os.path.dirname(database)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir, exist_ok=True)


def _install_sqlite_hooks(engine: Engine, config: Settings) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, connection_record):
        # Take BEGIN/COMMIT away from pysqlite, the "begin" hook below emits them.
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys=ON")
            if config.SQLITE_WAL:
                try:
                    cursor.execute("PRAGMA journal_mode=WAL")
                except sqlite3.OperationalError as e:
                    # e.g. network or WSL-mounted drives
                    logger.warning(f"Could not enable WAL mode: {e}")
        finally:
            cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        mode = conn.get_execution_options().get(SQLITE_BEGIN_OPTION, "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")


def create_ledger_engine(config: Optional[Settings] = None) -> Engine:
    """
    Create the SQLAlchemy engine described by the settings.

    SQLite databases get foreign key enforcement, optional WAL mode and a lock
    wait of DATABASE_TIMEOUT seconds.
    """
    config = config or default_settings
    url = make_url(config.DATABASE_URL)

    connect_args = {}
    engine_kwargs = {}
    if url.get_backend_name() == "sqlite":
        _ensure_sqlite_directory(url.database)
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = config.DATABASE_TIMEOUT
    else:
        engine_kwargs["pool_timeout"] = config.DATABASE_TIMEOUT
        engine_kwargs["pool_pre_ping"] = True

    engine = create_engine(
        url,
        echo=config.DATABASE_ECHO,
        connect_args=connect_args,
        **engine_kwargs,
    )

    if is_sqlite(engine):
        _install_sqlite_hooks(engine, config)

    logger.debug(f"Created engine for {url.render_as_string(hide_password=True)}")
    return engine


# Driver messages (lower-cased) for failures that go away on their own
TRANSIENT_MESSAGES = (
    "database is locked",
    "database table is locked",
    "database is busy",
    "lock wait timeout",
    "deadlock",
    "could not serialize",
    "server closed the connection",
    "lost connection",
)

# SQLSTATE: serialization_failure, deadlock_detected
TRANSIENT_SQLSTATES = {"40001", "40P01"}


def is_transient_error(exc: BaseException) -> bool:
    """
    True for failures the caller may retry, such as a lock wait that timed out
    or a serialization conflict. Permanent driver errors like a missing table
    are not transient.
    """
    if isinstance(exc, PoolTimeoutError):
        return True
    if not isinstance(exc, DBAPIError):
        return False
    if exc.connection_invalidated:
        return True
    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in TRANSIENT_SQLSTATES:
        return True
    if not isinstance(exc, OperationalError):
        return False
    message = str(orig).lower()
    return any(marker in message for marker in TRANSIENT_MESSAGES)


class Database:
    """
    Engine plus the two session factories used by the ledger.

    Usage:
        >>> db = Database(create_ledger_engine())
        >>> with db.reader() as session:
        ...     session.get(Receipt, 1)
        >>> with db.writer() as session:
        ...     session.add(Store(name="Rema 1000", location="Oslo"))
        ...     # COMMIT on success, ROLLBACK on any exception
    """

    def __init__(self, engine: Engine, config: Optional[Settings] = None):
        self.config = config or default_settings
        self.engine = engine
        if is_sqlite(engine):
            self.write_engine = engine.execution_options(**{SQLITE_BEGIN_OPTION: "IMMEDIATE"})
        else:
            self.write_engine = engine.execution_options(
                isolation_level=self.config.WRITE_ISOLATION_LEVEL
            )
        self._read_sessions = sessionmaker(
            bind=engine, autoflush=False, expire_on_commit=False
        )
        self._write_sessions = sessionmaker(
            bind=self.write_engine, autoflush=False, expire_on_commit=False
        )

    @property
    def locks_rows(self) -> bool:
        """Whether SELECT ... FOR UPDATE is meaningful (SQLite locks the whole database instead)."""
        return not is_sqlite(self.engine)

    @contextmanager
    def reader(self) -> Iterator[Session]:
        """Read-only session; the transaction is rolled back on exit."""
        session = self._read_sessions()
        try:
            yield session
        except (DBAPIError, PoolTimeoutError) as e:
            session.rollback()
            if is_transient_error(e):
                logger.error(f"Storage unavailable during read: {e}")
                raise StorageUnavailableError("storage unavailable", e) from e
            raise
        finally:
            session.close()

    @contextmanager
    def writer(self) -> Iterator[Session]:
        """
        Session wrapped in one write transaction.

        Commits when the block exits normally; any other exit rolls back
        before the exception propagates. Transient driver failures are
        re-raised as StorageUnavailableError.
        """
        session = self._write_sessions()
        try:
            yield session
            session.commit()
        except (DBAPIError, PoolTimeoutError) as e:
            session.rollback()
            if is_transient_error(e):
                logger.error(f"Storage unavailable, write rolled back: {e}")
                raise StorageUnavailableError("storage unavailable", e) from e
            raise
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
