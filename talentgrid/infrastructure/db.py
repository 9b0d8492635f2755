"""
Engines, sessions and schema creation for the evaluation database.
"""

from __future__ import annotations

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .config import DatabaseConfig, get_settings
from .exceptions import handle_database_error
from .logging import get_logger
from .models import Base

logger = get_logger(__name__)


def create_database_engine(config: DatabaseConfig | None = None) -> Engine:
    """
    Engine for ``config``, or for the DB_* settings when omitted.

    SQLite engines get foreign keys and savepoints switched on.

    Example:
        >>> engine = create_database_engine(DatabaseConfig(sqlite_path=":memory:"))
    """
    config = config or get_settings().database

    try:
        engine = create_engine(config.get_connection_url(), **config.get_engine_options())
    except SQLAlchemyError as e:
        logger.error("Failed to create database engine: %s", e)
        raise handle_database_error(e, "create_engine") from e

    # repr of the URL masks the password
    logger.info("Created %s engine for %r", config.backend, engine.url)

    if config.backend == "sqlite":
        configure_sqlite_engine(engine)
    return engine


def configure_sqlite_engine(engine: Engine) -> Engine:
    """
    Make pysqlite honour SAVEPOINTs and foreign keys.

    Bulk uploads write each record inside its own savepoint, which the
    driver's implicit transaction handling would otherwise break.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def create_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """
    Sessions that neither autoflush nor expire objects on commit.

    Example:
        >>> SessionLocal = create_session_factory()
        >>> with SessionLocal() as session:
        ...     pass
    """
    if engine is None:
        engine = create_database_engine()

    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def initialise_database(engine: Engine) -> bool:
    """
    Create all tables that do not exist yet.

    Returns:
        True when every table was already present.
    """
    existing = set(inspect(engine).get_table_names())
    expected = set(Base.metadata.tables)
    Base.metadata.create_all(engine)
    already = expected.issubset(existing)
    logger.info("Database initialised (tables already present: %s)", already)
    return already


def is_database_configured() -> bool:
    """True when the DB_* settings validate and produce a URL."""
    try:
        get_settings().database.get_connection_url()
        return True
    except ValueError as e:
        logger.warning("Database configuration invalid: %s", e)
        return False
