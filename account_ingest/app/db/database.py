"""
SQLAlchemy engine, session factory and declarative base.
"""
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from account_ingest.settings import settings
from account_ingest.app.logging_config import get_logger

logger = get_logger(__name__)

Base = declarative_base()


def _sqlite_on_connect(dbapi_connection: Any, connection_record: Any) -> None:
    # Let SQLAlchemy emit BEGIN itself so SAVEPOINT and transactional DDL work
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


def _sqlite_on_begin(conn: Any) -> None:
    conn.exec_driver_sql("BEGIN")


def create_db_engine(database_url: str, **kwargs: Any) -> Engine:
    """
    Create a SQLAlchemy engine for the given URL.

    SQLite connections are shared with the ingestion threads, so same-thread
    checks are disabled and the driver's implicit transaction handling is
    replaced by explicit BEGIN statements.

    Args:
        database_url: SQLAlchemy database URL
        **kwargs: Extra keyword arguments for create_engine

    Returns:
        Configured engine
    """
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        kwargs["connect_args"] = connect_args

    engine = create_engine(database_url, echo=settings.DATABASE_ECHO, **kwargs)

    if is_sqlite:
        event.listen(engine, "connect", _sqlite_on_connect)
        event.listen(engine, "begin", _sqlite_on_begin)

    return engine


def create_session_factory(bind: Engine) -> sessionmaker:
    """Session factory used by the API and the ingestion threads."""
    return sessionmaker(bind=bind, autocommit=False, autoflush=False, expire_on_commit=False)


def init_db(bind: Engine) -> None:
    """
    Create all tables that do not exist yet.

    Args:
        bind: Engine to create the tables on
    """
    # Register every model on Base.metadata before creating tables
    from account_ingest.models import account_product, job, job_file, job_lock  # noqa: F401

    Base.metadata.create_all(bind=bind)
    logger.info("Database tables ensured", extra={"tables": sorted(Base.metadata.tables)})


engine = create_db_engine(settings.DATABASE_URL)
SessionLocal = create_session_factory(engine)
