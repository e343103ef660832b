"""
Engine and session factory for the directory cache database.
"""

import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.storage.schema import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_database_engine(database_url: str) -> Engine:
    """
    Create an engine and make sure all tables exist.

    SQLite connections get foreign key enforcement switched on, otherwise
    membership edges could reference channels or users that were never stored.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Reads and writes happen from worker threads
        connect_args["check_same_thread"] = False

    engine = create_engine(database_url, connect_args=connect_args)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    Base.metadata.create_all(engine)
    logger.info(f"Directory database ready at {engine.url.render_as_string(hide_password=True)}")
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)
