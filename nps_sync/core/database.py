"""
Database configuration for NPS Sync.

SQLite backs the durable key-value storage used by the persistence cache.
"""

import sqlite3
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from nps_sync.core.config import settings


def make_engine(database_url: str = settings.STORAGE_URL) -> Engine:
    """
    Create an engine for the given database URL.

    In-memory SQLite databases share one connection so every session sees
    the same tables.
    """
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )

    return create_engine(
        database_url,
        connect_args={"check_same_thread": False},  # Needed for SQLite
        pool_pre_ping=True,  # Check connection before using from pool
        pool_size=2,  # A single dashboard session needs very few connections
        max_overflow=2,
        pool_recycle=1800,  # Recycle connections after 30 minutes
        echo=False,
    )


# Enable WAL and sane sync settings on every SQLite connection
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()


def make_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to an engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Base class for SQLAlchemy models
Base = declarative_base()


def init_db(engine: Engine) -> None:
    """
    Initialize database by creating all tables.
    """
    # Import all models here to ensure they are registered with Base
    from nps_sync.models.storage import StorageEntry  # noqa: F401

    Base.metadata.create_all(bind=engine)
