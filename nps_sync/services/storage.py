"""
Durable key-value storage for NPS Sync.

This module provides the storage contract used by the persistence cache and
two backends: an in-memory dict and a SQLite table through SQLAlchemy.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from nps_sync.core.config import settings
from nps_sync.core.database import init_db, make_engine, make_session_factory
from nps_sync.core.errors import PersistenceError
from nps_sync.core.logging import logger
from nps_sync.models.storage import StorageEntry


class KeyValueStorage(ABC):
    """
    Synchronous string key-value storage.

    Implementations raise PersistenceError when the backend is unavailable
    or full.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read a value.

        Args:
            key: Storage key.

        Returns:
            Stored string or None if the key is absent.
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Write a value, replacing any previous one.

        Args:
            key: Storage key.
            value: String to store.
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """
        Delete a key. Removing an absent key is not an error.

        Args:
            key: Storage key.
        """
        pass


class MemoryStorage(KeyValueStorage):
    """
    Process-local storage.

    An optional quota (total characters across all values) emulates the
    size limit of browser storage.
    """

    def __init__(self, quota: Optional[int] = None):
        self.data: Dict[str, str] = {}
        self.quota = quota

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota is not None:
            used = sum(len(v) for k, v in self.data.items() if k != key)
            if used + len(value) > self.quota:
                raise PersistenceError(
                    f"Storage quota exceeded writing {key}",
                    {"quota": self.quota, "required": used + len(value)},
                )
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class SqlStorage(KeyValueStorage):
    """
    Storage backed by a SQL table, SQLite by default.
    """

    def __init__(self, database_url: str = settings.STORAGE_URL, engine: Optional[Engine] = None):
        """
        Initialize the storage and create its table if needed.

        Args:
            database_url: SQLAlchemy URL, ignored when an engine is given.
            engine: Optional pre-built engine.
        """
        self.engine = engine or make_engine(database_url)
        self.SessionLocal = make_session_factory(self.engine)
        try:
            init_db(self.engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not initialize storage: {e}") from e

    def get(self, key: str) -> Optional[str]:
        try:
            with self.SessionLocal() as db:
                entry = db.get(StorageEntry, key)
                return entry.value if entry else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read {key}: {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            with self.SessionLocal() as db:
                entry = db.get(StorageEntry, key)
                if entry:
                    entry.value = value
                else:
                    db.add(StorageEntry(key=key, value=value))
                db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not write {key}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            with self.SessionLocal() as db:
                entry = db.get(StorageEntry, key)
                if entry:
                    db.delete(entry)
                    db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not remove {key}: {e}") from e

    def close(self) -> None:
        """Dispose of the engine's connection pool."""
        logger.debug("Disposing storage engine")
        self.engine.dispose()
