"""
Storage model for NPS Sync.

This module provides the SQLAlchemy model behind the durable key-value storage.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text

from nps_sync.core.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StorageEntry(Base):
    """
    One key-value pair of durable storage.
    """
    __tablename__ = "storage_entries"

    key = Column(String(255), primary_key=True, index=True)
    value = Column(Text, nullable=False)

    # Timestamps
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<StorageEntry {self.key}: {len(self.value or '')} chars>"
