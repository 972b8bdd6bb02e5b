"""
Error taxonomy for NPS Sync.

None of these reach the caller of the sync entry points; they are raised by
the lower layers and caught, logged and absorbed where the data is merged.
"""

from typing import Any, Dict, Optional


class NpsSyncError(Exception):
    """
    Base exception for NPS Sync errors.

    Args:
        message: Human readable description.
        context: Arbitrary key-value context for logging.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class TransientFetchError(NpsSyncError):
    """Network failure, timeout or non-2xx response from the remote API."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.status = status
        super().__init__(message, context)


class PersistenceError(NpsSyncError):
    """Durable storage could not be read or written."""


class MalformedDataError(NpsSyncError):
    """A remote payload or row does not have the expected shape."""
