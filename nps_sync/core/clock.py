"""
Clock abstraction for NPS Sync.

Every time-dependent decision (staleness, period filters, fetch windows)
reads the time through a clock so tests can pin it.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Source of the current time."""

    @abstractmethod
    def now(self) -> datetime:
        """
        Current time.

        Returns:
            Aware datetime in UTC.
        """
        pass


class SystemClock(Clock):
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """
    Clock frozen at a given instant.

    Naive datetimes are taken as UTC.
    """

    def __init__(self, current: datetime):
        self.current = current if current.tzinfo else current.replace(tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        """Move the clock forward by a timedelta expressed as keyword arguments."""
        self.current = self.current + timedelta(**kwargs)
        return self.current
