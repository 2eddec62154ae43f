"""Clock abstraction for testing.

Backup ids, changelog timestamps, retention cleanup and deployment reports all
read the clock through this interface so tests can pin and advance time.
"""

from abc import ABC, abstractmethod
from datetime import datetime


class Time(ABC):
    """Abstract time operations for dependency injection."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        ...
