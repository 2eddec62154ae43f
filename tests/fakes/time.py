"""Fake Time implementation for testing.

FakeTime is an in-memory clock. Tests move it forward with
``time.advance(timedelta(...))`` instead of waiting.
"""

import threading
from datetime import UTC, datetime, timedelta

from shipyard.core.time.abc import Time

DEFAULT_START = datetime(2026, 10, 17, 12, 0, 0, tzinfo=UTC)


class FakeTime(Time):
    """Fake clock that never reads the system time.

    This class has NO public setup methods. All state is provided via constructor
    or captured during execution.

    Every ``now()`` call advances the clock by ``tick`` so successive events get
    distinct, increasing timestamps.
    """

    def __init__(self, start: datetime = DEFAULT_START, tick: timedelta | None = None) -> None:
        """Create FakeTime starting at ``start``.

        Args:
            start: Timezone-aware time returned by the first ``now()`` call
            tick: Amount the clock advances after each ``now()`` call (default 1s)
        """
        self._current = start
        self._tick = timedelta(seconds=1) if tick is None else tick
        self._lock = threading.Lock()

    def advance(self, delta: timedelta) -> None:
        """Move the clock forward by ``delta``, as if that much time had passed."""
        with self._lock:
            self._current += delta

    def now(self) -> datetime:
        with self._lock:
            current = self._current
            self._current += self._tick
            return current
