"""Single-writer lock for mutating operations on a project."""

import fcntl
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO

from shipyard.core.errors import LockUnavailable

logger = logging.getLogger(__name__)


class WriteLock:
    """Exclusive advisory lock on ``.shipyard/shipyard.lock``.

    Registry, config and version mutations assume a single orchestrating
    process per project. The lock is taken non-blocking: a second process
    gets ``LockUnavailable`` immediately instead of queueing behind a
    long-running deployment.

    The lock is reentrant within one ``WriteLock`` instance, so a deployment
    run that holds it can still call ``ArtifactRegistry.set``.
    """

    def __init__(self, lock_path: Path) -> None:
        self.lock_path = lock_path
        self._handle: IO[str] | None = None
        self._depth = 0
        self._operation: str | None = None

    @property
    def held(self) -> bool:
        return self._depth > 0

    @contextmanager
    def hold(self, operation: str) -> Iterator[None]:
        """Hold the lock for the duration of the block.

        Args:
            operation: Human-readable name recorded in the lock file

        Raises:
            LockUnavailable: If another process holds the lock
        """
        if self._depth > 0:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self._acquire(operation)
        self._depth = 1
        try:
            yield
        finally:
            self._depth = 0
            self._release()

    def _acquire(self, operation: str) -> None:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(self.lock_path, "a+", encoding="utf-8")
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            handle.seek(0)
            holder = handle.read().strip() or "unknown operation"
            handle.close()
            raise LockUnavailable(
                f"Another shipyard process holds {self.lock_path} ({holder}); "
                "wait for it to finish before retrying"
            ) from None
        handle.seek(0)
        handle.truncate()
        handle.write(f"pid={os.getpid()} operation={operation}\n")
        handle.flush()
        self._handle = handle
        self._operation = operation
        logger.debug("Acquired write lock for %s", operation)

    def _release(self) -> None:
        if self._handle is None:
            return
        self._handle.seek(0)
        self._handle.truncate()
        fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
        self._handle.close()
        self._handle = None
        logger.debug("Released write lock for %s", self._operation)
        self._operation = None
