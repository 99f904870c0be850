"""Shared/exclusive locking for table row stores.

Each row store guards its file and in-memory indexes with one
ReadWriteLock:
    - SHARED (S): point lookups and full scans; many at once
    - EXCLUSIVE (X): insert, delete, update, drop and index rebuild

A mutation reads the indexes, writes the file, then updates the indexes as
one unit, so at most one may be in flight per table and no reader may
observe it half-applied.

Waiting writers block new readers, so a steady stream of scans cannot
starve mutations.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from enum import Enum
from typing import Iterator


class LockMode(Enum):
    """Lock modes supported by ReadWriteLock."""

    SHARED = "S"
    EXCLUSIVE = "X"


class LockTimeoutError(Exception):
    """Lock could not be acquired within the timeout."""

    pass


class ReadWriteLock:
    """Writer-preferring readers/writer lock.

    Not reentrant: a thread holding the exclusive lock must not request it
    (or the shared lock) again.

    Example:
        >>> lock = ReadWriteLock()
        >>> with lock.shared():
        ...     pass
        >>> with lock.exclusive():
        ...     pass
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @property
    def readers(self) -> int:
        """Number of threads currently holding the shared lock."""
        with self._cond:
            return self._readers

    @property
    def is_write_locked(self) -> bool:
        with self._cond:
            return self._writer

    def acquire(self, mode: LockMode, timeout: float | None = None) -> None:
        """Acquire the lock in the given mode.

        Args:
            mode: SHARED or EXCLUSIVE.
            timeout: Max seconds to wait (None = forever).

        Raises:
            LockTimeoutError: If the timeout expires first.
        """
        with self._cond:
            if mode is LockMode.SHARED:
                granted = self._cond.wait_for(
                    lambda: not self._writer and self._writers_waiting == 0, timeout
                )
                if not granted:
                    raise LockTimeoutError("Timed out waiting for shared lock")
                self._readers += 1
                return

            self._writers_waiting += 1
            try:
                granted = self._cond.wait_for(
                    lambda: not self._writer and self._readers == 0, timeout
                )
            finally:
                self._writers_waiting -= 1
            if not granted:
                # Readers held back by this waiter may proceed again
                self._cond.notify_all()
                raise LockTimeoutError("Timed out waiting for exclusive lock")
            self._writer = True

    def release(self, mode: LockMode) -> None:
        """Release a lock previously acquired in the given mode."""
        with self._cond:
            if mode is LockMode.SHARED:
                if self._readers == 0:
                    raise RuntimeError("Shared lock released but not held")
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()
            else:
                if not self._writer:
                    raise RuntimeError("Exclusive lock released but not held")
                self._writer = False
                self._cond.notify_all()

    @contextmanager
    def shared(self, timeout: float | None = None) -> Iterator[None]:
        """Hold the shared lock for the duration of the block."""
        self.acquire(LockMode.SHARED, timeout)
        try:
            yield
        finally:
            self.release(LockMode.SHARED)

    @contextmanager
    def exclusive(self, timeout: float | None = None) -> Iterator[None]:
        """Hold the exclusive lock for the duration of the block."""
        self.acquire(LockMode.EXCLUSIVE, timeout)
        try:
            yield
        finally:
            self.release(LockMode.EXCLUSIVE)
