"""Shared/exclusive lock guarding the procedure map."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from threading import Condition, Lock


class ReadWriteLock:
    """Writer-preferring readers/writer lock.

    Any number of threads may hold shared access at once. Exclusive access waits
    for all shared holders to release, and while a writer is waiting no new
    shared holder is admitted.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._changed = Condition(self._lock)
        self._readers = 0
        self._writer_active = False
        self._writers_waiting = 0

    def acquire_shared(self) -> None:
        with self._changed:
            while self._writer_active or self._writers_waiting:
                self._changed.wait()
            self._readers += 1

    def release_shared(self) -> None:
        with self._changed:
            if self._readers < 1:
                raise RuntimeError("release_shared called without shared access held")
            self._readers -= 1
            if self._readers == 0:
                self._changed.notify_all()

    def acquire_exclusive(self) -> None:
        with self._changed:
            self._writers_waiting += 1
            try:
                while self._writer_active or self._readers:
                    self._changed.wait()
            except BaseException:
                self._writers_waiting -= 1
                self._changed.notify_all()
                raise
            self._writers_waiting -= 1
            self._writer_active = True

    def release_exclusive(self) -> None:
        with self._changed:
            if not self._writer_active:
                raise RuntimeError("release_exclusive called without exclusive access held")
            self._writer_active = False
            self._changed.notify_all()

    @contextmanager
    def shared(self) -> Iterator[None]:
        """Hold shared access for the duration of the block."""
        self.acquire_shared()
        try:
            yield
        finally:
            self.release_shared()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold exclusive access for the duration of the block."""
        self.acquire_exclusive()
        try:
            yield
        finally:
            self.release_exclusive()

    @property
    def readers(self) -> int:
        """Return the number of current shared holders."""
        with self._lock:
            return self._readers

    @property
    def writers_waiting(self) -> int:
        """Return the number of threads queued for exclusive access."""
        with self._lock:
            return self._writers_waiting
