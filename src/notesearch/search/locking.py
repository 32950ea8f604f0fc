"""Reader/writer lock guarding a SearchEngine's index and documents."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class ReadWriteLock:
    """
    Lock shared by many readers or held by one writer.

    Phase-fair: a waiting writer holds back new readers, and a writer
    releasing the lock admits every reader queued behind it before the next
    writer runs. Neither a steady stream of searches nor a busy sync can
    starve the other side.

    Neither side is reentrant: a thread holding the lock must not acquire
    it again.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0  # Readers holding the lock
        self._writer = False
        self._writers_waiting = 0
        self._readers_waiting = 0
        self._admitted = 0  # Readers let in by the last writer, not yet inside
        self._generation = 0  # Bumped each time queued readers are admitted

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            if self._writer or self._writers_waiting:
                self._readers_waiting += 1
                generation = self._generation
                while self._generation == generation:
                    self._cond.wait()
                self._admitted -= 1
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers or self._admitted:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                if self._readers_waiting:
                    self._admitted += self._readers_waiting
                    self._readers_waiting = 0
                    self._generation += 1
                self._cond.notify_all()

    @property
    def readers(self) -> int:
        """Number of threads currently reading."""
        return self._readers
