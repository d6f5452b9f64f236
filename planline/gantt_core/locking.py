"""Per-project shared/exclusive locks."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class ReadWriteLock:
    """Many readers or one writer. Waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class ProjectLockRegistry:
    """One ReadWriteLock per project id, created on first use.

    Entries are never dropped: a caller still waiting on a lock must share it
    with every later caller for the same id.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[int, ReadWriteLock] = {}
        # Serialises project create/rename so name uniqueness checks cannot race.
        self.catalog = threading.Lock()

    def get(self, project_id: int) -> ReadWriteLock:
        with self._guard:
            lock = self._locks.get(project_id)
            if lock is None:
                lock = ReadWriteLock()
                self._locks[project_id] = lock
            return lock

    def read(self, project_id: int):
        return self.get(project_id).read()

    def write(self, project_id: int):
        return self.get(project_id).write()
