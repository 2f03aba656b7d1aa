"""
Reader-Writer Lock - Shared reads, exclusive writes

WHAT: Writer-preferring reader-writer lock built on threading.Condition
WHERE: neurograph/runtime/memory/locks.py - concurrency primitives
WHO: MemoryGraphEngine guarding the graph and the embedding networks
TIME: Uncontended acquire ~1us

Readers proceed concurrently while no writer holds or waits for the lock.
A waiting writer blocks new readers so training cannot be starved by a
stream of searches. Acquisition with a timeout raises ``LockError``
(retryable) instead of returning False.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from ...errors import LockError


class ReadWriteLock:
    """Non-reentrant reader-writer lock."""

    def __init__(self, name: str = "rwlock") -> None:
        self.name = name
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def _wait(self, predicate, timeout: Optional[float], mode: str) -> None:
        deadline = None if timeout is None else time.monotonic() + timeout
        while not predicate():
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                raise LockError(f"Timed out acquiring {mode} lock on {self.name} after {timeout}s")
            self._cond.wait(remaining)

    def acquire_read(self, timeout: Optional[float] = None) -> None:
        with self._cond:
            self._wait(lambda: not self._writer and self._writers_waiting == 0, timeout, "read")
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError(f"release_read on {self.name} without a matching acquire")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self, timeout: Optional[float] = None) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                self._wait(lambda: not self._writer and self._readers == 0, timeout, "write")
            finally:
                self._writers_waiting -= 1
                # readers held back by this writer may proceed if it gave up
                self._cond.notify_all()
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            if not self._writer:
                raise RuntimeError(f"release_write on {self.name} without a matching acquire")
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read(self, timeout: Optional[float] = None) -> Iterator[None]:
        self.acquire_read(timeout)
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self, timeout: Optional[float] = None) -> Iterator[None]:
        self.acquire_write(timeout)
        try:
            yield
        finally:
            self.release_write()

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def write_locked(self) -> bool:
        return self._writer


__all__ = ["ReadWriteLock"]
