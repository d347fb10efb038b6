# Overview: Service-layer operations for concurrency; per-key mutual exclusion, row locks and retries.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Hashable, Iterable

from sqlalchemy.exc import OperationalError

from ..extensions import db


class LockTimeoutError(Exception):
    """Raised when a keyed lock cannot be acquired within the timeout."""

    def __init__(self, key):
        super().__init__(f"timed out waiting for lock {key!r}")
        self.key = key


class KeyedLock:
    """
    Registry of mutexes, one per key.

    Holders of different keys never block each other. Locks are created
    lazily and kept for the life of the registry.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def acquire(self, key: Hashable, timeout: float | None = None) -> None:
        lock = self._lock_for(key)
        acquired = lock.acquire() if timeout is None else lock.acquire(timeout=timeout)
        if not acquired:
            raise LockTimeoutError(key)

    def release(self, key: Hashable) -> None:
        self._lock_for(key).release()

    def locked(self, key: Hashable) -> bool:
        return self._lock_for(key).locked()

    @contextmanager
    def hold(self, keys: Iterable[Hashable], timeout: float | None = None):
        """
        Hold the locks for all keys, acquired in sorted order.

        Sorted acquisition keeps two multi-key holders from deadlocking.
        """
        ordered = sorted(set(keys))
        held = []
        try:
            for key in ordered:
                self.acquire(key, timeout=timeout)
                held.append(key)
            yield ordered
        finally:
            for key in reversed(held):
                self.release(key)


# Process-wide registries
product_lock_registry = KeyedLock()
detection_lock = threading.Lock()


@contextmanager
def product_locks(product_ids: Iterable[int], timeout: float | None = None):
    """Serialize balance mutations per product id."""
    with product_lock_registry.hold(product_ids, timeout=timeout) as held:
        yield held


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(
    func,
    *,
    attempts: int = 3,
    backoff_base: float = 0.1,
    retry_on: tuple[type[BaseException], ...] = (OperationalError,),
):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Only for operations that are safe to run twice (detection passes,
    acknowledgment). Movement submission is not idempotent and never retries.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
