# app/services/slot_lock.py
"""
SlotLock Registry

Short-lived advisory reservations keyed by (mentor_id, start instant). A lock
only narrows the window between "check for overlapping bookings" and "commit
the booking row"; the durable overlap check in booking_service still decides.

The lock table sits behind SlotLockStore so a shared key-value store with TTL
can replace the in-process dict in multi-process deployments.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from contextlib import contextmanager
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple

from app.config import settings
from app.utils.timeutils import to_utc_naive

logger = logging.getLogger(__name__)

SlotKey = Tuple[int, str]
Clock = Callable[[], float]


def slot_key(mentor_id: int, start_time: datetime) -> SlotKey:
    """Normalize a slot to (mentor_id, naive-UTC ISO start)."""
    return (int(mentor_id), to_utc_naive(start_time).isoformat())


class SlotLockStore(Protocol):
    def get(self, key: SlotKey) -> Optional[float]: ...

    def put(self, key: SlotKey, expires_at: float) -> None: ...

    def delete(self, key: SlotKey) -> bool: ...

    def items(self) -> Iterable[Tuple[SlotKey, float]]: ...


class InMemorySlotLockStore:
    """Process-local lock table. Not synchronized; the registry holds the mutex."""

    def __init__(self) -> None:
        self._locks: Dict[SlotKey, float] = {}

    def get(self, key: SlotKey) -> Optional[float]:
        return self._locks.get(key)

    def put(self, key: SlotKey, expires_at: float) -> None:
        self._locks[key] = expires_at

    def delete(self, key: SlotKey) -> bool:
        return self._locks.pop(key, None) is not None

    def items(self) -> List[Tuple[SlotKey, float]]:
        return list(self._locks.items())

    def __len__(self) -> int:
        return len(self._locks)


class SlotLockRegistry:
    def __init__(
        self,
        store: Optional[SlotLockStore] = None,
        clock: Clock = time.monotonic,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        self._store = store if store is not None else InMemorySlotLockStore()
        self._clock = clock
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.SLOT_LOCK_TTL_SECONDS
        self._mutex = threading.Lock()
        self._mentor_guards: Dict[int, threading.Lock] = {}

    def acquire(self, mentor_id: int, start_time: datetime) -> bool:
        """Take the slot for ttl_seconds. False if someone else holds a live lock."""
        key = slot_key(mentor_id, start_time)
        with self._mutex:
            now = self._clock()
            expires_at = self._store.get(key)
            if expires_at is not None and expires_at > now:
                logger.debug("Slot lock busy: mentor=%s start=%s", key[0], key[1])
                return False
            self._store.put(key, now + self.ttl_seconds)
            return True

    def release(self, mentor_id: int, start_time: datetime) -> None:
        key = slot_key(mentor_id, start_time)
        with self._mutex:
            if self._store.delete(key):
                logger.debug("Slot lock released: mentor=%s start=%s", key[0], key[1])

    def is_locked(self, mentor_id: int, start_time: datetime) -> bool:
        key = slot_key(mentor_id, start_time)
        with self._mutex:
            expires_at = self._store.get(key)
            return expires_at is not None and expires_at > self._clock()

    @contextmanager
    def mentor_guard(self, mentor_id: int) -> Iterator[None]:
        """
        Hold the per-mentor mutex for the enclosed overlap check and insert.

        Slot locks are keyed by start instant, so two different but overlapping
        starts never contend on them. This guard serializes every create for one
        mentor in this process, including on SQLite where FOR UPDATE is ignored.
        """
        with self._mutex:
            guard = self._mentor_guards.setdefault(int(mentor_id), threading.Lock())
        with guard:
            yield

    def sweep(self) -> int:
        """Drop every lock whose TTL has elapsed. Returns the number removed."""
        with self._mutex:
            now = self._clock()
            expired = [key for key, expires_at in self._store.items() if expires_at <= now]
            for key in expired:
                self._store.delete(key)
        if expired:
            logger.info("Swept %d expired slot lock(s)", len(expired))
        return len(expired)


class BackgroundSweeper:
    """Daemon thread running periodic maintenance tasks until stopped."""

    def __init__(self, tasks: List[Callable[[], object]], interval_seconds: Optional[float] = None) -> None:
        self.tasks = list(tasks)
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None else settings.SLOT_LOCK_SWEEP_INTERVAL_SECONDS
        )
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> None:
        for task in self.tasks:
            try:
                task()
            except Exception:
                logger.exception("Background sweep task %r failed", getattr(task, "__name__", task))

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self.run_once()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="slot-lock-sweeper", daemon=True)
        self._thread.start()
        logger.info("Background sweeper started (interval=%ss)", self.interval_seconds)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None


_registry: Optional[SlotLockRegistry] = None
_registry_lock = threading.Lock()


def get_slot_lock_registry() -> SlotLockRegistry:
    """Process-wide registry; also usable as a FastAPI dependency."""
    global _registry
    if _registry is not None:
        return _registry
    with _registry_lock:
        if _registry is None:
            _registry = SlotLockRegistry()
        return _registry
