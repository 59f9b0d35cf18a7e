"""
payroll_services.locks -- in-process lock registry for payroll writers.

Two lock families:

    period lock        one per period_code; held around status transitions
                       and around the final "re-check status, write result"
                       step of every calculation.
    calculation lock   one per (period_code, employee_id); held for the
                       whole calculation of that pair so two workers never
                       compute and write the same result concurrently.

Ordering: a calculation lock may be held while taking a period lock, never
the reverse.  On PostgreSQL the period row is additionally taken with
SELECT ... FOR UPDATE, which covers writers in other processes.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class LockRegistry:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._period_locks: dict[str, threading.RLock] = {}
        self._calculation_locks: dict[tuple[str, str], threading.Lock] = {}

    def _period(self, period_code: str) -> threading.RLock:
        with self._guard:
            lock = self._period_locks.get(period_code)
            if lock is None:
                lock = self._period_locks[period_code] = threading.RLock()
            return lock

    def _calculation(self, period_code: str, employee_id: str) -> threading.Lock:
        key = (period_code, employee_id)
        with self._guard:
            lock = self._calculation_locks.get(key)
            if lock is None:
                lock = self._calculation_locks[key] = threading.Lock()
            return lock

    @contextmanager
    def period_lock(self, period_code: str) -> Iterator[None]:
        lock = self._period(period_code)
        with lock:
            yield

    @contextmanager
    def calculation_lock(self, period_code: str, employee_id: str) -> Iterator[None]:
        lock = self._calculation(period_code, employee_id)
        with lock:
            yield


# Shared by every service that is not handed its own registry.
default_registry = LockRegistry()
