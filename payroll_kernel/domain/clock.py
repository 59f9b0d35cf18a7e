"""
Clock -- injectable time source.

Responsibility:
    Every timestamp the payroll engine records (result generation, period
    lock, audit entries, loan deductions, approval decisions) comes from an
    injected Clock so that a calculation can be replayed and compared.

Architecture position:
    Kernel > Domain -- no I/O apart from SystemClock.

Failure modes:
    - DeterministicClock.set_time rejects naive datetimes.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        Services receive a Clock through their constructor and never call
        ``datetime.now()`` or ``date.today()`` themselves.

    Guarantees:
        ``now()`` returns a timezone-aware UTC ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        """Calendar date of ``now()`` in UTC."""
        return self.now().date()


class SystemClock(Clock):
    """Production clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value on repeated calls until ``advance()``,
    ``tick()`` or ``set_time()`` moves it.
    """

    DEFAULT_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __init__(self, fixed_time: datetime | None = None):
        self._current = self._aware(fixed_time or self.DEFAULT_TIME)

    @staticmethod
    def _aware(value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("DeterministicClock requires a timezone-aware datetime")
        return value.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._current

    def set_time(self, value: datetime) -> None:
        self._current = self._aware(value)

    def advance(self, seconds: int = 1) -> None:
        self._current = self._current + timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Advance by 1 second and return the new time."""
        self.advance(1)
        return self._current
