"""
BaseService -- abstract base for kernel services.

Kernel services receive the caller's ``Session`` and only ever
``flush()``.  Commit and rollback belong to the orchestrating service in
``payroll_services`` (or the test), so several kernel calls can form one
atomic unit: a payroll result and its loan deductions commit together or
not at all.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from payroll_kernel.db.base import Base
from payroll_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Contract:
        Uses ``session.flush()`` inside the caller's transaction.

    Non-goals:
        Does NOT commit or roll back.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()
