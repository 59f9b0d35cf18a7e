"""
Pure domain layer: enumerations, DTOs and the injectable clock.

No ORM, no database, no I/O.
"""

from payroll_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = ["Clock", "DeterministicClock", "SystemClock"]
