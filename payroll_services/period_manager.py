"""
payroll_services.period_manager -- transactional payroll period lifecycle.

Responsibility:
    Wraps PeriodService transitions with the period-scoped lock and owns
    the commit.  Each public call is one unit of work: the status change
    and its audit entry commit together or not at all.

Architecture position:
    Services -- owns commit/rollback.  Shares its LockRegistry with
    PayrollCalculator so a lock transition and the final write of a
    calculation for the same period are serialized.

Invariants enforced:
    - DRAFT -> APPROVED -> LOCKED; LOCKED -> DRAFT only through ``reopen``
      with an actor and a reason.
    - Concurrent transitions: exactly one caller succeeds; the others get
      ConflictingTransitionError and their transaction is rolled back.

Failure modes:
    - Everything PeriodService raises, after rollback.
"""

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.dtos import PayrollPeriodInfo, PeriodAuditEntryInfo
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.services.period_service import PeriodService
from payroll_services.locks import LockRegistry, default_registry

logger = get_logger("services.period_manager")


class PeriodManager:
    """
    Contract:
        Every mutating method commits on success and rolls back before
        re-raising on failure.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        locks: LockRegistry | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._locks = locks or default_registry
        self._periods = PeriodService(session, self._clock)

    @property
    def period_service(self) -> PeriodService:
        return self._periods

    def create_period(
        self,
        period_code: str,
        organization_id: str,
        start_date: date,
        end_date: date,
        pay_month: int,
        pay_year: int,
        actor_id: UUID,
    ) -> PayrollPeriodInfo:
        try:
            period = self._periods.create_period(
                period_code,
                organization_id,
                start_date,
                end_date,
                pay_month,
                pay_year,
                actor_id,
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return period

    def approve(self, period_code: str, actor_id: UUID) -> PayrollPeriodInfo:
        return self._run(period_code, actor_id, self._periods.approve_period, period_code, actor_id)

    def lock(self, period_code: str, actor_id: UUID) -> PayrollPeriodInfo:
        return self._run(period_code, actor_id, self._periods.lock_period, period_code, actor_id)

    def reopen(self, period_code: str, actor_id: UUID, reason: str) -> PayrollPeriodInfo:
        """Unlock a LOCKED period back to DRAFT, recording who and why."""
        return self._run(
            period_code, actor_id, self._periods.reopen_period, period_code, actor_id, reason
        )

    def get_period(self, period_code: str) -> PayrollPeriodInfo:
        return self._periods.get_period(period_code)

    def audit_trail(self, period_code: str) -> list[PeriodAuditEntryInfo]:
        return self._periods.audit_trail(period_code)

    def _run(self, period_code: str, actor_id: UUID, operation, *args) -> PayrollPeriodInfo:
        with LogContext.bind(period_code=period_code, actor_id=str(actor_id)):
            with self._locks.period_lock(period_code):
                try:
                    period = operation(*args)
                    self._session.commit()
                except Exception:
                    self._session.rollback()
                    raise
            logger.debug(
                "period_transition_committed",
                extra={"period_code": period_code, "status": period.status.value},
            )
            return period
