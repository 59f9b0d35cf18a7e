"""
payroll_services.payroll_run_orchestrator -- whole-period payroll run.

Responsibility:
    Calculate every employee of a period concurrently and report one outcome
    per employee.

Architecture position:
    Services -- stateless over a ``sessionmaker``.  Each worker opens its own
    Session and PayrollCalculator; workers share the LockRegistry so the
    per-employee and per-period locks hold across them.

Invariants enforced:
    - An employee's failure does not stop the others; it is recorded in the
      report with the exception and logged at ERROR.
    - Outcomes are reported in employee-id order regardless of completion
      order.
"""

from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from payroll_config.schema import OrganizationSettings
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.dtos import PayrollResultInfo
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.services.employee_directory import EmployeeDirectory
from payroll_services.locks import LockRegistry, default_registry
from payroll_services.payroll_calculator import PayrollCalculator

logger = get_logger("services.payroll_run")

DEFAULT_MAX_WORKERS = 4


@dataclass(frozen=True)
class EmployeeOutcome:
    employee_id: str
    result: PayrollResultInfo | None = None
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class PayrollRunReport:
    period_code: str
    outcomes: tuple[EmployeeOutcome, ...]

    @property
    def succeeded(self) -> tuple[EmployeeOutcome, ...]:
        return tuple(o for o in self.outcomes if o.succeeded)

    @property
    def failed(self) -> tuple[EmployeeOutcome, ...]:
        return tuple(o for o in self.outcomes if not o.succeeded)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed


class PayrollRunOrchestrator:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        settings: OrganizationSettings,
        clock: Clock | None = None,
        locks: LockRegistry | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._session_factory = session_factory
        self._settings = settings
        self._clock = clock or SystemClock()
        self._locks = locks or default_registry
        self._max_workers = max_workers

    def run_period(
        self,
        period_code: str,
        actor_id: UUID,
        employee_ids: Iterable[str] | None = None,
    ) -> PayrollRunReport:
        """Calculate ``employee_ids`` (default: every employee) for ``period_code``."""
        if employee_ids is None:
            with self._session_factory() as session:
                employee_ids = [
                    e.employee_id for e in EmployeeDirectory(session, self._clock).list_employees()
                ]
        targets = sorted(set(employee_ids))

        with LogContext.bind(period_code=period_code, actor_id=str(actor_id)):
            logger.info(
                "payroll_run_started",
                extra={"period_code": period_code, "employee_count": len(targets)},
            )
            with ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix="payroll-run"
            ) as pool:
                outcomes = list(
                    pool.map(lambda eid: self._calculate_one(period_code, eid, actor_id), targets)
                )

            report = PayrollRunReport(period_code=period_code, outcomes=tuple(outcomes))
            logger.info(
                "payroll_run_completed",
                extra={
                    "period_code": period_code,
                    "succeeded": len(report.succeeded),
                    "failed": len(report.failed),
                },
            )
            return report

    def _calculate_one(self, period_code: str, employee_id: str, actor_id: UUID) -> EmployeeOutcome:
        with self._session_factory() as session:
            calculator = PayrollCalculator(session, self._settings, self._clock, self._locks)
            try:
                result = calculator.calculate(period_code, employee_id, actor_id)
            except Exception as exc:
                logger.error(
                    "payroll_run_employee_failed",
                    extra={
                        "period_code": period_code,
                        "employee_id": employee_id,
                        "error_code": getattr(exc, "code", type(exc).__name__),
                        "error": str(exc),
                    },
                )
                return EmployeeOutcome(employee_id=employee_id, error=exc)
            return EmployeeOutcome(employee_id=employee_id, result=result)
