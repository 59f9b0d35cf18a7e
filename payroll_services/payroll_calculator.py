"""
payroll_services.payroll_calculator -- per-employee payroll calculation.

Responsibility:
    Gather one employee's inputs for a period (salary assignments,
    attendance totals, loan installment due), run the pure earnings engine,
    and persist the PayrollResult together with the loan deductions it
    implies.

Architecture position:
    Services -- owns commit/rollback.  Composes the kernel services and
    ``payroll_engines.earnings.calculate_payroll``.

Invariants enforced:
    - One calculation per (period_code, employee_id) at a time: the whole
      call runs under the calculation lock.
    - Compute first, write last: inputs are read and the result computed
      without writing anything.  The status is re-checked under the period
      lock immediately before writing, and the write commits before that
      lock is released; a period LOCKED in the meantime discards the
      computation with PeriodLockedError.
    - Negative net pay is rejected before any write; no loan installment is
      consumed for a rejected result.
    - Identical inputs give an identical row: when the input fingerprint
      matches the stored one, the stored row (generated_at included) is
      left untouched.
    - The result and its loan deductions commit in one transaction, and the
      stored loan_deduction is the sum the ledger actually applied: when the
      loan moved after the preview, the result is recomputed with the applied
      amount before it is written.

Failure modes:
    - PeriodNotFoundError, EmployeeNotFoundError.
    - PeriodLockedError when the period is (or becomes) LOCKED.
    - NegativeNetPayError when deductions exceed gross.
    - DuplicateLoanDeductionError if another process applied the same
      installment first.

Audit relevance:
    ``payroll_result_written`` / ``payroll_result_unchanged`` are logged with
    the input fingerprint; the engine call itself emits
    PAYROLL_ENGINE_TRACE.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_config.schema import OrganizationSettings
from payroll_engines.earnings import PayrollComputation, calculate_payroll
from payroll_engines.tracer import compute_input_fingerprint
from payroll_kernel.db.types import ZERO, round_money
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.dtos import PayrollPeriodInfo, PayrollResultInfo
from payroll_kernel.exceptions import NegativeNetPayError, PeriodLockedError
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.models.payroll_result import PayrollResult
from payroll_kernel.services.attendance_service import AttendanceService
from payroll_kernel.services.effective_dated_store import EffectiveDatedStore
from payroll_kernel.services.employee_directory import EmployeeDirectory
from payroll_kernel.services.loan_tracker import LoanTracker
from payroll_kernel.services.period_service import PeriodService
from payroll_kernel.services.salary_catalog import SalaryCatalog
from payroll_services.locks import LockRegistry, default_registry

logger = get_logger("services.payroll_calculator")

# Inputs that determine a stored result.
RESULT_FINGERPRINT_FIELDS = (
    "period_start",
    "period_end",
    "components",
    "assignments",
    "basic_component_id",
    "attendance",
    "deductible_leave_codes",
    "overtime_multipliers",
    "standard_monthly_hours",
    "proration_policy",
    "loan_deduction",
)


class PayrollCalculator:
    """
    Contract:
        ``calculate`` commits on success and rolls back before re-raising.
        Read methods never write.
    """

    def __init__(
        self,
        session: Session,
        settings: OrganizationSettings,
        clock: Clock | None = None,
        locks: LockRegistry | None = None,
    ) -> None:
        self._session = session
        self._settings = settings
        self._clock = clock or SystemClock()
        self._locks = locks or default_registry
        self._periods = PeriodService(
            session, self._clock, organization_id=settings.organization_id
        )
        self._catalog = SalaryCatalog(session, self._clock)
        self._directory = EmployeeDirectory(session, self._clock)
        self._store = EffectiveDatedStore(session, self._clock, period_service=self._periods)
        self._attendance = AttendanceService(session, self._clock, period_service=self._periods)
        self._loans = LoanTracker(session, self._clock, period_service=self._periods)

    def calculate(self, period_code: str, employee_id: str, actor_id: UUID) -> PayrollResultInfo:
        """Compute and store the result of ``employee_id`` for ``period_code``."""
        with LogContext.bind(
            period_code=period_code, employee_id=employee_id, actor_id=str(actor_id)
        ):
            with self._locks.calculation_lock(period_code, employee_id):
                try:
                    result = self._calculate(period_code, employee_id, actor_id)
                except Exception:
                    self._session.rollback()
                    raise
                return result

    def get_result(self, period_code: str, employee_id: str) -> PayrollResultInfo | None:
        row = self._find(period_code, employee_id)
        return row.to_dto() if row is not None else None

    def results_for_period(self, period_code: str) -> list[PayrollResultInfo]:
        rows = self._session.execute(
            select(PayrollResult)
            .where(PayrollResult.period_code == period_code)
            .order_by(PayrollResult.employee_id)
        ).scalars()
        return [row.to_dto() for row in rows]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _calculate(self, period_code: str, employee_id: str, actor_id: UUID) -> PayrollResultInfo:
        period = self._periods.get_period(period_code)
        if period.is_locked:
            logger.warning(
                "locked_period_write_rejected",
                extra={"period_code": period_code, "operation": "write payroll result"},
            )
            raise PeriodLockedError(period_code, "write payroll result")

        inputs = self._gather_inputs(period, employee_id)
        computation = calculate_payroll(**inputs)
        self._reject_negative(period_code, employee_id, computation)

        with self._locks.period_lock(period_code):
            self._periods.require_results_writable(period_code)
            result = self._write(period, employee_id, inputs, computation, actor_id)
            self._session.commit()
        return result

    def _reject_negative(
        self, period_code: str, employee_id: str, computation: PayrollComputation
    ) -> None:
        if not computation.is_negative:
            return
        logger.warning(
            "negative_net_pay_rejected",
            extra={
                "period_code": period_code,
                "employee_id": employee_id,
                "gross": computation.gross,
                "deductions": computation.deductions,
            },
        )
        raise NegativeNetPayError(
            period_code, employee_id, computation.gross, computation.deductions
        )

    def _gather_inputs(self, period: PayrollPeriodInfo, employee_id: str) -> dict:
        employee = self._directory.get(employee_id)
        return {
            "period_start": period.start_date,
            "period_end": period.end_date,
            "components": self._catalog.all(),
            "assignments": self._store.assignments_in_range(
                employee_id, period.start_date, period.end_date
            ),
            "basic_component_id": employee.basic_component_id,
            "attendance": self._attendance.period_totals(
                employee_id, period.start_date, period.end_date
            ),
            "deductible_leave_codes": self._settings.deductible_leave_codes,
            "overtime_multipliers": self._settings.overtime.multipliers,
            "standard_monthly_hours": self._settings.standard_monthly_hours,
            "proration_policy": self._settings.proration_policy,
            "loan_deduction": self._loans.preview_deductions(employee_id, period),
        }

    def _write(
        self,
        period: PayrollPeriodInfo,
        employee_id: str,
        inputs: dict,
        computation: PayrollComputation,
        actor_id: UUID,
    ) -> PayrollResultInfo:
        fingerprint = compute_input_fingerprint(RESULT_FINGERPRINT_FIELDS, inputs)
        row = self._find(period.period_code, employee_id)
        if row is not None and row.input_fingerprint == fingerprint:
            logger.info(
                "payroll_result_unchanged",
                extra={"period_code": period.period_code, "input_fingerprint": fingerprint},
            )
            return row.to_dto()

        applied = self._loans.apply_for_employee(employee_id, period, actor_id)
        applied_total = round_money(sum((d.amount for d in applied), ZERO))
        if applied_total != computation.loan_deduction:
            # Another period of this employee moved the loan after the preview.
            logger.warning(
                "loan_deduction_changed_during_calculation",
                extra={
                    "period_code": period.period_code,
                    "employee_id": employee_id,
                    "previewed": computation.loan_deduction,
                    "applied": applied_total,
                },
            )
            inputs = {**inputs, "loan_deduction": applied_total}
            computation = calculate_payroll(**inputs)
            fingerprint = compute_input_fingerprint(RESULT_FINGERPRINT_FIELDS, inputs)
            self._reject_negative(period.period_code, employee_id, computation)

        info = PayrollResultInfo(
            period_code=period.period_code,
            employee_id=employee_id,
            days_in_period=computation.days_in_period,
            days_worked=computation.days_worked,
            fixed_amount=computation.fixed_amount,
            variable_amount=computation.variable_amount,
            overtime_amount=computation.overtime_amount,
            gross=computation.gross,
            unpaid_leave_deduction=computation.unpaid_leave_deduction,
            loan_deduction=computation.loan_deduction,
            other_deductions=computation.other_deductions,
            deductions=computation.deductions,
            net=computation.net,
            input_fingerprint=fingerprint,
            generated_at=self._clock.now(),
            earnings=computation.earnings,
        )
        created = row is None
        if created:
            row = PayrollResult(
                period_code=period.period_code,
                employee_id=employee_id,
                created_by_id=actor_id,
            )
            self._session.add(row)
        else:
            row.updated_by_id = actor_id
        row.apply(info)
        self._session.flush()

        logger.info(
            "payroll_result_written",
            extra={
                "period_code": period.period_code,
                "employee_id": employee_id,
                "gross": info.gross,
                "deductions": info.deductions,
                "net": info.net,
                "input_fingerprint": fingerprint,
                "is_new": created,
            },
        )
        return row.to_dto()

    def _find(self, period_code: str, employee_id: str) -> PayrollResult | None:
        return self._session.execute(
            select(PayrollResult).where(
                PayrollResult.period_code == period_code,
                PayrollResult.employee_id == employee_id,
            )
        ).scalar_one_or_none()
