"""
payroll_services.settlement_service -- end-of-service final settlements.

Responsibility:
    Compute and store an employee's final settlement: gratuity on the basic
    salary active on the termination date, unused leave encashment, notice
    pay, and any extra earnings or deductions the HR workflow supplies.
    Records the external approval and payment steps.

Architecture position:
    Services -- owns commit/rollback.  Arithmetic lives in
    ``payroll_engines.gratuity``; policy values come from
    ``OrganizationSettings.gratuity``.

Invariants enforced:
    - One settlement per employee.  Recalculation overwrites a DRAFT;
      APPROVED and PAID settlements are final.
    - DRAFT -> APPROVED -> PAID, each step compare-and-swap on status.
    - The settlement is tied to the payroll period containing the
      termination date; PAID settlements block reopening that period.

Failure modes:
    - EmployeeNotFoundError, AssignmentNotFoundError (no basic salary on the
      termination date), PeriodNotFoundError (no period covers it).
    - SettlementConflictError on recalculating or transitioning a settlement
      that is not in the expected status.
    - SettlementNotFoundError.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from payroll_config.schema import OrganizationSettings
from payroll_engines.gratuity import calculate_gratuity, service_tenure, settlement_amounts
from payroll_kernel.db.types import ZERO
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.dtos import FinalSettlementInfo
from payroll_kernel.domain.types import SettlementStatus
from payroll_kernel.exceptions import (
    PeriodNotFoundError,
    SettlementConflictError,
    SettlementNotFoundError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.models.settlement import FinalSettlement
from payroll_kernel.services.effective_dated_store import EffectiveDatedStore
from payroll_kernel.services.employee_directory import EmployeeDirectory
from payroll_kernel.services.period_service import PeriodService

logger = get_logger("services.settlement")

TENURE_PLACES = Decimal("0.000001")


def settlement_id_for(employee_id: str) -> str:
    return f"FS-{employee_id}"


class SettlementService:
    def __init__(
        self,
        session: Session,
        settings: OrganizationSettings,
        clock: Clock | None = None,
    ) -> None:
        self._session = session
        self._settings = settings
        self._clock = clock or SystemClock()
        self._periods = PeriodService(
            session, self._clock, organization_id=settings.organization_id
        )
        self._directory = EmployeeDirectory(session, self._clock)
        self._store = EffectiveDatedStore(session, self._clock, period_service=self._periods)

    def calculate(
        self,
        employee_id: str,
        termination_date: date,
        actor_id: UUID,
        unused_leave_days: Decimal = ZERO,
        unserved_notice_days: Decimal | None = None,
        other_earnings: Decimal = ZERO,
        other_deductions: Decimal = ZERO,
    ) -> FinalSettlementInfo:
        """
        Compute the settlement of ``employee_id`` and store it as DRAFT.

        ``unserved_notice_days`` defaults to the employee's whole notice
        period (termination without notice); pass zero when notice was served.
        """
        with LogContext.bind(employee_id=employee_id, actor_id=str(actor_id)):
            try:
                info = self._calculate(
                    employee_id,
                    termination_date,
                    actor_id,
                    unused_leave_days,
                    unserved_notice_days,
                    other_earnings,
                    other_deductions,
                )
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise
            return info

    def approve(self, settlement_id: str, actor_id: UUID) -> FinalSettlementInfo:
        return self._transition(
            settlement_id, SettlementStatus.DRAFT, SettlementStatus.APPROVED, actor_id
        )

    def mark_paid(self, settlement_id: str, actor_id: UUID) -> FinalSettlementInfo:
        return self._transition(
            settlement_id, SettlementStatus.APPROVED, SettlementStatus.PAID, actor_id
        )

    def get_settlement(self, settlement_id: str) -> FinalSettlementInfo:
        return self._require(settlement_id).to_dto()

    def settlements_for_period(self, period_code: str) -> list[FinalSettlementInfo]:
        rows = self._session.execute(
            select(FinalSettlement)
            .where(FinalSettlement.period_code == period_code)
            .order_by(FinalSettlement.settlement_id)
        ).scalars()
        return [row.to_dto() for row in rows]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _calculate(
        self,
        employee_id: str,
        termination_date: date,
        actor_id: UUID,
        unused_leave_days: Decimal,
        unserved_notice_days: Decimal | None,
        other_earnings: Decimal,
        other_deductions: Decimal,
    ) -> FinalSettlementInfo:
        employee = self._directory.get(employee_id)
        basic = self._store.resolve(
            employee_id, employee.basic_component_id, termination_date
        ).amount
        period = self._periods.find_period_for_date(
            termination_date, self._settings.organization_id
        )
        if period is None:
            raise PeriodNotFoundError(f"covering {termination_date.isoformat()}")

        if unserved_notice_days is None:
            unserved_notice_days = Decimal(employee.notice_period_days)

        policy = self._settings.gratuity
        tenure = service_tenure(employee.joining_date, termination_date)
        gratuity = calculate_gratuity(
            basic_salary=basic,
            tenure_years=tenure,
            first_tier_days=policy.first_5_year_days,
            second_tier_days=policy.after_5_year_days,
            cap_years=policy.cap_years,
            tier_threshold_years=policy.tier_threshold_years,
            minimum_service_years=policy.minimum_service_years,
            daily_rate_divisor=policy.daily_rate_divisor,
        )
        amounts = settlement_amounts(
            gratuity,
            basic_salary=basic,
            unused_leave_days=unused_leave_days,
            unserved_notice_days=unserved_notice_days,
            other_earnings=other_earnings,
            other_deductions=other_deductions,
            daily_rate_divisor=policy.daily_rate_divisor,
        )

        settlement_id = settlement_id_for(employee_id)
        row = self._find(settlement_id)
        if row is not None and row.status != SettlementStatus.DRAFT.value:
            logger.warning(
                "settlement_recalculation_rejected",
                extra={"settlement_id": settlement_id, "status": row.status},
            )
            raise SettlementConflictError(
                [settlement_id], f"settlement is {row.status}; only drafts are recalculated"
            )
        created = row is None
        if created:
            row = FinalSettlement(
                settlement_id=settlement_id,
                employee_id=employee_id,
                status=SettlementStatus.DRAFT.value,
                created_by_id=actor_id,
            )
            self._session.add(row)
        else:
            row.updated_by_id = actor_id

        row.period_code = period.period_code
        row.termination_date = termination_date
        row.basic_salary = basic
        row.daily_rate = gratuity.daily_rate
        row.tenure_years = tenure.quantize(TENURE_PLACES)
        row.accrued_gratuity_days = gratuity.accrued_days.quantize(TENURE_PLACES)
        row.gratuity_amount = gratuity.amount
        row.leave_encashment_amount = amounts.leave_encashment
        row.notice_pay_amount = amounts.notice_pay
        row.other_earnings = amounts.other_earnings
        row.other_deductions = amounts.other_deductions
        row.total_payable = amounts.total_payable
        self._session.flush()

        logger.info(
            "settlement_calculated",
            extra={
                "settlement_id": settlement_id,
                "employee_id": employee_id,
                "period_code": period.period_code,
                "tenure_years": row.tenure_years,
                "gratuity_amount": gratuity.amount,
                "gratuity_capped": gratuity.capped,
                "total_payable": amounts.total_payable,
                "is_new": created,
            },
        )
        return row.to_dto()

    def _transition(
        self,
        settlement_id: str,
        expected: SettlementStatus,
        target: SettlementStatus,
        actor_id: UUID,
    ) -> FinalSettlementInfo:
        try:
            row = self._require(settlement_id)
            result = self._session.execute(
                update(FinalSettlement)
                .where(
                    FinalSettlement.settlement_id == settlement_id,
                    FinalSettlement.status == expected.value,
                )
                .values(status=target.value, updated_by_id=actor_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self._session.refresh(row)
                logger.warning(
                    "settlement_transition_conflict",
                    extra={
                        "settlement_id": settlement_id,
                        "expected_status": expected.value,
                        "actual_status": row.status,
                    },
                )
                raise SettlementConflictError(
                    [settlement_id],
                    f"expected status {expected.value}, found {row.status}",
                    period_code=row.period_code,
                )
            self._session.commit()
            self._session.refresh(row)
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "settlement_status_changed",
            extra={
                "settlement_id": settlement_id,
                "from_status": expected.value,
                "to_status": target.value,
                "actor_id": str(actor_id),
            },
        )
        return row.to_dto()

    def _find(self, settlement_id: str) -> FinalSettlement | None:
        return self._session.execute(
            select(FinalSettlement).where(FinalSettlement.settlement_id == settlement_id)
        ).scalar_one_or_none()

    def _require(self, settlement_id: str) -> FinalSettlement:
        row = self._find(settlement_id)
        if row is None:
            raise SettlementNotFoundError(settlement_id)
        return row
