"""
LoanTracker -- employee loan balances and per-period installment deductions.

Responsibility:
    Owns ``remaining_balance``.  Each pay period deducts at most one
    installment per loan; the deduction ledger is keyed on
    (loan_id, period_code) so recalculating a period never deducts twice.

Architecture position:
    Kernel > Services -- flush-only.  Called by PayrollCalculator inside the
    same transaction that writes the PayrollResult.

Invariants enforced:
    - remaining_balance decreases monotonically and never goes below zero.
    - A loan reaching zero becomes CLOSED; applying to a CLOSED loan is a
      no-op.
    - Deductions begin at the loan's start period.

Failure modes:
    - LoanNotFoundError, PeriodNotFoundError, InvalidLoanError.
    - DuplicateLoanDeductionError when a concurrent writer already inserted
      the (loan, period) deduction; the caller must roll back.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from payroll_engines.loan_amortization import (
    ScheduledInstallment,
    next_installment,
    projected_schedule,
)
from payroll_kernel.db.types import ZERO, round_money
from payroll_kernel.domain.clock import Clock
from payroll_kernel.domain.dtos import LoanDeductionInfo, LoanInfo, PayrollPeriodInfo
from payroll_kernel.domain.types import LoanStatus
from payroll_kernel.exceptions import (
    DuplicateLoanDeductionError,
    InvalidLoanError,
    LoanNotFoundError,
)
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.loan import EmployeeLoan, LoanDeduction
from payroll_kernel.services.base import BaseService
from payroll_kernel.services.period_service import PeriodService

logger = get_logger("services.loan_tracker")


class LoanTracker(BaseService[EmployeeLoan]):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        period_service: PeriodService | None = None,
    ):
        super().__init__(session, clock)
        self._periods = period_service or PeriodService(session, self._clock)

    # ------------------------------------------------------------------
    # Loans
    # ------------------------------------------------------------------

    def create_loan(
        self,
        loan_id: str,
        employee_id: str,
        total_amount: Decimal,
        installment_amount: Decimal,
        start_period_code: str,
        actor_id: UUID,
        remaining_balance: Decimal | None = None,
    ) -> LoanInfo:
        """
        Register a loan.  ``remaining_balance`` defaults to the full amount;
        loans migrated mid-repayment pass their outstanding balance.
        """
        remaining = total_amount if remaining_balance is None else remaining_balance
        if total_amount <= ZERO:
            raise InvalidLoanError("total amount must be positive")
        if installment_amount <= ZERO:
            raise InvalidLoanError("installment amount must be positive")
        if remaining < ZERO or remaining > total_amount:
            raise InvalidLoanError("remaining balance must be between zero and the total amount")
        if self._find(loan_id) is not None:
            raise InvalidLoanError(f"loan {loan_id} already exists")

        start = self._periods.get_period(start_period_code)
        loan = EmployeeLoan(
            loan_id=loan_id,
            employee_id=employee_id,
            total_amount=round_money(total_amount),
            installment_amount=round_money(installment_amount),
            remaining_balance=round_money(remaining),
            start_period_code=start.period_code,
            start_pay_year=start.pay_year,
            start_pay_month=start.pay_month,
            status=(LoanStatus.CLOSED if remaining == ZERO else LoanStatus.ACTIVE).value,
            created_by_id=actor_id,
        )
        self.session.add(loan)
        self.session.flush()

        logger.info(
            "loan_created",
            extra={
                "loan_id": loan_id,
                "employee_id": employee_id,
                "total_amount": total_amount,
                "installment_amount": installment_amount,
                "remaining_balance": remaining,
                "start_period_code": start_period_code,
            },
        )
        return loan.to_dto()

    def get_loan(self, loan_id: str) -> LoanInfo:
        return self._require(loan_id).to_dto()

    def loans_for(self, employee_id: str) -> list[LoanInfo]:
        return [loan.to_dto() for loan in self._loans_of(employee_id)]

    def projected_schedule(self, loan_id: str, from_period: PayrollPeriodInfo) -> list[ScheduledInstallment]:
        """Installments still to come, the first falling in ``from_period``."""
        loan = self._require(loan_id)
        if loan.status == LoanStatus.CLOSED.value:
            return []
        first = max((loan.start_pay_year, loan.start_pay_month), from_period.pay_key)
        return projected_schedule(
            installment=Decimal(loan.installment_amount),
            remaining=Decimal(loan.remaining_balance),
            first_pay_year=first[0],
            first_pay_month=first[1],
        )

    # ------------------------------------------------------------------
    # Deductions
    # ------------------------------------------------------------------

    def preview_deductions(self, employee_id: str, period: PayrollPeriodInfo) -> Decimal:
        """
        What ``apply_for_employee`` would deduct for ``period``, without
        writing.  Deductions already applied for the period count as-is.
        """
        total = ZERO
        for loan in self._loans_of(employee_id):
            existing = self._deduction(loan.loan_id, period.period_code)
            if existing is not None:
                total += Decimal(existing.amount)
            elif self._due(loan, period):
                outcome = next_installment(
                    installment=Decimal(loan.installment_amount),
                    remaining=Decimal(loan.remaining_balance),
                )
                total += outcome.amount
        return round_money(total)

    def apply_for_employee(
        self, employee_id: str, period: PayrollPeriodInfo, actor_id: UUID
    ) -> list[LoanDeductionInfo]:
        applied = []
        for loan in self._loans_of(employee_id):
            deduction = self.apply_deduction(loan.loan_id, period, actor_id)
            if deduction is not None:
                applied.append(deduction)
        return applied

    def apply_deduction(
        self, loan_id: str, period: PayrollPeriodInfo, actor_id: UUID
    ) -> LoanDeductionInfo | None:
        """
        Deduct one installment for ``period``.

        Returns the existing deduction when the period was already applied,
        and None when nothing is due (loan CLOSED or period before start).
        """
        loan = self._require(loan_id, for_update=True)
        existing = self._deduction(loan_id, period.period_code)
        if existing is not None:
            return existing.to_dto()
        if not self._due(loan, period):
            return None

        outcome = next_installment(
            installment=Decimal(loan.installment_amount),
            remaining=Decimal(loan.remaining_balance),
        )
        now = self._clock.now()
        loan.remaining_balance = outcome.balance_after
        loan.updated_by_id = actor_id
        if outcome.closes_loan:
            loan.status = LoanStatus.CLOSED.value
        deduction = LoanDeduction(
            loan_id=loan_id,
            employee_id=loan.employee_id,
            period_code=period.period_code,
            amount=outcome.amount,
            balance_after=outcome.balance_after,
            applied_at=now,
            created_by_id=actor_id,
        )
        self.session.add(deduction)
        try:
            self.session.flush()
        except IntegrityError as exc:
            logger.warning(
                "loan_deduction_conflict",
                extra={"loan_id": loan_id, "period_code": period.period_code},
            )
            raise DuplicateLoanDeductionError(loan_id, period.period_code) from exc

        logger.info(
            "loan_deduction_applied",
            extra={
                "loan_id": loan_id,
                "employee_id": loan.employee_id,
                "period_code": period.period_code,
                "amount": outcome.amount,
                "balance_after": outcome.balance_after,
                "loan_closed": outcome.closes_loan,
            },
        )
        return deduction.to_dto()

    def deductions_for(self, employee_id: str, period_code: str) -> list[LoanDeductionInfo]:
        rows = self.session.execute(
            select(LoanDeduction)
            .where(
                LoanDeduction.employee_id == employee_id,
                LoanDeduction.period_code == period_code,
            )
            .order_by(LoanDeduction.loan_id)
        ).scalars()
        return [row.to_dto() for row in rows]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _due(loan: EmployeeLoan, period: PayrollPeriodInfo) -> bool:
        if loan.status == LoanStatus.CLOSED.value:
            return False
        return period.pay_key >= (loan.start_pay_year, loan.start_pay_month)

    def _loans_of(self, employee_id: str) -> list[EmployeeLoan]:
        return list(
            self.session.execute(
                select(EmployeeLoan)
                .where(EmployeeLoan.employee_id == employee_id)
                .order_by(EmployeeLoan.loan_id)
            ).scalars()
        )

    def _deduction(self, loan_id: str, period_code: str) -> LoanDeduction | None:
        return self.session.execute(
            select(LoanDeduction).where(
                LoanDeduction.loan_id == loan_id,
                LoanDeduction.period_code == period_code,
            )
        ).scalar_one_or_none()

    def _find(self, loan_id: str) -> EmployeeLoan | None:
        return self.session.execute(
            select(EmployeeLoan).where(EmployeeLoan.loan_id == loan_id)
        ).scalar_one_or_none()

    def _require(self, loan_id: str, for_update: bool = False) -> EmployeeLoan:
        stmt = select(EmployeeLoan).where(EmployeeLoan.loan_id == loan_id)
        if for_update:
            stmt = stmt.with_for_update()
        loan = self.session.execute(stmt).scalar_one_or_none()
        if loan is None:
            raise LoanNotFoundError(loan_id)
        return loan
