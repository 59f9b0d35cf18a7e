"""
Module: payroll_kernel.models.loan
Responsibility: Employee loans and the append-only ledger of per-period
    installment deductions.
Architecture position: Kernel > Models.  Owned by LoanTracker.

Invariants enforced:
    - remaining_balance never increases and never goes below zero.
    - status becomes CLOSED exactly when remaining_balance reaches zero.
    - At most one LoanDeduction per (loan_id, period_code), enforced by a
      unique constraint so concurrent calculators cannot double-deduct.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase, UTCDateTime
from payroll_kernel.db.types import Money
from payroll_kernel.domain.dtos import LoanDeductionInfo, LoanInfo
from payroll_kernel.domain.types import LoanStatus


class EmployeeLoan(TrackedBase):
    __tablename__ = "employee_loans"

    __table_args__ = (
        CheckConstraint("remaining_balance >= 0", name="ck_loan_balance_non_negative"),
        CheckConstraint("installment_amount > 0", name="ck_loan_installment_positive"),
        Index("idx_loan_employee", "employee_id"),
    )

    loan_id: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    employee_id: Mapped[str] = mapped_column(String(50), nullable=False)
    total_amount: Mapped[Money] = mapped_column(nullable=False)
    installment_amount: Mapped[Money] = mapped_column(nullable=False)
    remaining_balance: Mapped[Money] = mapped_column(nullable=False)
    start_period_code: Mapped[str] = mapped_column(String(20), nullable=False)
    start_pay_year: Mapped[int] = mapped_column(nullable=False)
    start_pay_month: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LoanStatus.ACTIVE.value
    )

    def to_dto(self) -> LoanInfo:
        return LoanInfo(
            loan_id=self.loan_id,
            employee_id=self.employee_id,
            total_amount=Decimal(self.total_amount),
            installment_amount=Decimal(self.installment_amount),
            remaining_balance=Decimal(self.remaining_balance),
            start_period_code=self.start_period_code,
            status=LoanStatus(self.status),
        )


class LoanDeduction(TrackedBase):
    """One applied installment. Never updated or deleted."""

    __tablename__ = "loan_deductions"

    __table_args__ = (
        UniqueConstraint("loan_id", "period_code", name="uq_loan_deduction_period"),
        Index("idx_loan_deduction_employee_period", "employee_id", "period_code"),
    )

    loan_id: Mapped[str] = mapped_column(String(50), nullable=False)
    employee_id: Mapped[str] = mapped_column(String(50), nullable=False)
    period_code: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Money] = mapped_column(nullable=False)
    balance_after: Mapped[Money] = mapped_column(nullable=False)
    applied_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def to_dto(self) -> LoanDeductionInfo:
        return LoanDeductionInfo(
            loan_id=self.loan_id,
            period_code=self.period_code,
            amount=Decimal(self.amount),
            balance_after=Decimal(self.balance_after),
            applied_at=self.applied_at,
        )
