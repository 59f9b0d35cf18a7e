"""
Module: payroll_kernel.models.payroll_result
Responsibility: Stored per-employee payroll result for a period.
Architecture position: Kernel > Models.  Owned by PayrollCalculator; nothing
    else writes these rows.

Invariants enforced:
    - One result per (period_code, employee_id).
    - gross = fixed_amount + variable_amount + earnings outside WPS;
      net = gross - deductions >= 0.
    - Rows in a LOCKED period are frozen (db/immutability.py).
    - input_fingerprint identifies the inputs; recalculating with the same
      fingerprint leaves the row untouched.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase, UTCDateTime
from payroll_kernel.db.types import Money
from payroll_kernel.domain.dtos import EarningLine, PayrollResultInfo
from payroll_kernel.domain.types import WpsClass


class PayrollResult(TrackedBase):
    __tablename__ = "payroll_results"

    __table_args__ = (
        UniqueConstraint("period_code", "employee_id", name="uq_payroll_result_key"),
        Index("idx_payroll_result_period", "period_code"),
    )

    period_code: Mapped[str] = mapped_column(String(20), nullable=False)
    employee_id: Mapped[str] = mapped_column(String(50), nullable=False)
    days_in_period: Mapped[int] = mapped_column(Integer, nullable=False)
    days_worked: Mapped[int] = mapped_column(Integer, nullable=False)
    fixed_amount: Mapped[Money] = mapped_column(nullable=False)
    variable_amount: Mapped[Money] = mapped_column(nullable=False)
    overtime_amount: Mapped[Money] = mapped_column(nullable=False)
    gross: Mapped[Money] = mapped_column(nullable=False)
    unpaid_leave_deduction: Mapped[Money] = mapped_column(nullable=False)
    loan_deduction: Mapped[Money] = mapped_column(nullable=False)
    other_deductions: Mapped[Money] = mapped_column(nullable=False)
    deductions: Mapped[Money] = mapped_column(nullable=False)
    net: Mapped[Money] = mapped_column(nullable=False)
    earnings: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    input_fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    generated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def to_dto(self) -> PayrollResultInfo:
        return PayrollResultInfo(
            period_code=self.period_code,
            employee_id=self.employee_id,
            days_in_period=self.days_in_period,
            days_worked=self.days_worked,
            fixed_amount=Decimal(self.fixed_amount),
            variable_amount=Decimal(self.variable_amount),
            overtime_amount=Decimal(self.overtime_amount),
            gross=Decimal(self.gross),
            unpaid_leave_deduction=Decimal(self.unpaid_leave_deduction),
            loan_deduction=Decimal(self.loan_deduction),
            other_deductions=Decimal(self.other_deductions),
            deductions=Decimal(self.deductions),
            net=Decimal(self.net),
            input_fingerprint=self.input_fingerprint,
            generated_at=self.generated_at,
            earnings=tuple(
                EarningLine(
                    component_id=line["component_id"],
                    wps_class=WpsClass(line["wps_class"]),
                    amount=Decimal(line["amount"]),
                )
                for line in self.earnings or []
            ),
        )

    def apply(self, info: PayrollResultInfo) -> None:
        """Copy every computed field from ``info``."""
        self.days_in_period = info.days_in_period
        self.days_worked = info.days_worked
        self.fixed_amount = info.fixed_amount
        self.variable_amount = info.variable_amount
        self.overtime_amount = info.overtime_amount
        self.gross = info.gross
        self.unpaid_leave_deduction = info.unpaid_leave_deduction
        self.loan_deduction = info.loan_deduction
        self.other_deductions = info.other_deductions
        self.deductions = info.deductions
        self.net = info.net
        self.earnings = [
            {
                "component_id": line.component_id,
                "wps_class": line.wps_class.value,
                "amount": str(line.amount),
            }
            for line in info.earnings
        ]
        self.input_fingerprint = info.input_fingerprint
        self.generated_at = info.generated_at
