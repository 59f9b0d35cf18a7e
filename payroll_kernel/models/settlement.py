"""
Module: payroll_kernel.models.settlement
Responsibility: End-of-service final settlement per employee.
Architecture position: Kernel > Models.  Written by SettlementService.

Invariants enforced:
    - One settlement per employee (settlement_id is derived from employee_id).
    - Only DRAFT settlements are recalculated.  APPROVED and PAID are terminal
      for the calculator; PAID settlements also block reopening their period.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase
from payroll_kernel.db.types import Money
from payroll_kernel.domain.dtos import FinalSettlementInfo
from payroll_kernel.domain.types import SettlementStatus


class FinalSettlement(TrackedBase):
    __tablename__ = "final_settlements"

    __table_args__ = (Index("idx_settlement_period_status", "period_code", "status"),)

    settlement_id: Mapped[str] = mapped_column(String(60), nullable=False, unique=True)
    employee_id: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    period_code: Mapped[str] = mapped_column(String(20), nullable=False)
    termination_date: Mapped[date] = mapped_column(Date, nullable=False)
    basic_salary: Mapped[Money] = mapped_column(nullable=False)
    daily_rate: Mapped[Money] = mapped_column(nullable=False)
    tenure_years: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    accrued_gratuity_days: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    gratuity_amount: Mapped[Money] = mapped_column(nullable=False)
    leave_encashment_amount: Mapped[Money] = mapped_column(nullable=False)
    notice_pay_amount: Mapped[Money] = mapped_column(nullable=False)
    other_earnings: Mapped[Money] = mapped_column(nullable=False)
    other_deductions: Mapped[Money] = mapped_column(nullable=False)
    total_payable: Mapped[Money] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SettlementStatus.DRAFT.value
    )

    def to_dto(self) -> FinalSettlementInfo:
        return FinalSettlementInfo(
            settlement_id=self.settlement_id,
            employee_id=self.employee_id,
            period_code=self.period_code,
            termination_date=self.termination_date,
            basic_salary=Decimal(self.basic_salary),
            daily_rate=Decimal(self.daily_rate),
            tenure_years=Decimal(self.tenure_years),
            accrued_gratuity_days=Decimal(self.accrued_gratuity_days),
            gratuity_amount=Decimal(self.gratuity_amount),
            leave_encashment_amount=Decimal(self.leave_encashment_amount),
            notice_pay_amount=Decimal(self.notice_pay_amount),
            other_earnings=Decimal(self.other_earnings),
            other_deductions=Decimal(self.other_deductions),
            total_payable=Decimal(self.total_payable),
            status=SettlementStatus(self.status),
        )
