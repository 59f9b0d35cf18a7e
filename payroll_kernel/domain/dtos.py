"""
Payroll Domain DTOs (``payroll_kernel.domain.dtos``).

Responsibility
--------------
Frozen dataclass value objects passed between services, engines and callers:
assignments, periods, attendance summaries, results, loans, settlements and
approval requests.  ORM rows never leave a service; these do.

Architecture position
---------------------
**Kernel > Domain** -- pure data, zero I/O.

Invariants enforced
-------------------
* All DTOs are ``frozen=True``.
* Monetary fields are ``Decimal`` rounded to 2 places by the producer.
* Assignment and period intervals: assignments are half-open
  ``[effective_from, effective_to)``; periods are inclusive
  ``[start_date, end_date]``.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Mapping
from uuid import UUID

from payroll_kernel.domain.types import (
    ApprovalStatus,
    ApprovalType,
    CalculationMethod,
    ComponentKind,
    DayType,
    LoanStatus,
    PeriodAction,
    PeriodStatus,
    SettlementStatus,
    WpsClass,
)


@dataclass(frozen=True)
class SalaryComponentInfo:
    component_id: str
    name: str
    kind: ComponentKind
    calculation_method: CalculationMethod
    wps_class: WpsClass
    taxable: bool = False

    @property
    def is_assignable(self) -> bool:
        return self.calculation_method == CalculationMethod.FIXED


@dataclass(frozen=True)
class AssignmentInfo:
    """One effective-dated amount for (employee, component)."""

    employee_id: str
    component_id: str
    amount: Decimal
    effective_from: date
    effective_to: date | None = None

    def contains(self, as_of: date) -> bool:
        return self.effective_from <= as_of and (
            self.effective_to is None or as_of < self.effective_to
        )

    def overlap_days(self, start: date, end: date) -> int:
        """Days of the inclusive range ``[start, end]`` this assignment covers."""
        lo = max(start, self.effective_from)
        hi = end if self.effective_to is None else min(end, self.effective_to - timedelta(days=1))
        return max((hi - lo).days + 1, 0)


@dataclass(frozen=True)
class PayrollPeriodInfo:
    period_code: str
    organization_id: str
    start_date: date
    end_date: date
    pay_month: int
    pay_year: int
    status: PeriodStatus
    locked_at: datetime | None = None
    locked_by_id: UUID | None = None

    @property
    def days_in_period(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def contains(self, as_of: date) -> bool:
        return self.start_date <= as_of <= self.end_date

    @property
    def is_locked(self) -> bool:
        return self.status == PeriodStatus.LOCKED

    @property
    def pay_key(self) -> tuple[int, int]:
        """Chronological sort key."""
        return (self.pay_year, self.pay_month)


@dataclass(frozen=True)
class PeriodAuditEntryInfo:
    period_code: str
    action: PeriodAction
    from_status: PeriodStatus
    to_status: PeriodStatus
    actor_id: UUID
    occurred_at: datetime
    reason: str | None = None


@dataclass(frozen=True)
class EmployeeProfileInfo:
    """Snapshot of the employee master that payroll needs."""

    employee_id: str
    employee_code: str
    name: str
    joining_date: date
    basic_component_id: str = "SC-BASIC"
    iban: str | None = None
    mohre_person_id: str | None = None
    labor_card_number: str | None = None
    wps_eligible: bool = True
    notice_period_days: int = 30

    @property
    def person_identifier(self) -> str | None:
        """MOHRE person id, falling back to the labour card number."""
        return self.mohre_person_id or self.labor_card_number


@dataclass(frozen=True)
class AttendanceSummaryInfo:
    """
    Locked attendance totals for one employee over ``[date_from, date_to]``.

    ``leave_days`` is keyed by leave-type code.  Which codes reduce pay is a
    property of the leave-type catalog, not of the summary.
    """

    employee_id: str
    date_from: date
    date_to: date
    worked_minutes: int = 0
    scheduled_minutes: int = 0
    overtime_minutes: Mapping[DayType, int] = field(default_factory=dict)
    leave_days: Mapping[str, Decimal] = field(default_factory=dict)
    absence_days: Decimal = Decimal("0")

    def total_overtime_minutes(self) -> int:
        return sum(self.overtime_minutes.values())


@dataclass(frozen=True)
class EarningLine:
    component_id: str
    wps_class: WpsClass
    amount: Decimal


@dataclass(frozen=True)
class PayrollResultInfo:
    period_code: str
    employee_id: str
    days_in_period: int
    days_worked: int
    fixed_amount: Decimal
    variable_amount: Decimal
    overtime_amount: Decimal
    gross: Decimal
    unpaid_leave_deduction: Decimal
    loan_deduction: Decimal
    other_deductions: Decimal
    deductions: Decimal
    net: Decimal
    input_fingerprint: str
    generated_at: datetime
    earnings: tuple[EarningLine, ...] = ()


@dataclass(frozen=True)
class LoanInfo:
    loan_id: str
    employee_id: str
    total_amount: Decimal
    installment_amount: Decimal
    remaining_balance: Decimal
    start_period_code: str
    status: LoanStatus

    @property
    def is_closed(self) -> bool:
        return self.status == LoanStatus.CLOSED


@dataclass(frozen=True)
class LoanDeductionInfo:
    loan_id: str
    period_code: str
    amount: Decimal
    balance_after: Decimal
    applied_at: datetime


@dataclass(frozen=True)
class FinalSettlementInfo:
    settlement_id: str
    employee_id: str
    period_code: str
    termination_date: date
    basic_salary: Decimal
    daily_rate: Decimal
    tenure_years: Decimal
    accrued_gratuity_days: Decimal
    gratuity_amount: Decimal
    leave_encashment_amount: Decimal
    notice_pay_amount: Decimal
    other_earnings: Decimal
    other_deductions: Decimal
    total_payable: Decimal
    status: SettlementStatus


@dataclass(frozen=True)
class ApprovalRequestInfo:
    request_id: str
    request_type: ApprovalType
    reference_id: str
    subject_employee_id: str
    status: ApprovalStatus
    sequence: int
    submitted_at: datetime
    decided_at: datetime | None = None
    decided_by_id: UUID | None = None


@dataclass(frozen=True)
class ApprovalGranted:
    """Domain event published after an APPROVED decision commits."""

    request_id: str
    request_type: ApprovalType
    reference_id: str
    subject_employee_id: str
    decided_by_id: UUID
    decided_at: datetime
