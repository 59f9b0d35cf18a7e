"""
payroll_engines.earnings -- gross-to-net for one employee and one pay period.

Responsibility:
    Turn resolved salary assignments, period attendance totals and the loan
    installment due into fixed/variable earnings, deductions and net pay.

Architecture position:
    Engines -- pure, zero I/O.  PayrollCalculator gathers the inputs inside a
    read-only phase and persists the returned ``PayrollComputation``.

Invariants enforced:
    - Proration is a policy input:
        DAY_WEIGHTED  each assignment contributes amount x overlap days /
                      period days;
        PERIOD_START  the assignment active on the first day, in full.
    - Each component line is rounded to 2 places once; totals are sums of
      rounded lines.  gross is fixed + variable plus any NOT_APPLICABLE
      earnings, which are paid but reported in neither SIF column.
    - variable is overtime plus VARIABLE earnings only.
    - The monthly basic rate used for overtime and unpaid leave is the
      day-weighted basic over the days the basic component covers, so a
      mid-month joiner's hourly rate is not halved.
    - Net may come out negative; the caller rejects that before writing.

Failure modes:
    - ValueError for a zero standard_monthly_hours or an overtime category
      without a multiplier.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from payroll_engines.tracer import traced_engine
from payroll_kernel.db.types import ZERO, round_money
from payroll_kernel.domain.dtos import (
    AssignmentInfo,
    AttendanceSummaryInfo,
    EarningLine,
    SalaryComponentInfo,
)
from payroll_kernel.domain.types import ComponentKind, DayType, ProrationPolicy, WpsClass

MINUTES_PER_HOUR = Decimal("60")
FULL_MONTH_DAYS = 30


@dataclass(frozen=True)
class PayrollComputation:
    days_in_period: int
    days_worked: int
    monthly_basic: Decimal
    hourly_rate: Decimal
    earnings: tuple[EarningLine, ...]
    fixed_amount: Decimal
    variable_amount: Decimal
    overtime_amount: Decimal
    gross: Decimal
    unpaid_leave_deduction: Decimal
    loan_deduction: Decimal
    other_deductions: Decimal
    deductions: Decimal
    net: Decimal

    @property
    def is_negative(self) -> bool:
        return self.net < ZERO


def _covered_days(assignments: Sequence[AssignmentInfo], start: date, end: date) -> int:
    return sum(a.overlap_days(start, end) for a in assignments)


def prorate(
    assignments: Sequence[AssignmentInfo],
    period_start: date,
    period_end: date,
    policy: ProrationPolicy,
) -> Decimal:
    """Unrounded period amount of one component under ``policy``."""
    days_in_period = (period_end - period_start).days + 1
    if policy == ProrationPolicy.PERIOD_START:
        for a in assignments:
            if a.contains(period_start):
                return a.amount
        return ZERO
    total = ZERO
    for a in assignments:
        days = a.overlap_days(period_start, period_end)
        if days:
            total += a.amount * Decimal(days) / Decimal(days_in_period)
    return total


def monthly_basic_rate(
    assignments: Sequence[AssignmentInfo],
    period_start: date,
    period_end: date,
    policy: ProrationPolicy,
) -> Decimal:
    """Day-weighted basic over the covered days (the active amount under PERIOD_START)."""
    if policy == ProrationPolicy.PERIOD_START:
        return prorate(assignments, period_start, period_end, policy)
    covered = _covered_days(assignments, period_start, period_end)
    if covered == 0:
        return ZERO
    weighted = sum(
        (a.amount * Decimal(a.overlap_days(period_start, period_end)) for a in assignments),
        ZERO,
    )
    return weighted / Decimal(covered)


@traced_engine(
    "payroll_earnings",
    "1.0",
    fingerprint_fields=(
        "period_start",
        "period_end",
        "assignments",
        "attendance",
        "loan_deduction",
        "proration_policy",
    ),
)
def calculate_payroll(
    *,
    period_start: date,
    period_end: date,
    components: Mapping[str, SalaryComponentInfo],
    assignments: Mapping[str, Sequence[AssignmentInfo]],
    basic_component_id: str,
    attendance: AttendanceSummaryInfo,
    deductible_leave_codes: frozenset[str],
    overtime_multipliers: Mapping[DayType, Decimal],
    standard_monthly_hours: Decimal,
    proration_policy: ProrationPolicy,
    loan_deduction: Decimal,
) -> PayrollComputation:
    if standard_monthly_hours <= ZERO:
        raise ValueError("standard_monthly_hours must be positive")

    days_in_period = (period_end - period_start).days + 1

    earnings: list[EarningLine] = []
    other_deductions = ZERO
    for component_id in sorted(assignments):
        component = components[component_id]
        amount = round_money(
            prorate(assignments[component_id], period_start, period_end, proration_policy)
        )
        if component.kind == ComponentKind.EARNING:
            earnings.append(EarningLine(component_id, component.wps_class, amount))
        else:
            other_deductions += amount

    basic_assignments = assignments.get(basic_component_id, ())
    monthly_basic = monthly_basic_rate(basic_assignments, period_start, period_end, proration_policy)
    hourly_rate = monthly_basic / standard_monthly_hours

    overtime = ZERO
    for day_type, minutes in sorted(attendance.overtime_minutes.items(), key=lambda kv: kv[0].value):
        if minutes:
            multiplier = overtime_multipliers[DayType(day_type)]
            overtime += Decimal(minutes) / MINUTES_PER_HOUR * hourly_rate * multiplier
    overtime = round_money(overtime)

    unpaid_days = sum(
        (days for code, days in attendance.leave_days.items() if code in deductible_leave_codes),
        ZERO,
    )
    unpaid_leave = round_money(monthly_basic / Decimal(days_in_period) * unpaid_days)

    covered = _covered_days(basic_assignments, period_start, period_end)
    days_worked = FULL_MONTH_DAYS if covered == days_in_period else covered

    fixed_amount = sum((e.amount for e in earnings if e.wps_class == WpsClass.FIXED), ZERO)
    variable_amount = overtime + sum(
        (e.amount for e in earnings if e.wps_class == WpsClass.VARIABLE), ZERO
    )
    outside_wps = sum(
        (e.amount for e in earnings if e.wps_class == WpsClass.NOT_APPLICABLE), ZERO
    )
    gross = fixed_amount + variable_amount + outside_wps
    loan_deduction = round_money(loan_deduction)
    other_deductions = round_money(other_deductions)
    deductions = unpaid_leave + loan_deduction + other_deductions

    return PayrollComputation(
        days_in_period=days_in_period,
        days_worked=days_worked,
        monthly_basic=round_money(monthly_basic),
        hourly_rate=round_money(hourly_rate, 4),
        earnings=tuple(earnings),
        fixed_amount=fixed_amount,
        variable_amount=variable_amount,
        overtime_amount=overtime,
        gross=gross,
        unpaid_leave_deduction=unpaid_leave,
        loan_deduction=loan_deduction,
        other_deductions=other_deductions,
        deductions=deductions,
        net=gross - deductions,
    )
