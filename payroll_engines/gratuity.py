"""
payroll_engines.gratuity -- end-of-service gratuity and final settlement arithmetic.

Responsibility:
    Pure calculation of service tenure, accrued gratuity days, the capped
    gratuity amount and the settlement total.

Architecture position:
    Engines -- pure, zero I/O.  SettlementService supplies the basic salary
    (resolved on the termination date) and the organization's gratuity
    policy values.

Invariants enforced:
    - Tenure is whole anniversary years plus remainder days / 365; never
      rounded up.
    - Service under the minimum earns no gratuity.
    - The first ``tier_threshold_years`` accrue ``first_tier_days`` per year,
      later years ``second_tier_days``.
    - The gratuity never exceeds ``cap_years`` x 365 days of basic pay.
    - All amounts are Decimal, rounded once at the end with ROUND_HALF_UP.

Failure modes:
    - ValueError when termination precedes joining, or basic salary or a
      day count is negative.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from payroll_engines.tracer import traced_engine
from payroll_kernel.db.types import ZERO, round_money

DAYS_PER_YEAR = Decimal("365")


@dataclass(frozen=True)
class GratuityResult:
    tenure_years: Decimal
    accrued_days: Decimal
    daily_rate: Decimal
    uncapped_amount: Decimal
    cap_amount: Decimal
    amount: Decimal

    @property
    def capped(self) -> bool:
        return self.uncapped_amount > self.cap_amount


@dataclass(frozen=True)
class SettlementAmounts:
    gratuity: GratuityResult
    leave_encashment: Decimal
    notice_pay: Decimal
    other_earnings: Decimal
    other_deductions: Decimal
    total_payable: Decimal


def _anniversary(joining: date, years: int) -> date:
    try:
        return joining.replace(year=joining.year + years)
    except ValueError:
        # 29 February joiners celebrate on 28 February in common years
        return joining.replace(year=joining.year + years, day=28)


def service_tenure(joining_date: date, termination_date: date) -> Decimal:
    """Whole anniversary years plus remainder days / 365."""
    if termination_date < joining_date:
        raise ValueError(
            f"Termination date {termination_date} precedes joining date {joining_date}"
        )
    years = termination_date.year - joining_date.year
    if _anniversary(joining_date, years) > termination_date:
        years -= 1
    remainder_days = (termination_date - _anniversary(joining_date, years)).days
    return Decimal(years) + Decimal(remainder_days) / DAYS_PER_YEAR


@traced_engine(
    "gratuity",
    "1.0",
    fingerprint_fields=("basic_salary", "tenure_years", "first_tier_days", "second_tier_days", "cap_years"),
)
def calculate_gratuity(
    basic_salary: Decimal,
    tenure_years: Decimal,
    first_tier_days: Decimal = Decimal("21"),
    second_tier_days: Decimal = Decimal("30"),
    cap_years: Decimal = Decimal("2"),
    tier_threshold_years: Decimal = Decimal("5"),
    minimum_service_years: Decimal = Decimal("1"),
    daily_rate_divisor: Decimal = Decimal("30"),
) -> GratuityResult:
    """
    Gratuity for ``tenure_years`` of service at monthly ``basic_salary``.

    >>> calculate_gratuity(Decimal("9000"), Decimal("4.5")).amount
    Decimal('28350.00')
    """
    if basic_salary < ZERO:
        raise ValueError(f"Basic salary cannot be negative, got {basic_salary}")
    if tenure_years < ZERO:
        raise ValueError(f"Tenure cannot be negative, got {tenure_years}")

    daily_rate = basic_salary / daily_rate_divisor
    cap_amount = round_money(cap_years * DAYS_PER_YEAR * daily_rate)

    if tenure_years < minimum_service_years:
        accrued = ZERO
    else:
        first_years = min(tenure_years, tier_threshold_years)
        later_years = max(tenure_years - tier_threshold_years, ZERO)
        accrued = first_years * first_tier_days + later_years * second_tier_days

    uncapped = round_money(accrued * daily_rate)
    return GratuityResult(
        tenure_years=tenure_years,
        accrued_days=accrued,
        daily_rate=round_money(daily_rate),
        uncapped_amount=uncapped,
        cap_amount=cap_amount,
        amount=min(uncapped, cap_amount),
    )


def settlement_amounts(
    gratuity: GratuityResult,
    basic_salary: Decimal,
    unused_leave_days: Decimal,
    unserved_notice_days: Decimal,
    other_earnings: Decimal = ZERO,
    other_deductions: Decimal = ZERO,
    daily_rate_divisor: Decimal = Decimal("30"),
) -> SettlementAmounts:
    """Encashment and notice pay at the same daily rate as the gratuity."""
    for name, value in (
        ("unused_leave_days", unused_leave_days),
        ("unserved_notice_days", unserved_notice_days),
        ("other_earnings", other_earnings),
        ("other_deductions", other_deductions),
    ):
        if value < ZERO:
            raise ValueError(f"{name} cannot be negative, got {value}")

    daily_rate = basic_salary / daily_rate_divisor
    encashment = round_money(unused_leave_days * daily_rate)
    notice_pay = round_money(unserved_notice_days * daily_rate)
    other_earnings = round_money(other_earnings)
    other_deductions = round_money(other_deductions)
    total = gratuity.amount + encashment + notice_pay + other_earnings - other_deductions
    return SettlementAmounts(
        gratuity=gratuity,
        leave_encashment=encashment,
        notice_pay=notice_pay,
        other_earnings=other_earnings,
        other_deductions=other_deductions,
        total_payable=round_money(total),
    )
