"""
payroll_engines.loan_amortization -- pure installment arithmetic for employee loans.

deduction = min(installment, remaining); the balance never goes negative and
the last installment is whatever is left.
"""

from dataclasses import dataclass
from decimal import Decimal

from payroll_engines.tracer import traced_engine
from payroll_kernel.db.types import ZERO, round_money


@dataclass(frozen=True)
class InstallmentOutcome:
    amount: Decimal
    balance_after: Decimal

    @property
    def closes_loan(self) -> bool:
        return self.balance_after == ZERO


@dataclass(frozen=True)
class ScheduledInstallment:
    pay_year: int
    pay_month: int
    amount: Decimal
    balance_after: Decimal


@traced_engine("loan_installment", "1.0", fingerprint_fields=("installment", "remaining"))
def next_installment(installment: Decimal, remaining: Decimal) -> InstallmentOutcome:
    if installment <= ZERO:
        raise ValueError(f"Installment must be positive, got {installment}")
    if remaining < ZERO:
        raise ValueError(f"Remaining balance cannot be negative, got {remaining}")
    amount = round_money(min(installment, remaining))
    return InstallmentOutcome(amount=amount, balance_after=round_money(remaining - amount))


def _next_month(year: int, month: int) -> tuple[int, int]:
    return (year + 1, 1) if month == 12 else (year, month + 1)


@traced_engine(
    "loan_schedule",
    "1.0",
    fingerprint_fields=("installment", "remaining", "first_pay_year", "first_pay_month"),
)
def projected_schedule(
    installment: Decimal,
    remaining: Decimal,
    first_pay_year: int,
    first_pay_month: int,
) -> list[ScheduledInstallment]:
    """Remaining installments month by month, starting at the given pay month."""
    if installment <= ZERO:
        raise ValueError(f"Installment must be positive, got {installment}")
    schedule: list[ScheduledInstallment] = []
    year, month = first_pay_year, first_pay_month
    balance = remaining
    while balance > ZERO:
        amount = min(installment, balance)
        balance -= amount
        schedule.append(
            ScheduledInstallment(
                pay_year=year,
                pay_month=month,
                amount=round_money(amount),
                balance_after=round_money(balance),
            )
        )
        year, month = _next_month(year, month)
    return schedule
