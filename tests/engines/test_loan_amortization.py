from decimal import Decimal

import pytest

from payroll_engines.loan_amortization import next_installment, projected_schedule


class TestNextInstallment:
    def test_regular_installment(self):
        outcome = next_installment(Decimal("1000"), Decimal("5000"))

        assert outcome.amount == Decimal("1000.00")
        assert outcome.balance_after == Decimal("4000.00")
        assert not outcome.closes_loan

    def test_final_installment_is_the_remainder(self):
        outcome = next_installment(Decimal("1000"), Decimal("500"))

        assert outcome.amount == Decimal("500.00")
        assert outcome.balance_after == Decimal("0.00")
        assert outcome.closes_loan

    def test_settled_loan_deducts_nothing(self):
        assert next_installment(Decimal("1000"), Decimal("0")).amount == Decimal("0.00")

    @pytest.mark.parametrize("installment", [Decimal("0"), Decimal("-5")])
    def test_non_positive_installment_rejected(self, installment):
        with pytest.raises(ValueError):
            next_installment(installment, Decimal("100"))

    def test_negative_balance_rejected(self):
        with pytest.raises(ValueError):
            next_installment(Decimal("100"), Decimal("-1"))


class TestProjectedSchedule:
    def test_rolls_over_year_end(self):
        schedule = projected_schedule(Decimal("1000"), Decimal("2500"), 2026, 11)

        assert [(s.pay_year, s.pay_month, s.amount, s.balance_after) for s in schedule] == [
            (2026, 11, Decimal("1000.00"), Decimal("1500.00")),
            (2026, 12, Decimal("1000.00"), Decimal("500.00")),
            (2027, 1, Decimal("500.00"), Decimal("0.00")),
        ]

    def test_installments_sum_to_balance(self):
        schedule = projected_schedule(Decimal("333.33"), Decimal("1000"), 2026, 2)

        assert sum(s.amount for s in schedule) == Decimal("1000.00")
        assert schedule[-1].balance_after == Decimal("0.00")

    def test_nothing_remaining(self):
        assert projected_schedule(Decimal("1000"), Decimal("0"), 2026, 2) == []
