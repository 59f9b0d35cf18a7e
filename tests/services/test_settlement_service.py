"""
Tests for end-of-service final settlements.

Covers:
- Gratuity on the basic salary active on the termination date
- Notice pay defaulting to the employee's notice period
- DRAFT recalculation, APPROVED/PAID finality
- Status transitions are compare-and-swap
"""

from datetime import date
from decimal import Decimal

import pytest

from payroll_kernel.domain.types import SettlementStatus
from payroll_kernel.exceptions import (
    AssignmentNotFoundError,
    PeriodNotFoundError,
    SettlementConflictError,
    SettlementNotFoundError,
)
from payroll_services.settlement_service import SettlementService, settlement_id_for

from tests.factories import EMPLOYEE_ID, FEB_2026

TERMINATION = date(2026, 2, 15)
SETTLEMENT_ID = settlement_id_for(EMPLOYEE_ID)


@pytest.fixture
def settlements(session, settings, clock):
    return SettlementService(session, settings, clock)


@pytest.fixture
def raised_basic(store, session, assign, employee, actor_id):
    """Basic 8000 from January, 9000 from 1 February."""
    assign("SC-BASIC", "8000", date(2026, 1, 1))
    store.supersede(EMPLOYEE_ID, "SC-BASIC", Decimal("9000"), date(2026, 2, 1), actor_id=actor_id)
    session.commit()


class TestCalculate:
    def test_seven_years_of_service(self, settlements, raised_basic, feb_period, actor_id):
        info = settlements.calculate(
            EMPLOYEE_ID, TERMINATION, actor_id, unserved_notice_days=Decimal("0")
        )

        assert info.settlement_id == SETTLEMENT_ID
        assert info.period_code == FEB_2026
        assert info.basic_salary == Decimal("9000")
        assert info.tenure_years == Decimal("7")
        assert info.accrued_gratuity_days == Decimal("165")
        assert info.gratuity_amount == Decimal("49500.00")
        assert info.total_payable == Decimal("49500.00")
        assert info.status == SettlementStatus.DRAFT

    def test_notice_defaults_to_notice_period(self, settlements, raised_basic, feb_period, actor_id):
        info = settlements.calculate(EMPLOYEE_ID, TERMINATION, actor_id)

        # 30 days at 300 per day
        assert info.notice_pay_amount == Decimal("9000.00")
        assert info.total_payable == Decimal("58500.00")

    def test_leave_encashment_and_adjustments(self, settlements, raised_basic, feb_period, actor_id):
        info = settlements.calculate(
            EMPLOYEE_ID,
            TERMINATION,
            actor_id,
            unused_leave_days=Decimal("12.5"),
            unserved_notice_days=Decimal("0"),
            other_earnings=Decimal("250"),
            other_deductions=Decimal("1000"),
        )

        assert info.leave_encashment_amount == Decimal("3750.00")
        assert info.total_payable == Decimal("52500.00")

    def test_recalculating_a_draft_overwrites(self, settlements, raised_basic, feb_period, actor_id):
        settlements.calculate(EMPLOYEE_ID, TERMINATION, actor_id)

        info = settlements.calculate(
            EMPLOYEE_ID, TERMINATION, actor_id, unserved_notice_days=Decimal("0")
        )

        assert info.total_payable == Decimal("49500.00")
        assert settlements.settlements_for_period(FEB_2026) == [info]

    def test_no_basic_on_termination_date(self, settlements, employee, feb_period, actor_id):
        with pytest.raises(AssignmentNotFoundError):
            settlements.calculate(EMPLOYEE_ID, TERMINATION, actor_id)

    def test_no_period_covers_termination(self, settlements, raised_basic, actor_id):
        with pytest.raises(PeriodNotFoundError):
            settlements.calculate(EMPLOYEE_ID, TERMINATION, actor_id)


class TestTransitions:
    @pytest.fixture
    def draft(self, settlements, raised_basic, feb_period, actor_id):
        return settlements.calculate(EMPLOYEE_ID, TERMINATION, actor_id)

    def test_approve_then_pay(self, settlements, draft, actor_id):
        settlements.approve(SETTLEMENT_ID, actor_id)
        paid = settlements.mark_paid(SETTLEMENT_ID, actor_id)

        assert paid.status == SettlementStatus.PAID
        assert settlements.get_settlement(SETTLEMENT_ID).status == SettlementStatus.PAID

    def test_pay_before_approval_is_a_conflict(self, settlements, draft, actor_id):
        with pytest.raises(SettlementConflictError):
            settlements.mark_paid(SETTLEMENT_ID, actor_id)

        assert settlements.get_settlement(SETTLEMENT_ID).status == SettlementStatus.DRAFT

    def test_approved_settlement_is_final(self, settlements, draft, actor_id):
        settlements.approve(SETTLEMENT_ID, actor_id)

        with pytest.raises(SettlementConflictError):
            settlements.calculate(EMPLOYEE_ID, TERMINATION, actor_id)

        assert settlements.get_settlement(SETTLEMENT_ID).total_payable == draft.total_payable

    def test_unknown_settlement(self, settlements, actor_id):
        with pytest.raises(SettlementNotFoundError):
            settlements.approve("FS-NOBODY", actor_id)
