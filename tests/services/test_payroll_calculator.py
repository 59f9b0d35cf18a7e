"""
Tests for PayrollCalculator.

Covers:
- Stored result for a standard package, with and without a mid-month raise
- Overtime and unpaid leave flowing from attendance summaries
- Negative net pay is rejected and nothing is written
- Recalculating with unchanged inputs leaves the stored row untouched
- The stored loan deduction always matches the deduction ledger
- APPROVED periods freeze attendance but still recalculate
- LOCKED periods reject calculation; reopening allows it again
"""

from datetime import date
from decimal import Decimal

import pytest

import payroll_services.payroll_calculator as payroll_calculator_module
from payroll_kernel.domain.types import DayType
from payroll_kernel.exceptions import (
    EmployeeNotFoundError,
    NegativeNetPayError,
    PeriodApprovedError,
    PeriodLockedError,
)
from payroll_kernel.services.attendance_service import AttendanceService
from payroll_kernel.services.loan_tracker import LoanTracker
from payroll_services.payroll_calculator import PayrollCalculator

from tests.factories import EMPLOYEE_ID, FEB_2026, MAR_2026, month_summary


@pytest.fixture
def calculator(session, settings, clock, locks):
    return PayrollCalculator(session, settings, clock, locks)


class TestCalculate:
    def test_standard_package(self, calculator, standard_package, feb_period, actor_id, clock):
        result = calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id)

        assert result.fixed_amount == Decimal("13000.00")
        assert result.variable_amount == Decimal("0.00")
        assert result.gross == Decimal("13000.00")
        assert result.net == Decimal("13000.00")
        assert result.days_worked == 30
        assert result.generated_at == clock.now()
        assert [e.component_id for e in result.earnings] == [
            "SC-BASIC",
            "SC-HOUSING",
            "SC-TRANSPORT",
        ]

    def test_result_is_persisted(self, calculator, standard_package, feb_period, actor_id):
        written = calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id)

        assert calculator.get_result(FEB_2026, EMPLOYEE_ID) == written
        assert calculator.results_for_period(FEB_2026) == [written]

    def test_mid_month_raise_is_prorated(
        self, calculator, store, session, assign, employee, feb_period, actor_id
    ):
        assign("SC-BASIC", "8000", date(2026, 1, 1))
        store.supersede(
            EMPLOYEE_ID, "SC-BASIC", Decimal("9000"), date(2026, 2, 15), actor_id=actor_id
        )
        session.commit()

        result = calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id)

        assert result.fixed_amount == Decimal("8500.00")

    def test_overtime_is_variable_pay(
        self, calculator, standard_package, feb_period, record_attendance, actor_id
    ):
        record_attendance(month_summary(overtime={DayType.WEEKEND: 180}))

        result = calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id)

        assert result.overtime_amount == Decimal("150.00")
        assert result.variable_amount == Decimal("150.00")
        assert result.net == Decimal("13150.00")

    def test_unpaid_leave_deducted(
        self, calculator, standard_package, feb_period, record_attendance, actor_id
    ):
        record_attendance(month_summary(leave={"UL": "2", "AL": "3"}))

        result = calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id)

        assert result.unpaid_leave_deduction == Decimal("571.43")
        assert result.net == Decimal("12428.57")

    def test_unknown_employee(self, calculator, catalog, feb_period, actor_id):
        with pytest.raises(EmployeeNotFoundError):
            calculator.calculate(FEB_2026, "EMP404", actor_id)


class TestNegativeNet:
    def test_rejected_without_writing(
        self, calculator, standard_package, feb_period, record_attendance, actor_id
    ):
        record_attendance(month_summary(leave={"UL": "50"}))

        with pytest.raises(NegativeNetPayError) as exc_info:
            calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id)

        assert exc_info.value.gross == Decimal("13000.00")
        assert exc_info.value.deductions == Decimal("14285.71")
        assert calculator.get_result(FEB_2026, EMPLOYEE_ID) is None

    def test_loan_installment_not_consumed(
        self, calculator, session, clock, standard_package, feb_period, record_attendance, actor_id
    ):
        loans = LoanTracker(session, clock)
        loans.create_loan("LN-001", EMPLOYEE_ID, Decimal("10000"), Decimal("1000"), FEB_2026, actor_id)
        session.commit()
        record_attendance(month_summary(leave={"UL": "50"}))

        with pytest.raises(NegativeNetPayError):
            calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id)

        assert loans.get_loan("LN-001").remaining_balance == Decimal("10000.00")
        assert loans.deductions_for(EMPLOYEE_ID, FEB_2026) == []


class TestIdempotency:
    def test_unchanged_inputs_keep_stored_row(
        self, calculator, standard_package, feb_period, actor_id, clock, captured_logs
    ):
        first = calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id)
        clock.advance(3600)

        second = calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id)

        assert second == first
        assert second.generated_at == first.generated_at
        messages = [r["message"] for r in captured_logs()]
        assert messages.count("payroll_result_written") == 1
        assert messages.count("payroll_result_unchanged") == 1

    def test_changed_inputs_overwrite(
        self, calculator, standard_package, feb_period, record_attendance, actor_id, clock
    ):
        first = calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id)
        record_attendance(month_summary(overtime={DayType.WEEKEND: 180}))
        clock.advance(3600)

        second = calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id)

        assert second.input_fingerprint != first.input_fingerprint
        assert second.net == Decimal("13150.00")
        assert second.generated_at == clock.now()
        assert len(calculator.results_for_period(FEB_2026)) == 1

    def test_rerun_does_not_deduct_loan_twice(
        self, calculator, session, clock, standard_package, feb_period, actor_id
    ):
        loans = LoanTracker(session, clock)
        loans.create_loan("LN-001", EMPLOYEE_ID, Decimal("10000"), Decimal("1000"), FEB_2026, actor_id)
        session.commit()

        first = calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id)
        second = calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id)

        assert first.loan_deduction == second.loan_deduction == Decimal("1000.00")
        assert second.net == Decimal("12000.00")
        assert loans.get_loan("LN-001").remaining_balance == Decimal("9000.00")


class TestLockedPeriod:
    @pytest.fixture
    def locked_feb(self, standard_package, feb_period, period_manager, actor_id):
        period_manager.approve(FEB_2026, actor_id)
        return period_manager.lock(FEB_2026, actor_id)

    def test_calculation_rejected(self, calculator, locked_feb, actor_id, captured_logs):
        with pytest.raises(PeriodLockedError) as exc_info:
            calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id)

        assert exc_info.value.period_code == FEB_2026
        rejected = [r for r in captured_logs() if r["message"] == "locked_period_write_rejected"]
        assert rejected and rejected[0]["employee_id"] == EMPLOYEE_ID

    def test_approved_period_still_recalculates(
        self, calculator, standard_package, feb_period, period_manager, actor_id
    ):
        period_manager.approve(FEB_2026, actor_id)

        assert calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id).net == Decimal("13000.00")

    def test_reopen_allows_recalculation(self, calculator, locked_feb, period_manager, actor_id):
        period_manager.reopen(FEB_2026, actor_id, "bank rejected the file")

        assert calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id).net == Decimal("13000.00")

    def test_approved_period_freezes_attendance(
        self, calculator, session, clock, settings, standard_package, feb_period,
        period_manager, actor_id,
    ):
        calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id)
        period_manager.approve(FEB_2026, actor_id)
        attendance = AttendanceService(session, clock, organization_id=settings.organization_id)

        with pytest.raises(PeriodApprovedError) as exc_info:
            attendance.record_summary(month_summary(overtime={DayType.WEEKEND: 180}), actor_id)
        session.rollback()

        assert exc_info.value.period_code == FEB_2026
        assert attendance.summaries(EMPLOYEE_ID, date(2026, 2, 1), date(2026, 2, 28)) == []
        assert calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id).net == Decimal("13000.00")

    def test_other_organization_lock_leaves_attendance_open(
        self, calculator, standard_package, feb_period, period_manager, record_attendance, actor_id
    ):
        period_manager.create_period(
            "OTHER-2026-02", "ORG-OTHER", date(2026, 2, 1), date(2026, 2, 28), 2, 2026, actor_id
        )
        period_manager.approve("OTHER-2026-02", actor_id)
        period_manager.lock("OTHER-2026-02", actor_id)

        record_attendance(month_summary(overtime={DayType.WEEKEND: 180}))

        assert calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id).overtime_amount == Decimal(
            "150.00"
        )


class TestLoanMovedDuringCalculation:
    def test_stored_deduction_matches_ledger(
        self, calculator, session, clock, standard_package, feb_period, create_period,
        actor_id, monkeypatch, captured_logs,
    ):
        mar_period = create_period(MAR_2026, date(2026, 3, 1), date(2026, 3, 31), 3, 2026)
        loans = LoanTracker(session, clock)
        loans.create_loan(
            "LN-001", EMPLOYEE_ID, Decimal("10000"), Decimal("1000"), FEB_2026, actor_id,
            remaining_balance=Decimal("500"),
        )
        session.commit()
        real_engine = payroll_calculator_module.calculate_payroll
        seen_loan_inputs = []

        def _engine_with_march_applied_first(**inputs):
            if not seen_loan_inputs:
                loans.apply_deduction("LN-001", mar_period, actor_id)
            seen_loan_inputs.append(inputs["loan_deduction"])
            return real_engine(**inputs)

        monkeypatch.setattr(
            payroll_calculator_module, "calculate_payroll", _engine_with_march_applied_first
        )

        result = calculator.calculate(FEB_2026, EMPLOYEE_ID, actor_id)

        assert seen_loan_inputs == [Decimal("500.00"), Decimal("0.00")]
        assert result.loan_deduction == Decimal("0")
        assert result.net == Decimal("13000.00")
        assert loans.deductions_for(EMPLOYEE_ID, FEB_2026) == []
        assert [d.amount for d in loans.deductions_for(EMPLOYEE_ID, MAR_2026)] == [
            Decimal("500.00")
        ]
        changed = [
            r for r in captured_logs()
            if r["message"] == "loan_deduction_changed_during_calculation"
        ]
        assert changed[0]["previewed"] == "500.00"
