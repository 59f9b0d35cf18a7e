"""
Concurrency tests against a file-backed database shared by several threads.

Covers:
- Two callers locking the same period: exactly one wins
- A period locked while a calculation is in flight: the calculation is
  discarded with PeriodLockedError and nothing is written
- Repeated concurrent calculation of one employee: one row, one loan
  installment
- Whole-period runs report failures per employee without stopping the rest
- Concurrent approval submissions get unique, increasing sequences
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

import payroll_services.payroll_calculator as payroll_calculator_module
from payroll_kernel.domain.types import ApprovalType
from payroll_kernel.exceptions import (
    ConflictingTransitionError,
    NegativeNetPayError,
    PeriodLockedError,
)
from payroll_kernel.services.attendance_service import AttendanceService
from payroll_kernel.services.effective_dated_store import EffectiveDatedStore
from payroll_kernel.services.employee_directory import EmployeeDirectory
from payroll_kernel.services.loan_tracker import LoanTracker
from payroll_services.approval_coordinator import ApprovalCoordinator
from payroll_services.payroll_calculator import PayrollCalculator
from payroll_services.payroll_run_orchestrator import PayrollRunOrchestrator
from payroll_services.period_manager import PeriodManager
from payroll_services.seeding import seed_salary_catalog

from tests.factories import EMPLOYEE_ID, FEB_2026, make_employee, month_summary

pytestmark = pytest.mark.slow_locks

EMPLOYEE_IDS = [f"EMP{n:03d}" for n in range(1, 7)]
WAIT_SECONDS = 10


@pytest.fixture
def factory(file_engine):
    return sessionmaker(bind=file_engine, expire_on_commit=False)


@pytest.fixture
def seeded(factory, settings, clock, locks, actor_id):
    """Six employees on basic 5000 and a DRAFT February period."""
    with factory() as session:
        seed_salary_catalog(session, settings, actor_id)
        directory = EmployeeDirectory(session, clock)
        store = EffectiveDatedStore(session, clock)
        for n, employee_id in enumerate(EMPLOYEE_IDS, start=1):
            directory.sync(make_employee(employee_id, f"E{n:03d}", f"Employee {n}"), actor_id)
            store.assign(
                employee_id, "SC-BASIC", Decimal("5000"), date(2026, 1, 1), actor_id=actor_id
            )
        session.commit()
        PeriodManager(session, clock, locks).create_period(
            FEB_2026, settings.organization_id, date(2026, 2, 1), date(2026, 2, 28), 2, 2026, actor_id
        )


def _run_in_threads(count, fn):
    """Start ``count`` calls of ``fn`` together; return results or exceptions."""
    barrier = threading.Barrier(count)

    def _call(i):
        barrier.wait(timeout=WAIT_SECONDS)
        try:
            return fn(i)
        except Exception as exc:
            return exc

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(_call, range(count)))


class TestPeriodLockRace:
    def test_exactly_one_lock_wins(self, factory, seeded, clock, locks, actor_id):
        with factory() as session:
            PeriodManager(session, clock, locks).approve(FEB_2026, actor_id)

        def _lock(_):
            with factory() as session:
                return PeriodManager(session, clock, locks).lock(FEB_2026, actor_id)

        outcomes = _run_in_threads(4, _lock)

        errors = [o for o in outcomes if isinstance(o, Exception)]
        assert len(outcomes) - len(errors) == 1
        assert all(isinstance(e, ConflictingTransitionError) for e in errors)
        with factory() as session:
            trail = PeriodManager(session, clock, locks).audit_trail(FEB_2026)
        assert [e.action.value for e in trail].count("lock") == 1


class TestLockDuringCalculation:
    def test_in_flight_calculation_is_discarded(
        self, factory, seeded, settings, clock, locks, actor_id, monkeypatch
    ):
        computing = threading.Event()
        release = threading.Event()
        real_engine = payroll_calculator_module.calculate_payroll

        def _slow_engine(**inputs):
            computing.set()
            assert release.wait(WAIT_SECONDS)
            return real_engine(**inputs)

        monkeypatch.setattr(payroll_calculator_module, "calculate_payroll", _slow_engine)

        def _calculate():
            with factory() as session:
                return PayrollCalculator(session, settings, clock, locks).calculate(
                    FEB_2026, EMPLOYEE_ID, actor_id
                )

        with ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(_calculate)
            assert computing.wait(WAIT_SECONDS)

            with factory() as session:
                manager = PeriodManager(session, clock, locks)
                manager.approve(FEB_2026, actor_id)
                manager.lock(FEB_2026, actor_id)
            release.set()

            with pytest.raises(PeriodLockedError):
                future.result(timeout=WAIT_SECONDS)

        with factory() as session:
            calculator = PayrollCalculator(session, settings, clock, locks)
            assert calculator.get_result(FEB_2026, EMPLOYEE_ID) is None


class TestRepeatedCalculation:
    def test_one_row_and_one_installment(self, factory, seeded, settings, clock, locks, actor_id):
        with factory() as session:
            LoanTracker(session, clock).create_loan(
                "LN-001", EMPLOYEE_ID, Decimal("10000"), Decimal("1000"), FEB_2026, actor_id,
                remaining_balance=Decimal("5000"),
            )
            session.commit()

        def _calculate(_):
            with factory() as session:
                return PayrollCalculator(session, settings, clock, locks).calculate(
                    FEB_2026, EMPLOYEE_ID, actor_id
                )

        outcomes = _run_in_threads(4, _calculate)

        assert not [o for o in outcomes if isinstance(o, Exception)]
        assert {o.input_fingerprint for o in outcomes} == {outcomes[0].input_fingerprint}
        assert {o.net for o in outcomes} == {Decimal("4000.00")}
        with factory() as session:
            loans = LoanTracker(session, clock)
            assert loans.get_loan("LN-001").remaining_balance == Decimal("4000.00")
            assert len(loans.deductions_for(EMPLOYEE_ID, FEB_2026)) == 1
            assert len(PayrollCalculator(session, settings, clock, locks).results_for_period(FEB_2026)) == 1


class TestPayrollRun:
    def test_every_employee_calculated(self, factory, seeded, settings, clock, locks, actor_id):
        orchestrator = PayrollRunOrchestrator(factory, settings, clock, locks, max_workers=3)

        report = orchestrator.run_period(FEB_2026, actor_id)

        assert report.all_succeeded
        assert [o.employee_id for o in report.outcomes] == EMPLOYEE_IDS
        assert {o.result.net for o in report.outcomes} == {Decimal("5000.00")}

    def test_failure_is_isolated(
        self, factory, seeded, settings, clock, locks, actor_id, captured_logs
    ):
        with factory() as session:
            AttendanceService(session, clock).record_summary(
                month_summary("EMP003", leave={"UL": "40"}), actor_id
            )
            session.commit()
        orchestrator = PayrollRunOrchestrator(factory, settings, clock, locks, max_workers=3)

        report = orchestrator.run_period(FEB_2026, actor_id)

        assert [o.employee_id for o in report.failed] == ["EMP003"]
        assert isinstance(report.failed[0].error, NegativeNetPayError)
        assert len(report.succeeded) == 5
        failures = [r for r in captured_logs() if r["message"] == "payroll_run_employee_failed"]
        assert len(failures) == 1
        assert failures[0]["level"] == "ERROR"
        assert failures[0]["error_code"] == "NEGATIVE_NET_PAY"

    def test_selected_employees_only(self, factory, seeded, settings, clock, locks, actor_id):
        orchestrator = PayrollRunOrchestrator(factory, settings, clock, locks)

        report = orchestrator.run_period(FEB_2026, actor_id, employee_ids=["EMP002", "EMP001"])

        assert [o.employee_id for o in report.outcomes] == ["EMP001", "EMP002"]

    def test_locked_period_fails_every_employee(
        self, factory, seeded, settings, clock, locks, actor_id
    ):
        with factory() as session:
            manager = PeriodManager(session, clock, locks)
            manager.approve(FEB_2026, actor_id)
            manager.lock(FEB_2026, actor_id)
        orchestrator = PayrollRunOrchestrator(factory, settings, clock, locks)

        report = orchestrator.run_period(FEB_2026, actor_id)

        assert len(report.failed) == len(EMPLOYEE_IDS)
        assert all(isinstance(o.error, PeriodLockedError) for o in report.failed)


class TestConcurrentSubmissions:
    def test_sequences_are_unique(self, factory, file_engine, clock, actor_id):
        def _submit(i):
            with factory() as session:
                return ApprovalCoordinator(session, clock).submit(
                    f"AR-{i}", ApprovalType.ATTENDANCE, f"REF-{i}", EMPLOYEE_ID, actor_id
                )

        outcomes = _run_in_threads(6, _submit)

        assert not [o for o in outcomes if isinstance(o, Exception)]
        assert sorted(o.sequence for o in outcomes) == [1, 2, 3, 4, 5, 6]
        with factory() as session:
            queue = ApprovalCoordinator(session, clock).pending()
        assert [r.sequence for r in queue] == [1, 2, 3, 4, 5, 6]
