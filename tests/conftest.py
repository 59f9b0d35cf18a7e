"""
Pytest fixtures for the payroll engine test suite.

Provides:
- A fresh database per test (in-memory SQLite by default)
- Seeded organization settings, salary catalog, employee and pay period
- Structured log capture

Environment Variables:
- DATABASE_URL: database to run against instead of in-memory SQLite.  Tables
  are dropped and recreated for every test.
"""

import json
import logging
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy.orm import sessionmaker

from payroll_config import get_organization_settings
from payroll_kernel.db.engine import build_engine, create_tables, drop_tables
from payroll_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from payroll_kernel.domain.clock import DeterministicClock
from payroll_kernel.domain.dtos import AttendanceSummaryInfo, EmployeeProfileInfo
from payroll_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from payroll_kernel.services.attendance_service import AttendanceService
from payroll_kernel.services.effective_dated_store import EffectiveDatedStore
from payroll_kernel.services.employee_directory import EmployeeDirectory
from payroll_services.locks import LockRegistry
from payroll_services.period_manager import PeriodManager
from payroll_services.seeding import seed_salary_catalog

from tests.factories import EMPLOYEE_ID, FEB_2026, TEST_ACTOR_ID, make_employee


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture payroll_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, calculator):
            calculator.calculate(...)
            logs = captured_logs()
            assert any(r["message"] == "payroll_result_written" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("payroll_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", "sqlite://")


@pytest.fixture(autouse=True, scope="session")
def _immutability_listeners():
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()


def _fresh_engine(url: str):
    engine = build_engine(url)
    drop_tables(engine)
    create_tables(engine)
    return engine


@pytest.fixture
def engine():
    eng = _fresh_engine(get_database_url())
    yield eng
    eng.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite shared by several threads (concurrency tests)."""
    url = os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'payroll.db'}"
    eng = _fresh_engine(url)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def actor_id():
    return TEST_ACTOR_ID


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings():
    return get_organization_settings()


@pytest.fixture
def locks():
    return LockRegistry()


@pytest.fixture
def catalog(session, settings, actor_id):
    return seed_salary_catalog(session, settings, actor_id)


@pytest.fixture
def sync_employee(session, clock, actor_id):
    def _sync(info: EmployeeProfileInfo) -> EmployeeProfileInfo:
        synced = EmployeeDirectory(session, clock).sync(info, actor_id)
        session.commit()
        return synced

    return _sync


@pytest.fixture
def employee(sync_employee, catalog):
    return sync_employee(make_employee())


@pytest.fixture
def period_manager(session, clock, locks):
    return PeriodManager(session, clock, locks)


@pytest.fixture
def create_period(period_manager, settings, actor_id):
    def _create(period_code: str, start: date, end: date, pay_month: int, pay_year: int):
        return period_manager.create_period(
            period_code, settings.organization_id, start, end, pay_month, pay_year, actor_id
        )

    return _create


@pytest.fixture
def feb_period(create_period):
    return create_period(FEB_2026, date(2026, 2, 1), date(2026, 2, 28), 2, 2026)


@pytest.fixture
def store(session, clock, catalog, settings):
    return EffectiveDatedStore(session, clock, organization_id=settings.organization_id)


@pytest.fixture
def assign(store, session, actor_id):
    """Assign an amount and commit."""

    def _assign(component_id, amount, effective_from, effective_to=None, employee_id=EMPLOYEE_ID):
        store.assign(
            employee_id,
            component_id,
            Decimal(amount),
            effective_from,
            effective_to,
            actor_id=actor_id,
        )
        session.commit()

    return _assign


@pytest.fixture
def standard_package(assign, employee):
    """Basic 8000, housing 4000, transport 1000 from 2026-01-01."""
    assign("SC-BASIC", "8000", date(2026, 1, 1))
    assign("SC-HOUSING", "4000", date(2026, 1, 1))
    assign("SC-TRANSPORT", "1000", date(2026, 1, 1))


@pytest.fixture
def record_attendance(session, clock, settings, actor_id):
    attendance = AttendanceService(session, clock, organization_id=settings.organization_id)

    def _record(info: AttendanceSummaryInfo) -> AttendanceSummaryInfo:
        recorded = attendance.record_summary(info, actor_id)
        session.commit()
        return recorded

    return _record
