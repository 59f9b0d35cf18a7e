"""Shared constants and builders for payroll tests."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from payroll_kernel.domain.dtos import AttendanceSummaryInfo, EmployeeProfileInfo
from payroll_kernel.domain.types import DayType

# Test actor for all test operations
TEST_ACTOR_ID = uuid4()

EMPLOYEE_ID = "EMP001"
FEB_2026 = "PP-2026-02"
MAR_2026 = "PP-2026-03"
VALID_IBAN = "AE070331234567890123456"


def make_employee(
    employee_id: str = EMPLOYEE_ID,
    employee_code: str = "E001",
    name: str = "Aisha Rahman",
    joining_date: date = date(2019, 2, 15),
    **overrides,
) -> EmployeeProfileInfo:
    fields = dict(
        employee_id=employee_id,
        employee_code=employee_code,
        name=name,
        joining_date=joining_date,
        iban=VALID_IBAN,
        mohre_person_id="100234567890",
        labor_card_number="LC-778812",
    )
    fields.update(overrides)
    return EmployeeProfileInfo(**fields)


def month_summary(
    employee_id: str = EMPLOYEE_ID,
    start: date = date(2026, 2, 1),
    end: date = date(2026, 2, 28),
    overtime: dict[DayType, int] | None = None,
    leave: dict[str, str] | None = None,
) -> AttendanceSummaryInfo:
    return AttendanceSummaryInfo(
        employee_id=employee_id,
        date_from=start,
        date_to=end,
        worked_minutes=160 * 60,
        scheduled_minutes=160 * 60,
        overtime_minutes=overtime or {},
        leave_days={code: Decimal(days) for code, days in (leave or {}).items()},
    )
