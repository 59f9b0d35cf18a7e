"""Flush-only kernel services. Transaction ownership lives in payroll_services."""

from payroll_kernel.services.attendance_service import AttendanceFeed, AttendanceService
from payroll_kernel.services.effective_dated_store import EffectiveDatedStore
from payroll_kernel.services.employee_directory import EmployeeDirectory
from payroll_kernel.services.loan_tracker import LoanTracker
from payroll_kernel.services.period_service import PeriodService
from payroll_kernel.services.salary_catalog import SalaryCatalog

__all__ = [
    "AttendanceFeed",
    "AttendanceService",
    "EffectiveDatedStore",
    "EmployeeDirectory",
    "LoanTracker",
    "PeriodService",
    "SalaryCatalog",
]
