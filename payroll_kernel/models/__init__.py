"""ORM models for the payroll kernel."""

from payroll_kernel.models.approval import ApprovalLogEntry, ApprovalRequest
from payroll_kernel.models.attendance import AttendanceSummary
from payroll_kernel.models.employee import EmployeeProfile
from payroll_kernel.models.loan import EmployeeLoan, LoanDeduction
from payroll_kernel.models.payroll_period import PayrollPeriod, PeriodAuditEntry
from payroll_kernel.models.payroll_result import PayrollResult
from payroll_kernel.models.salary import ComponentAssignment, SalaryComponent
from payroll_kernel.models.settlement import FinalSettlement

__all__ = [
    "ApprovalLogEntry",
    "ApprovalRequest",
    "AttendanceSummary",
    "ComponentAssignment",
    "EmployeeLoan",
    "EmployeeProfile",
    "FinalSettlement",
    "LoanDeduction",
    "PayrollPeriod",
    "PayrollResult",
    "PeriodAuditEntry",
    "SalaryComponent",
    "import_all_models",
]


def import_all_models() -> tuple[type, ...]:
    """Return every mapped class; importing this package registers them on Base."""
    return (
        ApprovalLogEntry,
        ApprovalRequest,
        AttendanceSummary,
        ComponentAssignment,
        EmployeeLoan,
        EmployeeProfile,
        FinalSettlement,
        LoanDeduction,
        PayrollPeriod,
        PayrollResult,
        PeriodAuditEntry,
        SalaryComponent,
    )
