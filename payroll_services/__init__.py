"""
Transactional payroll services.

Each public call here is a unit of work: it commits on success and rolls
back before re-raising.  The kernel services they compose only flush.
"""

from payroll_services.approval_coordinator import (
    ApprovalCoordinator,
    ApprovalSubscriber,
    AttendanceRegenerationSubscriber,
)
from payroll_services.locks import LockRegistry, default_registry
from payroll_services.payroll_calculator import PayrollCalculator
from payroll_services.payroll_run_orchestrator import (
    EmployeeOutcome,
    PayrollRunOrchestrator,
    PayrollRunReport,
)
from payroll_services.period_manager import PeriodManager
from payroll_services.seeding import seed_salary_catalog
from payroll_services.settlement_service import SettlementService, settlement_id_for
from payroll_services.wps_export_service import WpsExportService

__all__ = [
    "ApprovalCoordinator",
    "ApprovalSubscriber",
    "AttendanceRegenerationSubscriber",
    "EmployeeOutcome",
    "LockRegistry",
    "PayrollCalculator",
    "PayrollRunOrchestrator",
    "PayrollRunReport",
    "PeriodManager",
    "SettlementService",
    "WpsExportService",
    "default_registry",
    "seed_salary_catalog",
    "settlement_id_for",
]
