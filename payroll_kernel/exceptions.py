"""
Typed Exception Hierarchy for the Payroll Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Payroll errors have direct financial and legal consequences. Callers must be
able to tell a locked period from an overlapping salary interval without
parsing message strings. Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (rendered into JSON logs)

Example:
    try:
        calculator.calculate("PP-2026-02", "EMP001", actor_id=actor)
    except PeriodLockedError as e:
        api_response(code=e.code, period=e.period_code)
    except NegativeNetPayError as e:
        flag_for_correction(e.employee_id, e.gross, e.deductions)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayrollKernelError (base)
    |
    +-- ValidationError                 surfaced before any write
    |   +-- OverlapError
    |   +-- InvalidIntervalError
    |   +-- InvalidAssignmentError
    |   +-- DuplicateComponentError
    |   +-- DuplicatePeriodError
    |   +-- InvalidLoanError
    |
    +-- NotFoundError
    |   +-- AssignmentNotFoundError
    |   +-- ComponentNotFoundError
    |   +-- PeriodNotFoundError
    |   +-- EmployeeNotFoundError
    |   +-- LoanNotFoundError
    |   +-- ApprovalRequestNotFoundError
    |   +-- SettlementNotFoundError
    |
    +-- StateError                      business-process violations, never retried
    |   +-- PeriodLockedError
    |   +-- PeriodApprovedError
    |   +-- ConflictingTransitionError
    |   +-- SettlementConflictError
    |   +-- AlreadyDecidedError
    |   +-- DuplicateLoanDeductionError
    |   +-- ImmutabilityViolationError
    |
    +-- ComputationError                blocking, requires upstream correction
    |   +-- NegativeNetPayError
    |
    +-- ComplianceError
        +-- IncompleteComplianceDataError
        +-- WpsNotApplicableError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised
-------------|-------------------------------|--------------------------------------
Validation   | INTERVAL_OVERLAP              | New assignment intersects existing one
             | INVALID_INTERVAL              | effective_to <= effective_from
             | INVALID_ASSIGNMENT            | Assignment to a DERIVED component
             | DUPLICATE_COMPONENT           | Catalog entry redefined differently
             | DUPLICATE_PERIOD              | Second period for same pay month
             | INVALID_LOAN                  | Non-positive installment, bad balance
-------------|-------------------------------|--------------------------------------
Not found    | ASSIGNMENT_NOT_FOUND          | No interval contains the date
             | COMPONENT_NOT_FOUND           | Unknown component id
             | PERIOD_NOT_FOUND              | Unknown period code
             | EMPLOYEE_NOT_FOUND            | Unknown employee id
             | LOAN_NOT_FOUND                | Unknown loan id
             | APPROVAL_REQUEST_NOT_FOUND    | Unknown approval request id
             | SETTLEMENT_NOT_FOUND          | Unknown settlement id
-------------|-------------------------------|--------------------------------------
State        | PERIOD_LOCKED                 | Mutation touching a LOCKED period
             | PERIOD_APPROVED               | Attendance edit in an APPROVED period
             | CONFLICTING_TRANSITION        | Status changed underneath the caller
             | SETTLEMENT_CONFLICT           | PAID settlement blocks reopen/recalc
             | ALREADY_DECIDED               | Approval request no longer PENDING
             | DUPLICATE_LOAN_DEDUCTION      | (loan, period) applied concurrently
             | IMMUTABILITY_VIOLATION        | Append-only record modified
-------------|-------------------------------|--------------------------------------
Computation  | NEGATIVE_NET_PAY              | Deductions exceed gross
-------------|-------------------------------|--------------------------------------
Compliance   | INCOMPLETE_COMPLIANCE_DATA    | SIF fields missing or malformed
             | WPS_NOT_APPLICABLE            | Organization is not under WPS

===============================================================================
"""

from datetime import date
from decimal import Decimal


class PayrollKernelError(Exception):
    """
    Base exception for all payroll kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PAYROLL_KERNEL_ERROR"


# Validation errors


class ValidationError(PayrollKernelError):
    """Base exception for input that is rejected before any write."""

    code: str = "VALIDATION_ERROR"


class OverlapError(ValidationError):
    """New effective-dated interval intersects an existing one."""

    code: str = "INTERVAL_OVERLAP"

    def __init__(
        self,
        employee_id: str,
        component_id: str,
        effective_from: date,
        effective_to: date | None,
        existing_from: date,
        existing_to: date | None,
    ):
        self.employee_id = employee_id
        self.component_id = component_id
        self.effective_from = effective_from
        self.effective_to = effective_to
        self.existing_from = existing_from
        self.existing_to = existing_to
        super().__init__(
            f"Assignment {component_id} for {employee_id} "
            f"[{effective_from}, {effective_to or 'open'}) overlaps existing "
            f"[{existing_from}, {existing_to or 'open'})"
        )


class InvalidIntervalError(ValidationError):
    """Interval bounds are empty or inverted."""

    code: str = "INVALID_INTERVAL"

    def __init__(self, effective_from: date, effective_to: date | None, reason: str):
        self.effective_from = effective_from
        self.effective_to = effective_to
        self.reason = reason
        super().__init__(
            f"Invalid interval [{effective_from}, {effective_to or 'open'}): {reason}"
        )


class InvalidAssignmentError(ValidationError):
    """Assignment is not allowed for this component."""

    code: str = "INVALID_ASSIGNMENT"

    def __init__(self, component_id: str, reason: str):
        self.component_id = component_id
        self.reason = reason
        super().__init__(f"Cannot assign component {component_id}: {reason}")


class DuplicateComponentError(ValidationError):
    """Catalog entry already exists with a different definition."""

    code: str = "DUPLICATE_COMPONENT"

    def __init__(self, component_id: str):
        self.component_id = component_id
        super().__init__(
            f"Salary component {component_id} already exists with a different definition"
        )


class DuplicatePeriodError(ValidationError):
    """A period already exists for the pay month in this organization."""

    code: str = "DUPLICATE_PERIOD"

    def __init__(
        self,
        organization_id: str,
        pay_month: int,
        pay_year: int,
        existing_period_code: str,
    ):
        self.organization_id = organization_id
        self.pay_month = pay_month
        self.pay_year = pay_year
        self.existing_period_code = existing_period_code
        super().__init__(
            f"Period {existing_period_code} already covers {pay_year}-{pay_month:02d} "
            f"for organization {organization_id}"
        )


class InvalidLoanError(ValidationError):
    """Loan terms are inconsistent."""

    code: str = "INVALID_LOAN"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid loan: {reason}")


# Not-found errors


class NotFoundError(PayrollKernelError):
    """Base exception for lookups that found nothing."""

    code: str = "NOT_FOUND"


class AssignmentNotFoundError(NotFoundError):
    """No assignment interval contains the requested date."""

    code: str = "ASSIGNMENT_NOT_FOUND"

    def __init__(self, employee_id: str, component_id: str, as_of: date):
        self.employee_id = employee_id
        self.component_id = component_id
        self.as_of = as_of
        super().__init__(
            f"No {component_id} assignment for {employee_id} active on {as_of}"
        )


class ComponentNotFoundError(NotFoundError):
    """Salary component is not in the catalog."""

    code: str = "COMPONENT_NOT_FOUND"

    def __init__(self, component_id: str):
        self.component_id = component_id
        super().__init__(f"Salary component not found: {component_id}")


class PeriodNotFoundError(NotFoundError):
    """Payroll period does not exist."""

    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, period_code: str):
        self.period_code = period_code
        super().__init__(f"Payroll period not found: {period_code}")


class EmployeeNotFoundError(NotFoundError):
    """Employee profile has not been synchronized from the master."""

    code: str = "EMPLOYEE_NOT_FOUND"

    def __init__(self, employee_id: str):
        self.employee_id = employee_id
        super().__init__(f"Employee not found: {employee_id}")


class LoanNotFoundError(NotFoundError):
    """Loan does not exist."""

    code: str = "LOAN_NOT_FOUND"

    def __init__(self, loan_id: str):
        self.loan_id = loan_id
        super().__init__(f"Loan not found: {loan_id}")


class ApprovalRequestNotFoundError(NotFoundError):
    """Approval request does not exist."""

    code: str = "APPROVAL_REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Approval request not found: {request_id}")


class SettlementNotFoundError(NotFoundError):
    """Final settlement does not exist."""

    code: str = "SETTLEMENT_NOT_FOUND"

    def __init__(self, settlement_id: str):
        self.settlement_id = settlement_id
        super().__init__(f"Final settlement not found: {settlement_id}")


# State errors


class StateError(PayrollKernelError):
    """Base exception for operations the current lifecycle state forbids."""

    code: str = "STATE_ERROR"


class PeriodLockedError(StateError):
    """Mutation touches a LOCKED payroll period."""

    code: str = "PERIOD_LOCKED"

    def __init__(self, period_code: str, operation: str):
        self.period_code = period_code
        self.operation = operation
        super().__init__(f"Cannot {operation}: period {period_code} is locked")


class PeriodApprovedError(StateError):
    """Attendance or leave edit inside an APPROVED period."""

    code: str = "PERIOD_APPROVED"

    def __init__(self, period_code: str, operation: str):
        self.period_code = period_code
        self.operation = operation
        super().__init__(
            f"Cannot {operation}: period {period_code} is approved "
            f"and its attendance inputs are frozen"
        )


class ConflictingTransitionError(StateError):
    """Period status is not the one the transition expects."""

    code: str = "CONFLICTING_TRANSITION"

    def __init__(self, period_code: str, expected_status: str, actual_status: str, action: str):
        self.period_code = period_code
        self.expected_status = expected_status
        self.actual_status = actual_status
        self.action = action
        super().__init__(
            f"Cannot {action} period {period_code}: expected status "
            f"{expected_status}, found {actual_status}"
        )


class SettlementConflictError(StateError):
    """Final settlements in a terminal state block the operation."""

    code: str = "SETTLEMENT_CONFLICT"

    def __init__(self, settlement_ids: list[str], reason: str, period_code: str | None = None):
        self.settlement_ids = list(settlement_ids)
        self.reason = reason
        self.period_code = period_code
        super().__init__(
            f"Settlement conflict ({', '.join(self.settlement_ids)}): {reason}"
        )


class AlreadyDecidedError(StateError):
    """Approval request already left PENDING."""

    code: str = "ALREADY_DECIDED"

    def __init__(self, request_id: str, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__(f"Approval request {request_id} is already {status}")


class DuplicateLoanDeductionError(StateError):
    """A deduction for (loan, period) was written by a concurrent caller."""

    code: str = "DUPLICATE_LOAN_DEDUCTION"

    def __init__(self, loan_id: str, period_code: str):
        self.loan_id = loan_id
        self.period_code = period_code
        super().__init__(
            f"Loan {loan_id} already has a deduction for period {period_code}"
        )


class ImmutabilityViolationError(StateError):
    """Append-only record was modified or deleted."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")


# Computation errors


class ComputationError(PayrollKernelError):
    """Base exception for results that would be financially invalid."""

    code: str = "COMPUTATION_ERROR"


class NegativeNetPayError(ComputationError):
    """Deductions exceed gross pay."""

    code: str = "NEGATIVE_NET_PAY"

    def __init__(
        self,
        period_code: str,
        employee_id: str,
        gross: Decimal,
        deductions: Decimal,
    ):
        self.period_code = period_code
        self.employee_id = employee_id
        self.gross = gross
        self.deductions = deductions
        super().__init__(
            f"Net pay for {employee_id} in {period_code} would be negative: "
            f"gross {gross}, deductions {deductions}"
        )


# Compliance errors


class ComplianceError(PayrollKernelError):
    """Base exception for bank-submission compliance failures."""

    code: str = "COMPLIANCE_ERROR"


class IncompleteComplianceDataError(ComplianceError):
    """Required SIF data is missing or malformed."""

    code: str = "INCOMPLETE_COMPLIANCE_DATA"

    def __init__(self, period_code: str, issues: list[str]):
        self.period_code = period_code
        self.issues = list(issues)
        super().__init__(
            f"WPS export for {period_code} blocked: " + "; ".join(self.issues)
        )


class WpsNotApplicableError(ComplianceError):
    """Organization is not registered for the Wage Protection System."""

    code: str = "WPS_NOT_APPLICABLE"

    def __init__(self, organization_id: str):
        self.organization_id = organization_id
        super().__init__(f"WPS is not applicable to organization {organization_id}")
