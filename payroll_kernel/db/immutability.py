"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Payroll history is evidence.  Salary history, the period audit trail, the
approval log and the loan deduction ledger must read the same tomorrow as
today, and a locked period's results must match what was paid to the bank.
Services already refuse these writes; the listeners here catch every other
path through the ORM (a stray ``session.delete``, a test fixture, a script).

    session.flush()
         |
         v
    [before_insert / before_update / before_delete]
         |
         +--> _check_*() --> ImmutabilityViolationError / PeriodLockedError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | Rule
--------------------|---------------------------------------------------------
ComponentAssignment | Only effective_to may change, and only to an earlier end
PeriodAuditEntry    | Never updated or deleted
ApprovalLogEntry    | Never updated or deleted
ApprovalRequest     | Status leaves PENDING once; never deleted
LoanDeduction       | Never updated or deleted
PayrollResult       | No insert, update or delete while its period is LOCKED

updated_at / updated_by_id are audit metadata and may always change.

===============================================================================
USAGE
===============================================================================

    from payroll_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

Tests that need to stage forbidden states call
``unregister_immutability_listeners()`` and register again afterwards.

===============================================================================
"""

from sqlalchemy import event, inspect, select

from payroll_kernel.domain.types import ApprovalStatus, PeriodStatus
from payroll_kernel.exceptions import ImmutabilityViolationError, PeriodLockedError
from payroll_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _changed_fields(target) -> list[str]:
    insp = inspect(target)
    return [
        attr.key
        for attr in insp.attrs
        if attr.key not in _AUDIT_FIELDS and attr.history.has_changes()
    ]


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


# ---------------------------------------------------------------------------
# Append-only records
# ---------------------------------------------------------------------------


def _check_append_only_update(mapper, connection, target):
    changed = _changed_fields(target)
    if changed:
        _block(
            type(target).__name__,
            target,
            "UPDATE",
            f"append-only record; attempted to change {', '.join(sorted(changed))}",
        )


def _check_append_only_delete(mapper, connection, target):
    _block(type(target).__name__, target, "DELETE", "append-only record")


# ---------------------------------------------------------------------------
# Component assignments
# ---------------------------------------------------------------------------


def _check_assignment_update(mapper, connection, target):
    """
    Ending an interval earlier is the only permitted change.

    Supersede sets effective_to on the active assignment: an open interval
    gets an end, a bounded one a sooner end.  Every other field is history,
    and an end is never removed or pushed later.
    """
    changed = set(_changed_fields(target))
    if not changed:
        return
    if changed != {"effective_to"}:
        _block(
            "ComponentAssignment",
            target,
            "UPDATE",
            f"assignment history is immutable; attempted to change {', '.join(sorted(changed))}",
        )
    hist = inspect(target).attrs.effective_to.history
    previous = hist.deleted[0] if hist.deleted else None
    if previous is not None and (target.effective_to is None or target.effective_to >= previous):
        _block(
            "ComponentAssignment",
            target,
            "UPDATE",
            f"interval already closed at {previous}; its end can only move earlier",
        )


def _check_assignment_delete(mapper, connection, target):
    _block("ComponentAssignment", target, "DELETE", "assignment history is immutable")


# ---------------------------------------------------------------------------
# Approval status index
# ---------------------------------------------------------------------------


def _check_approval_request_update(mapper, connection, target):
    changed = set(_changed_fields(target))
    if not changed:
        return
    hist = inspect(target).attrs.status.history
    previous = hist.deleted[0] if hist.deleted else target.status
    if previous != ApprovalStatus.PENDING.value:
        _block(
            "ApprovalRequest",
            target,
            "UPDATE",
            f"request already {previous}",
        )
    allowed = {"status", "decided_at", "decided_by_id"}
    if changed - allowed:
        _block(
            "ApprovalRequest",
            target,
            "UPDATE",
            f"only the decision may be recorded; attempted to change "
            f"{', '.join(sorted(changed - allowed))}",
        )


# ---------------------------------------------------------------------------
# Payroll results in locked periods
# ---------------------------------------------------------------------------


def _period_status(connection, period_code: str) -> str | None:
    from payroll_kernel.models.payroll_period import PayrollPeriod

    return connection.execute(
        select(PayrollPeriod.status).where(PayrollPeriod.period_code == period_code)
    ).scalar_one_or_none()


def _guard_result_write(operation: str):
    def _check(mapper, connection, target):
        if operation == "UPDATE" and not _changed_fields(target):
            return
        if _period_status(connection, target.period_code) == PeriodStatus.LOCKED.value:
            logger.error(
                "locked_period_write_blocked",
                extra={
                    "entity_type": "PayrollResult",
                    "period_code": target.period_code,
                    "employee_id": target.employee_id,
                    "operation": operation,
                },
            )
            raise PeriodLockedError(target.period_code, f"{operation.lower()} payroll result")

    return _check


_check_result_insert = _guard_result_write("INSERT")
_check_result_update = _guard_result_write("UPDATE")
_check_result_delete = _guard_result_write("DELETE")


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

_registered = False


def _listeners():
    from payroll_kernel.models.approval import ApprovalLogEntry, ApprovalRequest
    from payroll_kernel.models.loan import LoanDeduction
    from payroll_kernel.models.payroll_period import PeriodAuditEntry
    from payroll_kernel.models.payroll_result import PayrollResult
    from payroll_kernel.models.salary import ComponentAssignment

    pairs = [
        (ComponentAssignment, "before_update", _check_assignment_update),
        (ComponentAssignment, "before_delete", _check_assignment_delete),
        (ApprovalRequest, "before_update", _check_approval_request_update),
        (ApprovalRequest, "before_delete", _check_append_only_delete),
        (PayrollResult, "before_insert", _check_result_insert),
        (PayrollResult, "before_update", _check_result_update),
        (PayrollResult, "before_delete", _check_result_delete),
    ]
    for model in (PeriodAuditEntry, ApprovalLogEntry, LoanDeduction):
        pairs.append((model, "before_update", _check_append_only_update))
        pairs.append((model, "before_delete", _check_append_only_delete))
    return pairs


def register_immutability_listeners() -> None:
    """Install all listeners. Safe to call more than once."""
    global _registered
    if _registered:
        return
    for model, name, fn in _listeners():
        if not event.contains(model, name, fn):
            event.listen(model, name, fn)
    _registered = True
    logger.info("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove all listeners. FOR TESTING ONLY."""
    global _registered
    for model, name, fn in _listeners():
        if event.contains(model, name, fn):
            event.remove(model, name, fn)
    _registered = False
