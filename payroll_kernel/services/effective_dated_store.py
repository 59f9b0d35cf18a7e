"""
EffectiveDatedStore -- salary component assignments over time.

Responsibility:
    Stores what each employee is paid for each component and since when.
    History is never overwritten: a raise closes the running interval and
    opens a new one.
    An amount recorded in error from its first day stays in history: the
    interval cannot be superseded on its own start, since that would leave
    an empty interval, and amounts are never rewritten.  Such a mistake is
    reported as InvalidIntervalError naming the start date.

Architecture position:
    Kernel > Services -- flush-only.  Interval arithmetic lives in the pure
    ``payroll_engines.intervals.IntervalIndex``; this service loads the
    intervals of one (employee, component) key, asks the index, and persists.

Invariants enforced:
    - Intervals of one key never overlap; at most one is active on a date.
    - Only FIXED (assignable) components take assignments.
    - No assignment change may touch a day inside a LOCKED period.

Failure modes:
    - OverlapError, InvalidIntervalError, InvalidAssignmentError.
    - AssignmentNotFoundError when no interval contains the date.
    - ComponentNotFoundError for unknown components.
    - PeriodLockedError when the affected days touch a LOCKED period.
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_engines.intervals import IntervalIndex, validate_interval
from payroll_kernel.domain.clock import Clock
from payroll_kernel.domain.dtos import AssignmentInfo
from payroll_kernel.exceptions import (
    AssignmentNotFoundError,
    InvalidAssignmentError,
    InvalidIntervalError,
    OverlapError,
)
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.salary import ComponentAssignment
from payroll_kernel.services.base import BaseService
from payroll_kernel.services.period_service import PeriodService
from payroll_kernel.services.salary_catalog import SalaryCatalog

logger = get_logger("services.effective_dated_store")


def _last_day(effective_to: date | None) -> date | None:
    """Inclusive last day of a half-open interval."""
    return None if effective_to is None else effective_to - timedelta(days=1)


class EffectiveDatedStore(BaseService[ComponentAssignment]):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        period_service: PeriodService | None = None,
        organization_id: str | None = None,
    ):
        super().__init__(session, clock)
        self._periods = period_service or PeriodService(
            session, self._clock, organization_id=organization_id
        )
        self._catalog = SalaryCatalog(session, self._clock)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def assign(
        self,
        employee_id: str,
        component_id: str,
        amount: Decimal,
        effective_from: date,
        effective_to: date | None = None,
        *,
        actor_id: UUID,
    ) -> AssignmentInfo:
        """
        Record ``amount`` for ``[effective_from, effective_to)``.

        Raises:
            OverlapError: The interval intersects an existing one.
        """
        self._require_assignable(component_id, amount)
        validate_interval(effective_from, effective_to)
        self._periods.require_assignments_writable(effective_from, _last_day(effective_to))

        info = AssignmentInfo(
            employee_id=employee_id,
            component_id=component_id,
            amount=amount,
            effective_from=effective_from,
            effective_to=effective_to,
        )
        index = self._index(employee_id, component_id)
        try:
            index.add(info)
        except OverlapError:
            logger.warning(
                "assignment_rejected",
                extra={
                    "employee_id": employee_id,
                    "component_id": component_id,
                    "effective_from": effective_from,
                    "effective_to": effective_to,
                },
            )
            raise

        self._insert(info, actor_id)
        logger.info(
            "assignment_created",
            extra={
                "employee_id": employee_id,
                "component_id": component_id,
                "amount": amount,
                "effective_from": effective_from,
                "effective_to": effective_to,
            },
        )
        return info

    def supersede(
        self,
        employee_id: str,
        component_id: str,
        new_amount: Decimal,
        as_of: date,
        *,
        actor_id: UUID,
    ) -> AssignmentInfo:
        """
        Close the interval active on ``as_of`` at ``as_of`` and open a new one
        from ``as_of`` with ``new_amount``.  The new interval inherits the old
        upper bound.
        """
        self._require_assignable(component_id, new_amount)
        active_row = self._active_row(employee_id, component_id, as_of)
        if active_row.effective_from == as_of:
            raise InvalidIntervalError(
                as_of,
                as_of,
                (
                    f"interval of {component_id} for {employee_id} already starts on {as_of}; "
                    "an amount is never rewritten in place"
                ),
            )
        inherited_to = active_row.effective_to
        self._periods.require_assignments_writable(as_of, _last_day(inherited_to))

        active_row.effective_to = as_of
        active_row.updated_by_id = actor_id
        info = AssignmentInfo(
            employee_id=employee_id,
            component_id=component_id,
            amount=new_amount,
            effective_from=as_of,
            effective_to=inherited_to,
        )
        self._insert(info, actor_id)

        logger.info(
            "assignment_superseded",
            extra={
                "employee_id": employee_id,
                "component_id": component_id,
                "previous_amount": Decimal(active_row.amount),
                "new_amount": new_amount,
                "as_of": as_of,
            },
        )
        return info

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def resolve(self, employee_id: str, component_id: str, as_of: date) -> AssignmentInfo:
        found = self._index(employee_id, component_id).resolve(as_of)
        if found is None:
            raise AssignmentNotFoundError(employee_id, component_id, as_of)
        return found

    def history(self, employee_id: str, component_id: str) -> list[AssignmentInfo]:
        return list(self._index(employee_id, component_id))

    def intersecting(
        self, employee_id: str, component_id: str, start: date, end: date
    ) -> list[AssignmentInfo]:
        """Assignments sharing at least one day with the inclusive ``[start, end]``."""
        return self._index(employee_id, component_id).intersecting(start, end)

    def components_for(self, employee_id: str) -> list[str]:
        rows = self.session.execute(
            select(ComponentAssignment.component_id)
            .where(ComponentAssignment.employee_id == employee_id)
            .distinct()
            .order_by(ComponentAssignment.component_id)
        ).scalars()
        return list(rows)

    def assignments_in_range(
        self, employee_id: str, start: date, end: date
    ) -> dict[str, list[AssignmentInfo]]:
        """Every component of ``employee_id`` with its assignments in ``[start, end]``."""
        found: dict[str, list[AssignmentInfo]] = {}
        for component_id in self.components_for(employee_id):
            items = self.intersecting(employee_id, component_id, start, end)
            if items:
                found[component_id] = items
        return found

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require_assignable(self, component_id: str, amount: Decimal) -> None:
        component = self._catalog.get(component_id)
        if not component.is_assignable:
            raise InvalidAssignmentError(
                component_id, "derived components are computed, not assigned"
            )
        if not isinstance(amount, Decimal):
            raise InvalidAssignmentError(component_id, "amount must be a Decimal")
        if amount < 0:
            raise InvalidAssignmentError(component_id, "amount cannot be negative")

    def _rows(self, employee_id: str, component_id: str) -> list[ComponentAssignment]:
        return list(
            self.session.execute(
                select(ComponentAssignment)
                .where(
                    ComponentAssignment.employee_id == employee_id,
                    ComponentAssignment.component_id == component_id,
                )
                .order_by(ComponentAssignment.effective_from)
            ).scalars()
        )

    def _index(self, employee_id: str, component_id: str) -> IntervalIndex:
        return IntervalIndex(row.to_dto() for row in self._rows(employee_id, component_id))

    def _active_row(self, employee_id: str, component_id: str, as_of: date) -> ComponentAssignment:
        rows = self._rows(employee_id, component_id)
        found = IntervalIndex(row.to_dto() for row in rows).resolve(as_of)
        if found is None:
            raise AssignmentNotFoundError(employee_id, component_id, as_of)
        return next(row for row in rows if row.effective_from == found.effective_from)

    def _insert(self, info: AssignmentInfo, actor_id: UUID) -> None:
        self.session.add(
            ComponentAssignment(
                employee_id=info.employee_id,
                component_id=info.component_id,
                amount=info.amount,
                effective_from=info.effective_from,
                effective_to=info.effective_to,
                created_by_id=actor_id,
            )
        )
        self.session.flush()
