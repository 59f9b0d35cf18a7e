"""
AttendanceService -- boundary to the attendance summary feed.

Responsibility:
    Receives locked attendance summaries from the attendance system (which
    owns raw punches and biometric capture) and serves period totals to the
    payroll calculator.

Architecture position:
    Kernel > Services -- flush-only.  ``AttendanceFeed`` is the protocol the
    external attendance system implements; the approval coordinator asks it
    for regenerated summaries after an approval.

Invariants enforced:
    - Summaries are written only while every period they touch is DRAFT.
      LOCKED -> PeriodLockedError; APPROVED -> PeriodApprovedError.
    - A summary for the same (employee, date_from, date_to) replaces the
      stored one.
"""

from collections import Counter
from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_kernel.domain.clock import Clock
from payroll_kernel.domain.dtos import AttendanceSummaryInfo
from payroll_kernel.domain.types import ApprovalType
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.attendance import AttendanceSummary
from payroll_kernel.services.base import BaseService
from payroll_kernel.services.period_service import PeriodService

logger = get_logger("services.attendance")


class AttendanceFeed(Protocol):
    """Implemented by the attendance system."""

    def regenerated_summaries(
        self,
        request_type: ApprovalType,
        reference_id: str,
        employee_id: str,
    ) -> Iterable[AttendanceSummaryInfo]:
        """Summaries affected by an approved correction, leave or overtime request."""
        ...


class AttendanceService(BaseService[AttendanceSummary]):
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

    def record_summary(self, info: AttendanceSummaryInfo, actor_id: UUID) -> AttendanceSummaryInfo:
        if info.date_to < info.date_from:
            raise ValueError(
                f"Attendance summary ends ({info.date_to}) before it starts ({info.date_from})"
            )
        if info.worked_minutes < 0 or info.scheduled_minutes < 0:
            raise ValueError("Attendance minutes cannot be negative")
        if any(m < 0 for m in info.overtime_minutes.values()):
            raise ValueError("Overtime minutes cannot be negative")

        self._periods.require_attendance_writable(info.date_from, info.date_to)

        row = self.session.execute(
            select(AttendanceSummary).where(
                AttendanceSummary.employee_id == info.employee_id,
                AttendanceSummary.date_from == info.date_from,
                AttendanceSummary.date_to == info.date_to,
            )
        ).scalar_one_or_none()
        replaced = row is not None
        if row is None:
            row = AttendanceSummary(
                employee_id=info.employee_id,
                date_from=info.date_from,
                date_to=info.date_to,
                created_by_id=actor_id,
            )
            self.session.add(row)
        else:
            row.updated_by_id = actor_id
        row.apply(info)
        self.session.flush()

        logger.info(
            "attendance_summary_recorded",
            extra={
                "employee_id": info.employee_id,
                "date_from": info.date_from,
                "date_to": info.date_to,
                "replaced": replaced,
            },
        )
        return row.to_dto()

    def summaries(self, employee_id: str, start: date, end: date) -> list[AttendanceSummaryInfo]:
        """Stored summaries falling inside ``[start, end]``."""
        rows = self.session.execute(
            select(AttendanceSummary)
            .where(
                AttendanceSummary.employee_id == employee_id,
                AttendanceSummary.date_from >= start,
                AttendanceSummary.date_to <= end,
            )
            .order_by(AttendanceSummary.date_from, AttendanceSummary.date_to)
        ).scalars()
        return [row.to_dto() for row in rows]

    def period_totals(self, employee_id: str, start: date, end: date) -> AttendanceSummaryInfo:
        """Sum of every summary inside ``[start, end]``; zeros when none exist."""
        overtime: Counter = Counter()
        leave: dict[str, Decimal] = {}
        worked = scheduled = 0
        absence = Decimal("0")
        for summary in self.summaries(employee_id, start, end):
            worked += summary.worked_minutes
            scheduled += summary.scheduled_minutes
            overtime.update(summary.overtime_minutes)
            for code, days in summary.leave_days.items():
                leave[code] = leave.get(code, Decimal("0")) + days
            absence += summary.absence_days
        return AttendanceSummaryInfo(
            employee_id=employee_id,
            date_from=start,
            date_to=end,
            worked_minutes=worked,
            scheduled_minutes=scheduled,
            overtime_minutes=dict(overtime),
            leave_days=leave,
            absence_days=absence,
        )
