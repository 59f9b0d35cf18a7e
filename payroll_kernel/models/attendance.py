"""
Module: payroll_kernel.models.attendance
Responsibility: Stored attendance summaries received from the attendance feed.
Architecture position: Kernel > Models.

Invariants enforced:
    - One summary per (employee_id, date_from, date_to); a regenerated summary
      replaces the stored one through AttendanceService, which checks the
      covering period's status first.
    - Overtime minutes are keyed by DayType value; leave days by leave-type
      code, stored as decimal strings.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import JSON, Date, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase
from payroll_kernel.domain.dtos import AttendanceSummaryInfo
from payroll_kernel.domain.types import DayType


class AttendanceSummary(TrackedBase):
    __tablename__ = "attendance_summaries"

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "date_from", "date_to", name="uq_attendance_summary_span"
        ),
        Index("idx_attendance_employee_dates", "employee_id", "date_from", "date_to"),
    )

    employee_id: Mapped[str] = mapped_column(String(50), nullable=False)
    date_from: Mapped[date] = mapped_column(Date, nullable=False)
    date_to: Mapped[date] = mapped_column(Date, nullable=False)
    worked_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    scheduled_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overtime_minutes: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    leave_days: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    absence_days: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False, default=0)

    def to_dto(self) -> AttendanceSummaryInfo:
        return AttendanceSummaryInfo(
            employee_id=self.employee_id,
            date_from=self.date_from,
            date_to=self.date_to,
            worked_minutes=self.worked_minutes,
            scheduled_minutes=self.scheduled_minutes,
            overtime_minutes={
                DayType(k): int(v) for k, v in (self.overtime_minutes or {}).items()
            },
            leave_days={k: Decimal(v) for k, v in (self.leave_days or {}).items()},
            absence_days=Decimal(self.absence_days),
        )

    def apply(self, info: AttendanceSummaryInfo) -> None:
        self.worked_minutes = info.worked_minutes
        self.scheduled_minutes = info.scheduled_minutes
        self.overtime_minutes = {
            DayType(k).value: int(v) for k, v in info.overtime_minutes.items()
        }
        self.leave_days = {k: str(v) for k, v in info.leave_days.items()}
        self.absence_days = info.absence_days
