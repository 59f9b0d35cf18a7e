"""
Module: payroll_kernel.models.payroll_period
Responsibility: ORM persistence for the payroll period lifecycle and its
    append-only transition audit trail.
Architecture position: Kernel > Models.

Invariants enforced:
    - period_code is unique.
    - One period per (organization_id, pay_year, pay_month).
    - Status changes only through PeriodService compare-and-swap updates.
    - PeriodAuditEntry rows are never updated or deleted.

Audit relevance:
    Every APPROVE, LOCK and REOPEN writes a PeriodAuditEntry naming the actor,
    the timestamp and, for reopen, the reason.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from payroll_kernel.domain.dtos import PayrollPeriodInfo, PeriodAuditEntryInfo
from payroll_kernel.domain.types import PeriodAction, PeriodStatus


class PayrollPeriod(TrackedBase):
    """A pay month: inclusive date range plus lifecycle status."""

    __tablename__ = "payroll_periods"

    __table_args__ = (
        UniqueConstraint("period_code", name="uq_payroll_period_code"),
        UniqueConstraint(
            "organization_id", "pay_year", "pay_month", name="uq_payroll_period_month"
        ),
        CheckConstraint("end_date >= start_date", name="ck_payroll_period_range"),
        Index("idx_payroll_period_dates", "start_date", "end_date"),
    )

    period_code: Mapped[str] = mapped_column(String(20), nullable=False)
    organization_id: Mapped[str] = mapped_column(String(50), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    pay_month: Mapped[int] = mapped_column(Integer, nullable=False)
    pay_year: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PeriodStatus.DRAFT.value
    )
    locked_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    locked_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def to_dto(self) -> PayrollPeriodInfo:
        return PayrollPeriodInfo(
            period_code=self.period_code,
            organization_id=self.organization_id,
            start_date=self.start_date,
            end_date=self.end_date,
            pay_month=self.pay_month,
            pay_year=self.pay_year,
            status=PeriodStatus(self.status),
            locked_at=self.locked_at,
            locked_by_id=self.locked_by_id,
        )

    def __repr__(self) -> str:
        return f"<PayrollPeriod {self.period_code} [{self.status}]>"


class PeriodAuditEntry(TrackedBase):
    """Append-only record of a period status transition."""

    __tablename__ = "payroll_period_audit"

    __table_args__ = (Index("idx_period_audit_code", "period_code", "occurred_at"),)

    period_code: Mapped[str] = mapped_column(String(20), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    from_status: Mapped[str] = mapped_column(String(20), nullable=False)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    def to_dto(self) -> PeriodAuditEntryInfo:
        return PeriodAuditEntryInfo(
            period_code=self.period_code,
            action=PeriodAction(self.action),
            from_status=PeriodStatus(self.from_status),
            to_status=PeriodStatus(self.to_status),
            actor_id=self.actor_id,
            occurred_at=self.occurred_at,
            reason=self.reason,
        )
