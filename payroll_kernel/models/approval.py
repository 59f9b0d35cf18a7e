"""
Module: payroll_kernel.models.approval
Responsibility: Approval queue for attendance corrections, leave and overtime.
Architecture position: Kernel > Models.  Written by ApprovalCoordinator.

Invariants enforced:
    - ApprovalLogEntry is append-only: SUBMITTED, then at most one decision.
    - ApprovalRequest is the status index over the log.  Its status leaves
      PENDING at most once.
    - sequence is unique and increasing; queue order is sequence order.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from payroll_kernel.domain.dtos import ApprovalRequestInfo
from payroll_kernel.domain.types import ApprovalStatus, ApprovalType


class ApprovalRequest(TrackedBase):
    __tablename__ = "approval_requests"

    __table_args__ = (Index("idx_approval_status_sequence", "status", "sequence"),)

    request_id: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    request_type: Mapped[str] = mapped_column(String(20), nullable=False)
    reference_id: Mapped[str] = mapped_column(String(100), nullable=False)
    subject_employee_id: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApprovalStatus.PENDING.value
    )
    sequence: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    submitted_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    decided_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    decided_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def to_dto(self) -> ApprovalRequestInfo:
        return ApprovalRequestInfo(
            request_id=self.request_id,
            request_type=ApprovalType(self.request_type),
            reference_id=self.reference_id,
            subject_employee_id=self.subject_employee_id,
            status=ApprovalStatus(self.status),
            sequence=self.sequence,
            submitted_at=self.submitted_at,
            decided_at=self.decided_at,
            decided_by_id=self.decided_by_id,
        )


class ApprovalLogEntry(TrackedBase):
    __tablename__ = "approval_log"

    __table_args__ = (Index("idx_approval_log_request", "request_id", "occurred_at"),)

    request_id: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    comment: Mapped[str | None] = mapped_column(String(2000), nullable=True)
