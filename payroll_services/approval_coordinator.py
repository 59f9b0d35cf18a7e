"""
payroll_services.approval_coordinator -- approval queue for attendance
corrections, leave and overtime requests.

Responsibility:
    Queue requests in submission order, record decisions, and tell
    subscribers when something was approved so dependent data (attendance
    summaries) is regenerated.

Architecture position:
    Services -- owns commit/rollback.  Requests are created by the systems
    that own them (attendance, leave); this module only sequences and
    decides.

Invariants enforced:
    - The queue is FIFO by ``sequence``; sequences are unique and
      increasing.
    - The approval log is append-only: one SUBMITTED entry, then at most
      one decision.  ApprovalRequest.status is the index over it.
    - A decision is compare-and-swap on PENDING: deciding twice raises
      AlreadyDecidedError, whoever wins a race.
    - ApprovalGranted is published only after the decision has committed.

Failure modes:
    - ApprovalRequestNotFoundError, AlreadyDecidedError.
    - ValueError for a duplicate request id or a non-final outcome.
    - Subscriber errors propagate to the caller of ``decide``; the decision
      itself stays committed.
"""

import threading
from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.dtos import ApprovalGranted, ApprovalRequestInfo
from payroll_kernel.domain.types import ApprovalAction, ApprovalStatus, ApprovalType
from payroll_kernel.exceptions import AlreadyDecidedError, ApprovalRequestNotFoundError
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.models.approval import ApprovalLogEntry, ApprovalRequest
from payroll_kernel.services.attendance_service import AttendanceFeed, AttendanceService

logger = get_logger("services.approvals")

_DECISION_ACTIONS = {
    ApprovalStatus.APPROVED: ApprovalAction.APPROVED,
    ApprovalStatus.REJECTED: ApprovalAction.REJECTED,
}

# Serializes sequence allocation within the process; the unique
# constraint on sequence catches writers in other processes.
_sequence_lock = threading.Lock()


class ApprovalSubscriber(Protocol):
    def on_approval_granted(self, event: ApprovalGranted) -> None: ...


class ApprovalCoordinator:
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        subscribers: Iterable[ApprovalSubscriber] = (),
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._subscribers: list[ApprovalSubscriber] = list(subscribers)

    def subscribe(self, subscriber: ApprovalSubscriber) -> None:
        self._subscribers.append(subscriber)

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def submit(
        self,
        request_id: str,
        request_type: ApprovalType,
        reference_id: str,
        subject_employee_id: str,
        actor_id: UUID,
        comment: str | None = None,
    ) -> ApprovalRequestInfo:
        """Append a PENDING request to the end of the queue."""
        with LogContext.bind(request_id=request_id, actor_id=str(actor_id)):
            with _sequence_lock:
                try:
                    if self._find(request_id) is not None:
                        raise ValueError(f"Approval request {request_id} already exists")
                    last = self._session.execute(
                        select(func.max(ApprovalRequest.sequence))
                    ).scalar_one()
                    now = self._clock.now()
                    request = ApprovalRequest(
                        request_id=request_id,
                        request_type=ApprovalType(request_type).value,
                        reference_id=reference_id,
                        subject_employee_id=subject_employee_id,
                        status=ApprovalStatus.PENDING.value,
                        sequence=(last or 0) + 1,
                        submitted_at=now,
                        created_by_id=actor_id,
                    )
                    self._session.add(request)
                    self._log(request_id, ApprovalAction.SUBMITTED, actor_id, comment)
                    self._session.flush()
                    self._session.commit()
                except Exception:
                    self._session.rollback()
                    raise

            logger.info(
                "approval_submitted",
                extra={
                    "request_id": request_id,
                    "request_type": request.request_type,
                    "reference_id": reference_id,
                    "sequence": request.sequence,
                },
            )
            return request.to_dto()

    def pending(self) -> list[ApprovalRequestInfo]:
        """PENDING requests in submission order."""
        rows = self._session.execute(
            select(ApprovalRequest)
            .where(ApprovalRequest.status == ApprovalStatus.PENDING.value)
            .order_by(ApprovalRequest.sequence)
            .execution_options(populate_existing=True)
        ).scalars()
        return [row.to_dto() for row in rows]

    def next_pending(self) -> ApprovalRequestInfo | None:
        queue = self.pending()
        return queue[0] if queue else None

    def get_request(self, request_id: str) -> ApprovalRequestInfo:
        return self._require(request_id).to_dto()

    def log_actions(self, request_id: str) -> list[ApprovalAction]:
        rows = self._session.execute(
            select(ApprovalLogEntry.action)
            .where(ApprovalLogEntry.request_id == request_id)
            .order_by(ApprovalLogEntry.occurred_at, ApprovalLogEntry.created_at)
        ).scalars()
        return [ApprovalAction(action) for action in rows]

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def decide(
        self,
        request_id: str,
        outcome: ApprovalStatus,
        actor_id: UUID,
        comment: str | None = None,
    ) -> ApprovalRequestInfo:
        """
        Approve or reject a PENDING request.

        Raises:
            AlreadyDecidedError: The request is no longer PENDING.
        """
        outcome = ApprovalStatus(outcome)
        if outcome not in _DECISION_ACTIONS:
            raise ValueError(f"A decision must be approved or rejected, got {outcome.value}")

        with LogContext.bind(request_id=request_id, actor_id=str(actor_id)):
            try:
                request = self._require(request_id)
                now = self._clock.now()
                result = self._session.execute(
                    update(ApprovalRequest)
                    .where(
                        ApprovalRequest.request_id == request_id,
                        ApprovalRequest.status == ApprovalStatus.PENDING.value,
                    )
                    .values(
                        status=outcome.value,
                        decided_at=now,
                        decided_by_id=actor_id,
                        updated_by_id=actor_id,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    self._session.refresh(request)
                    logger.warning(
                        "approval_already_decided",
                        extra={"request_id": request_id, "status": request.status},
                    )
                    raise AlreadyDecidedError(request_id, request.status)
                self._log(request_id, _DECISION_ACTIONS[outcome], actor_id, comment)
                self._session.flush()
                self._session.commit()
                self._session.refresh(request)
            except Exception:
                self._session.rollback()
                raise

            info = request.to_dto()
            logger.info(
                "approval_decided",
                extra={
                    "request_id": request_id,
                    "outcome": outcome.value,
                    "sequence": info.sequence,
                },
            )
            if outcome == ApprovalStatus.APPROVED:
                self._publish(
                    ApprovalGranted(
                        request_id=info.request_id,
                        request_type=info.request_type,
                        reference_id=info.reference_id,
                        subject_employee_id=info.subject_employee_id,
                        decided_by_id=actor_id,
                        decided_at=now,
                    )
                )
            return info

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _publish(self, event: ApprovalGranted) -> None:
        for subscriber in self._subscribers:
            subscriber.on_approval_granted(event)

    def _log(
        self, request_id: str, action: ApprovalAction, actor_id: UUID, comment: str | None
    ) -> None:
        self._session.add(
            ApprovalLogEntry(
                request_id=request_id,
                action=action.value,
                actor_id=actor_id,
                occurred_at=self._clock.now(),
                comment=comment,
                created_by_id=actor_id,
            )
        )

    def _find(self, request_id: str) -> ApprovalRequest | None:
        return self._session.execute(
            select(ApprovalRequest).where(ApprovalRequest.request_id == request_id)
        ).scalar_one_or_none()

    def _require(self, request_id: str) -> ApprovalRequest:
        request = self._find(request_id)
        if request is None:
            raise ApprovalRequestNotFoundError(request_id)
        return request


class AttendanceRegenerationSubscriber:
    """
    Re-records the attendance summaries an approval affects.

    Summaries go through AttendanceService, so a LOCKED period rejects them
    with PeriodLockedError and an APPROVED one with PeriodApprovedError.
    """

    def __init__(
        self,
        session: Session,
        feed: AttendanceFeed,
        clock: Clock | None = None,
        organization_id: str | None = None,
    ):
        self._session = session
        self._feed = feed
        self._attendance = AttendanceService(session, clock, organization_id=organization_id)

    def on_approval_granted(self, event: ApprovalGranted) -> None:
        with LogContext.bind(
            request_id=event.request_id, employee_id=event.subject_employee_id
        ):
            try:
                recorded = 0
                for summary in self._feed.regenerated_summaries(
                    event.request_type, event.reference_id, event.subject_employee_id
                ):
                    self._attendance.record_summary(summary, event.decided_by_id)
                    recorded += 1
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "attendance_regenerated",
                extra={
                    "request_id": event.request_id,
                    "request_type": event.request_type.value,
                    "summaries": recorded,
                },
            )
