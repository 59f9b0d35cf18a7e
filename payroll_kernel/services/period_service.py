"""
PeriodService -- payroll period lifecycle and period guards.

Responsibility:
    Owns the period status machine (DRAFT -> APPROVED -> LOCKED, and the
    audited LOCKED -> DRAFT reopen) and answers the question every writer
    asks first: "may I write here?"

Architecture position:
    Kernel > Services -- flush-only.  PeriodManager (payroll_services) wraps
    the transitions with the period-scoped lock and owns the commit.

Invariants enforced:
    - One period per (organization_id, pay_year, pay_month); no two periods
      of an organization share a date.
    - Transitions are compare-and-swap on status: the UPDATE only matches
      while the row still has the expected status.  A caller that lost a race
      sees ConflictingTransitionError, never a silent double transition.
    - Every transition writes a PeriodAuditEntry.
    - LOCKED rejects result writes, assignment mutations and attendance
      writes in range; APPROVED rejects attendance and leave edits in range.
    - A period cannot be reopened while PAID settlements are tied to it.

Failure modes:
    - PeriodNotFoundError, DuplicatePeriodError, InvalidIntervalError.
    - ConflictingTransitionError when the status is not the expected one.
    - PeriodLockedError / PeriodApprovedError from the guards.
    - SettlementConflictError from reopen_period.

Audit relevance:
    Transitions are logged with period_code, from/to status and actor_id.
    Guard rejections are logged at WARNING.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from payroll_kernel.domain.clock import Clock
from payroll_kernel.domain.dtos import PayrollPeriodInfo, PeriodAuditEntryInfo
from payroll_kernel.domain.types import PeriodAction, PeriodStatus, SettlementStatus
from payroll_kernel.exceptions import (
    ConflictingTransitionError,
    DuplicatePeriodError,
    InvalidIntervalError,
    PeriodApprovedError,
    PeriodLockedError,
    PeriodNotFoundError,
    SettlementConflictError,
)
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.payroll_period import PayrollPeriod, PeriodAuditEntry
from payroll_kernel.models.settlement import FinalSettlement
from payroll_kernel.services.base import BaseService

logger = get_logger("services.period")

_TRANSITION_EVENTS = {
    PeriodAction.APPROVE: "period_approved",
    PeriodAction.LOCK: "period_locked",
    PeriodAction.REOPEN: "period_reopened",
}


class PeriodService(BaseService[PayrollPeriod]):
    """
    Payroll period lifecycle and write guards.

    Contract:
        Accepts period codes or dates and returns frozen ``PayrollPeriodInfo``
        DTOs.  Lifecycle methods flush within the caller's transaction.

    Scope:
        Constructed with an ``organization_id``, the assignment and
        attendance guards and date lookups only see that organization's
        periods.  Without one they see every organization's periods.

    Non-goals:
        Does NOT serialize concurrent callers in-process; PeriodManager holds
        the period lock around these calls.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        organization_id: str | None = None,
    ):
        super().__init__(session, clock)
        self._organization_id = organization_id

    # ------------------------------------------------------------------
    # Creation and lookup
    # ------------------------------------------------------------------

    def create_period(
        self,
        period_code: str,
        organization_id: str,
        start_date: date,
        end_date: date,
        pay_month: int,
        pay_year: int,
        actor_id: UUID,
    ) -> PayrollPeriodInfo:
        """
        Create a DRAFT period.

        Raises:
            InvalidIntervalError: end before start, bad month, or dates shared
                with another period of the organization.
            DuplicatePeriodError: The pay month or period code already exists.
        """
        if end_date < start_date:
            raise InvalidIntervalError(start_date, end_date, "period end precedes start")
        if not 1 <= pay_month <= 12:
            raise InvalidIntervalError(start_date, end_date, f"pay_month {pay_month} out of range")

        existing = self.session.execute(
            select(PayrollPeriod).where(
                (PayrollPeriod.period_code == period_code)
                | (
                    (PayrollPeriod.organization_id == organization_id)
                    & (PayrollPeriod.pay_year == pay_year)
                    & (PayrollPeriod.pay_month == pay_month)
                )
            )
        ).scalars().first()
        if existing is not None:
            raise DuplicatePeriodError(organization_id, pay_month, pay_year, existing.period_code)

        overlapping = self.session.execute(
            select(PayrollPeriod.period_code).where(
                PayrollPeriod.organization_id == organization_id,
                PayrollPeriod.start_date <= end_date,
                PayrollPeriod.end_date >= start_date,
            )
        ).scalars().first()
        if overlapping is not None:
            raise InvalidIntervalError(
                start_date, end_date, f"dates overlap period {overlapping}"
            )

        period = PayrollPeriod(
            period_code=period_code,
            organization_id=organization_id,
            start_date=start_date,
            end_date=end_date,
            pay_month=pay_month,
            pay_year=pay_year,
            status=PeriodStatus.DRAFT.value,
            created_by_id=actor_id,
        )
        self.session.add(period)
        self.session.flush()

        logger.info(
            "period_created",
            extra={
                "period_code": period_code,
                "start_date": str(start_date),
                "end_date": str(end_date),
                "pay_month": pay_month,
                "pay_year": pay_year,
            },
        )
        return period.to_dto()

    def get_period(self, period_code: str) -> PayrollPeriodInfo:
        return self._require(period_code).to_dto()

    def find_period_for_date(
        self, as_of: date, organization_id: str | None = None
    ) -> PayrollPeriodInfo | None:
        stmt = select(PayrollPeriod).where(
            PayrollPeriod.start_date <= as_of,
            PayrollPeriod.end_date >= as_of,
        )
        organization_id = organization_id or self._organization_id
        if organization_id is not None:
            stmt = stmt.where(PayrollPeriod.organization_id == organization_id)
        period = self.session.execute(stmt).scalars().first()
        return period.to_dto() if period is not None else None

    def periods_intersecting(
        self, start: date, end: date | None
    ) -> list[PayrollPeriodInfo]:
        """Periods sharing at least one day with ``[start, end]`` (end None = open)."""
        stmt = select(PayrollPeriod).where(PayrollPeriod.end_date >= start)
        if end is not None:
            stmt = stmt.where(PayrollPeriod.start_date <= end)
        if self._organization_id is not None:
            stmt = stmt.where(PayrollPeriod.organization_id == self._organization_id)
        stmt = stmt.order_by(PayrollPeriod.start_date)
        return [p.to_dto() for p in self.session.execute(stmt).scalars()]

    def list_periods(self, organization_id: str | None = None) -> list[PayrollPeriodInfo]:
        stmt = select(PayrollPeriod).order_by(PayrollPeriod.pay_year, PayrollPeriod.pay_month)
        if organization_id is not None:
            stmt = stmt.where(PayrollPeriod.organization_id == organization_id)
        return [p.to_dto() for p in self.session.execute(stmt).scalars()]

    def audit_trail(self, period_code: str) -> list[PeriodAuditEntryInfo]:
        entries = self.session.execute(
            select(PeriodAuditEntry)
            .where(PeriodAuditEntry.period_code == period_code)
            .order_by(PeriodAuditEntry.occurred_at, PeriodAuditEntry.created_at)
        ).scalars()
        return [e.to_dto() for e in entries]

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def approve_period(self, period_code: str, actor_id: UUID) -> PayrollPeriodInfo:
        return self._transition(
            period_code, PeriodStatus.DRAFT, PeriodStatus.APPROVED, PeriodAction.APPROVE, actor_id
        )

    def lock_period(self, period_code: str, actor_id: UUID) -> PayrollPeriodInfo:
        """
        APPROVED -> LOCKED.  From here on results, assignments and attendance
        touching the period are frozen.
        """
        return self._transition(
            period_code, PeriodStatus.APPROVED, PeriodStatus.LOCKED, PeriodAction.LOCK, actor_id
        )

    def reopen_period(self, period_code: str, actor_id: UUID, reason: str) -> PayrollPeriodInfo:
        """
        LOCKED -> DRAFT, the only way back.

        Raises:
            ValueError: reason is blank.
            SettlementConflictError: PAID final settlements belong to the
                period; the period stays LOCKED.
        """
        if not reason or not reason.strip():
            raise ValueError("Reopening a locked period requires a reason")

        paid = self.session.execute(
            select(FinalSettlement.settlement_id).where(
                FinalSettlement.period_code == period_code,
                FinalSettlement.status == SettlementStatus.PAID.value,
            ).order_by(FinalSettlement.settlement_id)
        ).scalars().all()
        if paid:
            logger.warning(
                "period_reopen_blocked_by_settlement",
                extra={"period_code": period_code, "settlement_ids": list(paid)},
            )
            raise SettlementConflictError(
                list(paid),
                f"paid final settlements exist for period {period_code}",
                period_code=period_code,
            )

        return self._transition(
            period_code,
            PeriodStatus.LOCKED,
            PeriodStatus.DRAFT,
            PeriodAction.REOPEN,
            actor_id,
            reason=reason.strip(),
        )

    def _transition(
        self,
        period_code: str,
        expected: PeriodStatus,
        target: PeriodStatus,
        action: PeriodAction,
        actor_id: UUID,
        reason: str | None = None,
    ) -> PayrollPeriodInfo:
        period = self._get_period_for_update(period_code)
        if period is None:
            raise PeriodNotFoundError(period_code)
        if period.status != expected.value:
            self._raise_conflict(period_code, expected, period.status, action)

        now = self._clock.now()
        values: dict = {"status": target.value, "updated_by_id": actor_id}
        if target == PeriodStatus.LOCKED:
            values.update(locked_at=now, locked_by_id=actor_id)
        elif action == PeriodAction.REOPEN:
            values.update(locked_at=None, locked_by_id=None)

        result = self.session.execute(
            update(PayrollPeriod)
            .where(
                PayrollPeriod.period_code == period_code,
                PayrollPeriod.status == expected.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            actual = self.session.execute(
                select(PayrollPeriod.status)
                .where(PayrollPeriod.period_code == period_code)
                .execution_options(populate_existing=True)
            ).scalar_one()
            self._raise_conflict(period_code, expected, actual, action)

        self.session.add(
            PeriodAuditEntry(
                period_code=period_code,
                action=action.value,
                from_status=expected.value,
                to_status=target.value,
                actor_id=actor_id,
                occurred_at=now,
                reason=reason,
                created_by_id=actor_id,
            )
        )
        self.session.flush()
        self.session.refresh(period)

        logger.info(
            _TRANSITION_EVENTS[action],
            extra={
                "period_code": period_code,
                "from_status": expected.value,
                "to_status": target.value,
                "actor_id": str(actor_id),
                "reason": reason,
            },
        )
        return period.to_dto()

    def _raise_conflict(
        self, period_code: str, expected: PeriodStatus, actual: str, action: PeriodAction
    ) -> None:
        logger.warning(
            "period_transition_conflict",
            extra={
                "period_code": period_code,
                "expected_status": expected.value,
                "actual_status": actual,
                "action": action.value,
            },
        )
        raise ConflictingTransitionError(period_code, expected.value, actual, action.value)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def require_results_writable(self, period_code: str) -> PayrollPeriodInfo:
        """
        Raise PeriodLockedError if results of ``period_code`` are frozen.

        Reads the row fresh (and FOR UPDATE on PostgreSQL) so a lock
        committed by another session since this one first loaded the period
        is seen.
        """
        row = self._get_period_for_update(period_code)
        if row is None:
            raise PeriodNotFoundError(period_code)
        period = row.to_dto()
        if period.status == PeriodStatus.LOCKED:
            logger.warning(
                "locked_period_write_rejected",
                extra={"period_code": period_code, "operation": "write payroll result"},
            )
            raise PeriodLockedError(period_code, "write payroll result")
        return period

    def require_assignments_writable(self, start: date, end: date | None) -> None:
        """Reject assignment changes whose affected days touch a LOCKED period."""
        for period in self.periods_intersecting(start, end):
            if period.status == PeriodStatus.LOCKED:
                logger.warning(
                    "locked_period_write_rejected",
                    extra={
                        "period_code": period.period_code,
                        "operation": "change salary assignment",
                    },
                )
                raise PeriodLockedError(period.period_code, "change salary assignment")

    def require_attendance_writable(self, start: date, end: date) -> None:
        """
        LOCKED periods reject attendance writes; APPROVED periods keep their
        attendance inputs frozen while results may still be regenerated.
        """
        for period in self.periods_intersecting(start, end):
            if period.status == PeriodStatus.LOCKED:
                logger.warning(
                    "locked_period_write_rejected",
                    extra={"period_code": period.period_code, "operation": "record attendance"},
                )
                raise PeriodLockedError(period.period_code, "record attendance")
            if period.status == PeriodStatus.APPROVED:
                logger.warning(
                    "approved_period_write_rejected",
                    extra={"period_code": period.period_code, "operation": "record attendance"},
                )
                raise PeriodApprovedError(period.period_code, "record attendance")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require(self, period_code: str) -> PayrollPeriod:
        period = self.session.execute(
            select(PayrollPeriod).where(PayrollPeriod.period_code == period_code)
        ).scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(period_code)
        return period

    def _get_period_for_update(self, period_code: str) -> PayrollPeriod | None:
        """
        Row-locked read.  FOR UPDATE is emitted on PostgreSQL and ignored by
        SQLite, where the in-process period lock serializes writers.
        """
        return self.session.execute(
            select(PayrollPeriod)
            .where(PayrollPeriod.period_code == period_code)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
