"""
Tests for effective-dated salary assignments.

Covers:
- Point-in-time resolution and history
- Supersede closes the running interval and inherits its upper bound
- Overlap, derived component and negative amount rejection
- Assignment changes touching a LOCKED period are refused
- Only periods of the store's own organization guard its assignments
"""

from datetime import date
from decimal import Decimal

import pytest

from payroll_kernel.exceptions import (
    AssignmentNotFoundError,
    ComponentNotFoundError,
    InvalidAssignmentError,
    InvalidIntervalError,
    OverlapError,
    PeriodLockedError,
)

from payroll_kernel.services.effective_dated_store import EffectiveDatedStore

from tests.factories import EMPLOYEE_ID, FEB_2026

OTHER_ORG = "ORG-OTHER"
OTHER_FEB = "OTHER-2026-02"


@pytest.fixture
def locked_feb(feb_period, period_manager, actor_id):
    period_manager.approve(FEB_2026, actor_id)
    return period_manager.lock(FEB_2026, actor_id)


class TestAssignAndResolve:
    def test_resolve_active_amount(self, store, assign):
        assign("SC-BASIC", "8000", date(2026, 1, 1))

        found = store.resolve(EMPLOYEE_ID, "SC-BASIC", date(2026, 2, 10))

        assert found.amount == Decimal("8000")
        assert found.effective_to is None

    def test_resolve_before_first_assignment(self, store, assign):
        assign("SC-BASIC", "8000", date(2026, 1, 1))

        with pytest.raises(AssignmentNotFoundError):
            store.resolve(EMPLOYEE_ID, "SC-BASIC", date(2025, 12, 31))

    def test_overlapping_assignment_rejected(self, store, assign, actor_id):
        assign("SC-BASIC", "8000", date(2026, 1, 1))

        with pytest.raises(OverlapError):
            store.assign(
                EMPLOYEE_ID, "SC-BASIC", Decimal("9000"), date(2026, 3, 1), actor_id=actor_id
            )

    def test_components_are_independent(self, store, assign):
        assign("SC-BASIC", "8000", date(2026, 1, 1))
        assign("SC-HOUSING", "4000", date(2026, 1, 1))

        assert store.components_for(EMPLOYEE_ID) == ["SC-BASIC", "SC-HOUSING"]

    def test_derived_component_cannot_be_assigned(self, store, actor_id):
        with pytest.raises(InvalidAssignmentError):
            store.assign(EMPLOYEE_ID, "SC-OT", Decimal("100"), date(2026, 1, 1), actor_id=actor_id)

    def test_unknown_component(self, store, actor_id):
        with pytest.raises(ComponentNotFoundError):
            store.assign(EMPLOYEE_ID, "SC-BONUS", Decimal("1"), date(2026, 1, 1), actor_id=actor_id)

    def test_negative_amount_rejected(self, store, actor_id):
        with pytest.raises(InvalidAssignmentError):
            store.assign(
                EMPLOYEE_ID, "SC-BASIC", Decimal("-1"), date(2026, 1, 1), actor_id=actor_id
            )


class TestSupersede:
    def test_raise_splits_history(self, store, assign, session, actor_id):
        assign("SC-BASIC", "8000", date(2026, 1, 1))

        store.supersede(
            EMPLOYEE_ID, "SC-BASIC", Decimal("9000"), date(2026, 2, 15), actor_id=actor_id
        )
        session.commit()

        history = store.history(EMPLOYEE_ID, "SC-BASIC")
        assert [(a.amount, a.effective_from, a.effective_to) for a in history] == [
            (Decimal("8000"), date(2026, 1, 1), date(2026, 2, 15)),
            (Decimal("9000"), date(2026, 2, 15), None),
        ]
        assert store.resolve(EMPLOYEE_ID, "SC-BASIC", date(2026, 2, 14)).amount == Decimal("8000")
        assert store.resolve(EMPLOYEE_ID, "SC-BASIC", date(2026, 2, 15)).amount == Decimal("9000")

    def test_new_interval_inherits_bounded_end(self, store, assign, session, actor_id):
        assign("SC-HOUSING", "4000", date(2026, 1, 1), date(2026, 7, 1))

        new = store.supersede(
            EMPLOYEE_ID, "SC-HOUSING", Decimal("4500"), date(2026, 4, 1), actor_id=actor_id
        )
        session.commit()

        assert new.effective_to == date(2026, 7, 1)
        assert len(store.history(EMPLOYEE_ID, "SC-HOUSING")) == 2

    def test_supersede_on_start_date_rejected(self, store, assign, session, actor_id):
        assign("SC-BASIC", "8000", date(2026, 1, 1))

        with pytest.raises(InvalidIntervalError) as exc_info:
            store.supersede(
                EMPLOYEE_ID, "SC-BASIC", Decimal("9000"), date(2026, 1, 1), actor_id=actor_id
            )
        session.rollback()

        assert exc_info.value.effective_from == date(2026, 1, 1)
        assert "never rewritten" in exc_info.value.reason
        assert [a.amount for a in store.history(EMPLOYEE_ID, "SC-BASIC")] == [Decimal("8000")]

    def test_supersede_without_active_interval(self, store, actor_id):
        with pytest.raises(AssignmentNotFoundError):
            store.supersede(
                EMPLOYEE_ID, "SC-BASIC", Decimal("9000"), date(2026, 2, 15), actor_id=actor_id
            )


class TestRangeQueries:
    def test_assignments_in_range(self, store, assign, session, actor_id):
        assign("SC-BASIC", "8000", date(2026, 1, 1))
        assign("SC-TRANSPORT", "1000", date(2025, 1, 1), date(2026, 1, 1))
        store.supersede(
            EMPLOYEE_ID, "SC-BASIC", Decimal("9000"), date(2026, 2, 15), actor_id=actor_id
        )
        session.commit()

        found = store.assignments_in_range(EMPLOYEE_ID, date(2026, 2, 1), date(2026, 2, 28))

        assert list(found) == ["SC-BASIC"]
        assert [a.amount for a in found["SC-BASIC"]] == [Decimal("8000"), Decimal("9000")]


class TestLockedPeriodGuard:
    def test_assignment_inside_locked_period_rejected(self, store, locked_feb, actor_id):
        with pytest.raises(PeriodLockedError) as exc_info:
            store.assign(
                EMPLOYEE_ID, "SC-OTHER", Decimal("500"), date(2026, 2, 10), actor_id=actor_id
            )

        assert exc_info.value.period_code == FEB_2026

    def test_supersede_inside_locked_period_rejected(
        self, store, assign, feb_period, period_manager, session, actor_id
    ):
        assign("SC-BASIC", "8000", date(2026, 1, 1))
        period_manager.approve(FEB_2026, actor_id)
        period_manager.lock(FEB_2026, actor_id)

        with pytest.raises(PeriodLockedError):
            store.supersede(
                EMPLOYEE_ID, "SC-BASIC", Decimal("9000"), date(2026, 2, 20), actor_id=actor_id
            )
        session.rollback()

        assert store.resolve(EMPLOYEE_ID, "SC-BASIC", date(2026, 2, 20)).amount == Decimal("8000")

    def test_interval_ending_before_locked_period_allowed(self, store, assign, locked_feb):
        assign("SC-HOUSING", "4000", date(2026, 1, 1), date(2026, 2, 1))

        assert len(store.history(EMPLOYEE_ID, "SC-HOUSING")) == 1

    def test_change_after_locked_period_allowed(self, store, assign, locked_feb, session, actor_id):
        assign("SC-BASIC", "8000", date(2026, 3, 1))

        store.supersede(
            EMPLOYEE_ID, "SC-BASIC", Decimal("9000"), date(2026, 4, 1), actor_id=actor_id
        )
        session.commit()

        assert store.resolve(EMPLOYEE_ID, "SC-BASIC", date(2026, 4, 1)).amount == Decimal("9000")


@pytest.fixture
def other_org_locked_feb(period_manager, actor_id):
    period_manager.create_period(
        OTHER_FEB, OTHER_ORG, date(2026, 2, 1), date(2026, 2, 28), 2, 2026, actor_id
    )
    period_manager.approve(OTHER_FEB, actor_id)
    return period_manager.lock(OTHER_FEB, actor_id)


class TestOrganizationScope:
    def test_other_organization_lock_ignored(
        self, store, other_org_locked_feb, session, actor_id
    ):
        store.assign(
            EMPLOYEE_ID, "SC-BASIC", Decimal("8000"), date(2026, 2, 10), actor_id=actor_id
        )
        session.commit()

        assert store.resolve(EMPLOYEE_ID, "SC-BASIC", date(2026, 2, 10)).amount == Decimal("8000")

    def test_unscoped_store_sees_every_organization(
        self, session, clock, catalog, other_org_locked_feb, actor_id
    ):
        unscoped = EffectiveDatedStore(session, clock)

        with pytest.raises(PeriodLockedError) as exc_info:
            unscoped.assign(
                EMPLOYEE_ID, "SC-BASIC", Decimal("8000"), date(2026, 2, 10), actor_id=actor_id
            )

        assert exc_info.value.period_code == OTHER_FEB
