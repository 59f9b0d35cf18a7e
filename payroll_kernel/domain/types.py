"""
Closed enumerations shared by models, engines, services and configuration.

Values are lowercase strings; they are what the database stores.
"""

from enum import Enum


class ComponentKind(str, Enum):
    EARNING = "earning"
    DEDUCTION = "deduction"


class CalculationMethod(str, Enum):
    """FIXED components are assigned amounts; DERIVED ones are computed."""

    FIXED = "fixed"
    DERIVED = "derived"


class WpsClass(str, Enum):
    """Which SIF column an earning is reported in."""

    FIXED = "fixed"
    VARIABLE = "variable"
    NOT_APPLICABLE = "not_applicable"


class PeriodStatus(str, Enum):
    """
    Lifecycle status of a payroll period.

    DRAFT -> APPROVED -> LOCKED; LOCKED -> DRAFT only through an audited reopen.
    """

    DRAFT = "draft"
    APPROVED = "approved"
    LOCKED = "locked"


class PeriodAction(str, Enum):
    APPROVE = "approve"
    LOCK = "lock"
    REOPEN = "reopen"


class DayType(str, Enum):
    """Overtime day categories. Multipliers come from organization settings."""

    WORKDAY = "workday"
    WEEKEND = "weekend"
    PUBLIC_HOLIDAY = "public_holiday"


class LoanStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class SettlementStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    PAID = "paid"


class ApprovalType(str, Enum):
    ATTENDANCE = "attendance"
    LEAVE = "leave"
    OVERTIME = "overtime"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalAction(str, Enum):
    """Entries of the append-only approval log."""

    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class ProrationPolicy(str, Enum):
    """
    DAY_WEIGHTED: each assignment contributes amount x overlap days / period days.
    PERIOD_START: the assignment active on the period's first day, in full.
    """

    DAY_WEIGHTED = "day_weighted"
    PERIOD_START = "period_start"


class EntityType(str, Enum):
    MAINLAND_MOHRE = "mainland_mohre"
    FREE_ZONE = "free_zone"


class LeavePayType(str, Enum):
    PAID = "paid"
    UNPAID = "unpaid"
