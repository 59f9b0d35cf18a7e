"""
Organization settings schema.

Frozen dataclasses the YAML configuration is parsed into.  Everything the
engine treats as policy (gratuity tiers, overtime multipliers, proration,
which leave types reduce pay, the salary component catalog) lives here.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from payroll_kernel.domain.types import (
    CalculationMethod,
    ComponentKind,
    DayType,
    EntityType,
    LeavePayType,
    ProrationPolicy,
    WpsClass,
)


@dataclass(frozen=True)
class GratuityPolicy:
    """
    End-of-service gratuity tiers.

    ``first_5_year_days`` of basic pay per year for the first five years,
    ``after_5_year_days`` per year beyond; the total is capped at
    ``cap_years`` years of basic pay.  Service under ``minimum_service_years``
    earns nothing.
    """

    first_5_year_days: Decimal = Decimal("21")
    after_5_year_days: Decimal = Decimal("30")
    cap_years: Decimal = Decimal("2")
    tier_threshold_years: Decimal = Decimal("5")
    minimum_service_years: Decimal = Decimal("1")
    daily_rate_divisor: Decimal = Decimal("30")

    def __post_init__(self) -> None:
        for name in ("first_5_year_days", "after_5_year_days", "cap_years", "daily_rate_divisor"):
            if getattr(self, name) <= 0:
                raise ValueError(f"gratuity.{name} must be positive")


@dataclass(frozen=True)
class OvertimeRateTable:
    """Multiplier applied to the hourly rate per overtime day category."""

    multipliers: dict[DayType, Decimal] = field(
        default_factory=lambda: {
            DayType.WORKDAY: Decimal("1.25"),
            DayType.WEEKEND: Decimal("1.5"),
            DayType.PUBLIC_HOLIDAY: Decimal("1.5"),
        }
    )

    def __post_init__(self) -> None:
        missing = [d.value for d in DayType if d not in self.multipliers]
        if missing:
            raise ValueError(f"overtime multipliers missing for: {', '.join(missing)}")

    def multiplier(self, day_type: DayType) -> Decimal:
        return self.multipliers[day_type]


@dataclass(frozen=True)
class LeaveType:
    code: str
    name: str
    pay_type: LeavePayType
    payroll_deductible: bool


@dataclass(frozen=True)
class ComponentDefinition:
    component_id: str
    name: str
    kind: ComponentKind
    calculation_method: CalculationMethod
    wps_class: WpsClass
    taxable: bool = False


@dataclass(frozen=True)
class OrganizationSettings:
    """Everything payroll needs to know about the employer."""

    organization_id: str
    name: str
    entity_type: EntityType
    currency: str
    establishment_number: str | None
    wps_applicable: bool
    wps_routing_code: str | None
    standard_monthly_hours: Decimal = Decimal("240")
    proration_policy: ProrationPolicy = ProrationPolicy.DAY_WEIGHTED
    gratuity: GratuityPolicy = field(default_factory=GratuityPolicy)
    overtime: OvertimeRateTable = field(default_factory=OvertimeRateTable)
    leave_types: tuple[LeaveType, ...] = ()
    components: tuple[ComponentDefinition, ...] = ()
    checksum: str = ""

    def __post_init__(self) -> None:
        if self.standard_monthly_hours <= 0:
            raise ValueError("standard_monthly_hours must be positive")
        codes = [lt.code for lt in self.leave_types]
        if len(codes) != len(set(codes)):
            raise ValueError("leave type codes must be unique")
        ids = [c.component_id for c in self.components]
        if len(ids) != len(set(ids)):
            raise ValueError("salary component ids must be unique")

    def leave_type(self, code: str) -> LeaveType:
        for lt in self.leave_types:
            if lt.code == code:
                return lt
        raise KeyError(f"Unknown leave type: {code}")

    @property
    def deductible_leave_codes(self) -> frozenset[str]:
        return frozenset(lt.code for lt in self.leave_types if lt.payroll_deductible)
