"""
Module: payroll_kernel.models.salary
Responsibility: ORM persistence for the salary component catalog and the
    effective-dated component assignments.
Architecture position: Kernel > Models.  Imports from db/ and domain/ only.

Invariants enforced:
    - Component ids are unique; catalog rows are never updated.
    - Assignment intervals are half-open [effective_from, effective_to).  The
      only permitted change to a stored assignment is moving its end earlier
      when it is superseded (db/immutability.py).
    - Non-overlap per (employee, component) is checked by
      EffectiveDatedStore before insert.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase
from payroll_kernel.db.types import Money
from payroll_kernel.domain.dtos import AssignmentInfo, SalaryComponentInfo
from payroll_kernel.domain.types import CalculationMethod, ComponentKind, WpsClass


class SalaryComponent(TrackedBase):
    """Catalog entry: BASIC, HOUSING, OT, LOAN..."""

    __tablename__ = "salary_components"

    component_id: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    calculation_method: Mapped[str] = mapped_column(String(20), nullable=False)
    wps_class: Mapped[str] = mapped_column(String(20), nullable=False)
    taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def to_dto(self) -> SalaryComponentInfo:
        return SalaryComponentInfo(
            component_id=self.component_id,
            name=self.name,
            kind=ComponentKind(self.kind),
            calculation_method=CalculationMethod(self.calculation_method),
            wps_class=WpsClass(self.wps_class),
            taxable=self.taxable,
        )

    def __repr__(self) -> str:
        return f"<SalaryComponent {self.component_id} {self.kind}/{self.calculation_method}>"


class ComponentAssignment(TrackedBase):
    """
    One amount of one component for one employee over a date interval.

    ``effective_to`` is exclusive; None means open-ended.
    """

    __tablename__ = "component_assignments"

    __table_args__ = (
        Index("idx_assignment_key", "employee_id", "component_id", "effective_from"),
        CheckConstraint(
            "effective_to IS NULL OR effective_to > effective_from",
            name="ck_assignment_interval",
        ),
    )

    employee_id: Mapped[str] = mapped_column(String(50), nullable=False)
    component_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("salary_components.component_id"),
        nullable=False,
    )
    amount: Mapped[Money] = mapped_column(nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    def to_dto(self) -> AssignmentInfo:
        return AssignmentInfo(
            employee_id=self.employee_id,
            component_id=self.component_id,
            amount=Decimal(self.amount),
            effective_from=self.effective_from,
            effective_to=self.effective_to,
        )

    def __repr__(self) -> str:
        upper = self.effective_to or "open"
        return (
            f"<ComponentAssignment {self.employee_id}/{self.component_id} "
            f"{self.amount} [{self.effective_from}, {upper})>"
        )
