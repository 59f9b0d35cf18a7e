"""
SalaryCatalog -- the salary component catalog.

Catalog entries are immutable: defining an existing component again with the
same attributes is a no-op, with different attributes an error.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select

from payroll_kernel.domain.dtos import SalaryComponentInfo
from payroll_kernel.exceptions import ComponentNotFoundError, DuplicateComponentError
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.salary import SalaryComponent
from payroll_kernel.services.base import BaseService

logger = get_logger("services.salary_catalog")


class SalaryCatalog(BaseService[SalaryComponent]):
    def define(self, info: SalaryComponentInfo, actor_id: UUID) -> SalaryComponentInfo:
        existing = self._find(info.component_id)
        if existing is not None:
            if existing.to_dto() != info:
                raise DuplicateComponentError(info.component_id)
            return info

        self.session.add(
            SalaryComponent(
                component_id=info.component_id,
                name=info.name,
                kind=info.kind.value,
                calculation_method=info.calculation_method.value,
                wps_class=info.wps_class.value,
                taxable=info.taxable,
                created_by_id=actor_id,
            )
        )
        self.session.flush()
        logger.info(
            "salary_component_defined",
            extra={
                "component_id": info.component_id,
                "kind": info.kind.value,
                "calculation_method": info.calculation_method.value,
                "wps_class": info.wps_class.value,
            },
        )
        return info

    def define_many(
        self, infos: Iterable[SalaryComponentInfo], actor_id: UUID
    ) -> list[SalaryComponentInfo]:
        return [self.define(info, actor_id) for info in infos]

    def get(self, component_id: str) -> SalaryComponentInfo:
        row = self._find(component_id)
        if row is None:
            raise ComponentNotFoundError(component_id)
        return row.to_dto()

    def all(self) -> dict[str, SalaryComponentInfo]:
        rows = self.session.execute(
            select(SalaryComponent).order_by(SalaryComponent.component_id)
        ).scalars()
        return {row.component_id: row.to_dto() for row in rows}

    def _find(self, component_id: str) -> SalaryComponent | None:
        return self.session.execute(
            select(SalaryComponent).where(SalaryComponent.component_id == component_id)
        ).scalar_one_or_none()
