"""
EmployeeDirectory -- local snapshot of the external employee master.

The HR master owns employee identity; payroll only mirrors the fields it
computes and reports with.  ``sync`` is an upsert keyed on employee_id.
"""

from uuid import UUID

from sqlalchemy import select

from payroll_kernel.domain.dtos import EmployeeProfileInfo
from payroll_kernel.exceptions import EmployeeNotFoundError
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.employee import EmployeeProfile
from payroll_kernel.services.base import BaseService

logger = get_logger("services.employee_directory")


class EmployeeDirectory(BaseService[EmployeeProfile]):
    def sync(self, info: EmployeeProfileInfo, actor_id: UUID) -> EmployeeProfileInfo:
        row = self._find(info.employee_id)
        created = row is None
        if created:
            row = EmployeeProfile(employee_id=info.employee_id, created_by_id=actor_id)
            self.session.add(row)
        else:
            row.updated_by_id = actor_id
        row.apply(info)
        self.session.flush()

        logger.info(
            "employee_profile_synced",
            extra={"employee_id": info.employee_id, "is_new": created},
        )
        return row.to_dto()

    def get(self, employee_id: str) -> EmployeeProfileInfo:
        row = self._find(employee_id)
        if row is None:
            raise EmployeeNotFoundError(employee_id)
        return row.to_dto()

    def list_employees(self, wps_eligible_only: bool = False) -> list[EmployeeProfileInfo]:
        """All profiles ordered by employee code."""
        stmt = select(EmployeeProfile).order_by(EmployeeProfile.employee_code)
        if wps_eligible_only:
            stmt = stmt.where(EmployeeProfile.wps_eligible.is_(True))
        return [row.to_dto() for row in self.session.execute(stmt).scalars()]

    def _find(self, employee_id: str) -> EmployeeProfile | None:
        return self.session.execute(
            select(EmployeeProfile).where(EmployeeProfile.employee_id == employee_id)
        ).scalar_one_or_none()
