"""Seed the salary component catalog from organization settings."""

from uuid import UUID

from sqlalchemy.orm import Session

from payroll_config.schema import ComponentDefinition, OrganizationSettings
from payroll_kernel.domain.dtos import SalaryComponentInfo
from payroll_kernel.logging_config import get_logger
from payroll_kernel.services.salary_catalog import SalaryCatalog

logger = get_logger("services.seeding")


def component_info(definition: ComponentDefinition) -> SalaryComponentInfo:
    return SalaryComponentInfo(
        component_id=definition.component_id,
        name=definition.name,
        kind=definition.kind,
        calculation_method=definition.calculation_method,
        wps_class=definition.wps_class,
        taxable=definition.taxable,
    )


def seed_salary_catalog(
    session: Session, settings: OrganizationSettings, actor_id: UUID
) -> dict[str, SalaryComponentInfo]:
    """
    Define every configured component and commit.  Re-seeding with the same
    settings is a no-op; a changed definition raises DuplicateComponentError.
    """
    catalog = SalaryCatalog(session)
    try:
        catalog.define_many((component_info(d) for d in settings.components), actor_id)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(
        "salary_catalog_seeded",
        extra={
            "organization_id": settings.organization_id,
            "component_count": len(settings.components),
            "config_checksum": settings.checksum,
        },
    )
    return catalog.all()
