"""
payroll_config -- single public entrypoint for organization settings.

Responsibility:
    ``get_organization_settings()`` is the only way runtime code obtains
    payroll policy.  Services receive the returned ``OrganizationSettings``
    through their constructors; none of them read files or environment
    variables.

Architecture position:
    Configuration -- sits above ``payroll_kernel`` and below
    ``payroll_services``.  The kernel never imports from here.

Failure modes:
    - ``FileNotFoundError`` when the settings file does not exist.
    - ``ValueError`` / ``KeyError`` on schema violations.

Audit relevance:
    Every load emits a ``PAYROLL_CONFIG_TRACE`` record carrying the
    organization id and the SHA-256 checksum of the settings document.
"""

from pathlib import Path

from payroll_config.loader import load_yaml_file, parse_organization_settings
from payroll_config.schema import (
    ComponentDefinition,
    GratuityPolicy,
    LeaveType,
    OrganizationSettings,
    OvertimeRateTable,
)
from payroll_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "sets" / "default.yaml"

__all__ = [
    "ComponentDefinition",
    "DEFAULT_SETTINGS_PATH",
    "GratuityPolicy",
    "LeaveType",
    "OrganizationSettings",
    "OvertimeRateTable",
    "get_organization_settings",
]


def get_organization_settings(path: Path | str | None = None) -> OrganizationSettings:
    """Load and validate organization settings (default: the packaged set)."""
    settings_path = Path(path) if path is not None else DEFAULT_SETTINGS_PATH
    settings = parse_organization_settings(load_yaml_file(settings_path))

    _logger.info(
        "PAYROLL_CONFIG_TRACE",
        extra={
            "trace_type": "PAYROLL_CONFIG_TRACE",
            "organization_id": settings.organization_id,
            "entity_type": settings.entity_type.value,
            "wps_applicable": settings.wps_applicable,
            "proration_policy": settings.proration_policy.value,
            "checksum": settings.checksum,
            "source": str(settings_path),
        },
    )
    return settings
