"""
Configuration Loader (``payroll_config.loader``).

Responsibility
--------------
Reads an organization settings YAML file and parses it into the frozen
dataclasses of ``payroll_config.schema``.  Runtime callers go through
``payroll_config.get_organization_settings()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError``; required keys have no
  silent defaults.
* Amounts and multipliers are parsed through ``Decimal(str(...))`` so YAML
  floats never reach arithmetic.
* ``compute_checksum`` is deterministic for identical documents.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from payroll_config.schema import (
    ComponentDefinition,
    GratuityPolicy,
    LeaveType,
    OrganizationSettings,
    OvertimeRateTable,
)
from payroll_kernel.domain.types import (
    CalculationMethod,
    ComponentKind,
    DayType,
    EntityType,
    LeavePayType,
    ProrationPolicy,
    WpsClass,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, name: str) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{name}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{name}: expected a number, got {value!r}") from exc


def parse_bool(value: Any, name: str) -> bool:
    """YAML booleans, plus the YES/NO strings the HR system exports."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().upper() in ("YES", "NO"):
        return value.strip().upper() == "YES"
    raise ValueError(f"{name}: expected a boolean or YES/NO, got {value!r}")


def _enum(enum_cls, value: Any, name: str):
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError as exc:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValueError(f"{name}: {value!r} is not one of {allowed}") from exc


def parse_gratuity(data: dict[str, Any]) -> GratuityPolicy:
    defaults = GratuityPolicy()
    return GratuityPolicy(
        **{
            key: parse_decimal(data[key], f"gratuity.{key}") if key in data else getattr(defaults, key)
            for key in (
                "first_5_year_days",
                "after_5_year_days",
                "cap_years",
                "tier_threshold_years",
                "minimum_service_years",
                "daily_rate_divisor",
            )
        }
    )


def parse_overtime(data: dict[str, Any]) -> OvertimeRateTable:
    raw = data.get("multipliers", {})
    multipliers = {
        _enum(DayType, key, "overtime.multipliers"): parse_decimal(val, f"overtime.multipliers.{key}")
        for key, val in raw.items()
    }
    return OvertimeRateTable(multipliers=multipliers)


def parse_leave_type(data: dict[str, Any]) -> LeaveType:
    return LeaveType(
        code=str(data["code"]),
        name=str(data["name"]),
        pay_type=_enum(LeavePayType, data["pay_type"], "leave_types.pay_type"),
        payroll_deductible=parse_bool(data["payroll_deductible"], "leave_types.payroll_deductible"),
    )


def parse_component(data: dict[str, Any]) -> ComponentDefinition:
    return ComponentDefinition(
        component_id=str(data["component_id"]),
        name=str(data["name"]),
        kind=_enum(ComponentKind, data["kind"], "components.kind"),
        calculation_method=_enum(
            CalculationMethod, data["calculation_method"], "components.calculation_method"
        ),
        wps_class=_enum(WpsClass, data["wps_class"], "components.wps_class"),
        taxable=parse_bool(data.get("taxable", False), "components.taxable"),
    )


def parse_organization_settings(data: dict[str, Any]) -> OrganizationSettings:
    """Parse a full settings document.  ``organization`` is required."""
    org = data["organization"]
    wps = data.get("wps", {})
    return OrganizationSettings(
        organization_id=str(org["organization_id"]),
        name=str(org["name"]),
        entity_type=_enum(EntityType, org["entity_type"], "organization.entity_type"),
        currency=str(org.get("currency", "AED")).upper(),
        establishment_number=_optional_str(org.get("establishment_number")),
        wps_applicable=parse_bool(wps.get("applicable", True), "wps.applicable"),
        wps_routing_code=_optional_str(wps.get("routing_code")),
        standard_monthly_hours=parse_decimal(
            data.get("standard_monthly_hours", 240), "standard_monthly_hours"
        ),
        proration_policy=_enum(
            ProrationPolicy, data.get("proration_policy", "day_weighted"), "proration_policy"
        ),
        gratuity=parse_gratuity(data.get("gratuity", {})),
        overtime=parse_overtime(data["overtime"]) if "overtime" in data else OvertimeRateTable(),
        leave_types=tuple(parse_leave_type(lt) for lt in data.get("leave_types", [])),
        components=tuple(parse_component(c) for c in data.get("components", [])),
        checksum=compute_checksum(data),
    )


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
