"""
payroll_engines.wps -- Salary Information File (SIF) rendering for the UAE
Wage Protection System.

Responsibility:
    Validate and render the bank submission for one pay period:

        1,<establishment>,<routing>,<MM>,<YYYY>,<employee count>,<total net>,<currency>
        2,<routing>,<IBAN>,<name>,<person id>,<employee code>,<days worked>,<fixed>,<variable>

    One header, then one employee record per line ordered by employee code;
    comma-delimited, ``\\n`` between lines, no trailing newline, amounts with
    exactly two decimals.

Architecture position:
    Engines -- pure, zero I/O.  WpsExportService assembles the inputs from
    stored payroll results and the employee master.

Invariants enforced:
    - Validation of the organization and every employee runs before any
      line is produced; all issues are reported together.
    - Output is a function of the inputs only: identical inputs give
      byte-identical files.

Failure modes:
    - IncompleteComplianceDataError listing every missing or malformed field.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from payroll_engines.tracer import traced_engine
from payroll_kernel.db.types import ZERO, round_money
from payroll_kernel.exceptions import IncompleteComplianceDataError

DELIMITER = ","
LINE_SEPARATOR = "\n"
HEADER_RECORD = "1"
EMPLOYEE_RECORD = "2"

# UAE IBAN: "AE" followed by 21 digits
UAE_IBAN_PATTERN = re.compile(r"^AE\d{21}$")


@dataclass(frozen=True)
class SifHeader:
    period_code: str
    establishment_number: str | None
    routing_code: str | None
    pay_month: int
    pay_year: int
    currency: str


@dataclass(frozen=True)
class SifEmployeeLine:
    employee_code: str
    name: str
    iban: str | None
    person_id: str | None
    days_worked: int
    fixed_amount: Decimal
    variable_amount: Decimal
    net: Decimal


def _format_amount(value: Decimal) -> str:
    return f"{round_money(value):.2f}"


def _unsafe(value: str) -> bool:
    return DELIMITER in value or "\n" in value or "\r" in value


def validate_sif(header: SifHeader, lines: Sequence[SifEmployeeLine]) -> list[str]:
    """Every issue blocking the file; empty when it can be rendered."""
    issues: list[str] = []
    if not header.establishment_number:
        issues.append("organization: establishment number is missing")
    elif _unsafe(header.establishment_number):
        issues.append("organization: establishment number contains a delimiter")
    if not header.routing_code:
        issues.append("organization: WPS bank routing code is missing")
    elif _unsafe(header.routing_code):
        issues.append("organization: WPS bank routing code contains a delimiter")
    if not 1 <= header.pay_month <= 12:
        issues.append(f"period: pay month {header.pay_month} is out of range")
    if not lines:
        issues.append("period: no WPS-eligible payroll results to export")

    for line in lines:
        who = f"employee {line.employee_code}"
        if not line.iban:
            issues.append(f"{who}: IBAN is missing")
        elif not UAE_IBAN_PATTERN.match(line.iban):
            issues.append(f"{who}: IBAN {line.iban!r} is not AE followed by 21 digits")
        if not line.person_id:
            issues.append(f"{who}: MOHRE person id / labour card number is missing")
        elif _unsafe(line.person_id):
            issues.append(f"{who}: person id contains a delimiter")
        if not line.name or not line.name.strip():
            issues.append(f"{who}: name is missing")
        elif _unsafe(line.name):
            issues.append(f"{who}: name contains a delimiter")
        if _unsafe(line.employee_code):
            issues.append(f"{who}: employee code contains a delimiter")
        if line.fixed_amount < ZERO or line.variable_amount < ZERO or line.net < ZERO:
            issues.append(f"{who}: amounts cannot be negative")
    return issues


@traced_engine("wps_sif", "1.0", fingerprint_fields=("header", "lines"))
def render_sif(header: SifHeader, lines: Sequence[SifEmployeeLine]) -> str:
    issues = validate_sif(header, lines)
    if issues:
        raise IncompleteComplianceDataError(header.period_code, issues)

    ordered = sorted(lines, key=lambda line: line.employee_code)
    total_net = sum((line.net for line in ordered), ZERO)
    records = [
        DELIMITER.join(
            (
                HEADER_RECORD,
                header.establishment_number,
                header.routing_code,
                f"{header.pay_month:02d}",
                f"{header.pay_year:04d}",
                str(len(ordered)),
                _format_amount(total_net),
                header.currency,
            )
        )
    ]
    for line in ordered:
        records.append(
            DELIMITER.join(
                (
                    EMPLOYEE_RECORD,
                    header.routing_code,
                    line.iban,
                    line.name.strip(),
                    line.person_id,
                    line.employee_code,
                    str(line.days_worked),
                    _format_amount(line.fixed_amount),
                    _format_amount(line.variable_amount),
                )
            )
        )
    return LINE_SEPARATOR.join(records)
