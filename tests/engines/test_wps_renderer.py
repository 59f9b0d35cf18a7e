"""
Tests for SIF validation and rendering.

Covers:
- Exact header and employee record layout
- Ordering by employee code, no trailing newline
- Every missing field reported at once
- Determinism
"""

from decimal import Decimal

import pytest

from payroll_engines.wps import SifEmployeeLine, SifHeader, render_sif, validate_sif
from payroll_kernel.exceptions import IncompleteComplianceDataError

from tests.factories import FEB_2026, VALID_IBAN

HEADER = SifHeader(
    period_code=FEB_2026,
    establishment_number="1234567",
    routing_code="803320101",
    pay_month=2,
    pay_year=2026,
    currency="AED",
)


def _line(code="E001", **overrides) -> SifEmployeeLine:
    values = dict(
        employee_code=code,
        name="Aisha Rahman",
        iban=VALID_IBAN,
        person_id="100234567890",
        days_worked=30,
        fixed_amount=Decimal("13000"),
        variable_amount=Decimal("0"),
        net=Decimal("13000"),
    )
    values.update(overrides)
    return SifEmployeeLine(**values)


class TestRenderSif:
    def test_single_employee_file(self):
        sif = render_sif(HEADER, [_line()])

        assert sif.split("\n") == [
            "1,1234567,803320101,02,2026,1,13000.00,AED",
            "2,803320101,AE070331234567890123456,Aisha Rahman,100234567890,E001,30,13000.00,0.00",
        ]

    def test_no_trailing_newline(self):
        assert not render_sif(HEADER, [_line()]).endswith("\n")

    def test_records_ordered_by_employee_code(self):
        lines = [
            _line("E003", name="Omar Said", net=Decimal("5000.5")),
            _line("E001"),
        ]

        records = render_sif(HEADER, lines).split("\n")

        assert records[0] == "1,1234567,803320101,02,2026,2,18000.50,AED"
        assert [r.split(",")[5] for r in records[1:]] == ["E001", "E003"]

    def test_name_is_trimmed(self):
        sif = render_sif(HEADER, [_line(name="  Aisha Rahman ")])

        assert ",Aisha Rahman," in sif

    def test_variable_pay_column(self):
        line = _line(variable_amount=Decimal("150"), net=Decimal("13150"))

        assert render_sif(HEADER, [line]).endswith(",13000.00,150.00")

    def test_identical_inputs_identical_bytes(self):
        lines = [_line("E002"), _line("E001")]

        assert render_sif(HEADER, lines) == render_sif(HEADER, list(reversed(lines)))


class TestValidateSif:
    def test_clean_input_has_no_issues(self):
        assert validate_sif(HEADER, [_line()]) == []

    def test_reports_every_issue_together(self):
        header = SifHeader(FEB_2026, None, "", 2, 2026, "AED")
        lines = [_line(iban=None, person_id=None)]

        issues = validate_sif(header, lines)

        assert issues == [
            "organization: establishment number is missing",
            "organization: WPS bank routing code is missing",
            "employee E001: IBAN is missing",
            "employee E001: MOHRE person id / labour card number is missing",
        ]

    def test_malformed_iban(self):
        issues = validate_sif(HEADER, [_line(iban="GB29NWBK60161331926819")])

        assert issues == [
            "employee E001: IBAN 'GB29NWBK60161331926819' is not AE followed by 21 digits"
        ]

    def test_delimiter_in_name(self):
        issues = validate_sif(HEADER, [_line(name="Rahman, Aisha")])

        assert issues == ["employee E001: name contains a delimiter"]

    def test_empty_period(self):
        assert validate_sif(HEADER, []) == ["period: no WPS-eligible payroll results to export"]

    def test_render_refuses_incomplete_data(self):
        with pytest.raises(IncompleteComplianceDataError) as exc_info:
            render_sif(HEADER, [_line(iban="")])

        assert exc_info.value.period_code == FEB_2026
        assert exc_info.value.issues == ["employee E001: IBAN is missing"]
