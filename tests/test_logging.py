"""
Tests for structured logging and engine tracing.
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from payroll_engines.gratuity import calculate_gratuity
from payroll_engines.tracer import compute_input_fingerprint
from payroll_kernel.domain.dtos import AssignmentInfo
from payroll_kernel.exceptions import PeriodLockedError
from payroll_kernel.logging_config import LogContext, StructuredFormatter, get_logger


def _format(record_fn) -> dict:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    logger = logging.getLogger("payroll_kernel.tests.format")
    logger.addHandler(handler)
    try:
        record_fn(logger)
    finally:
        logger.removeHandler(handler)
    return json.loads(stream.getvalue().strip().split("\n")[-1])


class TestStructuredFormatter:
    def test_money_stays_a_string(self):
        payload = _format(lambda log: log.info("amount", extra={"net": Decimal("13000.00")}))

        assert payload["net"] == "13000.00"
        assert payload["logger"] == "payroll_kernel.tests.format"

    def test_dates_are_iso(self):
        payload = _format(lambda log: log.info("dated", extra={"as_of": date(2026, 2, 15)}))

        assert payload["as_of"] == "2026-02-15"

    def test_context_fields_included(self):
        with LogContext.bind(period_code="PP-2026-02", employee_id="EMP001"):
            payload = _format(lambda log: log.info("bound"))

        assert payload["period_code"] == "PP-2026-02"
        assert payload["employee_id"] == "EMP001"

    def test_exception_attributes_rendered(self):
        def _log(log):
            try:
                raise PeriodLockedError("PP-2026-02", "write payroll result")
            except PeriodLockedError:
                log.exception("failed")

        payload = _format(_log)

        assert payload["exc_type"] == "PeriodLockedError"
        assert payload["exc_code"] == "PERIOD_LOCKED"
        assert payload["exc_period_code"] == "PP-2026-02"


class TestLogContext:
    def test_bind_restores_previous_values(self):
        LogContext.set(period_code="PP-2026-01")

        with LogContext.bind(period_code="PP-2026-02"):
            assert LogContext.get_all()["period_code"] == "PP-2026-02"

        assert LogContext.get_all()["period_code"] == "PP-2026-01"

    def test_unknown_field_rejected(self):
        with pytest.raises(KeyError):
            LogContext.set(department="finance")


class TestEngineTrace:
    def test_engine_call_emits_trace(self, captured_logs):
        calculate_gratuity(Decimal("9000"), Decimal("7"))

        traces = [r for r in captured_logs() if r["message"] == "PAYROLL_ENGINE_TRACE"]
        assert traces[-1]["engine_name"] == "gratuity"
        assert len(traces[-1]["input_fingerprint"]) == 16

    def test_fingerprint_ignores_decimal_scale(self):
        a = AssignmentInfo("EMP001", "SC-BASIC", Decimal("8000"), date(2026, 1, 1))
        b = AssignmentInfo("EMP001", "SC-BASIC", Decimal("8000.000000000"), date(2026, 1, 1))

        assert compute_input_fingerprint(("a",), {"a": a}) == compute_input_fingerprint(
            ("a",), {"a": b}
        )

    def test_fingerprint_ignores_mapping_order(self):
        first = {"SC-HOUSING": Decimal("4000"), "SC-BASIC": Decimal("8000")}
        second = {"SC-BASIC": Decimal("8000"), "SC-HOUSING": Decimal("4000")}

        assert compute_input_fingerprint(("m",), {"m": first}) == compute_input_fingerprint(
            ("m",), {"m": second}
        )

    def test_floats_rejected(self):
        with pytest.raises(TypeError):
            compute_input_fingerprint(("x",), {"x": 1.5})

    def test_logger_namespace(self):
        assert get_logger("engines.tracer").name == "payroll_kernel.engines.tracer"
