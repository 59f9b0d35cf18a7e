"""
Module: payroll_engines
Responsibility:
    Pure calculation layer of the payroll engine: interval lookup, gross to
    net, loan amortization, gratuity and the WPS file renderer.

Architecture position:
    Engines -- zero I/O.  May import payroll_kernel.domain, db.types and
    exceptions; MUST NOT import payroll_services or touch a Session.

Invariants enforced:
    - Engines never read the clock; dates are parameters.
    - Decimal-only arithmetic; floats are rejected.
    - Identical inputs produce identical outputs.  Every public engine is
      wrapped in ``@traced_engine`` and emits PAYROLL_ENGINE_TRACE.
"""

from payroll_engines.earnings import PayrollComputation, calculate_payroll
from payroll_engines.gratuity import (
    GratuityResult,
    SettlementAmounts,
    calculate_gratuity,
    service_tenure,
    settlement_amounts,
)
from payroll_engines.intervals import IntervalIndex
from payroll_engines.loan_amortization import (
    InstallmentOutcome,
    ScheduledInstallment,
    next_installment,
    projected_schedule,
)
from payroll_engines.tracer import compute_input_fingerprint, traced_engine
from payroll_engines.wps import SifEmployeeLine, SifHeader, render_sif, validate_sif

__all__ = [
    "GratuityResult",
    "InstallmentOutcome",
    "IntervalIndex",
    "PayrollComputation",
    "ScheduledInstallment",
    "SettlementAmounts",
    "SifEmployeeLine",
    "SifHeader",
    "calculate_gratuity",
    "calculate_payroll",
    "compute_input_fingerprint",
    "next_installment",
    "projected_schedule",
    "render_sif",
    "service_tenure",
    "settlement_amounts",
    "traced_engine",
    "validate_sif",
]
