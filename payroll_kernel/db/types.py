"""
Module: payroll_kernel.db.types
Responsibility: Annotated column aliases and the single rounding helper for
    payroll amounts.
Architecture position: Kernel > DB.  Imported by models, services and engines.

Invariants enforced:
    - Amounts are Decimal.  round_money() is the only sanctioned rounding
      function; it quantizes to the currency's minor unit with ROUND_HALF_UP.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric, String

# Stored with 9 decimal places; every persisted payroll amount is already
# rounded to 2 by round_money.
Money = Annotated[Decimal, Numeric(38, 9)]

# Fractional day counts (leave days, tenure years)
Quantity = Annotated[Decimal, Numeric(18, 6)]

Currency = Annotated[str, String(3)]

# Public identifiers: "PP-2026-02", "EMP001", "SC-BASIC", "LN-001"
ShortCode = Annotated[str, String(50)]

# SHA-256 hex prefix used as a calculation input fingerprint
Fingerprint = Annotated[str, String(64)]

LongText = Annotated[str, String(2000)]

MONEY_DECIMAL_PLACES = 2
ZERO = Decimal("0")
_MONEY_QUANTUM = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)


def round_money(value: Decimal, decimal_places: int = MONEY_DECIMAL_PLACES) -> Decimal:
    """Quantize ``value`` to ``decimal_places`` using ROUND_HALF_UP."""
    if not isinstance(value, Decimal):
        raise TypeError(f"round_money expects Decimal, got {type(value).__name__}")
    quantum = _MONEY_QUANTUM if decimal_places == MONEY_DECIMAL_PLACES else Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=ROUND_HALF_UP)
