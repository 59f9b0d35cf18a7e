"""
payroll_engines.tracer -- engine invocation tracer emitting PAYROLL_ENGINE_TRACE.

Responsibility:
    ``@traced_engine`` wraps a pure payroll engine so every invocation leaves
    one structured log record: engine name, version, a deterministic
    fingerprint of the selected inputs, and duration.

    ``compute_input_fingerprint`` is also what the payroll calculator stores on
    each PayrollResult: same inputs, same fingerprint, same row.

Invariants enforced:
    - Fingerprints are deterministic: Decimals are normalized to their
      canonical string (``8000`` and ``8000.00`` agree), mappings are sorted by
      key, dataclasses are expanded field by field.
    - The decorator never mutates inputs; it only reads them and logs.
"""

import dataclasses
import functools
import hashlib
import inspect
import time
from collections.abc import Callable, Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from payroll_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")

TRACE_MESSAGE = "PAYROLL_ENGINE_TRACE"


def _canonicalize(value: Any) -> str:
    """Stable string form of ``value`` for hashing."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, Decimal):
        normalized = value.normalize()
        # normalize() turns 8000 into 8E+3; format back to plain notation
        return format(normalized, "f")
    if isinstance(value, (int, str)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        fields = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        return type(value).__name__ + _canonicalize(fields)
    if isinstance(value, Mapping):
        items = sorted((_canonicalize(k), _canonicalize(v)) for k, v in value.items())
        return "{" + ",".join(f"{k}:{v}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    if isinstance(value, (set, frozenset)):
        return "{" + ",".join(sorted(_canonicalize(v) for v in value)) + "}"
    if isinstance(value, float):
        raise TypeError("Floats are not accepted in payroll fingerprints")
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """
    SHA-256 (16 hex chars) over the canonical values of ``fingerprint_fields``.

    Missing fields are recorded as "null".
    """
    parts = [f"{name}={_canonicalize(arguments.get(name))}" for name in fingerprint_fields]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Decorator that emits PAYROLL_ENGINE_TRACE for a pure engine call.

    Positional and keyword arguments are both bound to parameter names, so
    ``fingerprint_fields`` name parameters regardless of how they were passed.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fp = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            _logger.info(
                TRACE_MESSAGE,
                extra={
                    "trace_type": TRACE_MESSAGE,
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
