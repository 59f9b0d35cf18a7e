"""Database layer - engine, base classes, column types, immutability listeners."""

from payroll_kernel.db.base import Base, TrackedBase, UTCDateTime, UUIDString
from payroll_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from payroll_kernel.db.types import Money, round_money

__all__ = [
    "Base",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
    "Money",
    "round_money",
    "create_tables",
    "get_engine",
    "get_session",
    "session_scope",
]
