"""
Module: payroll_kernel.db.base
Responsibility: Declarative base classes for every payroll ORM model.  Fixes the
    primary key convention, the column type for money and timestamps, and the
    TrackedBase audit columns.
Architecture position: Kernel > DB.  Lowest import target of the kernel; MUST NOT
    import from models/, services/ or outer layers.

Invariants enforced:
    - Primary keys are uuid4 values stored as 36-character strings.
    - Decimal maps to Numeric(38, 9).  Money is never a float.
    - Timestamps are timezone-aware and always come back as UTC, including on
      SQLite which stores them naive.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID stored as String(36) so SQLite and PostgreSQL share one schema."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(value if isinstance(value, UUID) else UUID(str(value)))

    def process_result_value(self, value, dialect):
        return UUID(value) if value is not None else None


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp normalised to UTC.

    Naive values are rejected on bind; naive values read back (SQLite) are
    tagged as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime {value!r} cannot be stored; attach a timezone")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for all payroll models.

    Every row gets a uuid4 ``id``.  Public identifiers (period codes, employee
    ids, component ids) are separate unique columns on the models.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: UTCDateTime(),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base recording who created and last touched a row.

    ``created_by_id`` is mandatory: every payroll record has an actor.
    ``updated_at`` / ``updated_by_id`` are audit metadata and stay writable
    even on append-only records.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    updated_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
