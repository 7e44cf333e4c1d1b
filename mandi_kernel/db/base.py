"""
Module: mandi_kernel.db.base
Responsibility: Declarative base and shared mixins for every mandi table:
    UUID keys, the column type map, audit columns and the tenant column.
Architecture position: Kernel > DB.  Lowest import target in the kernel;
    imports nothing from models/, services/, selectors/ or domain/.

Invariants enforced:
    - Rupee amounts and kilogram weights are Numeric(14, 2), never float.
    - Every business-owned row carries a non-null, indexed business_id.
    - Every tracked row records who created it (created_by_id NOT NULL).

Failure modes:
    - IntegrityError on a NULL business_id or created_by_id.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID kept as its 36-character text form, identical on PostgreSQL and SQLite."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(14, 2),
        datetime: DateTime(timezone=True),
        date: Date,
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds who/when columns.

    created_at and updated_at are server timestamps; updated_by_id is set
    by the service that last changed the row (an edit, a bag move, a
    reversal).
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    created_by_id: Mapped[PyUUID] = mapped_column(nullable=False)
    updated_by_id: Mapped[PyUUID | None] = mapped_column(nullable=True)


class TenantScoped:
    """
    Mixin for rows owned by one business.

    business_id is opaque to the kernel: never joined across tenants and
    never inferred from another row.
    """

    business_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)


UUID = PyUUID
