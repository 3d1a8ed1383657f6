"""
Declarative base for every freight ledger table.

Column conventions live here so the ledger, settlement and AR models agree:
ids are uuid4 stored as 36-character strings (SQLite and PostgreSQL alike),
money is Numeric(38, 9) and never float, and timestamps are timezone-aware.
Nothing in this module imports from the rest of the kernel.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID on the Python side, String(36) in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    """Root of the ORM registry; every table gets a uuid4 primary key."""

    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        Decimal: Numeric(38, 9),
        date: Date,
        datetime: DateTime(timezone=True),
        # Counter rows in the sequence table must not overflow at 2**31.
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Abstract parent for business rows: who wrote them and when.

    ``created_by_id`` is mandatory because every expense, settlement,
    invoice and payment is attributable to an actor; ``updated_by_id`` is
    filled by state transitions such as supersede, ledger recovery and
    invoice payment.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )
    created_by_id: Mapped[UUID]
    updated_by_id: Mapped[UUID | None]
