"""
Expense Ledger ORM Models (``freight_modules.ledger.orm``).

Responsibility
--------------
SQLAlchemy persistence models for expenses and their 1:1 ledgers.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``freight_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``freight_kernel``.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from freight_kernel.db.base import TrackedBase
from freight_kernel.domain.dtos import ExpenseRecord, ExpenseType, LedgerStatus, PaidBy
from freight_kernel.domain.values import to_money


# ---------------------------------------------------------------------------
# 1. ExpenseModel
# ---------------------------------------------------------------------------


class ExpenseModel(TrackedBase):
    """
    ORM model for expenses.

    Guarantees:
        - sequence is unique per tenant (creation order tie-break).
        - load_id NULL means a floating expense.
    """

    __tablename__ = "freight_expenses"

    __table_args__ = (
        UniqueConstraint("tenant_id", "sequence", name="uq_freight_expenses_sequence"),
        Index("idx_freight_expenses_driver_id", "driver_id"),
        Index("idx_freight_expenses_load_id", "load_id"),
        Index("idx_freight_expenses_expense_date", "expense_date"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    expense_type: Mapped[str] = mapped_column(String(30), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_by: Mapped[str] = mapped_column(String(20), nullable=False)
    expense_date: Mapped[date] = mapped_column(nullable=False)
    sequence: Mapped[int] = mapped_column(nullable=False)
    driver_id: Mapped[UUID | None] = mapped_column(nullable=True)
    load_id: Mapped[UUID | None] = mapped_column(nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    ledger: Mapped[Optional["ExpenseLedgerModel"]] = relationship(
        back_populates="expense",
        uselist=False,
    )

    def to_dto(self) -> ExpenseRecord:
        """Convert ORM model to frozen dataclass."""
        return ExpenseRecord(
            id=self.id,
            expense_type=ExpenseType(self.expense_type),
            amount=to_money(self.amount),
            paid_by=PaidBy(self.paid_by),
            expense_date=self.expense_date,
            driver_id=self.driver_id,
            load_id=self.load_id,
            sequence=self.sequence,
            description=self.description,
            has_ledger=self.ledger is not None,
        )

    @classmethod
    def from_dto(cls, dto: ExpenseRecord, tenant_id: str, created_by_id: UUID) -> "ExpenseModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            id=dto.id,
            tenant_id=tenant_id,
            expense_type=dto.expense_type.value,
            amount=dto.amount,
            paid_by=dto.paid_by.value,
            expense_date=dto.expense_date,
            sequence=dto.sequence,
            driver_id=dto.driver_id,
            load_id=dto.load_id,
            description=dto.description,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<ExpenseModel {self.expense_type} {self.amount} paid_by={self.paid_by}>"


# ---------------------------------------------------------------------------
# 2. ExpenseLedgerModel
# ---------------------------------------------------------------------------


class ExpenseLedgerModel(TrackedBase):
    """
    ORM model for expense ledgers.

    Guarantees:
        - One ledger per expense (uq_freight_expense_ledgers_expense_id).
        - version increments on every balance change; settlement commit
          compares it against the computed "before" state.
    """

    __tablename__ = "freight_expense_ledgers"

    __table_args__ = (
        UniqueConstraint("expense_id", name="uq_freight_expense_ledgers_expense_id"),
        Index("idx_freight_expense_ledgers_driver_status", "driver_id", "status"),
    )

    expense_id: Mapped[UUID] = mapped_column(
        ForeignKey("freight_expenses.id"), nullable=False
    )
    driver_id: Mapped[UUID] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=LedgerStatus.ACTIVE.value)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    expense: Mapped[ExpenseModel] = relationship(
        back_populates="ledger",
        lazy="joined",
        innerjoin=True,
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from freight_modules.ledger.models import ExpenseLedger

        return ExpenseLedger(
            id=self.id,
            expense_id=self.expense_id,
            driver_id=self.driver_id,
            total_amount=to_money(self.total_amount),
            amount_paid=to_money(self.amount_paid),
            status=LedgerStatus(self.status),
            version=self.version,
        )

    def to_state(self):
        """Engine working-copy view of this ledger."""
        from freight_engines.expense_allocation import LedgerState

        return LedgerState(
            expense_id=self.expense_id,
            total_amount=to_money(self.total_amount),
            amount_paid=to_money(self.amount_paid),
            status=LedgerStatus(self.status),
            expense_type=ExpenseType(self.expense.expense_type),
            expense_date=self.expense.expense_date,
            sequence=self.expense.sequence,
            driver_id=self.driver_id,
            load_id=self.expense.load_id,
            version=self.version,
        )

    def __repr__(self) -> str:
        return (
            f"<ExpenseLedgerModel {self.expense_id} "
            f"{self.amount_paid}/{self.total_amount} {self.status}>"
        )
