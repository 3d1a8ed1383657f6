"""
Settlement ORM Models (``freight_modules.settlement.orm``).

Responsibility
--------------
SQLAlchemy persistence models for settlements, their per-load pay lines
and their per-expense deduction lines.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``freight_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``freight_kernel``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from freight_kernel.db.base import TrackedBase
from freight_kernel.domain.dtos import CalculationWarning, ExpenseType, LedgerStatus, WarningCode
from freight_kernel.domain.values import to_money


# ---------------------------------------------------------------------------
# 1. SettlementModel
# ---------------------------------------------------------------------------


class SettlementModel(TrackedBase):
    """
    ORM model for settlements.

    Guarantees:
        - settlement_number is unique per tenant.
        - Amounts are written once at commit; only status and
          superseded_by_id change afterwards.
    """

    __tablename__ = "freight_settlements"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "settlement_number", name="uq_freight_settlements_number"
        ),
        Index("idx_freight_settlements_driver_status", "driver_id", "status"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    settlement_number: Mapped[str] = mapped_column(String(50), nullable=False)
    driver_id: Mapped[UUID] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    gross_pay: Mapped[Decimal] = mapped_column(nullable=False)
    advances: Mapped[Decimal] = mapped_column(nullable=False)
    lumper_fees: Mapped[Decimal] = mapped_column(nullable=False)
    taxes: Mapped[Decimal] = mapped_column(nullable=False)
    expense_deductions: Mapped[Decimal] = mapped_column(nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(nullable=False)
    other_earnings: Mapped[Decimal] = mapped_column(nullable=False, default=0)
    total_miles: Mapped[Decimal] = mapped_column(nullable=False, default=0)
    period_start: Mapped[date | None] = mapped_column(nullable=True)
    period_end: Mapped[date | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    warnings: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    supersedes_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("freight_settlements.id"), nullable=True
    )
    superseded_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    committed_at: Mapped[datetime] = mapped_column(nullable=False)

    load_lines: Mapped[list["SettlementLoadLineModel"]] = relationship(
        back_populates="settlement",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SettlementLoadLineModel.line_seq",
    )
    deduction_lines: Mapped[list["SettlementDeductionLineModel"]] = relationship(
        back_populates="settlement",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SettlementDeductionLineModel.line_seq",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from freight_modules.settlement.models import SettlementRecord, SettlementStatus

        return SettlementRecord(
            id=self.id,
            settlement_number=self.settlement_number,
            tenant_id=self.tenant_id,
            driver_id=self.driver_id,
            status=SettlementStatus(self.status),
            gross_pay=to_money(self.gross_pay),
            advances=to_money(self.advances),
            lumper_fees=to_money(self.lumper_fees),
            taxes=to_money(self.taxes),
            expense_deductions=to_money(self.expense_deductions),
            total_deductions=to_money(self.total_deductions),
            net_pay=to_money(self.net_pay),
            other_earnings=to_money(self.other_earnings),
            total_miles=to_money(self.total_miles),
            loads=tuple(line.to_dto() for line in self.load_lines),
            deductions=tuple(line.to_dto() for line in self.deduction_lines),
            warnings=tuple(
                CalculationWarning(
                    code=WarningCode(w["code"]),
                    message=w["message"],
                    subject_id=w.get("subject_id"),
                )
                for w in self.warnings or ()
            ),
            period_start=self.period_start,
            period_end=self.period_end,
            notes=self.notes,
            supersedes_id=self.supersedes_id,
            superseded_by_id=self.superseded_by_id,
            committed_at=self.committed_at,
        )

    def __repr__(self) -> str:
        return f"<SettlementModel {self.settlement_number} {self.status} net={self.net_pay}>"


# ---------------------------------------------------------------------------
# 2. SettlementLoadLineModel
# ---------------------------------------------------------------------------


class SettlementLoadLineModel(TrackedBase):
    """Per-load pay line; line_seq is chronological order."""

    __tablename__ = "freight_settlement_loads"

    __table_args__ = (
        UniqueConstraint("settlement_id", "load_id", name="uq_freight_settlement_loads_load"),
        Index("idx_freight_settlement_loads_load_id", "load_id"),
    )

    settlement_id: Mapped[UUID] = mapped_column(
        ForeignKey("freight_settlements.id"), nullable=False
    )
    line_seq: Mapped[int] = mapped_column(Integer, nullable=False)
    load_id: Mapped[UUID] = mapped_column(nullable=False)
    load_number: Mapped[str] = mapped_column(String(100), nullable=False)
    rate: Mapped[Decimal] = mapped_column(nullable=False)
    recognized_revenue: Mapped[Decimal] = mapped_column(nullable=False)
    base_pay: Mapped[Decimal] = mapped_column(nullable=False)
    detention_pay: Mapped[Decimal] = mapped_column(nullable=False, default=0)
    layover_pay: Mapped[Decimal] = mapped_column(nullable=False, default=0)
    tonu_pay: Mapped[Decimal] = mapped_column(nullable=False, default=0)
    driver_pay: Mapped[Decimal] = mapped_column(nullable=False)
    miles: Mapped[Decimal] = mapped_column(nullable=False, default=0)
    pay_source: Mapped[str] = mapped_column(String(20), nullable=False)
    is_pass_through: Mapped[bool] = mapped_column(Boolean, nullable=False)
    recognition_date: Mapped[date | None] = mapped_column(nullable=True)

    settlement: Mapped[SettlementModel] = relationship(back_populates="load_lines")

    def to_dto(self):
        from freight_modules.settlement.models import SettlementLoad

        return SettlementLoad(
            load_id=self.load_id,
            load_number=self.load_number,
            rate=to_money(self.rate),
            recognized_revenue=to_money(self.recognized_revenue),
            base_pay=to_money(self.base_pay),
            detention_pay=to_money(self.detention_pay),
            layover_pay=to_money(self.layover_pay),
            tonu_pay=to_money(self.tonu_pay),
            driver_pay=to_money(self.driver_pay),
            miles=to_money(self.miles),
            pay_source=self.pay_source,
            is_pass_through=self.is_pass_through,
            recognition_date=self.recognition_date,
        )


# ---------------------------------------------------------------------------
# 3. SettlementDeductionLineModel
# ---------------------------------------------------------------------------


class SettlementDeductionLineModel(TrackedBase):
    """
    Per-expense deduction line.

    before/after columns record the ledger balance around this
    settlement so a superseding recomputation can restore it exactly.
    """

    __tablename__ = "freight_settlement_deductions"

    __table_args__ = (
        Index("idx_freight_settlement_deductions_expense_id", "expense_id"),
    )

    settlement_id: Mapped[UUID] = mapped_column(
        ForeignKey("freight_settlements.id"), nullable=False
    )
    line_seq: Mapped[int] = mapped_column(Integer, nullable=False)
    expense_id: Mapped[UUID] = mapped_column(
        ForeignKey("freight_expenses.id"), nullable=False
    )
    expense_type: Mapped[str] = mapped_column(String(30), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    before_paid: Mapped[Decimal] = mapped_column(nullable=False)
    after_paid: Mapped[Decimal] = mapped_column(nullable=False)
    before_status: Mapped[str] = mapped_column(String(20), nullable=False)
    after_status: Mapped[str] = mapped_column(String(20), nullable=False)

    settlement: Mapped[SettlementModel] = relationship(back_populates="deduction_lines")

    def to_dto(self):
        from freight_modules.settlement.models import SettlementDeduction

        return SettlementDeduction(
            expense_id=self.expense_id,
            expense_type=ExpenseType(self.expense_type),
            amount=to_money(self.amount),
            total_amount=to_money(self.total_amount),
            before_paid=to_money(self.before_paid),
            after_paid=to_money(self.after_paid),
            before_status=LedgerStatus(self.before_status),
            after_status=LedgerStatus(self.after_status),
        )
