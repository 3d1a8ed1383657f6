"""
Accounts Receivable ORM Models (``freight_modules.ar.orm``).

Responsibility
--------------
SQLAlchemy persistence models for customer invoices and their payments.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``freight_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``freight_kernel``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from freight_kernel.db.base import TrackedBase
from freight_kernel.domain.values import to_money


# ---------------------------------------------------------------------------
# 1. InvoiceModel
# ---------------------------------------------------------------------------


class InvoiceModel(TrackedBase):
    """
    ORM model for customer invoices.

    Guarantees:
        - invoice_number is unique per tenant.
        - amount_paid is the running sum of the invoice's payments.
    """

    __tablename__ = "freight_invoices"

    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_number", name="uq_freight_invoices_number"),
        Index("idx_freight_invoices_tenant_status", "tenant_id", "status"),
        Index("idx_freight_invoices_load_id", "load_id"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    load_id: Mapped[UUID | None] = mapped_column(nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(nullable=False)
    issue_date: Mapped[date] = mapped_column(nullable=False)
    delivery_date: Mapped[date | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    customer_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)

    payments: Mapped[list["PaymentModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PaymentModel.line_seq",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from freight_modules.ar.models import Invoice, InvoiceStatus

        return Invoice(
            id=self.id,
            tenant_id=self.tenant_id,
            invoice_number=self.invoice_number,
            load_id=self.load_id,
            amount=to_money(self.amount),
            amount_paid=to_money(self.amount_paid),
            issue_date=self.issue_date,
            status=InvoiceStatus(self.status),
            delivery_date=self.delivery_date,
            customer_ref=self.customer_ref,
            payments=tuple(p.to_dto() for p in self.payments),
        )

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.invoice_number} {self.status} {self.amount_paid}/{self.amount}>"


# ---------------------------------------------------------------------------
# 2. PaymentModel
# ---------------------------------------------------------------------------


class PaymentModel(TrackedBase):
    """Append-only payment row; line_seq is application order."""

    __tablename__ = "freight_payments"

    __table_args__ = (
        UniqueConstraint("invoice_id", "line_seq", name="uq_freight_payments_seq"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("freight_invoices.id"), nullable=False
    )
    line_seq: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_date: Mapped[date] = mapped_column(nullable=False)
    method: Mapped[str | None] = mapped_column(String(30), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    invoice: Mapped[InvoiceModel] = relationship(back_populates="payments")

    def to_dto(self):
        from freight_modules.ar.models import Payment

        return Payment(
            id=self.id,
            invoice_id=self.invoice_id,
            amount=to_money(self.amount),
            payment_date=self.payment_date,
            method=self.method,
            reference=self.reference,
        )
