"""
Accounts Receivable Domain Models (``freight_modules.ar.models``).

Responsibility
--------------
Frozen views of customer invoices and the payments applied to them.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* 0 <= amount_paid <= amount for every invoice.
* Payments are append-only; an invoice's payments are ordered.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from freight_engines.aging import OpenInvoice
from freight_kernel.domain.values import ZERO, to_money


class InvoiceStatus(Enum):
    """Invoice payment states."""
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


def status_for(amount: Decimal, amount_paid: Decimal) -> InvoiceStatus:
    """Payment status implied by the paid total."""
    if amount_paid <= ZERO:
        return InvoiceStatus.PENDING
    if amount_paid >= amount:
        return InvoiceStatus.PAID
    return InvoiceStatus.PARTIAL


@dataclass(frozen=True)
class Payment:
    """A customer payment applied to one invoice."""
    id: UUID
    invoice_id: UUID
    amount: Decimal
    payment_date: date
    method: str | None = None
    reference: str | None = None


@dataclass(frozen=True)
class Invoice:
    """A customer invoice for one load."""
    id: UUID
    tenant_id: str
    invoice_number: str
    load_id: UUID | None
    amount: Decimal
    amount_paid: Decimal
    issue_date: date
    status: InvoiceStatus
    delivery_date: date | None = None
    customer_ref: str | None = None
    payments: tuple[Payment, ...] = ()

    @property
    def balance(self) -> Decimal:
        return to_money(self.amount - self.amount_paid)

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID

    def to_open_invoice(self) -> OpenInvoice:
        return OpenInvoice(
            invoice_id=self.id,
            invoice_number=self.invoice_number,
            amount=self.amount,
            amount_paid=self.amount_paid,
            issue_date=self.issue_date,
            delivery_date=self.delivery_date,
            customer_ref=self.customer_ref,
        )
