"""
Accounts Receivable Service - invoices, customer payments and aging.

Thin glue layer that:
1. Issues invoices under numbers minted by DocumentNumbering
2. Records payments against a locked invoice row
3. Hands open invoices to the aging engine

``issue_invoice``, ``delete_invoice`` and ``record_payment`` own their
transaction boundary: commit on success, roll back on any failure.

Usage:
    service = ARService(session, clock=clock)
    invoice = service.issue_invoice(
        tenant_id="acme", load_id=load_id, amount=Decimal("2400.00"),
        issue_date=date(2024, 3, 1), actor_id=actor_id,
    )
    service.record_payment(invoice.id, Decimal("400.00"), date(2024, 3, 20), actor_id)
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from freight_config import LedgerConfig, get_active_config
from freight_config.bridges import build_aging_buckets
from freight_kernel.domain.clock import Clock, SystemClock
from freight_kernel.domain.values import ZERO, to_money
from freight_kernel.exceptions import (
    DuplicateInvoiceNumberError,
    InvalidPaymentAmountError,
    InvoiceNotFoundError,
    InvoiceStateError,
    OverpaymentError,
)
from freight_kernel.logging_config import LogContext, get_logger
from freight_engines.aging import aging_bucket, ar_aging_summary
from freight_modules.ar.models import Invoice, InvoiceStatus, Payment, status_for
from freight_modules.ar.numbering import DocumentNumbering
from freight_modules.ar.orm import InvoiceModel, PaymentModel
from freight_modules.ar.workflows import INVOICE_WORKFLOW

logger = get_logger("modules.ar.service")


class ARService:
    """
    Orchestrates invoice issue, payment application and aging.

    Contract:
        amount_paid never exceeds the invoice amount; a rejected payment
        leaves the invoice exactly as it was.
    """

    MAX_NUMBER_SKIPS = 100

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._numbering = DocumentNumbering(session, self._config.numbering)
        self._buckets = build_aging_buckets(self._config)

    # =========================================================================
    # Invoices
    # =========================================================================

    def issue_invoice(
        self,
        tenant_id: str,
        load_id: UUID | None,
        amount: Decimal,
        issue_date: date,
        actor_id: UUID,
        delivery_date: date | None = None,
        customer_ref: str | None = None,
        invoice_number: str | None = None,
    ) -> Invoice:
        """
        Issue an invoice.

        The number is minted from the (tenant, invoice, issue year) counter
        unless ``invoice_number`` is given (imported invoices).  An imported
        number in the minted ``INV-<yyyy>-<seq>`` range moves that year's
        counter past it, so later minting cannot collide with it.

        Raises:
            ValueError: If amount is not positive.
            DuplicateInvoiceNumberError: If an imported number already
                exists, or no unused number could be minted.
        """
        amount = to_money(amount)
        if amount <= ZERO:
            raise ValueError(f"Invoice amount must be positive, got {amount}")

        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id):
            try:
                if invoice_number is not None:
                    number = invoice_number
                    if self._number_exists(tenant_id, number):
                        logger.error("invoice_number_duplicate", extra={
                            "invoice_number": number,
                        })
                        raise DuplicateInvoiceNumberError(tenant_id, number)
                    self._numbering.reserve_invoice_number(tenant_id, number)
                else:
                    number = self._mint_unused_number(tenant_id, issue_date.year)

                model = InvoiceModel(
                    id=uuid4(),
                    tenant_id=tenant_id,
                    invoice_number=number,
                    load_id=load_id,
                    amount=amount,
                    amount_paid=ZERO,
                    issue_date=issue_date,
                    delivery_date=delivery_date,
                    status=INVOICE_WORKFLOW.initial_state,
                    customer_ref=customer_ref,
                    created_by_id=actor_id,
                )
                self._session.add(model)
                try:
                    self._session.flush()
                except IntegrityError as exc:
                    logger.error("invoice_number_duplicate", extra={
                        "invoice_number": number,
                    })
                    raise DuplicateInvoiceNumberError(tenant_id, number) from exc

                self._session.commit()
                logger.info("invoice_issued", extra={
                    "invoice_id": str(model.id),
                    "invoice_number": number,
                    "amount": str(amount),
                    "load_id": str(load_id) if load_id else None,
                })
                return model.to_dto()
            except Exception:
                self._session.rollback()
                raise

    def _mint_unused_number(self, tenant_id: str, year: int) -> str:
        # A counter behind existing rows (data loaded before the counter
        # existed) skips forward; the skipped values stay consumed.
        for _ in range(self.MAX_NUMBER_SKIPS):
            number = self._numbering.next_invoice_number(tenant_id, year)
            if not self._number_exists(tenant_id, number):
                return number
            logger.warning("invoice_number_skipped", extra={"invoice_number": number})
        logger.error("invoice_number_duplicate", extra={"invoice_number": number})
        raise DuplicateInvoiceNumberError(tenant_id, number)

    def _number_exists(self, tenant_id: str, invoice_number: str) -> bool:
        stmt = select(InvoiceModel.id).where(
            InvoiceModel.tenant_id == tenant_id,
            InvoiceModel.invoice_number == invoice_number,
        )
        return self._session.execute(stmt).first() is not None

    def delete_invoice(self, invoice_id: UUID, actor_id: UUID) -> None:
        """
        Delete an invoice that has no payments.

        The number is not returned to the counter.

        Raises:
            InvoiceNotFoundError: Unknown invoice.
            InvoiceStateError: The invoice has payments.
        """
        with LogContext.bind(actor_id=actor_id):
            try:
                model = self._get_model(invoice_id, lock=True)
                if model.payments:
                    raise InvoiceStateError(str(invoice_id), model.status, "delete")
                number = model.invoice_number
                self._session.delete(model)
                self._session.commit()
                logger.info("invoice_deleted", extra={
                    "invoice_id": str(invoice_id),
                    "invoice_number": number,
                })
            except Exception:
                self._session.rollback()
                raise

    def _get_model(self, invoice_id: UUID, lock: bool = False) -> InvoiceModel:
        stmt = select(InvoiceModel).where(InvoiceModel.id == invoice_id)
        if lock:
            stmt = stmt.with_for_update()
        model = self._session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return model

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        return self._get_model(invoice_id).to_dto()

    def get_invoice_by_number(self, tenant_id: str, invoice_number: str) -> Invoice:
        stmt = select(InvoiceModel).where(
            InvoiceModel.tenant_id == tenant_id,
            InvoiceModel.invoice_number == invoice_number,
        )
        model = self._session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise InvoiceNotFoundError(invoice_number)
        return model.to_dto()

    def list_invoices(
        self,
        tenant_id: str,
        status: InvoiceStatus | None = None,
    ) -> list[Invoice]:
        stmt = select(InvoiceModel).where(InvoiceModel.tenant_id == tenant_id)
        if status is not None:
            stmt = stmt.where(InvoiceModel.status == status.value)
        stmt = stmt.order_by(InvoiceModel.issue_date, InvoiceModel.invoice_number)
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    # =========================================================================
    # Payments
    # =========================================================================

    def record_payment(
        self,
        invoice_id: UUID,
        amount: Decimal,
        payment_date: date,
        actor_id: UUID,
        method: str | None = None,
        reference: str | None = None,
    ) -> Payment:
        """
        Apply a customer payment to an invoice.

        The invoice row is locked for the duration; concurrent payments to
        the same invoice apply one after the other.

        Raises:
            InvoiceNotFoundError: Unknown invoice.
            InvalidPaymentAmountError: amount <= 0.
            OverpaymentError: amount_paid + amount would exceed the invoice
                amount.  Nothing is written.
        """
        with LogContext.bind(actor_id=actor_id):
            try:
                model = self._get_model(invoice_id, lock=True)
                amount = to_money(amount)
                if amount <= ZERO:
                    raise InvalidPaymentAmountError(str(invoice_id), amount)

                already_paid = to_money(model.amount_paid)
                invoice_amount = to_money(model.amount)
                if already_paid + amount > invoice_amount:
                    logger.warning("payment_rejected_overpayment", extra={
                        "invoice_id": str(invoice_id),
                        "amount": str(amount),
                        "already_paid": str(already_paid),
                        "invoice_amount": str(invoice_amount),
                    })
                    raise OverpaymentError(str(invoice_id), amount, already_paid, invoice_amount)

                new_paid = to_money(already_paid + amount)
                new_status = status_for(invoice_amount, new_paid)
                INVOICE_WORKFLOW.require_transition(model.status, new_status.value)

                payment = PaymentModel(
                    id=uuid4(),
                    line_seq=len(model.payments),
                    amount=amount,
                    payment_date=payment_date,
                    method=method,
                    reference=reference,
                    created_by_id=actor_id,
                )
                model.payments.append(payment)
                model.amount_paid = new_paid
                model.status = new_status.value
                model.updated_by_id = actor_id
                self._session.flush()
                self._session.commit()

                logger.info("payment_recorded", extra={
                    "invoice_id": str(invoice_id),
                    "invoice_number": model.invoice_number,
                    "amount": str(amount),
                    "amount_paid": str(new_paid),
                    "status": new_status.value,
                })
                return payment.to_dto()
            except Exception:
                self._session.rollback()
                raise

    # =========================================================================
    # Aging
    # =========================================================================

    def aging_bucket(self, invoice_id: UUID, as_of: date) -> str | None:
        """Bucket label of one invoice, or None when it is paid."""
        invoice = self.get_invoice(invoice_id)
        return aging_bucket(invoice.to_open_invoice(), as_of, self._buckets)

    def aging_summary(self, tenant_id: str, as_of: date | None = None) -> dict[str, Decimal]:
        """Outstanding balance per aging bucket for the tenant's unpaid invoices."""
        as_of = as_of or self._clock.today()
        stmt = select(InvoiceModel).where(
            InvoiceModel.tenant_id == tenant_id,
            InvoiceModel.status != InvoiceStatus.PAID.value,
        )
        invoices = [m.to_dto().to_open_invoice() for m in self._session.execute(stmt).scalars()]
        with LogContext.bind(tenant_id=tenant_id):
            return ar_aging_summary(invoices, as_of, self._buckets)
