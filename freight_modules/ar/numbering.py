"""
Invoice and settlement numbering (``freight_modules.ar.numbering``).

Mints ``INV-<yyyy>-<seq>`` and ``SET-<yyyy>-<seq>`` numbers from the
kernel ``SequenceService`` counter of each (tenant, type, year).  Numbers
are never derived from existing documents, so deleting an invoice can
never cause its number to be issued again.  Gaps from rolled-back
transactions are expected.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from freight_config.bridges import format_document_number, parse_document_number
from freight_config.schema import NumberingConfig
from freight_kernel.logging_config import get_logger
from freight_kernel.services.sequence_service import SequenceService

logger = get_logger("modules.ar.numbering")


class DocumentNumbering:
    """Mints document numbers inside the caller's transaction."""

    def __init__(self, session: Session, config: NumberingConfig | None = None):
        self._sequence = SequenceService(session)
        self._config = config or NumberingConfig()

    def next_invoice_number(self, tenant_id: str, year: int) -> str:
        seq = self._sequence.next_value(
            tenant_id, SequenceService.INVOICE, year, floor=self._config.invoice_floor
        )
        number = format_document_number(self._config, self._config.invoice_prefix, year, seq)
        logger.info("invoice_number_minted", extra={
            "tenant_id": tenant_id,
            "year": year,
            "invoice_number": number,
        })
        return number

    def reserve_invoice_number(self, tenant_id: str, invoice_number: str) -> bool:
        """
        Move the invoice counter past an externally supplied number.

        Numbers outside the minted ``<prefix>-<yyyy>-<seq>`` shape do not
        touch any counter.  Returns True when a counter was consulted.
        """
        parsed = parse_document_number(self._config.invoice_prefix, invoice_number)
        if parsed is None:
            return False
        year, seq = parsed
        self._sequence.advance_to(
            tenant_id, SequenceService.INVOICE, year, seq, floor=self._config.invoice_floor
        )
        logger.info("invoice_number_reserved", extra={
            "tenant_id": tenant_id,
            "year": year,
            "invoice_number": invoice_number,
        })
        return True

    def next_settlement_number(self, tenant_id: str, year: int) -> str:
        seq = self._sequence.next_value(
            tenant_id, SequenceService.SETTLEMENT, year, floor=self._config.settlement_floor
        )
        number = format_document_number(self._config, self._config.settlement_prefix, year, seq)
        logger.info("settlement_number_minted", extra={
            "tenant_id": tenant_id,
            "year": year,
            "settlement_number": number,
        })
        return number


def next_invoice_number(
    session: Session,
    tenant_id: str,
    year: int,
    config: NumberingConfig | None = None,
) -> str:
    """Mint the next invoice number; durable once the session commits."""
    return DocumentNumbering(session, config).next_invoice_number(tenant_id, year)


def next_settlement_number(
    session: Session,
    tenant_id: str,
    year: int,
    config: NumberingConfig | None = None,
) -> str:
    """Mint the next settlement number; durable once the session commits."""
    return DocumentNumbering(session, config).next_settlement_number(tenant_id, year)
