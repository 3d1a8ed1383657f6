"""
Accounts Receivable Module.

Customer invoices numbered from per-tenant yearly counters, payments
that can never exceed the invoice amount, and aging of open balances.
"""

from freight_modules.ar.models import Invoice, InvoiceStatus, Payment
from freight_modules.ar.numbering import (
    DocumentNumbering,
    next_invoice_number,
    next_settlement_number,
)
from freight_modules.ar.service import ARService
from freight_modules.ar.workflows import INVOICE_WORKFLOW

__all__ = [
    "ARService",
    "DocumentNumbering",
    "INVOICE_WORKFLOW",
    "Invoice",
    "InvoiceStatus",
    "Payment",
    "next_invoice_number",
    "next_settlement_number",
]
