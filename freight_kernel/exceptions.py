"""
Typed Exception Hierarchy for the Freight Ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers must be able to react to ledger failures without parsing messages:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        ar_service.record_payment(invoice_id, amount, ...)
    except OverpaymentError as e:
        show_error(code=e.code, max_amount=e.max_amount)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FreightLedgerError (base)
    |
    +-- LedgerError
    |   +-- LedgerNotFoundError
    |   +-- LedgerInvariantError
    |
    +-- SettlementError
    |   +-- SettlementInputError
    |   +-- SettlementNotFoundError
    |   +-- SettlementStateError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentSettlementConflictError  (also a SettlementError)
    |
    +-- InvoiceError
    |   +-- InvoiceNotFoundError
    |   +-- DuplicateInvoiceNumberError
    |   +-- InvoiceStateError
    |
    +-- PaymentError
    |   +-- InvalidPaymentAmountError
    |   +-- OverpaymentError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |
    +-- PassThroughPayError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised
-------------|-------------------------------|---------------------------------------
Ledger       | LEDGER_NOT_FOUND              | Expense/ledger ID doesn't exist
             | LEDGER_INVARIANT_VIOLATION    | paid > total or negative balance
-------------|-------------------------------|---------------------------------------
Settlement   | SETTLEMENT_INPUT_INVALID      | Load missing / assigned to other driver
             | SETTLEMENT_NOT_FOUND          | Settlement ID doesn't exist
             | SETTLEMENT_STATE_INVALID      | e.g. superseding a superseded record
             | CONCURRENT_SETTLEMENT_CONFLICT| Ledger rows changed since compute
-------------|-------------------------------|---------------------------------------
Invoice      | INVOICE_NOT_FOUND             | Invoice ID doesn't exist
             | DUPLICATE_INVOICE_NUMBER      | Minted number already persisted
             | INVOICE_STATE_INVALID         | e.g. deleting an invoice with payments
-------------|-------------------------------|---------------------------------------
Payment      | INVALID_PAYMENT_AMOUNT        | amount <= 0
             | OVERPAYMENT                   | paid + amount > invoice amount
-------------|-------------------------------|---------------------------------------
Workflow     | INVALID_TRANSITION            | Transition not in the state machine
-------------|-------------------------------|---------------------------------------
Revenue      | PASS_THROUGH_PAY_EXCLUDED     | Owner-operator pay summed as a cost

Pure calculation problems (missing driver profile, negative pool, negative
net pay) are NOT exceptions.  They travel as ``CalculationWarning`` values
inside engine results so callers can show partial results with warnings.

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Integrity failures abort the whole operation:

    except DuplicateInvoiceNumberError as e:
        alert_operations(e.invoice_number)   # never auto-renumber

2. Concurrency failures are retryable:

    except ConcurrentSettlementConflictError:
        computation = settlement_service.compute(draft, loads, profile)
        settlement_service.commit(computation, actor_id)
"""

from decimal import Decimal


class FreightLedgerError(Exception):
    """
    Base exception for all freight ledger errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FREIGHT_LEDGER_ERROR"


# Ledger-related exceptions


class LedgerError(FreightLedgerError):
    """Base exception for expense-ledger errors."""

    code: str = "LEDGER_ERROR"


class LedgerNotFoundError(LedgerError):
    """Expense or its ledger was not found."""

    code: str = "LEDGER_NOT_FOUND"

    def __init__(self, expense_id: str):
        self.expense_id = expense_id
        super().__init__(f"Expense ledger not found: {expense_id}")


class LedgerInvariantError(LedgerError):
    """A ledger state would break remaining = total - paid >= 0."""

    code: str = "LEDGER_INVARIANT_VIOLATION"

    def __init__(self, expense_id: str, total_amount: Decimal, amount_paid: Decimal):
        self.expense_id = expense_id
        self.total_amount = str(total_amount)
        self.amount_paid = str(amount_paid)
        super().__init__(
            f"Ledger invariant violated for expense {expense_id}: "
            f"total={total_amount}, paid={amount_paid}"
        )


# Settlement-related exceptions


class SettlementError(FreightLedgerError):
    """Base exception for settlement errors."""

    code: str = "SETTLEMENT_ERROR"


class SettlementInputError(SettlementError):
    """Settlement request references loads that cannot be settled."""

    code: str = "SETTLEMENT_INPUT_INVALID"

    def __init__(self, driver_id: str, reason: str, load_ids: list[str] | None = None):
        self.driver_id = driver_id
        self.reason = reason
        self.load_ids = list(load_ids or [])
        super().__init__(f"Invalid settlement input for driver {driver_id}: {reason}")


class SettlementNotFoundError(SettlementError):
    """Settlement with given ID was not found."""

    code: str = "SETTLEMENT_NOT_FOUND"

    def __init__(self, settlement_id: str):
        self.settlement_id = settlement_id
        super().__init__(f"Settlement not found: {settlement_id}")


class SettlementStateError(SettlementError):
    """Settlement is not in a state that allows the requested operation."""

    code: str = "SETTLEMENT_STATE_INVALID"

    def __init__(self, settlement_id: str, status: str, operation: str):
        self.settlement_id = settlement_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} settlement {settlement_id} in status {status}"
        )


# Concurrency-related exceptions


class ConcurrencyError(FreightLedgerError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentSettlementConflictError(ConcurrencyError, SettlementError):
    """
    Ledger rows touched by a settlement changed after it was computed.

    Retryable: re-fetch ledger state, recompute, and commit again.
    """

    code: str = "CONCURRENT_SETTLEMENT_CONFLICT"

    def __init__(self, driver_id: str, expense_ids: list[str]):
        self.driver_id = driver_id
        self.expense_ids = list(expense_ids)
        super().__init__(
            f"Concurrent settlement conflict for driver {driver_id}: "
            f"ledger rows {', '.join(self.expense_ids)} changed since compute"
        )


# Invoice-related exceptions


class InvoiceError(FreightLedgerError):
    """Base exception for invoice errors."""

    code: str = "INVOICE_ERROR"


class InvoiceNotFoundError(InvoiceError):
    """Invoice with given ID was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class DuplicateInvoiceNumberError(InvoiceError):
    """
    A freshly minted invoice number already exists.

    Integrity violation (counter corruption).  Never auto-renumber.
    """

    code: str = "DUPLICATE_INVOICE_NUMBER"

    def __init__(self, tenant_id: str, invoice_number: str):
        self.tenant_id = tenant_id
        self.invoice_number = invoice_number
        super().__init__(
            f"Invoice number {invoice_number} already exists for tenant {tenant_id}"
        )


class InvoiceStateError(InvoiceError):
    """Operation not allowed in the invoice's current status."""

    code: str = "INVOICE_STATE_INVALID"

    def __init__(self, invoice_id: str, status: str, operation: str):
        self.invoice_id = invoice_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} invoice {invoice_id} in status {status}"
        )


# Payment-related exceptions


class PaymentError(FreightLedgerError):
    """Base exception for payment errors."""

    code: str = "PAYMENT_ERROR"


class InvalidPaymentAmountError(PaymentError):
    """Payment amount must be strictly positive."""

    code: str = "INVALID_PAYMENT_AMOUNT"

    def __init__(self, invoice_id: str, amount: Decimal):
        self.invoice_id = invoice_id
        self.amount = str(amount)
        super().__init__(f"Payment amount must be greater than 0, got {amount}")


class OverpaymentError(PaymentError):
    """Payment would push total paid above the invoice amount."""

    code: str = "OVERPAYMENT"

    def __init__(
        self,
        invoice_id: str,
        amount: Decimal,
        already_paid: Decimal,
        invoice_amount: Decimal,
    ):
        self.invoice_id = invoice_id
        self.amount = str(amount)
        self.already_paid = str(already_paid)
        self.invoice_amount = str(invoice_amount)
        self.max_amount = str(invoice_amount - already_paid)
        super().__init__(
            f"Payment of {amount} would exceed invoice {invoice_id}: "
            f"invoice total {invoice_amount}, already paid {already_paid}, "
            f"maximum payment {self.max_amount}"
        )


# Workflow-related exceptions


class WorkflowError(FreightLedgerError):
    """Base exception for state machine errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """Requested transition is not defined by the workflow."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, workflow: str, from_state: str, to_state: str):
        self.workflow = workflow
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Workflow {workflow} has no transition {from_state} -> {to_state}"
        )


# Revenue exclusion


class PassThroughPayError(FreightLedgerError, TypeError):
    """Owner-operator pass-through pay was offered to a company cost total."""

    code: str = "PASS_THROUGH_PAY_EXCLUDED"

    def __init__(self, amount: Decimal):
        self.amount = str(amount)
        super().__init__(
            f"Owner-operator pay {amount} is pass-through money and cannot be "
            "added to a company expense or deduction total"
        )
