"""
Expense Ledger Domain Models (``freight_modules.ledger.models``).

Responsibility
--------------
Frozen views returned by ``ExpenseLedgerService``: one expense with its
ledger, and a driver's outstanding recoverable balance.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal``.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from freight_kernel.domain.dtos import ExpenseRecord, LedgerStatus


@dataclass(frozen=True)
class ExpenseLedger:
    """Balance of one company-paid, driver-attributed expense."""
    id: UUID
    expense_id: UUID
    driver_id: UUID
    total_amount: Decimal
    amount_paid: Decimal
    status: LedgerStatus
    version: int = 0

    @property
    def remaining_balance(self) -> Decimal:
        return self.total_amount - self.amount_paid


@dataclass(frozen=True)
class ExpenseWithLedger:
    expense: ExpenseRecord
    ledger: ExpenseLedger | None = None


@dataclass(frozen=True)
class DriverBalance:
    """What a driver still owes the company across active ledgers."""
    driver_id: UUID
    outstanding: Decimal
    active_ledger_count: int
