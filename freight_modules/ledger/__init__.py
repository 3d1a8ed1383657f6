"""
Expense Ledger Module.

Company-paid driver expenses and the ledgers that track how much of each
has been recovered from the driver's settlements.
"""

from freight_modules.ledger.models import DriverBalance, ExpenseLedger, ExpenseWithLedger
from freight_modules.ledger.service import ExpenseLedgerService

__all__ = [
    "DriverBalance",
    "ExpenseLedger",
    "ExpenseLedgerService",
    "ExpenseWithLedger",
]
