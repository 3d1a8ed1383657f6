"""
Driver Settlement Module.

Settlements pay a driver for a set of delivered loads and recover
outstanding company-paid expenses from that pay.  Committing a
settlement and updating the expense ledgers happen in one transaction.
"""

from freight_modules.settlement.models import (
    SettlementDeduction,
    SettlementLoad,
    SettlementRecord,
    SettlementStatus,
    SettlementSummaryLine,
    settlement_statement,
)
from freight_modules.settlement.service import SettlementService
from freight_modules.settlement.workflows import SETTLEMENT_WORKFLOW

__all__ = [
    "SETTLEMENT_WORKFLOW",
    "SettlementDeduction",
    "SettlementLoad",
    "SettlementRecord",
    "SettlementService",
    "SettlementStatus",
    "SettlementSummaryLine",
    "settlement_statement",
]
