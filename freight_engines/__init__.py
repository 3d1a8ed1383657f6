"""
Module: freight_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for freight_modules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import freight_kernel domain values, DTOs, exceptions and
    logging.  MUST NOT import freight_modules.

Invariants enforced:
    - Purity: engines never read the clock.  Dates are parameters.
    - Decimal-only arithmetic for money.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are wrapped with ``@traced_engine`` and emit
    FREIGHT_ENGINE_TRACE records with an input fingerprint.
"""

from freight_engines.aging import (
    AR_BUCKETS,
    AgeBucket,
    AgedInvoice,
    AgingCalculator,
    OpenInvoice,
    aging_bucket,
    ar_aging_summary,
)
from freight_engines.expense_allocation import (
    AllocationLine,
    LedgerAllocationResult,
    LedgerState,
    allocate,
    allocation_order,
    eligible_expenses,
)
from freight_engines.period_report import (
    PeriodFinancials,
    SettlementSummary,
    eligible_loads_for_settlement,
    period_financials,
    summarize_settlements,
)
from freight_engines.revenue import (
    CompanyDriverPay,
    DriverPay,
    PassThroughPay,
    RevenueAndPay,
    add_company_cost,
    company_cost_total,
    revenue_and_pay,
    snapshot_driver_pay,
)
from freight_engines.settlement import (
    SettlementCalculator,
    SettlementComputation,
    SettlementDraft,
    SettlementLoadLine,
)
from freight_engines.tracer import traced_engine

__all__ = [
    # Aging
    "AR_BUCKETS",
    "AgeBucket",
    "AgedInvoice",
    "AgingCalculator",
    "OpenInvoice",
    "aging_bucket",
    "ar_aging_summary",
    # Expense allocation
    "AllocationLine",
    "LedgerAllocationResult",
    "LedgerState",
    "allocate",
    "allocation_order",
    "eligible_expenses",
    # Period reporting
    "PeriodFinancials",
    "SettlementSummary",
    "eligible_loads_for_settlement",
    "period_financials",
    "summarize_settlements",
    # Revenue
    "CompanyDriverPay",
    "DriverPay",
    "PassThroughPay",
    "RevenueAndPay",
    "add_company_cost",
    "company_cost_total",
    "revenue_and_pay",
    "snapshot_driver_pay",
    # Settlement
    "SettlementCalculator",
    "SettlementComputation",
    "SettlementDraft",
    "SettlementLoadLine",
    # Tracing
    "traced_engine",
]
