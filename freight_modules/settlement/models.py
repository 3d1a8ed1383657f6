"""
Settlement Domain Models (``freight_modules.settlement.models``).

Responsibility
--------------
Frozen records of committed settlements and the export-ready statement
handed to document renderers.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* total_deductions = advances + lumper_fees + taxes + expense_deductions.
* net_pay = gross_pay + other_earnings - total_deductions, stored verbatim
  (may be negative).
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from freight_kernel.domain.dtos import CalculationWarning, ExpenseType, LedgerStatus
from freight_kernel.domain.values import ZERO, to_money


class SettlementStatus(Enum):
    """Settlement lifecycle states."""
    DRAFT = "draft"
    COMPUTED = "computed"
    COMMITTED = "committed"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class SettlementLoad:
    load_id: UUID
    load_number: str
    rate: Decimal
    recognized_revenue: Decimal
    base_pay: Decimal
    detention_pay: Decimal
    layover_pay: Decimal
    tonu_pay: Decimal
    driver_pay: Decimal
    pay_source: str
    is_pass_through: bool
    recognition_date: date | None = None
    miles: Decimal = ZERO


@dataclass(frozen=True)
class SettlementDeduction:
    """One expense recovered by a settlement, with the ledger either side of it."""
    expense_id: UUID
    expense_type: ExpenseType
    amount: Decimal
    total_amount: Decimal
    before_paid: Decimal
    after_paid: Decimal
    before_status: LedgerStatus
    after_status: LedgerStatus


@dataclass(frozen=True)
class SettlementRecord:
    """A committed (or since superseded) settlement."""
    id: UUID
    settlement_number: str
    tenant_id: str
    driver_id: UUID
    status: SettlementStatus
    gross_pay: Decimal
    advances: Decimal
    lumper_fees: Decimal
    taxes: Decimal
    expense_deductions: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    other_earnings: Decimal = ZERO
    total_miles: Decimal = ZERO
    loads: tuple[SettlementLoad, ...] = ()
    deductions: tuple[SettlementDeduction, ...] = ()
    warnings: tuple[CalculationWarning, ...] = ()
    period_start: date | None = None
    period_end: date | None = None
    notes: str | None = None
    supersedes_id: UUID | None = None
    superseded_by_id: UUID | None = None
    committed_at: datetime | None = None

    @property
    def load_ids(self) -> tuple[UUID, ...]:
        return tuple(line.load_id for line in self.loads)

    @property
    def has_negative_net_pay(self) -> bool:
        return self.net_pay < ZERO

    @property
    def effective_rate(self) -> Decimal:
        if self.total_miles > ZERO:
            return to_money(self.gross_pay / self.total_miles)
        return ZERO

    def deductions_by_type(self) -> dict[str, Decimal]:
        totals: dict[str, Decimal] = {}
        for d in self.deductions:
            totals[d.expense_type.value] = totals.get(d.expense_type.value, ZERO) + d.amount
        return {k: to_money(v) for k, v in sorted(totals.items())}


@dataclass(frozen=True)
class SettlementSummaryLine:
    """List-view row."""
    id: UUID
    settlement_number: str
    driver_id: UUID
    status: SettlementStatus
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    load_count: int
    committed_at: datetime | None = None
    warning_codes: tuple[str, ...] = field(default_factory=tuple)


def settlement_statement(record: SettlementRecord) -> dict[str, Any]:
    """
    Export-ready mapping of a settlement for statement rendering.

    Amounts are strings so no consumer rounds them through float.
    """
    return {
        "settlement_number": record.settlement_number,
        "driver_id": str(record.driver_id),
        "status": record.status.value,
        "period": {
            "start": record.period_start.isoformat() if record.period_start else None,
            "end": record.period_end.isoformat() if record.period_end else None,
        },
        "loads": [
            {
                "load_number": line.load_number,
                "delivery_date": line.recognition_date.isoformat() if line.recognition_date else None,
                "rate": str(line.rate),
                "miles": str(line.miles),
                "base_pay": str(line.base_pay),
                "detention_pay": str(line.detention_pay),
                "layover_pay": str(line.layover_pay),
                "tonu_pay": str(line.tonu_pay),
                "driver_pay": str(line.driver_pay),
            }
            for line in record.loads
        ],
        "total_miles": str(record.total_miles),
        "gross_pay": str(record.gross_pay),
        "effective_rate": str(record.effective_rate),
        "other_earnings": str(record.other_earnings),
        "deductions": {
            "advances": str(record.advances),
            "lumper_fees": str(record.lumper_fees),
            "taxes": str(record.taxes),
            "expenses": [
                {
                    "expense_id": str(d.expense_id),
                    "expense_type": d.expense_type.value,
                    "amount": str(d.amount),
                    "remaining_after": str(to_money(d.total_amount - d.after_paid)),
                    "settled": d.after_status == LedgerStatus.SETTLED,
                }
                for d in record.deductions
            ],
            "expenses_by_type": {k: str(v) for k, v in record.deductions_by_type().items()},
            "expense_total": str(record.expense_deductions),
            "total": str(record.total_deductions),
        },
        "net_pay": str(record.net_pay),
        "negative_net_pay": record.has_negative_net_pay,
        "warnings": [w.to_dict() for w in record.warnings],
    }
