"""
Module: freight_engines.period_report
Responsibility:
    Period financials (revenue, driver cost, expenses, profit), selection
    of loads ready to settle, and roll-ups of settlement totals.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Loads land in a period by recognition date (delivery, else pickup).
    - Owner-operator pay is reported for information only and never
      reaches the company cost total (enforced by ``company_cost_total``).
    - Company-paid expenses attributed to a driver are recoverable
      advances, not company costs; driver-paid expenses are not the
      company's at all.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Mapping, Protocol, Sequence
from uuid import UUID

from freight_kernel.domain.dtos import (
    CalculationWarning,
    DriverProfile,
    ExpenseRecord,
    LoadRecord,
    PaidBy,
)
from freight_kernel.domain.values import ZERO, Period, sum_money, to_money
from freight_kernel.logging_config import get_logger
from freight_engines.revenue import DriverPay, company_cost_total, revenue_and_pay
from freight_engines.tracer import traced_engine

logger = get_logger("engines.period_report")


@dataclass(frozen=True)
class PeriodFinancials:
    period: Period
    load_count: int
    revenue: Decimal
    company_driver_pay: Decimal
    pass_through_pay: Decimal
    company_expenses: Decimal
    recoverable_expenses: Decimal
    net_profit: Decimal
    expenses_by_type: dict[str, Decimal] = field(default_factory=dict)
    warnings: tuple[CalculationWarning, ...] = field(default_factory=tuple)

    @property
    def profit_margin(self) -> Decimal | None:
        """net_profit / revenue, None when there is no revenue."""
        if self.revenue == ZERO:
            return None
        return (self.net_profit / self.revenue).quantize(Decimal("0.0001"))


@traced_engine("period_financials", "1.0", fingerprint_fields=("period",))
def period_financials(
    loads: Iterable[LoadRecord],
    profiles: Mapping[UUID, DriverProfile],
    expenses: Iterable[ExpenseRecord],
    period: Period,
) -> PeriodFinancials:
    """
    Financial summary of one period.

    Only delivered loads recognized inside ``period`` count.  Expenses
    count by ``expense_date``.
    """
    warnings: list[CalculationWarning] = []
    revenues: list[Decimal] = []
    company_pays: list[DriverPay] = []
    pass_through: list[Decimal] = []
    load_count = 0

    for load in loads:
        if not load.is_delivered or not period.contains(load.recognition_date):
            continue
        load_count += 1
        profile = profiles.get(load.driver_id) if load.driver_id else None
        result = revenue_and_pay(load, profile)
        warnings.extend(result.warnings)
        revenues.append(result.recognized_revenue)
        accessorials = to_money(load.accessorial_pay)
        if result.driver_pay.is_company_cost:
            company_pays.append(result.driver_pay)
            company_pays.append(type(result.driver_pay)(accessorials, load.id))
        else:
            pass_through.append(result.driver_pay.amount + accessorials)

    company_costs: list[Decimal] = []
    recoverable: list[Decimal] = []
    by_type: dict[str, Decimal] = {}
    for expense in expenses:
        if expense.paid_by != PaidBy.COMPANY or not period.contains(expense.expense_date):
            continue
        if expense.is_recoverable:
            recoverable.append(expense.amount)
            continue
        company_costs.append(expense.amount)
        key = expense.expense_type.value
        by_type[key] = by_type.get(key, ZERO) + expense.amount

    revenue = sum_money(revenues)
    driver_cost = company_cost_total(company_pays)
    company_expenses = company_cost_total(company_costs)
    net_profit = to_money(revenue - driver_cost - company_expenses)

    logger.info(
        "period_financials_computed",
        extra={
            "period": period.label or f"{period.start}..{period.end}",
            "load_count": load_count,
            "revenue": str(revenue),
            "net_profit": str(net_profit),
        },
    )

    return PeriodFinancials(
        period=period,
        load_count=load_count,
        revenue=revenue,
        company_driver_pay=driver_cost,
        pass_through_pay=sum_money(pass_through),
        company_expenses=company_expenses,
        recoverable_expenses=sum_money(recoverable),
        net_profit=net_profit,
        expenses_by_type={k: to_money(v) for k, v in sorted(by_type.items())},
        warnings=tuple(warnings),
    )


def eligible_loads_for_settlement(
    loads: Iterable[LoadRecord],
    driver_id: UUID,
    period: Period,
) -> list[LoadRecord]:
    """Delivered, unsettled loads of ``driver_id`` recognized in ``period``, oldest first."""
    eligible = [
        load
        for load in loads
        if load.driver_id == driver_id
        and load.is_delivered
        and load.settlement_id is None
        and period.contains(load.recognition_date)
    ]
    return sorted(eligible, key=lambda load: (load.recognition_date, load.load_number))


class _SettlementTotals(Protocol):
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal


@dataclass(frozen=True)
class SettlementSummary:
    count: int
    total_gross_pay: Decimal
    total_deductions: Decimal
    total_net_pay: Decimal
    average_net_pay: Decimal
    negative_net_pay_count: int


def summarize_settlements(records: Sequence[_SettlementTotals]) -> SettlementSummary:
    """Totals and average net pay over settlement records or computations."""
    total_net = sum_money(r.net_pay for r in records)
    average = to_money(total_net / len(records)) if records else ZERO
    return SettlementSummary(
        count=len(records),
        total_gross_pay=sum_money(r.gross_pay for r in records),
        total_deductions=sum_money(r.total_deductions for r in records),
        total_net_pay=total_net,
        average_net_pay=average,
        negative_net_pay_count=sum(1 for r in records if r.net_pay < ZERO),
    )
