"""
Module: freight_engines.expense_allocation
Responsibility:
    Recover company-paid driver expenses from a settlement's pay pool.
    Filters the eligible ledgers, orders them oldest first, and spills the
    pool across them one at a time.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Works on ``LedgerState`` working copies; the ledger service applies
    the resulting lines to the database at commit time.

Invariants enforced:
    - remaining_balance = total_amount - amount_paid >= 0 for every state
      (``LedgerState`` refuses to exist otherwise).
    - A ledger is SETTLED exactly when its remaining balance is zero.
    - Allocation never mutates its inputs; each line carries the before
      and after state of one ledger.
    - A ledger is fully covered before the next one receives anything.

Failure modes:
    - LedgerInvariantError when a state would break the balance invariant.
    - A negative pool allocates nothing and returns an INVALID_POOL warning.

Usage:
    ledgers = eligible_expenses(states, driver_id, load_ids)
    result = allocate(gross_pay, ledgers)
    result.total_allocated
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID

from freight_kernel.domain.dtos import (
    CalculationWarning,
    ExpenseType,
    LedgerStatus,
    WarningCode,
)
from freight_kernel.domain.values import ZERO, sum_money, to_money
from freight_kernel.exceptions import LedgerInvariantError
from freight_kernel.logging_config import get_logger
from freight_engines.tracer import traced_engine

logger = get_logger("engines.expense_allocation")


@dataclass(frozen=True)
class LedgerState:
    """
    Snapshot of one expense ledger.

    Contract:
        Frozen; transitions produce new states via ``apply``.
    Guarantees:
        - 0 <= amount_paid <= total_amount.
        - status is SETTLED iff remaining_balance == 0.
    """

    expense_id: UUID
    total_amount: Decimal
    amount_paid: Decimal
    status: LedgerStatus
    expense_type: ExpenseType
    expense_date: date
    sequence: int = 0
    driver_id: UUID | None = None
    load_id: UUID | None = None
    version: int = 0

    def __post_init__(self) -> None:
        if (
            self.total_amount <= ZERO
            or self.amount_paid < ZERO
            or self.amount_paid > self.total_amount
        ):
            raise LedgerInvariantError(
                str(self.expense_id), self.total_amount, self.amount_paid
            )
        expected = (
            LedgerStatus.SETTLED
            if self.amount_paid == self.total_amount
            else LedgerStatus.ACTIVE
        )
        if self.status != expected:
            raise LedgerInvariantError(
                str(self.expense_id), self.total_amount, self.amount_paid
            )

    @classmethod
    def opened(
        cls,
        expense_id: UUID,
        total_amount: Decimal,
        expense_type: ExpenseType,
        expense_date: date,
        **kwargs,
    ) -> LedgerState:
        """Fresh ledger: nothing paid, active."""
        return cls(
            expense_id=expense_id,
            total_amount=to_money(total_amount),
            amount_paid=ZERO,
            status=LedgerStatus.ACTIVE,
            expense_type=expense_type,
            expense_date=expense_date,
            **kwargs,
        )

    @property
    def remaining_balance(self) -> Decimal:
        return self.total_amount - self.amount_paid

    @property
    def is_active(self) -> bool:
        return self.status == LedgerStatus.ACTIVE

    @property
    def is_floating(self) -> bool:
        return self.load_id is None

    def apply(self, amount: Decimal) -> LedgerState:
        """State after ``amount`` more is recovered."""
        paid = self.amount_paid + amount
        if amount < ZERO or paid > self.total_amount:
            raise LedgerInvariantError(str(self.expense_id), self.total_amount, paid)
        status = LedgerStatus.SETTLED if paid == self.total_amount else LedgerStatus.ACTIVE
        return replace(self, amount_paid=paid, status=status)

    def same_balance(self, other: LedgerState) -> bool:
        """True when paid amount and status match, ignoring version."""
        return (
            self.expense_id == other.expense_id
            and self.amount_paid == other.amount_paid
            and self.status == other.status
        )


@dataclass(frozen=True)
class AllocationLine:
    """One deduction against one ledger, with the states either side of it."""

    expense_id: UUID
    expense_type: ExpenseType
    amount: Decimal
    before: LedgerState
    after: LedgerState

    @property
    def settles_expense(self) -> bool:
        return self.after.status == LedgerStatus.SETTLED


@dataclass(frozen=True)
class LedgerAllocationResult:
    """
    Outcome of spilling one pool across ordered ledgers.

    Guarantees:
        - total_allocated + unallocated_pool == pool (for a valid pool).
        - lines are in allocation order.
    """

    pool: Decimal
    lines: tuple[AllocationLine, ...]
    total_allocated: Decimal
    unallocated_pool: Decimal
    warnings: tuple[CalculationWarning, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return not any(w.code == WarningCode.INVALID_POOL for w in self.warnings)

    def by_expense_type(self) -> dict[str, Decimal]:
        """Allocated totals keyed by expense type value."""
        totals: dict[str, Decimal] = {}
        for line in self.lines:
            key = line.expense_type.value
            totals[key] = totals.get(key, ZERO) + line.amount
        return {k: to_money(v) for k, v in totals.items()}


def allocation_order(ledgers: Iterable[LedgerState]) -> list[LedgerState]:
    """Oldest expense first; ties broken by creation sequence, then id."""
    return sorted(
        ledgers,
        key=lambda s: (s.expense_date, s.sequence, str(s.expense_id)),
    )


def eligible_expenses(
    ledgers: Iterable[LedgerState],
    driver_id: UUID,
    load_ids: Iterable[UUID],
) -> list[LedgerState]:
    """
    Active ledgers of ``driver_id`` tied to one of ``load_ids`` or floating.

    Floating expenses are eligible for every settlement of their driver
    without being selected.

    Returns:
        Eligible states in allocation order.
    """
    wanted = set(load_ids)
    eligible = [
        s
        for s in ledgers
        if s.is_active
        and s.driver_id == driver_id
        and (s.load_id is None or s.load_id in wanted)
    ]
    return allocation_order(eligible)


@traced_engine("expense_allocation", "1.0", fingerprint_fields=("pool", "ledgers"))
def allocate(pool: Decimal, ledgers: Sequence[LedgerState]) -> LedgerAllocationResult:
    """
    Spill ``pool`` across ``ledgers`` in the order given.

    Each ledger receives ``min(remaining_balance, pool_left)``; a ledger
    reaching zero flips to SETTLED.  Stops when the pool is exhausted.
    Ledgers that are not active are skipped.

    Args:
        pool: Amount available for recovery (the settlement's gross pay).
        ledgers: Working copies, already in allocation order.

    Returns:
        LedgerAllocationResult; an INVALID_POOL warning and no lines when
        ``pool`` is negative.
    """
    pool = to_money(pool)

    if pool < ZERO:
        logger.warning(
            "allocation_invalid_pool",
            extra={"pool": str(pool), "ledger_count": len(ledgers)},
        )
        return LedgerAllocationResult(
            pool=pool,
            lines=(),
            total_allocated=ZERO,
            unallocated_pool=ZERO,
            warnings=(
                CalculationWarning(
                    code=WarningCode.INVALID_POOL,
                    message=f"Pay pool {pool} is negative; nothing allocated",
                ),
            ),
        )

    remaining_pool = pool
    lines: list[AllocationLine] = []

    for state in ledgers:
        if remaining_pool <= ZERO:
            break
        if not state.is_active:
            continue
        amount = min(state.remaining_balance, remaining_pool)
        after = state.apply(amount)
        lines.append(
            AllocationLine(
                expense_id=state.expense_id,
                expense_type=state.expense_type,
                amount=amount,
                before=state,
                after=after,
            )
        )
        remaining_pool -= amount

    total = sum_money(line.amount for line in lines)

    logger.info(
        "allocation_computed",
        extra={
            "pool": str(pool),
            "ledger_count": len(ledgers),
            "line_count": len(lines),
            "total_allocated": str(total),
            "settled_count": sum(1 for line in lines if line.settles_expense),
        },
    )

    return LedgerAllocationResult(
        pool=pool,
        lines=tuple(lines),
        total_allocated=total,
        unallocated_pool=to_money(remaining_pool),
    )
