"""
Expense Ledger Service - persists expenses and applies ledger deltas.

Thin glue layer that:
1. Records expenses and opens a ledger for company-paid driver expenses
2. Loads ledger states and hands them to the pure allocation engine
3. Applies (or reverses) allocation lines computed by the engine

Transaction boundary: this service only flushes.  The settlement service
(or the caller's ``session_scope()``) commits or rolls back.

Usage:
    service = ExpenseLedgerService(session)
    expense = service.record_expense(
        tenant_id="acme", expense_type=ExpenseType.INSURANCE,
        amount=Decimal("1000.00"), paid_by=PaidBy.COMPANY,
        expense_date=date(2024, 1, 5), actor_id=actor_id, driver_id=driver_id,
    )
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from freight_kernel.domain.dtos import ExpenseRecord, ExpenseType, LedgerStatus, PaidBy
from freight_kernel.domain.values import ZERO, sum_money, to_money
from freight_kernel.exceptions import (
    ConcurrentSettlementConflictError,
    LedgerInvariantError,
    LedgerNotFoundError,
)
from freight_kernel.logging_config import get_logger
from freight_kernel.services.sequence_service import SequenceService
from freight_engines.expense_allocation import (
    AllocationLine,
    LedgerState,
    allocation_order,
    eligible_expenses,
)
from freight_modules.ledger.models import DriverBalance, ExpenseLedger, ExpenseWithLedger
from freight_modules.ledger.orm import ExpenseLedgerModel, ExpenseModel

logger = get_logger("modules.ledger.service")

# Expense creation order is a single ever-increasing counter per tenant.
_EXPENSE_COUNTER = "expense"
_EXPENSE_COUNTER_YEAR = 0


class ExpenseLedgerService:
    """
    Owns expense-ledger persistence.

    Contract:
        Ledger rows change only through ``apply_allocation`` and
        ``reverse_allocation``, each of which verifies the rows are in the
        state the caller computed against.
    """

    def __init__(self, session: Session):
        self._session = session
        self._sequence = SequenceService(session)

    # =========================================================================
    # Expenses
    # =========================================================================

    def record_expense(
        self,
        tenant_id: str,
        expense_type: ExpenseType,
        amount: Decimal,
        paid_by: PaidBy,
        expense_date: date,
        actor_id: UUID,
        driver_id: UUID | None = None,
        load_id: UUID | None = None,
        description: str | None = None,
        expense_id: UUID | None = None,
    ) -> ExpenseWithLedger:
        """
        Persist an expense; company-paid expenses with a driver get a ledger.

        Raises:
            ValueError: If amount is not positive.
        """
        sequence = self._sequence.next_value(
            tenant_id, _EXPENSE_COUNTER, _EXPENSE_COUNTER_YEAR, floor=1
        )
        record = ExpenseRecord(
            id=expense_id or uuid4(),
            expense_type=expense_type,
            amount=to_money(amount),
            paid_by=paid_by,
            expense_date=expense_date,
            driver_id=driver_id,
            load_id=load_id,
            sequence=sequence,
            description=description,
        )
        model = ExpenseModel.from_dto(record, tenant_id=tenant_id, created_by_id=actor_id)
        self._session.add(model)
        self._session.flush()

        logger.info("expense_recorded", extra={
            "expense_id": str(record.id),
            "expense_type": expense_type.value,
            "amount": str(record.amount),
            "paid_by": paid_by.value,
            "driver_id": str(driver_id) if driver_id else None,
            "floating": load_id is None,
        })

        ledger = None
        if record.is_recoverable:
            ledger = self.attach_ledger(record.id, actor_id)
        return ExpenseWithLedger(expense=model.to_dto(), ledger=ledger)

    def get_expense(self, expense_id: UUID) -> ExpenseWithLedger:
        model = self._session.get(ExpenseModel, expense_id)
        if model is None:
            raise LedgerNotFoundError(str(expense_id))
        ledger = model.ledger.to_dto() if model.ledger is not None else None
        return ExpenseWithLedger(expense=model.to_dto(), ledger=ledger)

    def list_expenses(
        self,
        tenant_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[ExpenseRecord]:
        """Expenses of a tenant, optionally limited to an expense-date range."""
        stmt = select(ExpenseModel).where(ExpenseModel.tenant_id == tenant_id)
        if start is not None:
            stmt = stmt.where(ExpenseModel.expense_date >= start)
        if end is not None:
            stmt = stmt.where(ExpenseModel.expense_date <= end)
        stmt = stmt.order_by(ExpenseModel.expense_date, ExpenseModel.sequence)
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    # =========================================================================
    # Ledgers
    # =========================================================================

    def attach_ledger(self, expense_id: UUID, actor_id: UUID) -> ExpenseLedger:
        """
        Open the ledger of a company-paid driver expense.

        Idempotent: an expense that already has a ledger returns it unchanged.

        Raises:
            LedgerNotFoundError: If the expense does not exist.
            ValueError: If the expense is not company-paid with a driver.
        """
        expense = self._session.get(ExpenseModel, expense_id)
        if expense is None:
            raise LedgerNotFoundError(str(expense_id))

        if expense.ledger is not None:
            logger.debug("ledger_already_attached", extra={"expense_id": str(expense_id)})
            return expense.ledger.to_dto()

        record = expense.to_dto()
        if not record.is_recoverable:
            raise ValueError(
                f"Expense {expense_id} is not a company-paid driver expense; "
                "it cannot carry a ledger"
            )

        ledger = ExpenseLedgerModel(
            expense_id=expense.id,
            driver_id=expense.driver_id,
            total_amount=record.amount,
            amount_paid=ZERO,
            status=LedgerStatus.ACTIVE.value,
            version=0,
            created_by_id=actor_id,
        )
        ledger.expense = expense
        self._session.add(ledger)
        self._session.flush()

        logger.info("ledger_attached", extra={
            "expense_id": str(expense_id),
            "driver_id": str(expense.driver_id),
            "total_amount": str(record.amount),
        })
        return ledger.to_dto()

    def get_ledger(self, expense_id: UUID) -> ExpenseLedger:
        return self._ledger_row(expense_id).to_dto()

    def ledger_state(self, expense_id: UUID) -> LedgerState:
        return self._ledger_row(expense_id).to_state()

    def ledger_states(
        self,
        driver_id: UUID,
        *,
        tenant_id: str | None = None,
        active_only: bool = True,
    ) -> list[LedgerState]:
        """All ledger states of a driver in allocation order, optionally within one tenant."""
        stmt = select(ExpenseLedgerModel).where(ExpenseLedgerModel.driver_id == driver_id)
        if tenant_id is not None:
            stmt = stmt.join(
                ExpenseModel, ExpenseLedgerModel.expense_id == ExpenseModel.id
            ).where(ExpenseModel.tenant_id == tenant_id)
        if active_only:
            stmt = stmt.where(ExpenseLedgerModel.status == LedgerStatus.ACTIVE.value)
        rows = self._session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalars().all()
        return allocation_order(row.to_state() for row in rows)

    def eligible_expenses(
        self,
        driver_id: UUID,
        load_ids: Iterable[UUID],
        tenant_id: str | None = None,
    ) -> list[LedgerState]:
        """Active ledgers for the driver tied to ``load_ids`` or floating, oldest first."""
        states = self.ledger_states(driver_id, tenant_id=tenant_id)
        return eligible_expenses(states, driver_id, load_ids)

    def outstanding_balance(
        self, driver_id: UUID, tenant_id: str | None = None
    ) -> DriverBalance:
        states = self.ledger_states(driver_id, tenant_id=tenant_id)
        return DriverBalance(
            driver_id=driver_id,
            outstanding=sum_money(s.remaining_balance for s in states),
            active_ledger_count=len(states),
        )

    # =========================================================================
    # Applying deltas
    # =========================================================================

    def _ledger_row(self, expense_id: UUID, lock: bool = False) -> ExpenseLedgerModel:
        stmt = select(ExpenseLedgerModel).where(ExpenseLedgerModel.expense_id == expense_id)
        if lock:
            stmt = stmt.with_for_update(of=ExpenseLedgerModel)
        row = self._session.execute(
            stmt.execution_options(populate_existing=True)
        ).unique().scalar_one_or_none()
        if row is None:
            raise LedgerNotFoundError(str(expense_id))
        return row

    def _lock_rows(self, lines: Sequence[AllocationLine]) -> dict[UUID, ExpenseLedgerModel]:
        # Fixed lock order so two commits never wait on each other in a cycle.
        ordered = sorted({line.expense_id for line in lines}, key=str)
        return {eid: self._ledger_row(eid, lock=True) for eid in ordered}

    def _set_state(self, row: ExpenseLedgerModel, state: LedgerState, actor_id: UUID) -> None:
        if state.amount_paid > state.total_amount or state.amount_paid < ZERO:
            raise LedgerInvariantError(str(row.expense_id), state.total_amount, state.amount_paid)
        row.amount_paid = state.amount_paid
        row.status = state.status.value
        row.version = row.version + 1
        row.updated_by_id = actor_id

    def apply_allocation(
        self,
        lines: Sequence[AllocationLine],
        actor_id: UUID,
        driver_id: UUID,
    ) -> list[ExpenseLedger]:
        """
        Apply computed allocation lines to the ledger rows.

        Every touched row is locked, then checked against the line's
        ``before`` state (balance and version).  Nothing is written unless
        all rows match.

        Raises:
            ConcurrentSettlementConflictError: If any row changed since the
                lines were computed.
        """
        if not lines:
            return []

        rows = self._lock_rows(lines)
        stale = [
            str(line.expense_id)
            for line in lines
            if not rows[line.expense_id].to_state().same_balance(line.before)
            or rows[line.expense_id].version != line.before.version
        ]
        if stale:
            logger.warning("ledger_allocation_conflict", extra={
                "driver_id": str(driver_id),
                "stale_expense_ids": stale,
            })
            raise ConcurrentSettlementConflictError(str(driver_id), stale)

        for line in lines:
            self._set_state(rows[line.expense_id], line.after, actor_id)
        self._session.flush()

        logger.info("ledger_allocation_applied", extra={
            "driver_id": str(driver_id),
            "line_count": len(lines),
            "total_applied": str(sum_money(line.amount for line in lines)),
            "settled_count": sum(1 for line in lines if line.settles_expense),
        })
        return [rows[line.expense_id].to_dto() for line in lines]

    def reverse_allocation(
        self,
        lines: Sequence[AllocationLine],
        actor_id: UUID,
        driver_id: UUID,
    ) -> list[ExpenseLedger]:
        """
        Restore the ``before`` state of every line.

        Rows must still hold the line's ``after`` balance; a later
        settlement that recovered more from the same expense blocks the
        reversal.

        Raises:
            ConcurrentSettlementConflictError: If a row no longer holds the
                ``after`` balance.
        """
        if not lines:
            return []

        rows = self._lock_rows(lines)
        stale = [
            str(line.expense_id)
            for line in lines
            if not rows[line.expense_id].to_state().same_balance(line.after)
        ]
        if stale:
            logger.warning("ledger_reversal_conflict", extra={
                "driver_id": str(driver_id),
                "stale_expense_ids": stale,
            })
            raise ConcurrentSettlementConflictError(str(driver_id), stale)

        for line in lines:
            self._set_state(rows[line.expense_id], line.before, actor_id)
        self._session.flush()

        logger.info("ledger_allocation_reversed", extra={
            "driver_id": str(driver_id),
            "line_count": len(lines),
            "total_reversed": str(sum_money(line.amount for line in lines)),
        })
        return [rows[line.expense_id].to_dto() for line in lines]
