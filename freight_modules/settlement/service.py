"""
Settlement Module Service - generates, commits and supersedes driver settlements.

Thin glue layer that:
1. Reads the driver's ledger states through ExpenseLedgerService
2. Calls SettlementCalculator for the pure compute step
3. Mints the settlement number, persists the record and applies the
   ledger deltas in one transaction

All computation lives in engines.  This service owns the transaction
boundary of ``commit`` and ``supersede``: it commits on success and rolls
back on any failure, so a settlement and its ledger deltas land together
or not at all.

Usage:
    service = SettlementService(session, clock=clock)
    computation = service.compute(draft, loads, profile)   # no mutation
    record = service.commit(computation, actor_id)
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from freight_config import LedgerConfig, get_active_config
from freight_kernel.domain.clock import Clock, SystemClock
from freight_kernel.domain.dtos import DriverProfile, LedgerStatus, LoadRecord, WarningCode
from freight_kernel.exceptions import (
    SettlementInputError,
    SettlementNotFoundError,
    SettlementStateError,
)
from freight_kernel.logging_config import LogContext, get_logger
from freight_kernel.services.sequence_service import SequenceService
from freight_engines.expense_allocation import AllocationLine
from freight_engines.settlement import (
    SettlementCalculator,
    SettlementComputation,
    SettlementDraft,
)
from freight_modules.ar.numbering import DocumentNumbering
from freight_modules.ledger.service import ExpenseLedgerService
from freight_modules.settlement.models import (
    SettlementRecord,
    SettlementStatus,
    SettlementSummaryLine,
    settlement_statement,
)
from freight_modules.settlement.orm import (
    SettlementDeductionLineModel,
    SettlementLoadLineModel,
    SettlementModel,
)
from freight_modules.settlement.workflows import SETTLEMENT_WORKFLOW

logger = get_logger("modules.settlement.service")

# One counter row per driver; incrementing it takes a row lock that is held
# until commit, so settlement commits for the same driver run one at a time.
_DRIVER_LOCK_YEAR = 0


class SettlementService:
    """
    Orchestrates settlement generation through engines and the ledger service.

    Engine composition:
    - SettlementCalculator: per-load pay and expense recovery (pure)
    - ExpenseLedgerService: ledger state reads and delta application
    - DocumentNumbering: SET-<yyyy>-<seq> numbers
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
        ledger_service: ExpenseLedgerService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._ledger = ledger_service or ExpenseLedgerService(session)
        self._numbering = DocumentNumbering(session, self._config.numbering)
        self._sequence = SequenceService(session)
        self._calculator = SettlementCalculator()

    # =========================================================================
    # Compute
    # =========================================================================

    def compute(
        self,
        draft: SettlementDraft,
        loads: Iterable[LoadRecord],
        profile: DriverProfile | None,
        supersedes_id: UUID | None = None,
    ) -> SettlementComputation:
        """
        Compute a settlement against the current ledger state.

        Reads only; calling this any number of times changes nothing.

        Raises:
            SettlementInputError: On an unusable load selection.
        """
        states = self._ledger.ledger_states(draft.driver_id, tenant_id=draft.tenant_id)
        with LogContext.bind(tenant_id=draft.tenant_id, driver_id=draft.driver_id):
            return self._calculator.compute(
                draft, loads, profile, states, supersedes_id=supersedes_id
            )

    # =========================================================================
    # Commit
    # =========================================================================

    def commit(self, computation: SettlementComputation, actor_id: UUID) -> SettlementRecord:
        """
        Persist a computed settlement and apply its ledger deltas atomically.

        Raises:
            ConcurrentSettlementConflictError: A touched ledger row changed
                since ``compute``.  Recompute and retry.
            SettlementInputError: The settlement policy rejects the loads.
        """
        with LogContext.bind(
            tenant_id=computation.tenant_id,
            driver_id=computation.driver_id,
            actor_id=actor_id,
        ):
            try:
                logger.info("settlement_commit_started", extra={
                    "load_count": len(computation.load_lines),
                    "deduction_count": len(computation.deduction_lines),
                })
                model = self._commit(computation, actor_id)
                self._session.commit()
                logger.info("settlement_committed", extra={
                    "settlement_id": str(model.id),
                    "settlement_number": model.settlement_number,
                    "gross_pay": str(model.gross_pay),
                    "total_deductions": str(model.total_deductions),
                    "net_pay": str(model.net_pay),
                    "warning_codes": list(computation.warning_codes),
                })
                return model.to_dto()
            except Exception:
                self._session.rollback()
                logger.warning("settlement_commit_rolled_back", exc_info=True)
                raise

    def _commit(
        self, computation: SettlementComputation, actor_id: UUID
    ) -> SettlementModel:
        self._lock_driver(computation.tenant_id, computation.driver_id)
        self._enforce_policy(computation)

        self._ledger.apply_allocation(
            computation.deduction_lines, actor_id, computation.driver_id
        )

        year = self._clock.today().year
        number = self._numbering.next_settlement_number(computation.tenant_id, year)
        model = self._build_model(computation, number, actor_id)
        self._session.add(model)
        self._session.flush()
        return model

    def _lock_driver(self, tenant_id: str, driver_id: UUID) -> None:
        self._sequence.next_value(
            tenant_id, f"drv:{driver_id}", _DRIVER_LOCK_YEAR, floor=1
        )

    def _enforce_policy(self, computation: SettlementComputation) -> None:
        policy = self._config.settlement
        driver = str(computation.driver_id)

        if policy.reject_undelivered_loads:
            undelivered = [
                w.subject_id for w in computation.warnings
                if w.code == WarningCode.UNDELIVERED_LOAD
            ]
            if undelivered:
                raise SettlementInputError(driver, "loads not delivered", undelivered)

        if policy.reject_already_settled_loads:
            settled = self._settled_load_ids(
                computation.tenant_id,
                computation.load_ids,
                exclude_id=computation.supersedes_id,
            )
            if settled:
                raise SettlementInputError(
                    driver, "loads already on a committed settlement", sorted(settled)
                )

    def _settled_load_ids(
        self, tenant_id: str, load_ids: Iterable[UUID], exclude_id: UUID | None
    ) -> set[str]:
        stmt = (
            select(SettlementLoadLineModel.load_id)
            .join(SettlementModel, SettlementLoadLineModel.settlement_id == SettlementModel.id)
            .where(
                SettlementModel.tenant_id == tenant_id,
                SettlementLoadLineModel.load_id.in_(list(load_ids)),
                SettlementModel.status == SettlementStatus.COMMITTED.value,
            )
        )
        if exclude_id is not None:
            stmt = stmt.where(SettlementModel.id != exclude_id)
        return {str(load_id) for load_id in self._session.execute(stmt).scalars()}

    def _build_model(
        self, computation: SettlementComputation, number: str, actor_id: UUID
    ) -> SettlementModel:
        draft = computation.draft
        model = SettlementModel(
            id=uuid4(),
            tenant_id=draft.tenant_id,
            settlement_number=number,
            driver_id=draft.driver_id,
            status=SettlementStatus.COMMITTED.value,
            gross_pay=computation.gross_pay,
            advances=draft.advances,
            lumper_fees=draft.lumper_fees,
            taxes=draft.taxes,
            expense_deductions=computation.expense_deductions,
            total_deductions=computation.total_deductions,
            net_pay=computation.net_pay,
            other_earnings=draft.other_earnings,
            total_miles=computation.total_miles,
            period_start=draft.period_start,
            period_end=draft.period_end,
            notes=draft.notes,
            warnings=[w.to_dict() for w in computation.warnings],
            supersedes_id=computation.supersedes_id,
            committed_at=self._clock.now(),
            created_by_id=actor_id,
        )
        for seq, line in enumerate(computation.load_lines):
            model.load_lines.append(
                SettlementLoadLineModel(
                    line_seq=seq,
                    load_id=line.load_id,
                    load_number=line.load_number,
                    rate=line.rate,
                    recognized_revenue=line.recognized_revenue,
                    base_pay=line.base_pay,
                    detention_pay=line.detention_pay,
                    layover_pay=line.layover_pay,
                    tonu_pay=line.tonu_pay,
                    driver_pay=line.driver_pay,
                    miles=line.miles,
                    pay_source=line.pay_source,
                    is_pass_through=line.is_pass_through,
                    recognition_date=line.recognition_date,
                    created_by_id=actor_id,
                )
            )
        for seq, line in enumerate(computation.deduction_lines):
            model.deduction_lines.append(
                SettlementDeductionLineModel(
                    line_seq=seq,
                    expense_id=line.expense_id,
                    expense_type=line.expense_type.value,
                    amount=line.amount,
                    total_amount=line.before.total_amount,
                    before_paid=line.before.amount_paid,
                    after_paid=line.after.amount_paid,
                    before_status=line.before.status.value,
                    after_status=line.after.status.value,
                    created_by_id=actor_id,
                )
            )
        return model

    # =========================================================================
    # Supersede
    # =========================================================================

    def supersede(
        self,
        settlement_id: UUID,
        draft: SettlementDraft,
        loads: Iterable[LoadRecord],
        profile: DriverProfile | None,
        actor_id: UUID,
    ) -> SettlementRecord:
        """
        Replace a committed settlement in one transaction.

        Reverses the old settlement's ledger deltas, marks it superseded,
        recomputes ``draft`` against the restored ledger state and commits
        the replacement linked through ``supersedes_id``.

        Raises:
            SettlementNotFoundError: Unknown settlement.
            SettlementStateError: The settlement is not committed.
            SettlementInputError: The draft is for a different driver.
            ConcurrentSettlementConflictError: A later settlement already
                recovered more from one of the touched expenses.
        """
        with LogContext.bind(
            tenant_id=draft.tenant_id,
            driver_id=draft.driver_id,
            settlement_id=settlement_id,
            actor_id=actor_id,
        ):
            try:
                old = self._get_model(settlement_id, lock=True)
                if old.status != SettlementStatus.COMMITTED.value:
                    raise SettlementStateError(str(settlement_id), old.status, "supersede")
                SETTLEMENT_WORKFLOW.require_transition(old.status, SettlementStatus.SUPERSEDED.value)
                if old.driver_id != draft.driver_id or old.tenant_id != draft.tenant_id:
                    raise SettlementInputError(
                        str(draft.driver_id),
                        f"settlement {old.settlement_number} belongs to another driver",
                    )

                self._lock_driver(old.tenant_id, old.driver_id)
                self._ledger.reverse_allocation(
                    self._recorded_lines(old), actor_id, old.driver_id
                )
                old.status = SettlementStatus.SUPERSEDED.value
                old.updated_by_id = actor_id
                self._session.flush()

                computation = self.compute(draft, loads, profile, supersedes_id=old.id)
                replacement = self._commit(computation, actor_id)
                old.superseded_by_id = replacement.id
                self._session.flush()
                self._session.commit()

                logger.info("settlement_superseded", extra={
                    "superseded_number": old.settlement_number,
                    "replacement_id": str(replacement.id),
                    "replacement_number": replacement.settlement_number,
                    "net_pay": str(replacement.net_pay),
                })
                return replacement.to_dto()
            except Exception:
                self._session.rollback()
                logger.warning("settlement_supersede_rolled_back", exc_info=True)
                raise

    def _recorded_lines(self, model: SettlementModel) -> list[AllocationLine]:
        """Rebuild allocation lines from persisted deduction rows."""
        lines = []
        for row in model.deduction_lines:
            current = self._ledger.ledger_state(row.expense_id)
            before = replace(
                current,
                amount_paid=row.before_paid,
                status=LedgerStatus(row.before_status),
            )
            after = replace(
                current,
                amount_paid=row.after_paid,
                status=LedgerStatus(row.after_status),
            )
            lines.append(
                AllocationLine(
                    expense_id=row.expense_id,
                    expense_type=current.expense_type,
                    amount=row.amount,
                    before=before,
                    after=after,
                )
            )
        return lines

    # =========================================================================
    # Queries
    # =========================================================================

    def _get_model(self, settlement_id: UUID, lock: bool = False) -> SettlementModel:
        stmt = select(SettlementModel).where(SettlementModel.id == settlement_id)
        if lock:
            stmt = stmt.with_for_update()
        model = self._session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise SettlementNotFoundError(str(settlement_id))
        return model

    def get_settlement(self, settlement_id: UUID) -> SettlementRecord:
        return self._get_model(settlement_id).to_dto()

    def statement(self, settlement_id: UUID) -> dict:
        """Export-ready statement of a stored settlement."""
        return settlement_statement(self.get_settlement(settlement_id))

    def list_settlements(
        self,
        tenant_id: str,
        driver_id: UUID | None = None,
        include_superseded: bool = False,
    ) -> list[SettlementSummaryLine]:
        stmt = select(SettlementModel).where(SettlementModel.tenant_id == tenant_id)
        if driver_id is not None:
            stmt = stmt.where(SettlementModel.driver_id == driver_id)
        if not include_superseded:
            stmt = stmt.where(SettlementModel.status == SettlementStatus.COMMITTED.value)
        stmt = stmt.order_by(SettlementModel.committed_at, SettlementModel.settlement_number)
        return [
            SettlementSummaryLine(
                id=m.id,
                settlement_number=m.settlement_number,
                driver_id=m.driver_id,
                status=SettlementStatus(m.status),
                gross_pay=m.gross_pay,
                total_deductions=m.total_deductions,
                net_pay=m.net_pay,
                load_count=len(m.load_lines),
                committed_at=m.committed_at,
                warning_codes=tuple(w["code"] for w in m.warnings or ()),
            )
            for m in self._session.execute(stmt).scalars()
        ]
