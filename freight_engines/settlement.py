"""
Module: freight_engines.settlement
Responsibility:
    The pure "compute" step of settlement generation: turn a draft, the
    selected loads, the driver's pay profile and the driver's ledger
    states into a fully itemized settlement computation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Orchestrates freight_engines.revenue and freight_engines.expense_allocation.
    The settlement service persists the result and applies ledger deltas.

Invariants enforced:
    - Loads are processed in chronological order of recognition date.
    - Expense recovery runs against a working copy of ledger state; the
      inputs are never mutated, so an abandoned computation has no effect.
    - Per-load driver pay = base pay + detention + layover + TONU.
    - total_deductions = advances + lumper_fees + taxes + expense_deductions.
    - net_pay = gross_pay + other_earnings - total_deductions, never clamped.
    - Expense recovery draws on gross pay only; other earnings are paid out
      in full.
    - Same inputs give the same outputs.

Failure modes:
    - SettlementInputError when the draft names no loads, names a load
      twice, names a load that was not supplied, or names a load assigned
      to another driver.
    - Everything else (missing profile, undelivered or already-settled
      load, negative net pay) is a CalculationWarning on the result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID

from freight_kernel.domain.dtos import (
    CalculationWarning,
    DriverProfile,
    LoadRecord,
    WarningCode,
)
from freight_kernel.domain.values import ZERO, sum_money, to_money
from freight_kernel.exceptions import SettlementInputError
from freight_kernel.logging_config import get_logger
from freight_engines.expense_allocation import (
    AllocationLine,
    LedgerAllocationResult,
    LedgerState,
    allocate,
    eligible_expenses,
)
from freight_engines.revenue import company_cost_total, revenue_and_pay
from freight_engines.tracer import traced_engine

logger = get_logger("engines.settlement")


@dataclass(frozen=True)
class SettlementDraft:
    """
    A request to settle a driver over a set of loads.

    Guarantees:
        - load_ids is a tuple.
        - Flat deductions and other_earnings are non-negative cents.
    """

    tenant_id: str
    driver_id: UUID
    load_ids: tuple[UUID, ...]
    advances: Decimal = ZERO
    lumper_fees: Decimal = ZERO
    taxes: Decimal = ZERO
    other_earnings: Decimal = ZERO
    period_start: date | None = None
    period_end: date | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "load_ids", tuple(self.load_ids))
        for name in ("advances", "lumper_fees", "taxes", "other_earnings"):
            value = to_money(getattr(self, name))
            if value < ZERO:
                raise ValueError(f"{name} must be non-negative, got {value}")
            object.__setattr__(self, name, value)
        if (
            self.period_start is not None
            and self.period_end is not None
            and self.period_start > self.period_end
        ):
            raise ValueError("period_start must not be after period_end")

    @property
    def flat_deductions(self) -> Decimal:
        return self.advances + self.lumper_fees + self.taxes


@dataclass(frozen=True)
class SettlementLoadLine:
    """Per-load pay line of a settlement."""

    load_id: UUID
    load_number: str
    rate: Decimal
    recognized_revenue: Decimal
    base_pay: Decimal
    detention_pay: Decimal
    layover_pay: Decimal
    tonu_pay: Decimal
    pay_source: str
    is_pass_through: bool
    recognition_date: date | None
    miles: Decimal = ZERO

    @property
    def driver_pay(self) -> Decimal:
        return to_money(self.base_pay + self.detention_pay + self.layover_pay + self.tonu_pay)


@dataclass(frozen=True)
class SettlementComputation:
    """
    Output of the compute step.

    Contract:
        Holds everything commit needs: the ordered load lines and the
        working-copy ledger lines with before/after states.
    """

    draft: SettlementDraft
    load_lines: tuple[SettlementLoadLine, ...]
    gross_pay: Decimal
    allocation: LedgerAllocationResult
    expense_deductions: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    warnings: tuple[CalculationWarning, ...] = field(default_factory=tuple)
    supersedes_id: UUID | None = None

    @property
    def driver_id(self) -> UUID:
        return self.draft.driver_id

    @property
    def tenant_id(self) -> str:
        return self.draft.tenant_id

    @property
    def load_ids(self) -> tuple[UUID, ...]:
        return tuple(line.load_id for line in self.load_lines)

    @property
    def deduction_lines(self) -> tuple[AllocationLine, ...]:
        return self.allocation.lines

    @property
    def advances(self) -> Decimal:
        return self.draft.advances

    @property
    def lumper_fees(self) -> Decimal:
        return self.draft.lumper_fees

    @property
    def taxes(self) -> Decimal:
        return self.draft.taxes

    @property
    def other_earnings(self) -> Decimal:
        return self.draft.other_earnings

    @property
    def total_miles(self) -> Decimal:
        return sum((line.miles for line in self.load_lines), ZERO)

    @property
    def effective_rate(self) -> Decimal:
        """Gross pay per mile; zero when no miles are recorded."""
        miles = self.total_miles
        return to_money(self.gross_pay / miles) if miles > ZERO else ZERO

    @property
    def has_negative_net_pay(self) -> bool:
        return self.net_pay < ZERO

    @property
    def warning_codes(self) -> tuple[str, ...]:
        return tuple(w.code.value for w in self.warnings)


def _chronological(load: LoadRecord) -> tuple:
    day = load.recognition_date
    return (day is None, day or date.min, load.load_number, str(load.id))


def _validate_input(
    draft: SettlementDraft, loads_by_id: dict[UUID, LoadRecord]
) -> list[LoadRecord]:
    driver = str(draft.driver_id)
    if not draft.load_ids:
        raise SettlementInputError(driver, "no loads selected")

    if len(set(draft.load_ids)) != len(draft.load_ids):
        duplicates = sorted(
            {str(i) for i in draft.load_ids if draft.load_ids.count(i) > 1}
        )
        raise SettlementInputError(driver, "load selected more than once", duplicates)

    missing = [str(i) for i in draft.load_ids if i not in loads_by_id]
    if missing:
        raise SettlementInputError(driver, "loads not supplied", missing)

    selected = [loads_by_id[i] for i in draft.load_ids]
    foreign = [
        str(load.id)
        for load in selected
        if load.driver_id is not None and load.driver_id != draft.driver_id
    ]
    if foreign:
        raise SettlementInputError(driver, "loads assigned to another driver", foreign)

    return selected


class SettlementCalculator:
    """
    Compute settlements.

    Contract:
        Pure -- no I/O, no clock, no database access.
    Guarantees:
        - ``compute`` is deterministic for identical inputs.
        - Ledger states passed in are never modified.
    """

    @traced_engine(
        "settlement",
        "1.0",
        fingerprint_fields=("draft", "loads", "profile", "ledger_states"),
    )
    def compute(
        self,
        draft: SettlementDraft,
        loads: Iterable[LoadRecord],
        profile: DriverProfile | None,
        ledger_states: Sequence[LedgerState] = (),
        supersedes_id: UUID | None = None,
    ) -> SettlementComputation:
        """
        Compute a settlement.

        Args:
            draft: The settlement request.
            loads: At least the loads named by the draft; extras are ignored.
            profile: The driver's pay profile, or None.
            ledger_states: The driver's ledger states (any order; filtered
                and ordered here).
            supersedes_id: Settlement being replaced; its own loads are not
                reported as already settled.

        Returns:
            SettlementComputation.

        Raises:
            SettlementInputError: On an unusable load selection.
        """
        loads_by_id = {load.id: load for load in loads}
        selected = sorted(_validate_input(draft, loads_by_id), key=_chronological)

        warnings: list[CalculationWarning] = []
        load_lines: list[SettlementLoadLine] = []
        company_pays = []

        for load in selected:
            if not load.is_delivered:
                warnings.append(
                    CalculationWarning(
                        code=WarningCode.UNDELIVERED_LOAD,
                        message=f"Load {load.load_number} is {load.status.value}, not delivered",
                        subject_id=str(load.id),
                    )
                )
            if load.settlement_id is not None and load.settlement_id != supersedes_id:
                warnings.append(
                    CalculationWarning(
                        code=WarningCode.LOAD_ALREADY_SETTLED,
                        message=f"Load {load.load_number} is already on settlement {load.settlement_id}",
                        subject_id=str(load.id),
                    )
                )

            result = revenue_and_pay(load, profile)
            warnings.extend(result.warnings)
            accessorials = to_money(load.accessorial_pay)
            if result.driver_pay.is_company_cost:
                company_pays.append(result.driver_pay)
                company_pays.append(type(result.driver_pay)(accessorials, load.id))
            load_lines.append(
                SettlementLoadLine(
                    load_id=load.id,
                    load_number=load.load_number,
                    rate=to_money(load.rate),
                    recognized_revenue=result.recognized_revenue,
                    base_pay=result.driver_pay.amount,
                    detention_pay=to_money(load.detention_pay),
                    layover_pay=to_money(load.layover_pay),
                    tonu_pay=to_money(load.tonu_pay),
                    pay_source=result.pay_source,
                    is_pass_through=not result.driver_pay.is_company_cost,
                    recognition_date=result.recognition_date,
                    miles=load.miles or ZERO,
                )
            )

        gross_pay = sum_money(line.driver_pay for line in load_lines)

        eligible = eligible_expenses(
            ledger_states, draft.driver_id, [line.load_id for line in load_lines]
        )
        allocation = allocate(gross_pay, eligible)
        warnings.extend(allocation.warnings)

        expense_deductions = allocation.total_allocated
        total_deductions = to_money(draft.flat_deductions + expense_deductions)
        net_pay = to_money(gross_pay + draft.other_earnings - total_deductions)

        if net_pay < ZERO:
            logger.warning(
                "settlement_negative_net_pay",
                extra={
                    "driver_id": str(draft.driver_id),
                    "gross_pay": str(gross_pay),
                    "total_deductions": str(total_deductions),
                    "net_pay": str(net_pay),
                },
            )
            warnings.append(
                CalculationWarning(
                    code=WarningCode.NEGATIVE_NET_PAY,
                    message=(
                        f"Net pay is {net_pay}: deductions {total_deductions} "
                        f"exceed gross pay {gross_pay} plus other earnings "
                        f"{draft.other_earnings}"
                    ),
                    subject_id=str(draft.driver_id),
                )
            )

        logger.info(
            "settlement_computed",
            extra={
                "driver_id": str(draft.driver_id),
                "load_count": len(load_lines),
                "gross_pay": str(gross_pay),
                "company_driver_pay": str(company_cost_total(company_pays)),
                "expense_deductions": str(expense_deductions),
                "other_earnings": str(draft.other_earnings),
                "net_pay": str(net_pay),
                "warning_count": len(warnings),
            },
        )

        return SettlementComputation(
            draft=draft,
            load_lines=tuple(load_lines),
            gross_pay=gross_pay,
            allocation=allocation,
            expense_deductions=expense_deductions,
            total_deductions=total_deductions,
            net_pay=net_pay,
            warnings=tuple(warnings),
            supersedes_id=supersedes_id,
        )
