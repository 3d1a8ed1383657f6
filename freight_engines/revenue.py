"""
Module: freight_engines.revenue
Responsibility:
    Compute, per load, the revenue the company recognizes and the pay owed
    to the driver, given the driver type and pay profile.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import freight_kernel domain values, DTOs and exceptions.

Invariants enforced:
    - Revenue is assigned to a period by delivery date, falling back to
      pickup date (``recognition_date``).
    - Owner-operator loads: the company recognizes only its commission;
      the driver's share is ``PassThroughPay`` and can never be summed
      into a company cost total (``add_company_cost`` raises).
    - Company and owner-as-driver loads: full rate is revenue; a stored
      pay snapshot always wins over the profile.
    - A missing profile yields an explicit zero plus a MISSING_PROFILE
      warning.  No default percentage is ever assumed.

Failure modes:
    - PassThroughPayError when pass-through pay reaches a company total.

Audit relevance:
    ``snapshot_driver_pay`` is the value callers persist when a load is
    delivered, so later profile edits cannot move historical pay.

Usage:
    result = revenue_and_pay(load, profile)
    result.recognized_revenue   # Decimal
    result.driver_pay           # CompanyDriverPay | PassThroughPay
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import ClassVar, Iterable
from uuid import UUID

from freight_kernel.domain.dtos import (
    CalculationWarning,
    DriverProfile,
    DriverType,
    LoadRecord,
    PayType,
    WarningCode,
)
from freight_kernel.domain.values import ZERO, to_money
from freight_kernel.exceptions import PassThroughPayError
from freight_kernel.logging_config import get_logger
from freight_engines.tracer import traced_engine

logger = get_logger("engines.revenue")


@dataclass(frozen=True)
class DriverPay:
    """
    Pay owed to a driver for one load.

    Subclasses fix ``is_company_cost``; code that totals company costs
    dispatches on the type, never on a flag the caller supplies.
    """

    amount: Decimal
    load_id: UUID | None = None

    is_company_cost: ClassVar[bool] = True

    def __post_init__(self) -> None:
        if self.amount < ZERO:
            raise ValueError(f"Driver pay must be non-negative, got {self.amount}")


@dataclass(frozen=True)
class CompanyDriverPay(DriverPay):
    """Pay to a company driver or an owner driving their own truck: a company cost."""

    is_company_cost: ClassVar[bool] = True


@dataclass(frozen=True)
class PassThroughPay(DriverPay):
    """Owner-operator share of a load rate.  Informational only, never a company cost."""

    is_company_cost: ClassVar[bool] = False


def add_company_cost(total: Decimal, cost: Decimal | DriverPay) -> Decimal:
    """
    Add a cost to a company expense or deduction total.

    Raises:
        PassThroughPayError: If cost is owner-operator pass-through pay.
    """
    if isinstance(cost, DriverPay):
        if not cost.is_company_cost:
            logger.error(
                "pass_through_pay_rejected",
                extra={
                    "amount": str(cost.amount),
                    "load_id": str(cost.load_id) if cost.load_id else None,
                },
            )
            raise PassThroughPayError(cost.amount)
        return to_money(total + cost.amount)
    return to_money(total + cost)


def company_cost_total(costs: Iterable[Decimal | DriverPay]) -> Decimal:
    """Sum company costs; raises PassThroughPayError on any pass-through pay."""
    total = ZERO
    for cost in costs:
        total = add_company_cost(total, cost)
    return total


@dataclass(frozen=True)
class RevenueAndPay:
    """
    Revenue and driver pay for one load.

    Guarantees:
        - ``driver_pay`` is PassThroughPay exactly when the load is
          owner-operated.
        - ``pay_source`` is "stored", "computed" or "missing".
    """

    load_id: UUID
    recognized_revenue: Decimal
    driver_pay: DriverPay
    recognition_date: date | None
    pay_source: str
    warnings: tuple[CalculationWarning, ...] = field(default_factory=tuple)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def company_driver_pay(self) -> Decimal:
        """Pay that is a company cost (zero for owner-operator loads)."""
        return self.driver_pay.amount if self.driver_pay.is_company_cost else ZERO


def _missing_profile(load: LoadRecord, reason: str) -> CalculationWarning:
    logger.warning(
        "driver_profile_missing",
        extra={
            "load_id": str(load.id),
            "load_number": load.load_number,
            "driver_id": str(load.driver_id) if load.driver_id else None,
            "reason": reason,
        },
    )
    return CalculationWarning(
        code=WarningCode.MISSING_PROFILE,
        message=f"Load {load.load_number}: {reason}",
        subject_id=str(load.id),
    )


def _computed_pay(
    load: LoadRecord, profile: DriverProfile | None
) -> tuple[Decimal | None, str | None]:
    """Pay from the profile, or (None, reason) when it cannot be computed."""
    if profile is None:
        return None, "no driver profile; driver pay set to 0"

    if profile.pay_type == PayType.PERCENTAGE:
        pay_rate = profile.pay_rate
        if pay_rate is None and profile.commission_rate is not None:
            pay_rate = Decimal("1") - profile.commission_rate
        if pay_rate is None:
            return None, "driver profile has no pay rate; driver pay set to 0"
        return to_money(load.rate * pay_rate), None

    if profile.pay_type == PayType.PER_MILE:
        if profile.per_mile_rate is None:
            return None, "driver profile has no per-mile rate; driver pay set to 0"
        if load.miles is None:
            return None, "load has no miles for per-mile pay; driver pay set to 0"
        return to_money(load.miles * profile.per_mile_rate), None

    if profile.flat_rate is None:
        return None, "driver profile has no flat rate; driver pay set to 0"
    return to_money(profile.flat_rate), None


def snapshot_driver_pay(load: LoadRecord, profile: DriverProfile | None) -> Decimal | None:
    """
    Value to persist as ``stored_driver_pay`` when a load is delivered.

    Returns the existing snapshot unchanged if one is set, otherwise the
    profile computation, or None when the profile cannot produce one.
    """
    if load.stored_driver_pay is not None:
        return load.stored_driver_pay
    amount, _ = _computed_pay(load, profile)
    return amount


@traced_engine("revenue", "1.0", fingerprint_fields=("load", "profile"))
def revenue_and_pay(load: LoadRecord, profile: DriverProfile | None) -> RevenueAndPay:
    """
    Compute recognized revenue and driver pay for a load.

    Pure: the caller persists any snapshot.

    Args:
        load: The load.
        profile: The pay profile of the load's driver, or None if unknown.

    Returns:
        RevenueAndPay with any MISSING_PROFILE warnings attached.
    """
    warnings: list[CalculationWarning] = []
    rate = to_money(load.rate)

    if load.stored_driver_pay is not None:
        pay_amount = to_money(load.stored_driver_pay)
        pay_source = "stored"
    else:
        computed, reason = _computed_pay(load, profile)
        if computed is None:
            warnings.append(_missing_profile(load, reason))
            pay_amount = ZERO
            pay_source = "missing"
        else:
            pay_amount = computed
            pay_source = "computed"

    if load.driver_type.is_pass_through:
        commission = profile.effective_commission_rate if profile else None
        if commission is None:
            if profile is not None or not warnings:
                warnings.append(
                    _missing_profile(
                        load, "no commission rate for owner-operator; revenue set to 0"
                    )
                )
            revenue = ZERO
        else:
            revenue = to_money(rate * commission)
        driver_pay: DriverPay = PassThroughPay(amount=pay_amount, load_id=load.id)
    else:
        revenue = rate
        driver_pay = CompanyDriverPay(amount=pay_amount, load_id=load.id)

    logger.debug(
        "revenue_and_pay_computed",
        extra={
            "load_id": str(load.id),
            "driver_type": load.driver_type.value,
            "recognized_revenue": str(revenue),
            "driver_pay": str(pay_amount),
            "pay_source": pay_source,
        },
    )

    return RevenueAndPay(
        load_id=load.id,
        recognized_revenue=revenue,
        driver_pay=driver_pay,
        recognition_date=load.recognition_date,
        pay_source=pay_source,
        warnings=tuple(warnings),
    )
