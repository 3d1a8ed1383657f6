"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable input records the engines consume: LoadRecord,
    DriverProfile, ExpenseRecord, plus the CalculationWarning value that
    carries non-fatal calculation problems back to callers.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  Module ORM classes convert to these via
    ``to_dto()``; engines never see ORM entities.

Invariants enforced:
    - Monetary fields are Decimal; load rates are never negative.
    - Expense amounts are strictly positive.
    - Percentage pay and commission rates are fractions in [0, 1].

Failure modes:
    - ValueError on negative rates, non-positive expense amounts, or
      out-of-range fractions.

Data flow:
    LoadRecord + DriverProfile -> RevenueAndPay -> SettlementComputation
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from freight_kernel.domain.values import recognition_date


class DriverType(str, Enum):
    """
    Who drives the load and whose money the driver pay is.

    Contract:
        OWNER_OPERATOR pay is pass-through money; the company keeps only its
        commission.  The other two are company-paid drivers.
    """

    COMPANY_DRIVER = "company_driver"
    OWNER_OPERATOR = "owner_operator"
    OWNER_AS_DRIVER = "owner_as_driver"

    @property
    def is_pass_through(self) -> bool:
        return self is DriverType.OWNER_OPERATOR


class LoadStatus(str, Enum):
    CREATED = "created"
    DISPATCHED = "dispatched"
    DELIVERED = "delivered"


class PayType(str, Enum):
    """How a company driver's pay is computed when no snapshot exists."""

    PERCENTAGE = "percentage"
    PER_MILE = "per_mile"
    FLAT_RATE = "flat_rate"


class ExpenseType(str, Enum):
    FUEL = "fuel"
    INSURANCE = "insurance"
    MAINTENANCE = "maintenance"
    TOLL = "toll"
    LUMPER = "lumper"
    OTHER = "other"


class PaidBy(str, Enum):
    COMPANY = "company"
    DRIVER = "driver"


class LedgerStatus(str, Enum):
    """Expense-ledger lifecycle: ACTIVE until the remaining balance reaches zero."""

    ACTIVE = "active"
    SETTLED = "settled"


class WarningCode(str, Enum):
    """
    Codes for non-fatal calculation problems.

    Guarantees:
        - None of these is ever raised; they travel inside engine results.
    """

    MISSING_PROFILE = "MISSING_PROFILE"
    INVALID_POOL = "INVALID_POOL"
    NEGATIVE_NET_PAY = "NEGATIVE_NET_PAY"
    UNDELIVERED_LOAD = "UNDELIVERED_LOAD"
    LOAD_ALREADY_SETTLED = "LOAD_ALREADY_SETTLED"


@dataclass(frozen=True)
class CalculationWarning:
    """A non-fatal problem found while calculating; ``subject_id`` names the load/expense."""

    code: WarningCode
    message: str
    subject_id: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "code": self.code.value,
            "message": self.message,
            "subject_id": self.subject_id,
        }


@dataclass(frozen=True)
class LoadRecord:
    """
    Read-only view of a load.

    Contract:
        ``stored_driver_pay`` is the snapshot taken at delivery; once set it
        wins over any profile computation.  ``settlement_id`` is set when
        the load has already been settled.
    """

    id: UUID
    load_number: str
    rate: Decimal
    driver_type: DriverType
    status: LoadStatus = LoadStatus.CREATED
    pickup_date: date | None = None
    delivery_date: date | None = None
    stored_driver_pay: Decimal | None = None
    driver_id: UUID | None = None
    miles: Decimal | None = None
    customer_ref: str | None = None
    settlement_id: UUID | None = None
    # Accessorials owed to the driver on top of base pay.
    detention_pay: Decimal = Decimal("0")
    layover_pay: Decimal = Decimal("0")
    tonu_pay: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if self.rate < Decimal("0"):
            raise ValueError(f"Load {self.load_number} rate must be non-negative")
        for name in ("detention_pay", "layover_pay", "tonu_pay"):
            if getattr(self, name) < Decimal("0"):
                raise ValueError(f"Load {self.load_number} {name} must be non-negative")
        if self.stored_driver_pay is not None and self.stored_driver_pay < Decimal("0"):
            raise ValueError(
                f"Load {self.load_number} stored driver pay must be non-negative"
            )

    @property
    def recognition_date(self) -> date | None:
        return recognition_date(self.delivery_date, self.pickup_date)

    @property
    def is_delivered(self) -> bool:
        return self.status == LoadStatus.DELIVERED

    @property
    def accessorial_pay(self) -> Decimal:
        """Detention, layover and truck-ordered-not-used pay."""
        return self.detention_pay + self.layover_pay + self.tonu_pay


@dataclass(frozen=True)
class DriverProfile:
    """
    Pay terms for one driver.

    Guarantees:
        - pay_rate (for PERCENTAGE) and commission_rate are fractions in [0, 1].
        - effective_commission_rate falls back to ``1 - pay_rate``.
    """

    driver_id: UUID
    pay_type: PayType = PayType.PERCENTAGE
    pay_rate: Decimal | None = None
    per_mile_rate: Decimal | None = None
    flat_rate: Decimal | None = None
    commission_rate: Decimal | None = None

    def __post_init__(self) -> None:
        if self.pay_type == PayType.PERCENTAGE and self.pay_rate is not None:
            _check_fraction("pay_rate", self.pay_rate)
        if self.commission_rate is not None:
            _check_fraction("commission_rate", self.commission_rate)
        for name in ("per_mile_rate", "flat_rate"):
            value = getattr(self, name)
            if value is not None and value < Decimal("0"):
                raise ValueError(f"{name} must be non-negative, got {value}")

    @property
    def effective_commission_rate(self) -> Decimal | None:
        if self.commission_rate is not None:
            return self.commission_rate
        if self.pay_rate is not None:
            return Decimal("1") - self.pay_rate
        return None


def _check_fraction(name: str, value: Decimal) -> None:
    if value < Decimal("0") or value > Decimal("1"):
        raise ValueError(f"{name} must be between 0 and 1, got {value}")


@dataclass(frozen=True)
class ExpenseRecord:
    """
    An expense as the engines see it.

    Contract:
        ``load_id`` None means a floating expense (insurance, annual
        maintenance) that any settlement of the driver may recover.
    """

    id: UUID
    expense_type: ExpenseType
    amount: Decimal
    paid_by: PaidBy
    expense_date: date
    driver_id: UUID | None = None
    load_id: UUID | None = None
    sequence: int = 0
    description: str | None = None
    has_ledger: bool = False

    def __post_init__(self) -> None:
        if self.amount <= Decimal("0"):
            raise ValueError(f"Expense amount must be positive, got {self.amount}")

    @property
    def is_floating(self) -> bool:
        return self.load_id is None

    @property
    def is_recoverable(self) -> bool:
        """Company-paid and attributed to a driver: eligible for a ledger."""
        return self.paid_by == PaidBy.COMPANY and self.driver_id is not None
