"""
Values -- money rounding and date-to-period bucketing.

Responsibility:
    The two primitive utilities every other layer leans on: deterministic
    rounding of monetary amounts to cents, and assignment of a load to a
    reporting period by its recognition date.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Money is always ``Decimal``; floats are rejected (binary floats cannot
      represent cents exactly).
    - Rounding is ROUND_HALF_UP to two places, never banker's rounding.
    - Revenue period assignment keys off the delivery date, falling back to
      the pickup date only when delivery is absent.

Failure modes:
    - ValueError on non-numeric or float amounts.
    - ValueError on an unknown period granularity.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

GRANULARITIES = ("week", "month", "quarter", "year")


def to_money(value: Decimal | int | str) -> Decimal:
    """
    Quantize an amount to cents (ROUND_HALF_UP).

    Raises:
        ValueError: If value is a float or not a valid number.
    """
    if isinstance(value, float):
        raise ValueError(f"Float amounts are not accepted: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def sum_money(amounts: Iterable[Decimal]) -> Decimal:
    """Sum amounts and quantize the total to cents."""
    total = ZERO
    for amount in amounts:
        total += amount
    return to_money(total)


def recognition_date(delivery_date: date | None, pickup_date: date | None) -> date | None:
    """Date a load is recognized on: delivery, else pickup, else None."""
    if delivery_date is not None:
        return delivery_date
    return pickup_date


@dataclass(frozen=True)
class Period:
    """
    Inclusive date range used for reporting and settlement windows.

    Guarantees:
        - start <= end.
    """

    start: date
    end: date
    label: str = ""

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(
                f"Period start {self.start} must not be after end {self.end}"
            )

    def contains(self, day: date | None) -> bool:
        if day is None:
            return False
        return self.start <= day <= self.end


def period_for(day: date, granularity: str = "month") -> Period:
    """
    Bucket a date into its enclosing period.

    Weeks run Monday through Sunday and are labelled with the ISO week.
    """
    if granularity == "week":
        start = day - timedelta(days=day.weekday())
        iso_year, iso_week, _ = day.isocalendar()
        return Period(start, start + timedelta(days=6), f"{iso_year}-W{iso_week:02d}")
    if granularity == "month":
        last = calendar.monthrange(day.year, day.month)[1]
        return Period(
            date(day.year, day.month, 1),
            date(day.year, day.month, last),
            f"{day.year}-{day.month:02d}",
        )
    if granularity == "quarter":
        quarter = (day.month - 1) // 3 + 1
        first_month = (quarter - 1) * 3 + 1
        last_month = first_month + 2
        last = calendar.monthrange(day.year, last_month)[1]
        return Period(
            date(day.year, first_month, 1),
            date(day.year, last_month, last),
            f"{day.year}-Q{quarter}",
        )
    if granularity == "year":
        return Period(date(day.year, 1, 1), date(day.year, 12, 31), str(day.year))
    raise ValueError(
        f"Unknown period granularity {granularity!r}; expected one of {GRANULARITIES}"
    )
