"""
Pure domain layer.

Value objects and DTOs with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the injectable Clock itself)
- I/O

All domain objects are immutable and deterministic.
"""

from freight_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from freight_kernel.domain.dtos import (
    CalculationWarning,
    DriverProfile,
    DriverType,
    ExpenseRecord,
    ExpenseType,
    LedgerStatus,
    LoadRecord,
    LoadStatus,
    PaidBy,
    PayType,
    WarningCode,
)
from freight_kernel.domain.values import Period, period_for, recognition_date, to_money

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "CalculationWarning",
    "DriverProfile",
    "DriverType",
    "ExpenseRecord",
    "ExpenseType",
    "LedgerStatus",
    "LoadRecord",
    "LoadStatus",
    "PaidBy",
    "PayType",
    "WarningCode",
    "Period",
    "period_for",
    "recognition_date",
    "to_money",
]
