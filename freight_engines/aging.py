"""
Module: freight_engines.aging
Responsibility:
    Age open customer invoices and total their outstanding balances by
    aging bucket.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The AR service converts invoice rows to ``OpenInvoice`` values and
    passes the as-of date explicitly.

Invariants enforced:
    - Purity: no clock access, no I/O.
    - Age counts from the delivery date, falling back to the issue date.
    - Paid invoices are never aged.
    - Summaries contain every bucket label, zero when empty.

Failure modes:
    - ValueError when an age does not fall into any configured bucket.

Usage:
    summary = ar_aging_summary(invoices, as_of=date(2024, 3, 31))
    summary["31-60"], summary["total"]
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID

from freight_kernel.domain.values import ZERO, to_money
from freight_kernel.logging_config import get_logger
from freight_engines.tracer import traced_engine

logger = get_logger("engines.aging")


@dataclass(frozen=True)
class AgeBucket:
    """
    Definition of an aging bucket.

    Guarantees:
        - min_days >= 0.
        - max_days >= min_days (when bounded).
    """

    name: str
    min_days: int
    max_days: int | None  # None = unbounded (e.g., 90+)

    def __post_init__(self) -> None:
        if self.min_days < 0:
            raise ValueError("min_days cannot be negative")
        if self.max_days is not None and self.max_days < self.min_days:
            raise ValueError("max_days cannot be less than min_days")

    def contains(self, age_days: int) -> bool:
        """Check if age falls within this bucket."""
        if age_days < self.min_days:
            return False
        if self.max_days is None:
            return True
        return age_days <= self.max_days


AR_BUCKETS: tuple[AgeBucket, ...] = (
    AgeBucket("0-30", 0, 30),
    AgeBucket("31-60", 31, 60),
    AgeBucket("61-90", 61, 90),
    AgeBucket("90+", 91, None),
)


@dataclass(frozen=True)
class OpenInvoice:
    """The slice of an invoice aging needs."""

    invoice_id: UUID
    invoice_number: str
    amount: Decimal
    amount_paid: Decimal
    issue_date: date
    delivery_date: date | None = None
    customer_ref: str | None = None

    @property
    def outstanding(self) -> Decimal:
        return to_money(self.amount - self.amount_paid)

    @property
    def is_paid(self) -> bool:
        return self.amount_paid >= self.amount

    @property
    def aging_date(self) -> date:
        return self.delivery_date or self.issue_date


@dataclass(frozen=True)
class AgedInvoice:
    invoice: OpenInvoice
    age_days: int
    bucket: AgeBucket


class AgingCalculator:
    """
    Calculate aging for open invoices.

    Contract:
        Pure functions -- all dates passed as parameters.
    Guarantees:
        - ``classify`` maps every age (negative ages included) to exactly
          one bucket of a well-formed bucket sequence.
    """

    def __init__(self, buckets: Sequence[AgeBucket] | None = None):
        self.buckets: tuple[AgeBucket, ...] = tuple(buckets or AR_BUCKETS)

    def calculate_age(self, document_date: date, as_of_date: date) -> int:
        """Age in days (negative if the document is dated after as_of_date)."""
        return (as_of_date - document_date).days

    def classify(self, age_days: int) -> AgeBucket:
        """
        Classify age into a bucket.

        Negative ages (future-dated documents) map to the first bucket.

        Raises:
            ValueError: If age doesn't fit any bucket.
        """
        if age_days < 0:
            logger.debug("age_classification_negative", extra={"age_days": age_days})
            return self.buckets[0]

        for bucket in self.buckets:
            if bucket.contains(age_days):
                return bucket

        logger.warning("age_classification_no_bucket", extra={
            "age_days": age_days,
            "bucket_count": len(self.buckets),
        })
        raise ValueError(f"Age {age_days} does not fit any bucket")

    def age_invoice(self, invoice: OpenInvoice, as_of: date) -> AgedInvoice | None:
        """Aged view of an invoice, or None when it is fully paid."""
        if invoice.is_paid:
            return None
        age = self.calculate_age(invoice.aging_date, as_of)
        return AgedInvoice(invoice=invoice, age_days=age, bucket=self.classify(age))

    def summarize(self, invoices: Iterable[OpenInvoice], as_of: date) -> dict[str, Decimal]:
        totals: dict[str, Decimal] = {b.name: ZERO for b in self.buckets}
        aged_count = 0
        for invoice in invoices:
            aged = self.age_invoice(invoice, as_of)
            if aged is None:
                continue
            aged_count += 1
            totals[aged.bucket.name] += invoice.outstanding
        summary = {name: to_money(total) for name, total in totals.items()}
        summary["total"] = to_money(sum(totals.values(), ZERO))

        logger.info("ar_aging_summarized", extra={
            "as_of": as_of.isoformat(),
            "invoice_count": aged_count,
            "total_outstanding": str(summary["total"]),
        })
        return summary


def aging_bucket(
    invoice: OpenInvoice,
    as_of: date,
    buckets: Sequence[AgeBucket] | None = None,
) -> str | None:
    """Bucket label for an invoice, or None if it is paid."""
    aged = AgingCalculator(buckets).age_invoice(invoice, as_of)
    return aged.bucket.name if aged else None


@traced_engine("ar_aging", "1.0", fingerprint_fields=("invoices", "as_of"))
def ar_aging_summary(
    invoices: Sequence[OpenInvoice],
    as_of: date,
    buckets: Sequence[AgeBucket] | None = None,
) -> dict[str, Decimal]:
    """
    Outstanding balance (amount - paid) per bucket label, plus ``total``.

    Every bucket label is present; paid invoices are excluded.
    """
    return AgingCalculator(buckets).summarize(invoices, as_of)
