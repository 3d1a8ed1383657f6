"""
SequenceService -- monotonic sequence allocation via atomic counter rows.

Responsibility:
    Provides strictly increasing sequence numbers per (tenant, counter
    type, year) for invoice and settlement numbers.  Uses a dedicated
    counter table incremented by a single atomic statement
    (``UPDATE ... SET current_value = current_value + 1 RETURNING``) so
    concurrent callers can never read the same value.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by the AR numbering helpers for invoice and settlement numbers.

Invariants enforced:
    - The counter row is the sole source of truth.  Numbers are never
      derived from counting or max()-ing existing documents, so deleting
      a document can never cause a number to be reissued.
    - The first value of a (tenant, type, year) counter is the floor.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry of the atomic UPDATE).

Audit relevance:
    Allocation is logged at DEBUG level with counter key and value.  Gaps
    from rolled-back transactions are acceptable; duplicates are not.
"""

from sqlalchemy import BigInteger, Integer, String, UniqueConstraint, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from freight_kernel.db.base import Base
from freight_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row holds the last value issued for one (tenant, type, year).
    """

    __tablename__ = "sequence_counters"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "counter_type", "year", name="uq_sequence_counter_key"
        ),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # e.g. "invoice", "settlement"
    counter_type: Mapped[str] = mapped_column(String(50), nullable=False)

    year: Mapped[int] = mapped_column(Integer, nullable=False)

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Returns the next strictly increasing integer for a counter key.
        The increment becomes durable when the caller's transaction
        commits.

    Guarantees:
        - Concurrency safety: the increment and read are one statement;
          the row lock it takes serializes concurrent allocations for the
          same key until the holder commits or rolls back.
        - First call for a key returns ``floor``.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT guarantee gap-free numbering across rollbacks.

    Usage:
        seq = SequenceService(session).next_value(tenant_id, "invoice", 2024)
    """

    INVOICE = "invoice"
    SETTLEMENT = "settlement"

    def __init__(self, session: Session):
        self._session = session

    def _increment(self, tenant_id: str, counter_type: str, year: int) -> int | None:
        return self._session.execute(
            update(SequenceCounter)
            .where(
                SequenceCounter.tenant_id == tenant_id,
                SequenceCounter.counter_type == counter_type,
                SequenceCounter.year == year,
            )
            .values(current_value=SequenceCounter.current_value + 1)
            .returning(SequenceCounter.current_value)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()

    def next_value(
        self,
        tenant_id: str,
        counter_type: str,
        year: int,
        floor: int = 1000,
    ) -> int:
        """
        Get the next value for a counter key.

        Preconditions:
            - The caller is within an active database transaction.

        Postconditions:
            - Returns an integer >= ``floor`` strictly greater than any
              value previously returned for this key.

        Args:
            tenant_id: Owning tenant.
            counter_type: Counter family, e.g. ``SequenceService.INVOICE``.
            year: Calendar year the number belongs to.
            floor: First value issued for a fresh key.

        Returns:
            The next sequence value.
        """
        value = self._increment(tenant_id, counter_type, year)
        if value is None:
            # First use of this key; another session may be creating it too.
            # Use a savepoint so we don't roll back other work in the transaction.
            savepoint = self._session.begin_nested()
            try:
                self._session.add(
                    SequenceCounter(
                        tenant_id=tenant_id,
                        counter_type=counter_type,
                        year=year,
                        current_value=floor,
                    )
                )
                self._session.flush()
                savepoint.commit()
                value = floor
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={
                        "tenant_id": tenant_id,
                        "counter_type": counter_type,
                        "year": year,
                    },
                )
                savepoint.rollback()
                value = self._increment(tenant_id, counter_type, year)
                if value is None:
                    raise

        logger.debug(
            "sequence_allocated",
            extra={
                "tenant_id": tenant_id,
                "counter_type": counter_type,
                "year": year,
                "value": value,
            },
        )
        return value

    def advance_to(
        self,
        tenant_id: str,
        counter_type: str,
        year: int,
        value: int,
        floor: int = 1000,
    ) -> int:
        """
        Make sure the counter never issues ``value`` or anything below it.

        Used when a document number is written from outside the counter
        (an imported invoice).  The counter only moves forward; a ``value``
        below the current one is a no-op.

        Returns:
            The counter's current value after the call.
        """
        target = max(value, floor - 1)
        key = (
            SequenceCounter.tenant_id == tenant_id,
            SequenceCounter.counter_type == counter_type,
            SequenceCounter.year == year,
        )
        self._session.execute(
            update(SequenceCounter)
            .where(*key, SequenceCounter.current_value < target)
            .values(current_value=target)
            .execution_options(synchronize_session=False)
        )
        current = self.current_value(tenant_id, counter_type, year)
        if current is None:
            savepoint = self._session.begin_nested()
            try:
                self._session.add(
                    SequenceCounter(
                        tenant_id=tenant_id,
                        counter_type=counter_type,
                        year=year,
                        current_value=target,
                    )
                )
                self._session.flush()
                savepoint.commit()
                current = target
            except IntegrityError:
                savepoint.rollback()
                return self.advance_to(tenant_id, counter_type, year, value, floor)

        logger.info(
            "sequence_advanced",
            extra={
                "tenant_id": tenant_id,
                "counter_type": counter_type,
                "year": year,
                "value": current,
            },
        )
        return current

    def current_value(self, tenant_id: str, counter_type: str, year: int) -> int | None:
        """
        Get the last issued value without incrementing.

        Returns:
            Current value, or None if the counter doesn't exist yet.
        """
        return self._session.execute(
            select(SequenceCounter.current_value).where(
                SequenceCounter.tenant_id == tenant_id,
                SequenceCounter.counter_type == counter_type,
                SequenceCounter.year == year,
            )
        ).scalar_one_or_none()
