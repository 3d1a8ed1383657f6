"""
Injectable time source.

Services read "now" through a ``Clock`` so settlement numbering (which takes
its year from the commit date) and the default aging date can be pinned in
tests.  Engines never read time; they receive dates as arguments.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta, timezone

# Midday so that converting to any US timezone stays on the same calendar day.
_DEFAULT_INSTANT = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware current instant."""

    def today(self) -> date:
        """Current UTC calendar date."""
        return self.now().astimezone(timezone.utc).date()


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Accepts a ``date`` (pinned to noon UTC) or an aware ``datetime``.
    """

    def __init__(self, at: date | datetime | None = None):
        self._instant = _coerce(at) if at is not None else _DEFAULT_INSTANT

    def now(self) -> datetime:
        return self._instant

    def set_time(self, at: date | datetime) -> None:
        self._instant = _coerce(at)

    def advance(self, *, days: int = 0, seconds: int = 0) -> None:
        self._instant += timedelta(days=days, seconds=seconds)


def _coerce(at: date | datetime) -> datetime:
    if isinstance(at, datetime):
        if at.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware datetime")
        return at
    return datetime.combine(at, time(12, 0), tzinfo=timezone.utc)
