"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock so that engine and service code never call
    ``datetime.now()`` or ``date.today()`` directly.  Engines receive
    "today" as an explicit parameter; the service layer obtains it from a
    Clock.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).

Failure modes:
    None.  Clocks always return a value.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        All services that need the current date must receive a Clock
        instance via constructor injection.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime``.
        - ``today()`` returns the calendar date of ``now()``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    def today(self) -> date:
        """Get the current calendar date."""
        return self.now().date()


class SystemClock(Clock):
    """
    Production clock that returns actual system time.

    Non-goals:
        Not suitable for deterministic replay or testing.
    """

    def __init__(self, tz: timezone = timezone.utc):
        self._tz = tz

    def now(self) -> datetime:
        return datetime.now(self._tz)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until
          ``advance()`` or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | date | None = None):
        """
        Initialize with optional fixed time.

        Args:
            fixed_time: A datetime, or a date (taken at noon UTC).  If None,
                a default epoch time is used.
        """
        self._fixed_time = self._coerce(fixed_time) if fixed_time else datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._advance = timedelta(0)

    @staticmethod
    def _coerce(value: datetime | date) -> datetime:
        if isinstance(value, datetime):
            return value
        return datetime(value.year, value.month, value.day, 12, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._fixed_time + self._advance

    def set_time(self, value: datetime | date) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = self._coerce(value)
        self._advance = timedelta(0)

    def advance(self, days: int = 0, seconds: int = 0) -> None:
        """Advance the clock by the given number of days and seconds."""
        self._advance += timedelta(days=days, seconds=seconds)
