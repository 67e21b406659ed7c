"""
Recurrence rules for recurring tasks.

A recurrence is a timestamp provider: given the current time it yields the
next time a task should run, or None once it is exhausted. The current time
is always passed in explicitly; nothing here reads the clock.

Variants:
- DayOfWeekRecurrence: fixed time of day on a set of weekdays
- FixedRateRecurrence: fixed grid anchored on the first start time
- FixedDelayRecurrence: fixed delay after the moment of the query

Query limit (shared by all variants):
- query_limit <= 0: unlimited
- query_limit > 0: at most that many successful queries, then exhausted
- Exhaustion is permanent
"""

from abc import ABC, abstractmethod
from datetime import datetime, time, timedelta
from typing import Iterable, Optional, Union

from .errors import InvalidRecurrenceError
from .timeutil import TimeUnit, Weekday, add_interval, at_time_of_day, elapsed_seconds


class Recurrence(ABC):
    """
    Base class of the recurrence variants.

    Subclasses implement _compute_next(); query counting and the
    exhaustion rule live here so every variant enforces them the same way.
    """

    kind: str = "recurrence"

    def __init__(self, query_limit: int = 0):
        self.query_limit = query_limit
        self.times_queried = 0

    @property
    def exhausted(self) -> bool:
        """Whether the query limit has been reached."""
        return self.query_limit > 0 and self.times_queried >= self.query_limit

    def next_execution_time(self, now: datetime) -> Optional[datetime]:
        """
        Obtain the next execution time as seen from `now`.

        Args:
            now: The current time

        Returns:
            The next execution time, or None if the query limit has been
            reached. Every non-None result counts as one query.
        """
        if self.exhausted:
            return None
        next_time = self._compute_next(now)
        self.times_queried += 1
        return next_time

    @abstractmethod
    def _compute_next(self, now: datetime) -> datetime:
        ...

    def describe(self) -> dict:
        """Configuration and counters, for status reporting."""
        return {
            "kind": self.kind,
            "query_limit": self.query_limit,
            "times_queried": self.times_queried,
            "exhausted": self.exhausted,
        }


class DayOfWeekRecurrence(Recurrence):
    """
    Recurrence falling on a set of weekdays, at the same time of day.

    Never exhausts. The returned time is always strictly after `now`.
    """

    kind = "day_of_week"

    def __init__(
        self,
        days: Iterable[Union[Weekday, int]],
        time_of_day: time = time(0, 0),
    ):
        super().__init__(query_limit=0)
        self.days = frozenset(Weekday(day) for day in days)
        if not self.days:
            raise InvalidRecurrenceError("DayOfWeekRecurrence needs at least one weekday")
        self.time_of_day = time_of_day

    def _compute_next(self, now: datetime) -> datetime:
        execution_time_if_today = at_time_of_day(now, self.time_of_day)
        next_time = execution_time_if_today + timedelta(days=7)

        # Closest configured weekday from now
        for day in self.days:
            difference_days = (day - now.weekday()) % 7
            potential_next = execution_time_if_today + timedelta(days=difference_days)
            if now < potential_next < next_time:
                next_time = potential_next

        return next_time

    def describe(self) -> dict:
        info = super().describe()
        info["days"] = [day.name for day in sorted(self.days)]
        info["time_of_day"] = self.time_of_day.isoformat()
        return info


class _IntervalRecurrence(Recurrence):
    """Shared configuration of the anchored interval variants."""

    def __init__(
        self,
        first_start: datetime,
        amount: int,
        unit: TimeUnit = TimeUnit.SECONDS,
        query_limit: int = 0,
    ):
        super().__init__(query_limit=query_limit)
        if amount <= 0:
            raise InvalidRecurrenceError(f"Interval must be positive, got {amount}")
        if first_start.tzinfo is None:
            raise InvalidRecurrenceError(
                f"first_start must be timezone-aware, got {first_start.isoformat()}"
            )
        self.first_start = first_start
        self.amount = amount
        self.unit = TimeUnit(unit)

    def describe(self) -> dict:
        info = super().describe()
        info["first_start"] = self.first_start.isoformat()
        info["interval"] = f"{self.amount} {self.unit.value}"
        return info


class FixedRateRecurrence(_IntervalRecurrence):
    """
    Recurrence where the start times of two executions are a fixed interval apart.

    Returned times always sit on the grid first_start + k * interval. When
    several slots were missed, k jumps to the first slot after `now`;
    missed slots are skipped, never replayed.
    """

    kind = "fixed_rate"

    def __init__(
        self,
        first_start: datetime,
        amount: int,
        unit: TimeUnit = TimeUnit.SECONDS,
        query_limit: int = 0,
    ):
        super().__init__(first_start, amount, unit, query_limit)
        self.occurrences = 0

    def _slot(self, index: int) -> datetime:
        return add_interval(self.first_start, self.amount * index, self.unit)

    def _compute_next(self, now: datetime) -> datetime:
        if self.first_start > now:
            return self.first_start

        step = self.unit.fixed_seconds
        if step is not None:
            # Jump close to now; DST shifts keep the estimate at or below the answer
            elapsed = elapsed_seconds(self.first_start, now)
            estimate = int(elapsed // (step * self.amount)) - 1
            self.occurrences = max(self.occurrences, estimate)

        next_time = self._slot(self.occurrences)
        while next_time <= now:
            self.occurrences += 1
            next_time = self._slot(self.occurrences)
        return next_time

    def describe(self) -> dict:
        info = super().describe()
        info["occurrences"] = self.occurrences
        return info


class FixedDelayRecurrence(_IntervalRecurrence):
    """
    Recurrence where the next execution is a fixed delay after the query.

    The container queries after each run completes, so the real gap between
    two runs is the interval plus the run time of the previous execution.
    """

    kind = "fixed_delay"

    def _compute_next(self, now: datetime) -> datetime:
        if self.first_start > now:
            return self.first_start
        return add_interval(now, self.amount, self.unit)
