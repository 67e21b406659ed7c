"""
Recurring task container.

Wraps one unit of work and one Recurrence. Instead of a native periodic
timer, the container schedules a single firing on its own worker, and
each firing runs the work and then schedules the next one. The delay is
recomputed from the recurrence every cycle.

Lifecycle (guarded by a lock):

    IDLE ──start()──> SCHEDULED ──fire──> RUNNING ──reschedule──> SCHEDULED
      │                   │                  │
      │               shutdown()         shutdown()
      │                   └──> SHUTTING_DOWN <──┘
      │                             │ worker drained / await_termination()
      └──────── shutdown() ───────> TERMINATED <── shutdown_now(), exhaustion,
                                                   failure with ABORT policy

TERMINATED is sticky: a container is never restarted.
"""

import logging
import os
import threading
from datetime import datetime, time
from enum import Enum
from typing import Callable, Iterable, Optional, Union

from .errors import InvalidOperationError, InvalidTaskError, TaskInterrupted
from .recurrences import DayOfWeekRecurrence, FixedRateRecurrence, Recurrence
from .timeutil import TimeUnit, Weekday, delay_seconds, now
from .worker import SingleWorkerScheduler


logger = logging.getLogger(__name__)

# "continue" keeps the recurrence after a failed run, "abort" ends it
SCHEDULER_FAILURE_POLICY = os.getenv("SCHEDULER_FAILURE_POLICY", "continue").lower()


class ContainerState(str, Enum):
    """Recurring task lifecycle states."""

    IDLE = "IDLE"
    SCHEDULED = "SCHEDULED"
    RUNNING = "RUNNING"
    SHUTTING_DOWN = "SHUTTING_DOWN"
    TERMINATED = "TERMINATED"


class FailurePolicy(str, Enum):
    """What a failed run does to the recurrence."""

    CONTINUE = "continue"
    ABORT = "abort"


_TRANSITIONS = {
    ContainerState.IDLE: {ContainerState.SCHEDULED, ContainerState.TERMINATED},
    ContainerState.SCHEDULED: {
        ContainerState.RUNNING,
        ContainerState.SHUTTING_DOWN,
        ContainerState.TERMINATED,
    },
    ContainerState.RUNNING: {
        ContainerState.SCHEDULED,
        ContainerState.SHUTTING_DOWN,
        ContainerState.TERMINATED,
    },
    ContainerState.SHUTTING_DOWN: {ContainerState.TERMINATED},
    ContainerState.TERMINATED: set(),
}

_STARTED_STATES = (
    ContainerState.SCHEDULED,
    ContainerState.RUNNING,
    ContainerState.SHUTTING_DOWN,
)


ErrorHook = Callable[["RecurringTaskContainer", Exception], None]


class RecurringTaskContainer:
    """
    A task executed repeatedly according to a Recurrence.

    Runs of one container never overlap: the next firing is scheduled only
    after the previous run has returned.
    """

    def __init__(
        self,
        name: str,
        task: Callable[[], None],
        recurrence: Recurrence,
        clock: Optional[Callable[[], datetime]] = None,
        failure_policy: Optional[Union[FailurePolicy, str]] = None,
        on_error: Optional[ErrorHook] = None,
    ):
        """
        Initialize a recurring task.

        Args:
            name: Task name (not required to be unique)
            task: Zero-argument callable run on each firing
            recurrence: Recurrence owned by this container
            clock: Source of the current time (default: timeutil.now)
            failure_policy: CONTINUE or ABORT (default: SCHEDULER_FAILURE_POLICY)
            on_error: Called with (container, exception) after a failed run

        Raises:
            InvalidTaskError: If task is missing or not callable, or recurrence is missing
        """
        if task is None:
            raise InvalidTaskError("Illegal attempt to create a recurring task with no task.")
        if not callable(task):
            raise InvalidTaskError(f"Recurring task '{name}' is not callable: {task!r}")
        if recurrence is None:
            raise InvalidTaskError("Illegal attempt to create a recurring task with no recurrence.")

        self.name = name
        self._task = task
        self._recurrence = recurrence
        self._clock = clock or now
        self._failure_policy = FailurePolicy(failure_policy or SCHEDULER_FAILURE_POLICY)
        self._on_error = on_error
        self._worker = SingleWorkerScheduler(name=f"recurring-{name}")

        self._lock = threading.Lock()
        self._state = ContainerState.IDLE
        self._next_execution_time: Optional[datetime] = None
        self._last_target: Optional[datetime] = None

        self.run_count = 0
        self.failure_count = 0
        self.last_error: Optional[str] = None

    @classmethod
    def weekly(
        cls,
        name: str,
        task: Callable[[], None],
        days: Iterable[Union[Weekday, int]],
        time_of_day: time = time(0, 0),
        **kwargs,
    ) -> "RecurringTaskContainer":
        """Create a task running on the given weekdays at time_of_day."""
        return cls(name, task, DayOfWeekRecurrence(days, time_of_day), **kwargs)

    @classmethod
    def fixed_rate(
        cls,
        name: str,
        task: Callable[[], None],
        first_start: datetime,
        amount: int,
        unit: TimeUnit = TimeUnit.SECONDS,
        query_limit: int = 0,
        **kwargs,
    ) -> "RecurringTaskContainer":
        """Create a task running every `amount` units from first_start."""
        recurrence = FixedRateRecurrence(first_start, amount, unit, query_limit)
        return cls(name, task, recurrence, **kwargs)

    # =========================================================================
    # State
    # =========================================================================

    @property
    def recurrence(self) -> Recurrence:
        return self._recurrence

    @property
    def failure_policy(self) -> FailurePolicy:
        return self._failure_policy

    @property
    def state(self) -> ContainerState:
        """Current lifecycle state."""
        with self._lock:
            if self._state == ContainerState.SHUTTING_DOWN and self._worker.is_terminated:
                self._transition(ContainerState.TERMINATED)
            return self._state

    @property
    def next_execution_time(self) -> Optional[datetime]:
        """Time the pending firing is aimed at, if any."""
        return self._next_execution_time

    def has_started(self) -> bool:
        """Whether the task is scheduled, running, or still draining after shutdown()."""
        return self.state in _STARTED_STATES

    def _transition(self, new_state: ContainerState) -> None:
        """Move to new_state. Caller holds the lock."""
        if new_state not in _TRANSITIONS[self._state]:
            raise InvalidOperationError(
                f"Task '{self.name}': invalid transition "
                f"{self._state.value} -> {new_state.value}"
            )
        logger.debug(f"Task '{self.name}': {self._state.value} -> {new_state.value}")
        self._state = new_state

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """
        Schedule the first firing.

        No-op once shutdown() or shutdown_now() has been called, and when
        the task is already scheduled or running.
        """
        with self._lock:
            if self._state in (ContainerState.SHUTTING_DOWN, ContainerState.TERMINATED):
                logger.debug(f"Task '{self.name}' is shut down, start() ignored")
                return
            if self._state != ContainerState.IDLE:
                logger.warning(f"Task '{self.name}' already started")
                return

            logger.info(f"Starting recurring task '{self.name}' ({self._recurrence.kind})")
            self._schedule_next()

    def shutdown(self) -> None:
        """
        Stop the recurrence gracefully.

        A firing that is running or already queued still completes, but no
        new firing is scheduled.
        """
        with self._lock:
            if self._state == ContainerState.IDLE:
                self._transition(ContainerState.TERMINATED)
            elif self._state in (ContainerState.SCHEDULED, ContainerState.RUNNING):
                self._transition(ContainerState.SHUTTING_DOWN)
                logger.info(f"Shutting down recurring task '{self.name}'")
            self._worker.shutdown()

    def shutdown_now(self) -> None:
        """
        Stop the recurrence immediately.

        Drops the pending firing and interrupts a running one. Does not wait
        for the running work to notice the interruption.
        """
        with self._lock:
            if self._state != ContainerState.TERMINATED:
                self._transition(ContainerState.TERMINATED)
                logger.info(f"Recurring task '{self.name}' shut down now")
            self._next_execution_time = None
            self._worker.shutdown_now()

    def await_termination(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the worker is idle after a shutdown.

        Args:
            timeout: Maximum seconds to wait (None = wait forever)

        Returns:
            True if the worker drained in time, False on timeout

        Raises:
            InvalidOperationError: If neither shutdown() nor shutdown_now() was called
        """
        with self._lock:
            if self._state not in (ContainerState.SHUTTING_DOWN, ContainerState.TERMINATED):
                raise InvalidOperationError(
                    f"Task '{self.name}': await_termination() requires "
                    f"shutdown() or shutdown_now() first (state {self._state.value})"
                )

        terminated = self._worker.await_termination(timeout)

        with self._lock:
            if self._state != ContainerState.TERMINATED:
                self._transition(ContainerState.TERMINATED)
        if not terminated:
            logger.warning(f"Task '{self.name}' did not terminate within {timeout}s")
        return terminated

    # =========================================================================
    # Scheduling
    # =========================================================================

    def _schedule_next(self) -> None:
        """
        Ask the recurrence for the next time and schedule one firing.

        Caller holds the lock. The reference time never goes back before the
        previous target, so a firing released early by whole-second
        truncation cannot pick the same slot twice.
        """
        current = self._clock()
        reference = current
        if self._last_target is not None and self._last_target > current:
            reference = self._last_target

        next_time = self._recurrence.next_execution_time(reference)
        if next_time is None:
            logger.info(f"Recurrence of task '{self.name}' exhausted, ending task")
            self._end()
            return

        delay = delay_seconds(current, next_time)
        self._worker.schedule(self._fire, delay)
        self._next_execution_time = next_time
        self._last_target = next_time
        self._transition(ContainerState.SCHEDULED)

        logger.debug(
            f"Task '{self.name}' scheduled for {next_time.isoformat()} (in {delay}s)"
        )

    def _fire(self) -> None:
        """Worker callback: run the task once, then schedule the next firing."""
        with self._lock:
            if self._state == ContainerState.SCHEDULED:
                self._transition(ContainerState.RUNNING)
            elif self._state != ContainerState.SHUTTING_DOWN:
                return
            self._next_execution_time = None

        error: Optional[Exception] = None
        try:
            self._task()
        except TaskInterrupted:
            logger.info(f"Task '{self.name}' interrupted")
        except Exception as e:
            error = e
            self._handle_failure(e)
        except BaseException:
            # Propagates out of the worker loop and ends the worker thread
            with self._lock:
                self.run_count += 1
                if self._state != ContainerState.TERMINATED:
                    logger.critical(f"Task '{self.name}' killed its worker, ending task")
                    self._end()
            raise

        with self._lock:
            self.run_count += 1
            if self._state != ContainerState.RUNNING:
                return
            if error is not None and self._failure_policy == FailurePolicy.ABORT:
                logger.error(f"Task '{self.name}' aborted after failure")
                self._end()
                return
            try:
                self._schedule_next()
            except Exception as e:
                logger.exception(f"Task '{self.name}' could not be rescheduled: {e}")
                self._end()

    def _end(self) -> None:
        """
        Terminate and let the worker drain. Caller holds the lock.

        Reached from IDLE when the recurrence is exhausted on the first query
        of start(), and from RUNNING or SHUTTING_DOWN after a firing.
        """
        self._next_execution_time = None
        self._transition(ContainerState.TERMINATED)
        self._worker.shutdown()

    def _handle_failure(self, error: Exception) -> None:
        """Record and report a failed run."""
        logger.exception(f"Task '{self.name}' failed: {error}")
        with self._lock:
            self.failure_count += 1
            self.last_error = f"{type(error).__name__}: {error}"

        if self._on_error is not None:
            try:
                self._on_error(self, error)
            except Exception as hook_error:
                logger.error(f"Error in on_error hook of task '{self.name}': {hook_error}")

    # =========================================================================
    # Status
    # =========================================================================

    def to_dict(self) -> dict:
        """Status snapshot for the API."""
        next_time = self._next_execution_time
        return {
            "name": self.name,
            "state": self.state.value,
            "started": self.has_started(),
            "next_execution_time": next_time.isoformat() if next_time else None,
            "run_count": self.run_count,
            "failure_count": self.failure_count,
            "last_error": self.last_error,
            "failure_policy": self._failure_policy.value,
            "recurrence": self._recurrence.describe(),
        }

    def __repr__(self) -> str:
        return f"RecurringTaskContainer(name={self.name!r}, state={self._state.value})"
