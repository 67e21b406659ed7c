"""
Scheduler Service - registrar for recurring and one-off tasks.

Holds the recurring task containers, schedules one-off work on a shared
single worker, and relays stop signals. All scheduling logic lives in the
containers and recurrences; this service only wires them.

Execution has whole-second precision: sub-second parts of start times are
floored to 0. Each recurring task runs on its own thread, so two tasks
touching the same resources must coordinate themselves; no collision
detection is done here.

Usage:
    service = SchedulerService()
    service.schedule_weekly("report", build_report, {Weekday.MONDAY}, time(9, 0))
    service.schedule_once("cleanup", cleanup, start_time)
    # ...
    service.stop()
"""

import logging
import threading
import time as _time
from datetime import datetime, time
from typing import Callable, Iterable, Optional, Union

from .container import RecurringTaskContainer
from .errors import (
    InvalidOperationError,
    InvalidTaskError,
    PastStartTimeError,
    TaskNotFoundError,
)
from .recurrences import FixedDelayRecurrence, FixedRateRecurrence
from .timeutil import TimeUnit, Weekday, floor_datetime, now
from .worker import SingleWorkerScheduler


logger = logging.getLogger(__name__)


class SchedulerService:
    """
    Registry of scheduled tasks.

    Provides:
    - Registration of recurring tasks (weekly, fixed rate, fixed delay)
    - One-off tasks at an absolute start time
    - Forceful stop of everything registered
    - Lookup by task name
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize SchedulerService.

        Args:
            clock: Source of the current time, shared with every container
                created through this service (default: timeutil.now)
        """
        self._clock = clock or now
        self._recurring_tasks: list[RecurringTaskContainer] = []
        self._one_off_worker = SingleWorkerScheduler(name="one-off-tasks")
        self._one_off_count = 0
        self._lock = threading.Lock()
        self._stopped = False

    @property
    def is_running(self) -> bool:
        """Whether the service still accepts tasks."""
        return not self._stopped

    # =========================================================================
    # Recurring Tasks
    # =========================================================================

    def add_task(self, container: RecurringTaskContainer) -> RecurringTaskContainer:
        """
        Start a recurring task and register it.

        Raises:
            InvalidOperationError: If the service has been stopped
        """
        with self._lock:
            self._ensure_running()
            container.start()
            self._recurring_tasks.append(container)

        logger.info(f"Registered recurring task '{container.name}'")
        return container

    def schedule_weekly(
        self,
        name: str,
        task: Callable[[], None],
        days: Iterable[Union[Weekday, int]],
        time_of_day: time = time(0, 0),
        **kwargs,
    ) -> RecurringTaskContainer:
        """
        Schedule a task on a set of weekdays.

        Args:
            name: Task name
            task: The work to execute
            days: Days of the week to execute the task
            time_of_day: Time within each day to begin execution
            **kwargs: Passed to RecurringTaskContainer (failure_policy, on_error)
        """
        container = RecurringTaskContainer.weekly(
            name, task, days, time_of_day, clock=self._clock, **kwargs
        )
        return self.add_task(container)

    def schedule_fixed_rate(
        self,
        name: str,
        task: Callable[[], None],
        first_start: datetime,
        amount: int,
        unit: TimeUnit = TimeUnit.SECONDS,
        query_limit: int = 0,
        **kwargs,
    ) -> RecurringTaskContainer:
        """
        Schedule a task whose start times are `amount` units apart.

        Args:
            name: Task name
            task: The work to execute
            first_start: Date and time of the first execution (naive = scheduler zone)
            amount: Interval between two start times
            unit: Time unit of amount
            query_limit: Maximum number of executions (<= 0 = unlimited)
        """
        first_start = floor_datetime(self._localize(first_start), TimeUnit.SECONDS)
        recurrence = FixedRateRecurrence(first_start, amount, unit, query_limit)
        container = RecurringTaskContainer(name, task, recurrence, clock=self._clock, **kwargs)
        return self.add_task(container)

    def schedule_fixed_delay(
        self,
        name: str,
        task: Callable[[], None],
        first_start: datetime,
        delay: int,
        unit: TimeUnit = TimeUnit.SECONDS,
        query_limit: int = 0,
        **kwargs,
    ) -> RecurringTaskContainer:
        """
        Schedule a task with a fixed delay between runs.

        The delay is the time between the end of one execution and the
        start of the next.

        Args:
            name: Task name
            task: The work to execute
            first_start: Date and time of the first execution (naive = scheduler zone)
            delay: Delay between the end of an execution and the next start
            unit: Time unit of delay
            query_limit: Maximum number of executions (<= 0 = unlimited)
        """
        first_start = floor_datetime(self._localize(first_start), TimeUnit.SECONDS)
        recurrence = FixedDelayRecurrence(first_start, delay, unit, query_limit)
        container = RecurringTaskContainer(name, task, recurrence, clock=self._clock, **kwargs)
        return self.add_task(container)

    # =========================================================================
    # One-off Tasks
    # =========================================================================

    def schedule_once(
        self,
        name: str,
        task: Callable[[], None],
        start_time: datetime,
    ) -> int:
        """
        Schedule a task to run once.

        Args:
            name: Task name
            task: The work to execute
            start_time: Date and time to begin execution (naive = scheduler zone)

        Returns:
            Delay in whole seconds before the task runs

        Raises:
            InvalidTaskError: If task is not callable
            PastStartTimeError: If start_time is in the past
            InvalidOperationError: If the service has been stopped
        """
        if task is None or not callable(task):
            raise InvalidTaskError(f"One-off task '{name}' is not callable: {task!r}")

        current = self._clock()
        start_time = self._localize(start_time)
        if start_time < current:
            raise PastStartTimeError(start_time, current)

        start_time = floor_datetime(start_time, TimeUnit.SECONDS)
        delay = max(0, int(start_time.timestamp()) - int(current.timestamp()))

        def run_once() -> None:
            logger.info(f"Running one-off task '{name}'")
            task()
            logger.info(f"One-off task '{name}' completed")

        with self._lock:
            self._ensure_running()
            self._one_off_worker.schedule(run_once, delay)
            self._one_off_count += 1

        logger.info(f"Scheduled one-off task '{name}' at {start_time.isoformat()} (in {delay}s)")
        return delay

    # =========================================================================
    # Lookup
    # =========================================================================

    def find_tasks(self, name: str) -> list[RecurringTaskContainer]:
        """All registered recurring tasks with this name."""
        with self._lock:
            return [task for task in self._recurring_tasks if task.name == name]

    def get_task(self, name: str) -> RecurringTaskContainer:
        """
        First registered recurring task with this name.

        Raises:
            TaskNotFoundError: If no task has this name
        """
        matches = self.find_tasks(name)
        if not matches:
            raise TaskNotFoundError(name)
        return matches[0]

    def list_tasks(self) -> list[RecurringTaskContainer]:
        """All registered recurring tasks, in registration order."""
        with self._lock:
            return list(self._recurring_tasks)

    # =========================================================================
    # Shutdown
    # =========================================================================

    def stop(self) -> None:
        """
        Halt everything.

        Interrupts running tasks and cancels every future execution, one-off
        and recurring. The service accepts no tasks afterwards.
        """
        with self._lock:
            self._stopped = True
            tasks = list(self._recurring_tasks)

        logger.info(f"Stopping scheduler ({len(tasks)} recurring tasks)")
        self._one_off_worker.shutdown_now()
        for task in tasks:
            task.shutdown_now()
        logger.info("Scheduler stopped")

    def await_termination(self, timeout: Optional[float] = None) -> bool:
        """
        After stop(), wait until every worker has drained.

        Args:
            timeout: Maximum seconds to wait in total (None = wait forever)

        Returns:
            True if everything terminated in time
        """
        if not self._stopped:
            raise InvalidOperationError("await_termination() requires stop() first")

        deadline = None if timeout is None else _time.monotonic() + timeout

        def remaining() -> Optional[float]:
            if deadline is None:
                return None
            return max(0.0, deadline - _time.monotonic())

        terminated = self._one_off_worker.await_termination(remaining())
        for task in self.list_tasks():
            terminated = task.await_termination(remaining()) and terminated
        return terminated

    def _localize(self, start: datetime) -> datetime:
        """Naive start times are taken as wall-clock times in the clock's zone."""
        if start.tzinfo is None:
            return start.replace(tzinfo=self._clock().tzinfo)
        return start

    def _ensure_running(self) -> None:
        if self._stopped:
            raise InvalidOperationError("Scheduler has been stopped")

    # =========================================================================
    # Status
    # =========================================================================

    def get_status(self) -> dict:
        """
        Get scheduler status.

        Returns:
            Dict with running flag, counts and per-task status
        """
        tasks = self.list_tasks()
        return {
            "scheduler_running": self.is_running,
            "task_count": len(tasks),
            "active_task_count": sum(1 for task in tasks if task.has_started()),
            "one_off_scheduled": self._one_off_count,
            "one_off_pending": self._one_off_worker.pending_count,
            "tasks": [task.to_dict() for task in tasks],
        }
