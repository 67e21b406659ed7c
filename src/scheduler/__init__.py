"""
Recurring Task Scheduler Core Module.

- Recurrences compute the next execution time from an explicit "now"
- RecurringTaskContainer re-arms a single-shot firing after every run
- SingleWorkerScheduler is the one-thread delayed executor underneath
- SchedulerService registers tasks and relays stop signals
"""

from .timeutil import (
    TimeUnit,
    Weekday,
    now,
    floor_datetime,
    add_interval,
    delay_seconds,
)
from .errors import (
    SchedulerError,
    InvalidOperationError,
    InvalidTaskError,
    InvalidRecurrenceError,
    PastStartTimeError,
    RejectedExecutionError,
    TaskInterrupted,
    TaskNotFoundError,
    CommandFailedError,
)
from .recurrences import (
    Recurrence,
    DayOfWeekRecurrence,
    FixedRateRecurrence,
    FixedDelayRecurrence,
)
from .worker import (
    SingleWorkerScheduler,
    WorkerState,
    sleep,
    is_interrupted,
    check_interrupted,
)
from .container import RecurringTaskContainer, ContainerState, FailurePolicy
from .executor import CommandTask
from .service import SchedulerService

__all__ = [
    # Time
    "TimeUnit",
    "Weekday",
    "now",
    "floor_datetime",
    "add_interval",
    "delay_seconds",
    # Errors
    "SchedulerError",
    "InvalidOperationError",
    "InvalidTaskError",
    "InvalidRecurrenceError",
    "PastStartTimeError",
    "RejectedExecutionError",
    "TaskInterrupted",
    "TaskNotFoundError",
    "CommandFailedError",
    # Recurrences
    "Recurrence",
    "DayOfWeekRecurrence",
    "FixedRateRecurrence",
    "FixedDelayRecurrence",
    # Worker
    "SingleWorkerScheduler",
    "WorkerState",
    "sleep",
    "is_interrupted",
    "check_interrupted",
    # Container
    "RecurringTaskContainer",
    "ContainerState",
    "FailurePolicy",
    # Executor
    "CommandTask",
    # Service
    "SchedulerService",
]
