"""
Scheduler-specific exceptions.

Construction errors are raised synchronously to the caller. Work failures
never surface here; they are contained by the worker that runs them.
"""


class SchedulerError(Exception):
    """Base exception for all scheduler errors."""
    pass


class InvalidOperationError(SchedulerError):
    """
    Raised when an operation violates the container lifecycle.

    Examples:
    - A state transition outside the allowed table
    - await_termination() before shutdown() / shutdown_now()
    - Registering work on a stopped SchedulerService
    """
    pass


class InvalidTaskError(SchedulerError, ValueError):
    """Raised when a recurring task is built without a callable or a recurrence."""
    pass


class InvalidRecurrenceError(SchedulerError, ValueError):
    """Raised for a recurrence that could never produce a timestamp."""
    pass


class PastStartTimeError(SchedulerError, ValueError):
    """Raised when a one-off task is registered with a start time in the past."""

    def __init__(self, start_time, now):
        self.start_time = start_time
        self.now = now
        super().__init__(
            f"'start_time' given is in the past: {start_time.isoformat()} "
            f"(now: {now.isoformat()})"
        )


class RejectedExecutionError(SchedulerError):
    """Raised when a callback is handed to a worker that has been shut down."""
    pass


class TaskInterrupted(SchedulerError):
    """
    Cooperative cancellation signal.

    Raised inside running work when shutdown_now() interrupts it. This is
    the designed way to stop, not an application error.
    """
    pass


class TaskNotFoundError(SchedulerError):
    """Raised when no registered recurring task has the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Task not found: {name}")


class CommandFailedError(SchedulerError):
    """Raised when a scheduled command exits with a non-zero status."""

    def __init__(self, command: list[str], exit_code: int):
        self.command = command
        self.exit_code = exit_code
        super().__init__(
            f"Command {' '.join(command)!r} exited with code {exit_code}"
        )
