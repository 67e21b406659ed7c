"""
Scheduler API schemas.

Read-only views of the registered tasks plus the stop controls.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class RecurrenceInfo(BaseModel):
    """Recurrence configuration and counters."""

    kind: str = Field(..., description="day_of_week, fixed_rate or fixed_delay")
    query_limit: int = Field(default=0, description="Maximum queries (<= 0 = unlimited)")
    times_queried: int = Field(default=0, description="Successful queries so far")
    exhausted: bool = Field(default=False, description="Whether the query limit is reached")
    days: Optional[List[str]] = Field(default=None, description="Weekdays (day_of_week only)")
    time_of_day: Optional[str] = Field(default=None, description="Time of day (day_of_week only)")
    first_start: Optional[str] = Field(default=None, description="Anchor time (ISO format)")
    interval: Optional[str] = Field(default=None, description="Interval, e.g. '15 minutes'")
    occurrences: Optional[int] = Field(default=None, description="Grid index (fixed_rate only)")


class TaskStatusResponse(BaseModel):
    """Status of one recurring task."""

    name: str = Field(..., description="Task name")
    state: str = Field(..., description="IDLE/SCHEDULED/RUNNING/SHUTTING_DOWN/TERMINATED")
    started: bool = Field(..., description="Whether the task is scheduled or running")
    next_execution_time: Optional[str] = Field(
        default=None, description="Target time of the pending firing (ISO format)"
    )
    run_count: int = Field(default=0, description="Completed firings")
    failure_count: int = Field(default=0, description="Firings that raised")
    last_error: Optional[str] = Field(default=None, description="Last failure message")
    failure_policy: str = Field(..., description="continue or abort")
    recurrence: RecurrenceInfo


class TaskListResponse(BaseModel):
    """Response for task list endpoint."""

    tasks: List[TaskStatusResponse] = Field(default_factory=list)
    total: int = Field(..., description="Number of registered recurring tasks")


class TaskShutdownRequest(BaseModel):
    """Request to shut a recurring task down."""

    force: bool = Field(
        default=False,
        description="Interrupt the running firing (shutdown_now) instead of letting it finish",
    )
    timeout: Optional[float] = Field(
        default=None,
        ge=0,
        le=300,
        description="Seconds to wait for the task to terminate (None = do not wait)",
    )


class TaskShutdownResponse(BaseModel):
    """Response from task shutdown."""

    name: str
    success: bool
    state: str
    terminated: Optional[bool] = Field(
        default=None, description="Whether the task terminated within the timeout"
    )
    message: Optional[str] = None


class SchedulerStopResponse(BaseModel):
    """Response from scheduler stop."""

    success: bool
    message: str


class SchedulerStatusResponse(BaseModel):
    """Response for scheduler status endpoint."""

    scheduler_running: bool = Field(..., description="Whether the scheduler accepts tasks")
    task_count: int = Field(..., description="Registered recurring tasks")
    active_task_count: int = Field(..., description="Recurring tasks still started")
    one_off_scheduled: int = Field(default=0, description="One-off tasks scheduled so far")
    one_off_pending: int = Field(default=0, description="One-off tasks not yet run")
    tasks: List[TaskStatusResponse] = Field(default_factory=list)
