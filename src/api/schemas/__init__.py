"""
API Schemas package.

Pydantic models for request/response validation.
"""

from .scheduler import (
    RecurrenceInfo,
    TaskStatusResponse,
    TaskListResponse,
    TaskShutdownRequest,
    TaskShutdownResponse,
    SchedulerStopResponse,
    SchedulerStatusResponse,
)

__all__ = [
    "RecurrenceInfo",
    "TaskStatusResponse",
    "TaskListResponse",
    "TaskShutdownRequest",
    "TaskShutdownResponse",
    "SchedulerStopResponse",
    "SchedulerStatusResponse",
]
