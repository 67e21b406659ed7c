"""
Scheduler router for scheduler control APIs.

Endpoints under /scheduler/* to inspect registered tasks, shut a single
task down, and stop the whole scheduler. Tasks themselves are Python
callables and are registered in-process, never over HTTP.
"""

from fastapi import APIRouter, HTTPException

from src.scheduler.errors import TaskNotFoundError
from ..schemas.scheduler import (
    SchedulerStatusResponse,
    SchedulerStopResponse,
    TaskListResponse,
    TaskShutdownRequest,
    TaskShutdownResponse,
    TaskStatusResponse,
)
from .._scheduler_state import get_scheduler_service


router = APIRouter()


@router.get("/status", response_model=SchedulerStatusResponse)
async def get_scheduler_status():
    """
    Get scheduler status.

    Returns:
    - scheduler_running: Whether the scheduler still accepts tasks
    - task_count / active_task_count: Registered and still-started recurring tasks
    - one_off_scheduled / one_off_pending: One-off task counters
    - tasks: Per-task status
    """
    service = get_scheduler_service()
    return SchedulerStatusResponse(**service.get_status())


@router.get("/tasks", response_model=TaskListResponse)
async def list_tasks():
    """List registered recurring tasks in registration order."""
    service = get_scheduler_service()
    tasks = [TaskStatusResponse(**task.to_dict()) for task in service.list_tasks()]
    return TaskListResponse(tasks=tasks, total=len(tasks))


@router.get("/tasks/{name}", response_model=TaskStatusResponse)
async def get_task(name: str):
    """
    Get a recurring task by name.

    Names are not unique; the first registered match is returned.
    """
    service = get_scheduler_service()
    try:
        task = service.get_task(name)
    except TaskNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return TaskStatusResponse(**task.to_dict())


@router.post("/tasks/{name}/shutdown", response_model=TaskShutdownResponse)
def shutdown_task(name: str, request: TaskShutdownRequest = TaskShutdownRequest()):
    """
    Shut down every recurring task with this name.

    - force=false: the running firing completes, no further firing
    - force=true: the running firing is interrupted

    With a timeout, waits for the task to terminate. Sync endpoint: the
    wait runs in the threadpool, not on the event loop.
    """
    service = get_scheduler_service()
    tasks = service.find_tasks(name)
    if not tasks:
        raise HTTPException(status_code=404, detail=f"Task not found: {name}")

    terminated = None
    for task in tasks:
        if request.force:
            task.shutdown_now()
        else:
            task.shutdown()

    if request.timeout is not None:
        terminated = all(task.await_termination(request.timeout) for task in tasks)

    return TaskShutdownResponse(
        name=name,
        success=True,
        state=tasks[0].state.value,
        terminated=terminated,
        message=f"{len(tasks)} task(s) {'interrupted' if request.force else 'shutting down'}",
    )


@router.post("/stop", response_model=SchedulerStopResponse)
async def stop_scheduler():
    """
    Stop the scheduler: interrupt every task and cancel future executions.

    Idempotent: if the scheduler is already stopped, returns success.
    """
    service = get_scheduler_service()

    if not service.is_running:
        return SchedulerStopResponse(
            success=True,
            message="Scheduler is already stopped",
        )

    service.stop()
    return SchedulerStopResponse(
        success=True,
        message="Scheduler stopped successfully",
    )
