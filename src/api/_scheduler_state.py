"""
Scheduler state management for API integration.

Provides singleton access to the SchedulerService instance.
Initialized during FastAPI lifespan; tasks are registered by the
embedding application, not over HTTP.

Usage:
    from ._scheduler_state import get_scheduler_service, init_scheduler_service

    # In lifespan:
    init_scheduler_service()

    # In routers:
    service = get_scheduler_service()
"""

from typing import Optional

from src.scheduler.service import SchedulerService


# Global scheduler service instance
_scheduler_service: Optional[SchedulerService] = None


def init_scheduler_service(service: Optional[SchedulerService] = None) -> SchedulerService:
    """
    Initialize the scheduler service singleton.

    Args:
        service: Pre-built service to expose (default: a new SchedulerService)

    Returns:
        The active SchedulerService
    """
    global _scheduler_service

    if _scheduler_service is not None:
        return _scheduler_service

    _scheduler_service = service or SchedulerService()
    return _scheduler_service


def get_scheduler_service() -> SchedulerService:
    """
    Get the scheduler service singleton.

    Raises:
        RuntimeError: If scheduler service not initialized
    """
    if _scheduler_service is None:
        raise RuntimeError(
            "Scheduler service not initialized. "
            "Ensure init_scheduler_service() is called during startup."
        )

    return _scheduler_service


def shutdown_scheduler_service() -> None:
    """
    Shutdown the scheduler service.

    Called during FastAPI lifespan shutdown. Stops every task.
    """
    global _scheduler_service

    if _scheduler_service is not None:
        if _scheduler_service.is_running:
            _scheduler_service.stop()

        _scheduler_service = None
