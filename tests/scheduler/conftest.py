"""
Scheduler Test Fixtures.

Base fixtures:
  - Mocked clock at fixed time
  - Recording task that counts and optionally blocks
  - Always-due recurrence for zero-delay firings

Recurrence math is tested through the explicit `now` argument. Container
tests use real worker threads; every firing is due immediately so they
never wait on whole-second delays.
"""

import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Generator, Optional

import pytest

from src.scheduler import (
    Recurrence,
    RecurringTaskContainer,
    SchedulerService,
)


# Fixed time for deterministic tests (a Monday)
FIXED_DATETIME = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)

# Upper bound for any wait on a worker thread
WAIT_TIMEOUT = 5.0


class MockClock:
    """
    Mock clock for deterministic time control.

    - Starts at a fixed epoch
    - Advances only when explicitly ticked
    """

    def __init__(self, start_time: datetime = FIXED_DATETIME):
        self._current = start_time
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        return self.now()

    def now(self) -> datetime:
        with self._lock:
            return self._current

    def tick(self, seconds: int = 1) -> None:
        """Advance time by specified seconds."""
        with self._lock:
            self._current += timedelta(seconds=seconds)

    def set(self, time: datetime) -> None:
        """Set time to specific value."""
        with self._lock:
            self._current = time


class AlwaysDueRecurrence(Recurrence):
    """Recurrence whose next time is always the time it is asked about."""

    kind = "always_due"

    def __init__(self, query_limit: int = 0):
        super().__init__(query_limit=query_limit)
        self.queries: list[datetime] = []

    def _compute_next(self, now: datetime) -> datetime:
        self.queries.append(now)
        return now


class RecordingTask:
    """
    Task that records its runs.

    Optionally blocks each run until release() is called, and optionally
    raises on chosen run numbers (1-based).
    """

    def __init__(
        self,
        block: bool = False,
        fail_on: Optional[set[int]] = None,
        body: Optional[Callable[[], None]] = None,
    ):
        self.calls = 0
        self.threads: list[str] = []
        self.started = threading.Event()
        self._release = threading.Event()
        self._block = block
        self._fail_on = fail_on or set()
        self._body = body
        self._lock = threading.Lock()
        self._concurrent = 0
        self.max_concurrent = 0

    def __call__(self) -> None:
        with self._lock:
            self.calls += 1
            call_number = self.calls
            self.threads.append(threading.current_thread().name)
            self._concurrent += 1
            self.max_concurrent = max(self.max_concurrent, self._concurrent)
        try:
            self.started.set()
            if self._block:
                self._release.wait(WAIT_TIMEOUT)
            if self._body is not None:
                self._body()
            if call_number in self._fail_on:
                raise RuntimeError(f"run {call_number} failed")
        finally:
            with self._lock:
                self._concurrent -= 1

    def release(self) -> None:
        self._release.set()


def wait_for(predicate: Callable[[], bool], timeout: float = WAIT_TIMEOUT) -> bool:
    """Poll until predicate() is true or the timeout elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def mock_clock() -> MockClock:
    """Create a mock clock at fixed time."""
    return MockClock()


@pytest.fixture
def make_container() -> Generator[Callable[..., RecurringTaskContainer], None, None]:
    """
    Factory fixture for containers.

    Every container created is shut down forcefully after the test.
    """
    created: list[RecurringTaskContainer] = []

    def _create(
        task: Optional[Callable[[], None]] = None,
        recurrence: Optional[Recurrence] = None,
        name: str = "test-task",
        **kwargs,
    ) -> RecurringTaskContainer:
        container = RecurringTaskContainer(
            name,
            task if task is not None else RecordingTask(),
            recurrence if recurrence is not None else AlwaysDueRecurrence(),
            **kwargs,
        )
        created.append(container)
        return container

    yield _create

    for container in created:
        container.shutdown_now()
        container.await_termination(WAIT_TIMEOUT)


@pytest.fixture
def service(mock_clock: MockClock) -> Generator[SchedulerService, None, None]:
    """SchedulerService on the mock clock, stopped after the test."""
    svc = SchedulerService(clock=mock_clock)
    yield svc
    if svc.is_running:
        svc.stop()
