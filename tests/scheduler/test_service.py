"""
SchedulerService tests.

Covers:
- One-off tasks (past start rejected, delay flooring, execution)
- Recurring task registration and lookup by name
- stop() and await_termination()
- Status snapshot
"""

from datetime import time, timedelta

import pytest

from src.scheduler import SchedulerService
from src.scheduler.container import ContainerState
from src.scheduler.errors import (
    InvalidOperationError,
    InvalidTaskError,
    PastStartTimeError,
    TaskNotFoundError,
)
from src.scheduler.recurrences import FixedDelayRecurrence, FixedRateRecurrence
from src.scheduler.timeutil import TimeUnit, Weekday, floor_datetime, now

from .conftest import FIXED_DATETIME, WAIT_TIMEOUT, RecordingTask, wait_for


IN_ONE_HOUR = FIXED_DATETIME + timedelta(hours=1)


# =============================================================================
# One-off Tasks
# =============================================================================


class TestScheduleOnce:
    """One-off task scheduling."""

    def test_past_start_time_rejected(self, service):
        with pytest.raises(PastStartTimeError) as exc_info:
            service.schedule_once("late", RecordingTask(), FIXED_DATETIME - timedelta(seconds=1))

        assert exc_info.value.now == FIXED_DATETIME
        assert isinstance(exc_info.value, ValueError)

    def test_non_callable_rejected(self, service):
        with pytest.raises(InvalidTaskError):
            service.schedule_once("bad", None, IN_ONE_HOUR)

    def test_start_now_runs_immediately(self, service):
        task = RecordingTask()

        delay = service.schedule_once("now", task, FIXED_DATETIME)

        assert delay == 0
        assert wait_for(lambda: task.calls == 1)
        assert task.threads == ["one-off-tasks"]

    def test_delay_floors_sub_second_part(self, service):
        start_time = FIXED_DATETIME + timedelta(minutes=5, milliseconds=750)

        delay = service.schedule_once("later", RecordingTask(), start_time)

        assert delay == 300
        assert service.get_status()["one_off_pending"] == 1

    def test_naive_start_time_is_in_clock_zone(self, service):
        delay = service.schedule_once("naive", RecordingTask(), IN_ONE_HOUR.replace(tzinfo=None))

        assert delay == 3600

    def test_naive_past_start_time_rejected(self, service):
        naive_past = (FIXED_DATETIME - timedelta(minutes=1)).replace(tzinfo=None)

        with pytest.raises(PastStartTimeError):
            service.schedule_once("late", RecordingTask(), naive_past)

    def test_one_off_tasks_share_one_worker(self, service):
        first = RecordingTask(block=True)
        second = RecordingTask()

        service.schedule_once("first", first, FIXED_DATETIME)
        service.schedule_once("second", second, FIXED_DATETIME)

        assert first.started.wait(WAIT_TIMEOUT)
        assert second.calls == 0
        first.release()
        assert wait_for(lambda: second.calls == 1)

    def test_failing_one_off_does_not_block_next(self, service):
        failing = RecordingTask(fail_on={1})
        task = RecordingTask()

        service.schedule_once("failing", failing, FIXED_DATETIME)
        service.schedule_once("next", task, FIXED_DATETIME)

        assert wait_for(lambda: task.calls == 1)
        assert failing.calls == 1


# =============================================================================
# Recurring Tasks
# =============================================================================


class TestRecurringRegistration:
    """Recurring task registration."""

    def test_schedule_weekly(self, service):
        container = service.schedule_weekly(
            "report", RecordingTask(), {Weekday.WEDNESDAY}, time(8, 0)
        )

        assert container.state == ContainerState.SCHEDULED
        assert container.next_execution_time == FIXED_DATETIME.replace(day=21, hour=8)
        assert service.list_tasks() == [container]

    def test_schedule_fixed_rate_floors_first_start(self, service):
        first_start = IN_ONE_HOUR + timedelta(milliseconds=750)

        container = service.schedule_fixed_rate(
            "rate", RecordingTask(), first_start, 30, TimeUnit.MINUTES, query_limit=10
        )

        assert isinstance(container.recurrence, FixedRateRecurrence)
        assert container.recurrence.first_start == IN_ONE_HOUR
        assert container.next_execution_time == IN_ONE_HOUR

    def test_schedule_fixed_delay(self, service):
        container = service.schedule_fixed_delay(
            "delay", RecordingTask(), IN_ONE_HOUR, 10, TimeUnit.MINUTES, query_limit=2
        )

        assert isinstance(container.recurrence, FixedDelayRecurrence)
        assert container.recurrence.query_limit == 2
        assert container.next_execution_time == IN_ONE_HOUR

    def test_naive_first_start_takes_clock_zone(self, service):
        naive = IN_ONE_HOUR.replace(tzinfo=None)

        rate = service.schedule_fixed_rate("rate", RecordingTask(), naive, 1, TimeUnit.HOURS)
        delay = service.schedule_fixed_delay("delay", RecordingTask(), naive, 1, TimeUnit.HOURS)

        for container in (rate, delay):
            assert container.recurrence.first_start == IN_ONE_HOUR
            assert container.recurrence.first_start.tzinfo is FIXED_DATETIME.tzinfo
            assert container.next_execution_time == IN_ONE_HOUR

    def test_kwargs_reach_container(self, service):
        container = service.schedule_fixed_rate(
            "abort", RecordingTask(), IN_ONE_HOUR, 1, TimeUnit.HOURS, failure_policy="abort"
        )

        assert container.failure_policy.value == "abort"

    def test_invalid_schedule_raises_before_registering(self, service):
        with pytest.raises(ValueError):
            service.schedule_fixed_rate("bad", RecordingTask(), IN_ONE_HOUR, 0)

        assert service.list_tasks() == []

    def test_fixed_rate_runs_on_real_clock(self):
        svc = SchedulerService()
        task = RecordingTask()
        try:
            container = svc.schedule_fixed_rate(
                "tick", task, floor_datetime(now()), 1, TimeUnit.SECONDS, query_limit=2
            )

            assert wait_for(lambda: container.state == ContainerState.TERMINATED)
            assert task.calls == 2
        finally:
            svc.stop()


class TestLookup:
    """Lookup by name."""

    def test_find_tasks_returns_all_with_name(self, service):
        first = service.schedule_weekly("dup", RecordingTask(), {Weekday.MONDAY})
        second = service.schedule_weekly("dup", RecordingTask(), {Weekday.FRIDAY})
        service.schedule_weekly("other", RecordingTask(), {Weekday.FRIDAY})

        assert service.find_tasks("dup") == [first, second]
        assert service.get_task("dup") is first

    def test_find_tasks_unknown_name(self, service):
        assert service.find_tasks("missing") == []

    def test_get_task_unknown_name(self, service):
        with pytest.raises(TaskNotFoundError, match="missing"):
            service.get_task("missing")


# =============================================================================
# Stop
# =============================================================================


class TestStop:
    """stop() and await_termination()."""

    def test_stop_terminates_everything(self, service):
        one_off = RecordingTask()
        weekly = service.schedule_weekly("weekly", RecordingTask(), {Weekday.TUESDAY})
        rate = service.schedule_fixed_rate("rate", RecordingTask(), IN_ONE_HOUR, 5)
        service.schedule_once("once", one_off, IN_ONE_HOUR)

        service.stop()

        assert service.is_running is False
        assert service.await_termination(WAIT_TIMEOUT) is True
        assert weekly.state == ContainerState.TERMINATED
        assert rate.state == ContainerState.TERMINATED
        assert service.get_status()["one_off_pending"] == 0
        assert one_off.calls == 0

    def test_stop_interrupts_running_task(self, service):
        task = RecordingTask(block=True)
        service.schedule_once("blocking", task, FIXED_DATETIME)
        assert task.started.wait(WAIT_TIMEOUT)

        service.stop()
        task.release()

        assert service.await_termination(WAIT_TIMEOUT) is True

    def test_registration_after_stop_rejected(self, service):
        service.stop()

        with pytest.raises(InvalidOperationError):
            service.schedule_weekly("late", RecordingTask(), {Weekday.MONDAY})
        with pytest.raises(InvalidOperationError):
            service.schedule_once("late", RecordingTask(), IN_ONE_HOUR)

    def test_await_termination_requires_stop(self, service):
        with pytest.raises(InvalidOperationError):
            service.await_termination(0)


# =============================================================================
# Status
# =============================================================================


class TestStatus:
    """get_status() snapshot."""

    def test_status_counts(self, service):
        service.schedule_weekly("weekly", RecordingTask(), {Weekday.TUESDAY})
        stopped = service.schedule_fixed_rate("rate", RecordingTask(), IN_ONE_HOUR, 5)
        stopped.shutdown_now()
        service.schedule_once("once", RecordingTask(), IN_ONE_HOUR)

        status = service.get_status()

        assert status["scheduler_running"] is True
        assert status["task_count"] == 2
        assert status["active_task_count"] == 1
        assert status["one_off_scheduled"] == 1
        assert status["one_off_pending"] == 1
        assert [task["name"] for task in status["tasks"]] == ["weekly", "rate"]
