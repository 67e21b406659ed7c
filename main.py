"""
Recurring task scheduler - command line runner.

Runs an external command on a recurrence until interrupted (SIGINT /
SIGTERM) or until the recurrence is exhausted.
"""

import argparse
import os
import signal
import sys
import time
from datetime import datetime, time as time_of_day
from typing import Optional

from dotenv import load_dotenv

from src.infra.logging_config import setup_logging
from src.scheduler import (
    CommandTask,
    RecurringTaskContainer,
    SchedulerService,
    TimeUnit,
    Weekday,
    floor_datetime,
    now,
)


shutdown_requested = False


load_dotenv()

log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logger = setup_logging(log_level)


def signal_handler(signum, frame):
    """SIGINT / SIGTERM handler - stop after the main loop notices."""
    global shutdown_requested
    signal_name = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
    logger.info(f"{signal_name} received - stopping scheduler")
    shutdown_requested = True


def parse_args(argv: Optional[list[str]] = None):
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Run a command on a recurring schedule",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Every 30 seconds, on a fixed grid
  python main.py --command "echo tick" --every 30

  # 10 minutes after each run completes, 5 runs at most
  python main.py --command "./backup.sh" --delay 10 --unit minutes --limit 5

  # Mondays and Thursdays at 09:00
  python main.py --command "./report.sh" --weekly mon,thu --at 09:00
        """
    )
    parser.add_argument(
        "--command",
        type=str,
        required=True,
        help="Command line to execute on each run"
    )
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument(
        "--every",
        type=int,
        default=None,
        help="Fixed-rate interval: start times are this many units apart"
    )
    mode.add_argument(
        "--delay",
        type=int,
        default=None,
        help="Fixed-delay interval: wait this many units after each run completes"
    )
    mode.add_argument(
        "--weekly",
        type=str,
        default=None,
        help="Comma-separated weekdays, e.g. 'mon,wed,fri'"
    )
    parser.add_argument(
        "--unit",
        type=str,
        choices=[unit.value for unit in TimeUnit],
        default=TimeUnit.SECONDS.value,
        help="Unit of --every / --delay. Default=seconds"
    )
    parser.add_argument(
        "--at",
        type=str,
        default="00:00",
        help="Time of day for --weekly (HH:MM[:SS]). Default=00:00"
    )
    parser.add_argument(
        "--start",
        type=str,
        default=None,
        help="First start time for --every / --delay (ISO format). Default=now"
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=0,
        help="Maximum number of runs for --every / --delay. Default=0 (unlimited)"
    )
    parser.add_argument(
        "--name",
        type=str,
        default="command",
        help="Task name used in logs"
    )
    return parser.parse_args(argv)


def parse_first_start(value: Optional[str]) -> datetime:
    """ISO start time in the scheduler timezone; now when not given."""
    current = now()
    if value is None:
        return floor_datetime(current)
    start = datetime.fromisoformat(value)
    if start.tzinfo is None:
        start = start.replace(tzinfo=current.tzinfo)
    return start


def register_task(service: SchedulerService, args) -> RecurringTaskContainer:
    """Register the recurring task described by the CLI arguments."""
    task = CommandTask(args.command)
    unit = TimeUnit(args.unit)

    if args.weekly is not None:
        days = {Weekday.parse(day) for day in args.weekly.split(",") if day.strip()}
        return service.schedule_weekly(
            args.name, task, days, time_of_day.fromisoformat(args.at)
        )

    first_start = parse_first_start(args.start)
    if args.every is not None:
        return service.schedule_fixed_rate(
            args.name, task, first_start, args.every, unit, query_limit=args.limit
        )
    return service.schedule_fixed_delay(
        args.name, task, first_start, args.delay, unit, query_limit=args.limit
    )


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Process exit code
    """
    args = parse_args(argv)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    service = SchedulerService()
    try:
        container = register_task(service, args)
    except ValueError as e:
        logger.error(f"Invalid schedule: {e}")
        return 2

    next_time = container.next_execution_time
    if next_time is not None:
        logger.info(f"Task '{container.name}' first run at {next_time.isoformat()}")

    while not shutdown_requested and container.has_started():
        time.sleep(1)

    if not shutdown_requested:
        logger.info(f"Task '{container.name}' finished its recurrence")

    service.stop()
    service.await_termination(timeout=10)

    logger.info(
        f"Runs: {container.run_count}, failures: {container.failure_count}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
