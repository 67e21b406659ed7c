"""
Single-worker delayed scheduler.

The primitive every recurring task is built on: run a callback once, N
whole seconds from now, on one dedicated thread. At most one callback runs
at a time; callbacks that come due while another runs wait their turn.

Shutdown:
- shutdown(): refuse new callbacks, let queued and running ones finish
- shutdown_now(): drop queued callbacks, interrupt the running one

Interruption is cooperative. Work running on a worker thread observes it
through sleep(), is_interrupted() and check_interrupted() from this module.
"""

import heapq
import itertools
import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

from .errors import RejectedExecutionError, TaskInterrupted


logger = logging.getLogger(__name__)

# Interrupt event of the worker owning the current thread, if any
_local = threading.local()


def _current_interrupt() -> Optional[threading.Event]:
    return getattr(_local, "interrupt", None)


def is_interrupted() -> bool:
    """Whether the worker running the current thread has been shut down forcefully."""
    event = _current_interrupt()
    return event is not None and event.is_set()


def check_interrupted() -> None:
    """Raise TaskInterrupted if the current worker has been interrupted."""
    if is_interrupted():
        raise TaskInterrupted("Task interrupted by shutdown_now()")


def sleep(seconds: float) -> None:
    """
    Interruptible sleep.

    On a worker thread, wakes up early and raises TaskInterrupted when the
    worker is shut down forcefully. Elsewhere it is a plain time.sleep().
    """
    event = _current_interrupt()
    if event is None:
        time.sleep(seconds)
        return
    if event.wait(seconds):
        raise TaskInterrupted("Task interrupted by shutdown_now()")


class WorkerState(str, Enum):
    """Worker lifecycle states."""

    RUNNING = "RUNNING"
    SHUTDOWN = "SHUTDOWN"
    TERMINATED = "TERMINATED"


class SingleWorkerScheduler:
    """
    One thread, one execution slot, delayed single-shot callbacks.

    The thread is started lazily by the first schedule() call and exits
    once the worker is shut down and its queue is empty.
    """

    def __init__(self, name: str = "scheduler-worker"):
        self.name = name

        self._condition = threading.Condition()
        self._queue: list[tuple[float, int, Callable[[], None]]] = []
        self._sequence = itertools.count()
        self._thread: Optional[threading.Thread] = None
        self._shutdown = False
        self._interrupt = threading.Event()
        self._terminated = threading.Event()

    @property
    def state(self) -> WorkerState:
        if self._terminated.is_set():
            return WorkerState.TERMINATED
        if self._shutdown:
            return WorkerState.SHUTDOWN
        return WorkerState.RUNNING

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    @property
    def is_terminated(self) -> bool:
        return self._terminated.is_set()

    @property
    def pending_count(self) -> int:
        with self._condition:
            return len(self._queue)

    def schedule(self, callback: Callable[[], None], delay_seconds: int) -> None:
        """
        Run `callback` once after `delay_seconds` seconds.

        Raises:
            RejectedExecutionError: If the worker has been shut down
        """
        with self._condition:
            if self._shutdown:
                raise RejectedExecutionError(f"Worker '{self.name}' has been shut down")

            due = time.monotonic() + max(0, delay_seconds)
            heapq.heappush(self._queue, (due, next(self._sequence), callback))

            if self._thread is None:
                self._thread = threading.Thread(target=self._run, daemon=True, name=self.name)
                self._thread.start()

            self._condition.notify_all()

    def shutdown(self) -> None:
        """Stop accepting callbacks; queued and running callbacks still complete."""
        with self._condition:
            if self._shutdown:
                return
            self._shutdown = True
            logger.debug(f"Worker '{self.name}' shutting down ({len(self._queue)} pending)")
            if self._thread is None:
                self._terminated.set()
            self._condition.notify_all()

    def shutdown_now(self) -> list[Callable[[], None]]:
        """
        Stop accepting callbacks, drop queued ones and interrupt the running one.

        Does not wait for the running callback to return.

        Returns:
            The callbacks that were queued and will never run
        """
        with self._condition:
            self._shutdown = True
            dropped = [entry[2] for entry in self._queue]
            self._queue.clear()
            self._interrupt.set()
            logger.debug(f"Worker '{self.name}' shut down now ({len(dropped)} dropped)")
            if self._thread is None:
                self._terminated.set()
            self._condition.notify_all()
        return dropped

    def await_termination(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the worker has drained after a shutdown.

        Args:
            timeout: Maximum seconds to wait (None = wait forever)

        Returns:
            True if the worker terminated, False if the timeout elapsed
        """
        return self._terminated.wait(timeout)

    def _next_due(self) -> Optional[Callable[[], None]]:
        """Wait for the next callback to come due; None once drained after shutdown."""
        with self._condition:
            while True:
                if not self._queue:
                    if self._shutdown:
                        return None
                    self._condition.wait()
                    continue

                remaining = self._queue[0][0] - time.monotonic()
                if remaining <= 0:
                    return heapq.heappop(self._queue)[2]
                self._condition.wait(remaining)

    def _run(self) -> None:
        """Worker loop."""
        _local.interrupt = self._interrupt
        logger.debug(f"Worker '{self.name}' started")

        try:
            while True:
                callback = self._next_due()
                if callback is None:
                    break

                try:
                    callback()
                except TaskInterrupted:
                    logger.debug(f"Worker '{self.name}': callback interrupted")
                except Exception as e:
                    logger.error(f"Worker '{self.name}': callback failed: {e}", exc_info=True)
        finally:
            self._terminated.set()
            logger.debug(f"Worker '{self.name}' terminated")
