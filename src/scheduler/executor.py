"""
Command execution for scheduled tasks.

CommandTask is a unit of work that runs an external command. It is a plain
zero-argument callable, so it can be handed to any container or to
SchedulerService.schedule_once().

Cancellation: the child process is polled, and terminated as soon as the
owning worker is interrupted by shutdown_now().
"""

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Optional, Union

from .errors import CommandFailedError, TaskInterrupted
from .worker import is_interrupted


logger = logging.getLogger(__name__)


class CommandTask:
    """
    Runs a command to completion on every call.

    Output goes to `log_path` when given, otherwise it is inherited from
    the scheduler process.
    """

    def __init__(
        self,
        command: Union[str, list[str]],
        cwd: Optional[Path] = None,
        log_path: Optional[Path] = None,
        poll_interval: float = 0.2,
        terminate_timeout: float = 5.0,
    ):
        """
        Initialize command task.

        Args:
            command: Command line, as a list or a shell-like string
            cwd: Working directory for the command
            log_path: File receiving stdout and stderr (appended)
            poll_interval: Seconds between completion / interruption checks
            terminate_timeout: Seconds to wait after terminate() before kill()
        """
        self.command = shlex.split(command) if isinstance(command, str) else list(command)
        if not self.command:
            raise ValueError("CommandTask needs a command")
        self.cwd = cwd
        self.log_path = log_path
        self.poll_interval = poll_interval
        self.terminate_timeout = terminate_timeout
        self._process: Optional[subprocess.Popen] = None

    def __call__(self) -> None:
        """
        Run the command once.

        Raises:
            CommandFailedError: If the command exits with a non-zero code
            TaskInterrupted: If the worker was interrupted while it ran
        """
        logger.info(f"Executing command: {' '.join(self.command)}")

        if self.log_path is not None:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a") as log_file:
                exit_code = self._run(stdout=log_file, stderr=subprocess.STDOUT)
        else:
            exit_code = self._run(stdout=None, stderr=None)

        if exit_code != 0:
            raise CommandFailedError(self.command, exit_code)
        logger.debug(f"Command completed: {' '.join(self.command)}")

    def _run(self, stdout, stderr) -> int:
        self._process = subprocess.Popen(
            self.command,
            cwd=self.cwd,
            stdout=stdout,
            stderr=stderr,
        )
        try:
            while True:
                try:
                    return self._process.wait(timeout=self.poll_interval)
                except subprocess.TimeoutExpired:
                    if is_interrupted():
                        self.cancel()
                        raise TaskInterrupted(
                            f"Command interrupted: {' '.join(self.command)}"
                        )
        finally:
            self._process = None

    def cancel(self) -> bool:
        """Terminate the running process, killing it if it does not exit in time."""
        process = self._process
        if process is None:
            return False

        try:
            process.terminate()
            try:
                process.wait(timeout=self.terminate_timeout)
            except subprocess.TimeoutExpired:
                logger.warning(f"Command did not terminate, killing pid {process.pid}")
                process.kill()
                process.wait()
            return True
        except OSError as e:
            logger.error(f"Error terminating process: {e}")
            return False

    def __repr__(self) -> str:
        return f"CommandTask({' '.join(self.command)!r})"
