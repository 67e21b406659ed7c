"""
Logging configuration module.

Daily log rotation with process start time tracking. Handlers are attached
to the package root logger, so every module logger
(logging.getLogger(__name__)) writes through them.
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

# Package root; module loggers such as "src.scheduler.container" propagate here
ROOT_LOGGER_NAME = "src"

LOG_DIR = os.getenv("LOG_DIR", "logs")

# Process start time is captured once and reused for all daily logs
_PROCESS_START_TIME: Optional[str] = None


class DailyRotatingFileHandler(logging.FileHandler):
    """
    Daily rotating file handler.

    Creates one log file per calendar day with format:
    logs/scheduler_YYYYMMDD_<START_HHMMSS>.log

    START_HHMMSS is fixed at process start, only YYYYMMDD changes.
    """

    def __init__(self, log_dir: str = LOG_DIR, encoding: str = "utf-8"):
        global _PROCESS_START_TIME

        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        if _PROCESS_START_TIME is None:
            _PROCESS_START_TIME = datetime.now().strftime("%H%M%S")

        self._start_hhmmss = _PROCESS_START_TIME
        self._current_date: Optional[str] = None

        super().__init__(self._get_current_log_path(), mode='a', encoding=encoding)
        self._current_date = datetime.now().strftime("%Y%m%d")

    def _get_current_log_path(self) -> str:
        """Get log file path for current date."""
        date_str = datetime.now().strftime("%Y%m%d")
        return str(self.log_dir / f"scheduler_{date_str}_{self._start_hhmmss}.log")

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a record, rotating to new file if date changed."""
        current_date = datetime.now().strftime("%Y%m%d")

        if self._current_date != current_date:
            self.close()
            self.baseFilename = self._get_current_log_path()
            self._current_date = current_date
            self.stream = self._open()

        super().emit(record)


def setup_logging(log_level: str = "INFO", log_dir: Optional[str] = None) -> logging.Logger:
    """
    Configure logging and return the package root logger.

    Format: logs/scheduler_YYYYMMDD_<START_HHMMSS>.log

    Args:
        log_level (str): Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir (str): Directory for log files (default: LOG_DIR)

    Returns:
        logging.Logger: Configured logger instance
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(numeric_level)

    # Prevent propagation to root logger (avoid duplicate logs)
    logger.propagate = False

    # Remove existing handlers (prevent duplicates)
    if logger.handlers:
        logger.handlers.clear()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s'
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    file_handler = DailyRotatingFileHandler(log_dir=log_dir or LOG_DIR, encoding='utf-8')
    file_handler.setLevel(numeric_level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    logger.info(f"Logging started - level: {log_level}, log file: {file_handler.baseFilename}")

    return logger
