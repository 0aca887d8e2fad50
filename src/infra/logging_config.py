"""
Logging configuration module.

Every module logs through `logging.getLogger(__name__)`, so all scheduler
loggers hang off the `src` logger configured here:

    src.scheduler.supervisor  -> src -> console + logs/gpu_queue_<day>_<start>.log
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union

# Root of every module logger in the project (src.scheduler.*, src.infra.*)
LOGGER_NAME = "src"

LOG_FILE_PREFIX = "gpu_queue"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Fixed for the lifetime of the process; only the day part of a file name moves
PROCESS_START = datetime.now()


def log_file_name(day: datetime, start: datetime = PROCESS_START, prefix: str = LOG_FILE_PREFIX) -> str:
    """Name of the log file for `day`, e.g. gpu_queue_20261019_101500.log."""
    return f"{prefix}_{day:%Y%m%d}_{start:%H%M%S}.log"


class DailyRotatingFileHandler(logging.FileHandler):
    """
    One log file per calendar day.

    The first record written after midnight closes the current file and
    opens the next day's. Nothing is deleted.
    """

    def __init__(
        self,
        log_dir: Union[str, Path] = "logs",
        encoding: str = "utf-8",
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._clock = clock

        today = clock()
        self._day = today.date()
        super().__init__(self._path_for(today), mode="a", encoding=encoding)

    def _path_for(self, day: datetime) -> str:
        return str(self.log_dir / log_file_name(day))

    def emit(self, record: logging.LogRecord) -> None:
        now = self._clock()
        if now.date() != self._day:
            self.close()
            self._day = now.date()
            self.baseFilename = self._path_for(now)
            self.stream = self._open()
        super().emit(record)


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[Union[str, Path]] = "logs",
) -> logging.Logger:
    """
    Configure the project logger.

    Safe to call more than once: previous handlers are closed and replaced.

    Args:
        log_level: Logging level name; unknown names fall back to INFO
        log_dir: Directory for the daily log file; None logs to console only

    Returns:
        The `src` logger
    """
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        level = logging.INFO

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    handlers = [logging.StreamHandler()]
    if log_dir is not None:
        handlers.append(DailyRotatingFileHandler(log_dir=log_dir))

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    destination = handlers[-1].baseFilename if log_dir is not None else "console only"
    logger.info(f"Logging started - level: {logging.getLevelName(level)}, output: {destination}")
    return logger
