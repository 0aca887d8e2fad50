"""
Scheduler-specific exceptions.

Fatal errors (abort the scheduler):
- ResourceQueryError: the process-listing facility could not be invoked
- ResourceParseError: its output no longer has the expected table layout

Non-fatal errors are raised internally and handled at the component seam:
- ControlFileError: a command file could not be decoded
"""

from typing import Optional, Sequence


class SchedulerError(Exception):
    """Base exception for all scheduler errors."""
    pass


class ResourceMonitorError(SchedulerError):
    """
    Base class for resource visibility failures.

    Every subclass is fatal to the Supervisor.
    """
    pass


class ResourceQueryError(ResourceMonitorError):
    """Raised when the process-listing command cannot be run."""

    def __init__(
        self,
        command: Sequence[str],
        reason: str,
        returncode: Optional[int] = None,
    ):
        self.command = list(command)
        self.reason = reason
        self.returncode = returncode
        super().__init__(
            f"Resource query failed ({' '.join(self.command)}): {reason}"
        )


class ResourceParseError(ResourceMonitorError):
    """Raised when the process table cannot be located or parsed."""

    def __init__(self, reason: str, line: Optional[str] = None):
        self.reason = reason
        self.line = line
        message = f"Cannot parse process table: {reason}"
        if line is not None:
            message += f" (line: {line.strip()!r})"
        super().__init__(message)


class ControlFileError(SchedulerError):
    """Raised when a control file is not a valid command batch."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid control file {path}: {reason}")
