"""
GPU Job Scheduler Core Module.

Serializes GPU-bound jobs on a single node and kills any GPU process that
is not on the allow-list after each job. The queue and allow-list are
changed at runtime through command files in the control directory.
"""

from .entities import (
    SupervisorState,
    CommandKind,
    COMMAND_PRECEDENCE,
    ProcessRecord,
    ResourceSnapshot,
    ControlBatch,
    SchedulerState,
)
from .errors import (
    SchedulerError,
    ResourceMonitorError,
    ResourceQueryError,
    ResourceParseError,
    ControlFileError,
)
from .config import SchedulerConfig
from .queue_manager import JobQueue
from .resource_monitor import ResourceMonitor, parse_process_table
from .control_channel import ControlChannel, HELP_TEXT
from .executor import JobHandler, EnvironmentJobHandler, JobRunner
from .reconciler import Reconciler
from .supervisor import Supervisor, IdleTimer
from .service import SchedulerService

__all__ = [
    # Entities
    "SupervisorState",
    "CommandKind",
    "COMMAND_PRECEDENCE",
    "ProcessRecord",
    "ResourceSnapshot",
    "ControlBatch",
    "SchedulerState",
    # Errors
    "SchedulerError",
    "ResourceMonitorError",
    "ResourceQueryError",
    "ResourceParseError",
    "ControlFileError",
    # Config
    "SchedulerConfig",
    # Queue
    "JobQueue",
    # Resource Monitor
    "ResourceMonitor",
    "parse_process_table",
    # Control Channel
    "ControlChannel",
    "HELP_TEXT",
    # Job Runner
    "JobHandler",
    "EnvironmentJobHandler",
    "JobRunner",
    # Reconciler
    "Reconciler",
    # Supervisor
    "Supervisor",
    "IdleTimer",
    # Service
    "SchedulerService",
]
