"""
Scheduler Service - Main entry point for the GPU job scheduler.

Wires the components together:
- ResourceMonitor (accelerator process table)
- ControlChannel (drop-in command files)
- JobRunner (blocking job execution)
- Reconciler (allow-list enforcement)
- Supervisor (Idle / Draining / Exiting loop)

Usage:
    service = SchedulerService.create(config, initial_jobs=["train.py"])
    service.run()        # blocks until EXITING
"""

import logging
from typing import Iterable, Optional

from .config import SchedulerConfig
from .control_channel import ControlChannel
from .entities import SchedulerState, SupervisorState
from .executor import EnvironmentJobHandler, JobHandler, JobRunner
from .queue_manager import JobQueue
from .reconciler import Reconciler
from .resource_monitor import ResourceMonitor
from .supervisor import Supervisor


logger = logging.getLogger(__name__)


class SchedulerService:
    """Holds the wired components of one scheduler process."""

    def __init__(
        self,
        config: SchedulerConfig,
        supervisor: Supervisor,
    ):
        """
        Initialize SchedulerService.

        Use SchedulerService.create() for convenient construction.
        """
        self.config = config
        self.supervisor = supervisor

    @classmethod
    def create(
        cls,
        config: SchedulerConfig,
        initial_jobs: Optional[Iterable[str]] = None,
        handler: Optional[JobHandler] = None,
        monitor: Optional[ResourceMonitor] = None,
    ) -> "SchedulerService":
        """
        Create a SchedulerService with all components wired together.

        Args:
            config: Validated scheduler configuration
            initial_jobs: Jobs queued before the first control file is read
            handler: JobHandler override (defaults to EnvironmentJobHandler)
            monitor: ResourceMonitor override

        Returns:
            Configured SchedulerService
        """
        config.validate()

        monitor = monitor or ResourceMonitor(
            command=config.smi_command,
            timeout=config.smi_timeout,
        )

        handler = handler or EnvironmentJobHandler(
            env_name=config.env_name,
            interpreter=config.interpreter,
            template=config.job_template,
            log_dir=config.job_log_dir,
        )

        state = SchedulerState(
            queue=JobQueue(initial_jobs or []),
            background_mode=config.background_mode,
        )

        supervisor = Supervisor(
            state=state,
            channel=ControlChannel(config.control_dir),
            runner=JobRunner(
                handler=handler,
                jobs_dir=config.jobs_dir,
                discard_exit_status=config.discard_exit_status,
            ),
            reconciler=Reconciler(monitor),
            monitor=monitor,
            idle_interval=config.idle_interval,
            idle_wake_on_command=config.idle_wake_on_command,
        )

        logger.info(
            f"Scheduler configured: control_dir={config.control_dir}, "
            f"jobs_dir={config.jobs_dir}, env={config.env_name}, "
            f"background={config.background_mode}"
        )
        return cls(config, supervisor)

    @property
    def state(self) -> SchedulerState:
        return self.supervisor.state

    def run(self) -> SupervisorState:
        """Run the scheduler loop until it exits."""
        return self.supervisor.run()

    def stop(self) -> None:
        """Stop after the current job (no preemption)."""
        logger.info("Stop requested, finishing current job first")
        self.supervisor.request_exit()
