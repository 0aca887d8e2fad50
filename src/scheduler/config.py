"""
Configuration for the scheduler.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from src.infra.data_paths import (
    _get_env_bool,
    _get_env_float,
    get_control_dir,
    get_job_log_dir,
    get_jobs_dir,
)


DEFAULT_JOB_TEMPLATE = ["conda", "run", "-n", "{env}", "{interpreter}", "{job}"]


@dataclass
class SchedulerConfig:
    """Configuration for one scheduler process."""

    # Where command files are dropped
    control_dir: Path = field(default_factory=get_control_dir)

    # Relative job names are resolved against this directory
    jobs_dir: Path = field(default_factory=get_jobs_dir)

    # Job output goes here; None discards it
    job_log_dir: Optional[Path] = None

    # Named execution environment and the interpreter run inside it
    env_name: str = "base"
    interpreter: str = "python"

    # argv template; {env}, {interpreter} and {job} are substituted
    job_template: List[str] = field(default_factory=lambda: list(DEFAULT_JOB_TEMPLATE))

    # Job exit status is not inspected unless this is turned off
    discard_exit_status: bool = True

    # Stay alive in Idle when the queue runs dry
    background_mode: bool = False

    # Seconds between idle checks
    idle_interval: float = 60.0

    # End the idle wait early when a command file shows up
    idle_wake_on_command: bool = False

    # Accelerator process listing
    smi_command: List[str] = field(default_factory=lambda: ["nvidia-smi"])
    smi_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "SchedulerConfig":
        """Load configuration from environment variables.

        Environment variables:
            GPUQ_CONTROL_DIR: Command file directory (default: <root>/control)
            GPUQ_JOBS_DIR: Base directory for relative job names (default: cwd)
            GPUQ_JOB_LOG_DIR: Keep job output here (default: discard)
            GPUQ_ENV_NAME: Execution environment name (default: base)
            GPUQ_INTERPRETER: Executable run inside the environment (default: python)
            GPUQ_JOB_TEMPLATE: Space separated argv template
            GPUQ_DISCARD_EXIT_STATUS: Ignore job exit status (default: true)
            GPUQ_BACKGROUND: Wait for more jobs when the queue empties (default: false)
            GPUQ_IDLE_INTERVAL: Seconds between idle checks (default: 60)
            GPUQ_IDLE_WAKE_ON_COMMAND: Leave idle wait when a command arrives (default: false)
            GPUQ_SMI_COMMAND: Process listing command (default: nvidia-smi)
            GPUQ_SMI_TIMEOUT: Seconds before the listing command is abandoned (default: 30)
        """
        template_str = os.environ.get("GPUQ_JOB_TEMPLATE", "")
        template = template_str.split() if template_str.strip() else list(DEFAULT_JOB_TEMPLATE)

        return cls(
            control_dir=get_control_dir(),
            jobs_dir=get_jobs_dir(),
            job_log_dir=get_job_log_dir(),
            env_name=os.environ.get("GPUQ_ENV_NAME", "base"),
            interpreter=os.environ.get("GPUQ_INTERPRETER", "python"),
            job_template=template,
            discard_exit_status=_get_env_bool("GPUQ_DISCARD_EXIT_STATUS", True),
            background_mode=_get_env_bool("GPUQ_BACKGROUND", False),
            idle_interval=_get_env_float("GPUQ_IDLE_INTERVAL", 60.0),
            idle_wake_on_command=_get_env_bool("GPUQ_IDLE_WAKE_ON_COMMAND", False),
            smi_command=os.environ.get("GPUQ_SMI_COMMAND", "nvidia-smi").split(),
            smi_timeout=_get_env_float("GPUQ_SMI_TIMEOUT", 30.0),
        )

    def validate(self) -> None:
        """Validate configuration values."""
        if self.idle_interval <= 0:
            raise ValueError("idle_interval must be positive")
        if self.smi_timeout <= 0:
            raise ValueError("smi_timeout must be positive")
        if not self.smi_command:
            raise ValueError("smi_command must not be empty")
        if not any("{job}" in part for part in self.job_template):
            raise ValueError("job_template must contain a {job} placeholder")
        if not self.env_name:
            raise ValueError("env_name must not be empty")
