"""
Job Runner for the scheduler.

- Pops the head of the queue and runs it to completion
- Blocks the caller for the whole run; there is no timeout
- Discards job output and, by default, the exit status

What the Job Runner MUST NOT do:
- Retry or requeue a job
- Decide whether the job succeeded (the payload's concern)
- Touch the allow-list or signal GPU processes
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from .config import DEFAULT_JOB_TEMPLATE
from .entities import SchedulerState


logger = logging.getLogger(__name__)


class JobHandler(ABC):
    """
    Abstract base class for job execution.

    Injectable so tests can run the scheduler without spawning processes.
    """

    @abstractmethod
    def execute(self, job_path: Path) -> Optional[int]:
        """
        Run the job and block until it exits.

        Args:
            job_path: Resolved path of the job artifact

        Returns:
            Exit code, or None if the job could not be started
        """
        ...


class EnvironmentJobHandler(JobHandler):
    """
    Runs each job inside a named execution environment via subprocess.

    The default template is `conda run -n {env} {interpreter} {job}`.
    """

    def __init__(
        self,
        env_name: str = "base",
        interpreter: str = "python",
        template: Sequence[str] = DEFAULT_JOB_TEMPLATE,
        log_dir: Optional[Path] = None,
    ):
        """
        Initialize the handler.

        Args:
            env_name: Named environment the job runs in
            interpreter: Executable invoked inside the environment
            template: argv template with {env}, {interpreter}, {job}
            log_dir: Keep job output here; None discards it
        """
        self.env_name = env_name
        self.interpreter = interpreter
        self.template = list(template)
        self.log_dir = log_dir

    def build_command(self, job_path: Path) -> List[str]:
        """Substitute the placeholders of the template."""
        return [
            part.format(env=self.env_name, interpreter=self.interpreter, job=str(job_path))
            for part in self.template
        ]

    def execute(self, job_path: Path) -> Optional[int]:
        """
        Execute job via subprocess.

        The job runs in its own session, so a Ctrl-C aimed at the scheduler
        does not reach it.
        """
        cmd = self.build_command(job_path)
        logger.debug(f"Job command: {' '.join(cmd)}")

        try:
            if self.log_dir is None:
                return subprocess.run(
                    cmd,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    start_new_session=True,
                ).returncode

            self.log_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_path = self.log_dir / f"{job_path.stem}_{stamp}.log"
            with open(log_path, "w") as log_file:
                return subprocess.run(
                    cmd,
                    stdin=subprocess.DEVNULL,
                    stdout=log_file,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,
                ).returncode

        except OSError as e:
            logger.error(f"Could not start job {job_path}: {e}")
            return None


class JobRunner:
    """
    Runs the job at the head of the queue.

    Execution happens synchronously - the caller (Supervisor) blocks
    until the job exits.
    """

    def __init__(
        self,
        handler: JobHandler,
        jobs_dir: Path,
        discard_exit_status: bool = True,
    ):
        """
        Initialize JobRunner.

        Args:
            handler: JobHandler for actual execution
            jobs_dir: Base directory for relative job names
            discard_exit_status: When False, non-zero exits are logged as warnings
        """
        self.handler = handler
        self.jobs_dir = Path(jobs_dir)
        self.discard_exit_status = discard_exit_status
        self.last_exit_code: Optional[int] = None

    def resolve(self, job: str) -> Path:
        """Resolve a job name against the jobs directory."""
        path = Path(job).expanduser()
        if path.is_absolute():
            return path
        return self.jobs_dir / path

    def run_next(self, state: SchedulerState) -> SchedulerState:
        """
        Pop the queue head and run it to completion.

        A job whose artifact is missing is dropped without running and
        without being requeued.
        """
        self.last_exit_code = None

        job = state.queue.pop_head()
        if job is None:
            return state

        job_path = self.resolve(job)
        if not job_path.exists():
            logger.debug(f"Dropping job {job}: {job_path} does not exist")
            return state

        started = datetime.now()
        logger.info(f"Job started: {job} at {started.isoformat(timespec='seconds')}")

        exit_code = self.handler.execute(job_path)
        self.last_exit_code = exit_code

        finished = datetime.now()
        logger.info(
            f"Job finished: {job} at {finished.isoformat(timespec='seconds')} "
            f"(elapsed {finished - started})"
        )

        if not self.discard_exit_status and exit_code not in (0, None):
            logger.warning(f"Job {job} exited with code {exit_code}")

        return state
