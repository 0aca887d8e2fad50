"""
Supervisor for the scheduler.

Top-level state machine:

    DRAINING  run one job -> ingest commands -> reconcile GPU processes
    IDLE      wait -> re-baseline allow-list -> ingest commands
    EXITING   terminal

After each cycle:
    queue non-empty              -> DRAINING
    queue empty, background on   -> IDLE
    queue empty, background off  -> EXITING (natural completion)

The exit flag is checked after every ingestion and after every cycle. It
never interrupts a job that is already running.

What Supervisor MUST NOT do:
- Preempt or time out a running job
- Swallow resource monitor failures (they are fatal)
"""

import logging
import threading
import time
from datetime import datetime
from typing import Callable, Optional

from .control_channel import ControlChannel
from .entities import SchedulerState, SupervisorState
from .executor import JobRunner
from .reconciler import Reconciler
from .resource_monitor import ResourceMonitor


logger = logging.getLogger(__name__)


class IdleTimer:
    """
    Blocking timed wait with explicit cancellation.

    cancel() may be called from a signal handler or another thread.
    """

    def __init__(self, poll_step: float = 1.0):
        """
        Initialize IdleTimer.

        Args:
            poll_step: Seconds between wake-up checks when a wake condition is given
        """
        self.poll_step = poll_step
        self._cancelled = threading.Event()

    def wait(
        self,
        interval: float,
        wake_when: Optional[Callable[[], bool]] = None,
    ) -> bool:
        """
        Block for up to `interval` seconds.

        Args:
            interval: Seconds to wait
            wake_when: Optional condition checked every poll_step seconds

        Returns:
            True if the wait ended early (cancelled or woken), False on timeout
        """
        deadline = time.monotonic() + interval
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False

            timeout = remaining if wake_when is None else min(self.poll_step, remaining)
            if self._cancelled.wait(timeout):
                self._cancelled.clear()
                return True

            if wake_when is not None and wake_when():
                return True

    def cancel(self) -> None:
        """End the current (or next) wait immediately."""
        self._cancelled.set()


class Supervisor:
    """
    Composes the Control Channel, Job Runner and Reconciler.

    Owns the SchedulerState; every component receives it per call.
    Single-threaded: jobs, ingestion and reconciliation never overlap.
    """

    def __init__(
        self,
        state: SchedulerState,
        channel: ControlChannel,
        runner: JobRunner,
        reconciler: Reconciler,
        monitor: ResourceMonitor,
        idle_interval: float = 60.0,
        idle_wake_on_command: bool = False,
        timer: Optional[IdleTimer] = None,
    ):
        """
        Initialize Supervisor.

        Args:
            state: Initial scheduler state (queue, background mode)
            channel: ControlChannel for command files
            runner: JobRunner for the queue head
            reconciler: Reconciler run after each job
            monitor: ResourceMonitor for the startup and idle baselines
            idle_interval: Seconds to wait per idle cycle
            idle_wake_on_command: End the idle wait when a command file appears
            timer: IdleTimer (injectable for testing)
        """
        self.state = state
        self.channel = channel
        self.runner = runner
        self.reconciler = reconciler
        self.monitor = monitor
        self.idle_interval = idle_interval
        self.idle_wake_on_command = idle_wake_on_command
        self.timer = timer or IdleTimer()

        self._phase: Optional[SupervisorState] = None
        self.exit_reason: Optional[str] = None

    @property
    def phase(self) -> Optional[SupervisorState]:
        """Current state, or None before start()."""
        return self._phase

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> SupervisorState:
        """
        Baseline the allow-list and pick the initial state.

        Everything using the accelerator before the scheduler started is
        treated as legitimate.

        Raises:
            ResourceMonitorError: If the startup snapshot fails (fatal)
        """
        self.state.snapshot = self.monitor.poll()
        self.state.allow_list |= set(self.state.snapshot)
        logger.info(
            f"Scheduler started at {_now()}: {len(self.state.queue)} job(s) queued, "
            f"exempt GPU processes {sorted(self.state.allow_list)}"
        )

        self._ingest()

        if self.state.exit_requested:
            self._exit("exit requested")
        elif not self.state.queue and self.state.background_mode:
            self._enter(SupervisorState.IDLE)
        else:
            self._enter(SupervisorState.DRAINING)
        return self._phase

    def run(self) -> SupervisorState:
        """
        Run until EXITING.

        Raises:
            ResourceMonitorError: Propagated unchanged; the caller aborts
        """
        if self._phase is None:
            self.start()
        while self._phase != SupervisorState.EXITING:
            self.step()
        return self._phase

    def step(self) -> SupervisorState:
        """Run one Idle or Draining cycle and apply the transition rule."""
        if self._phase is None:
            return self.start()
        if self._phase == SupervisorState.EXITING:
            return self._phase

        if self.state.exit_requested:
            self._exit("exit requested")
            return self._phase

        if self._phase == SupervisorState.IDLE:
            self._idle_cycle()
        else:
            self._drain_cycle()

        if self.state.exit_requested:
            self._exit("exit requested")
        elif self.state.queue:
            self._enter(SupervisorState.DRAINING)
        elif self.state.background_mode:
            self._enter(SupervisorState.IDLE)
        else:
            self._exit("queue drained")

        return self._phase

    def request_exit(self) -> None:
        """
        Ask the loop to stop at its next checkpoint.

        Safe to call from a signal handler. A running job is not interrupted.
        """
        self.state.exit_requested = True
        self.timer.cancel()

    # =========================================================================
    # Cycles
    # =========================================================================

    def _idle_cycle(self) -> None:
        wake_when = self.channel.has_pending if self.idle_wake_on_command else None
        if self.timer.wait(self.idle_interval, wake_when=wake_when):
            logger.debug("Idle wait ended early")
        if self.state.exit_requested:
            return

        # Anything that started while we were idle becomes protected
        self.state.snapshot = self.monitor.poll()
        self.state.allow_list = set(self.state.snapshot)
        logger.debug(f"Allow-list re-baselined: {sorted(self.state.allow_list)}")

        self._ingest()
        if self.state.exit_requested:
            return

        if self.state.queue:
            self.reconciler.reconcile(self.state)

    def _drain_cycle(self) -> None:
        self.runner.run_next(self.state)

        self._ingest()
        if self.state.exit_requested:
            return

        self.reconciler.reconcile(self.state)

    def _ingest(self) -> None:
        try:
            self.channel.ingest(self.state)
        except Exception as e:
            logger.error(f"Error ingesting control files: {e}", exc_info=True)

    # =========================================================================
    # Transitions
    # =========================================================================

    def _enter(self, phase: SupervisorState) -> None:
        if phase == self._phase:
            return
        if phase == SupervisorState.IDLE:
            logger.info(f"Queue empty, idling at {_now()}")
        elif phase == SupervisorState.DRAINING:
            logger.info(f"Draining {len(self.state.queue)} job(s) from {_now()}")
        self._phase = phase

    def _exit(self, reason: str) -> None:
        self.exit_reason = reason
        self._phase = SupervisorState.EXITING
        logger.info(
            f"Scheduler exiting at {_now()} ({reason}), "
            f"{len(self.state.queue)} job(s) left in queue"
        )


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")
