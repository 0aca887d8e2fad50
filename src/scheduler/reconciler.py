"""
Reconciler for the scheduler.

After each job, every GPU process that is not on the allow-list is killed
with SIGKILL. There is no confirmation and no grace period, and the process
does not have to be related to this scheduler: whatever holds the
accelerator without an exemption at reconciliation time goes.

Consumers that start and finish between two reconciliation points are
never seen.
"""

import logging
import os
import signal
from typing import Callable, List

from .entities import SchedulerState
from .resource_monitor import ResourceMonitor


logger = logging.getLogger(__name__)


class Reconciler:
    """Enforces the allow-list against a fresh resource snapshot."""

    def __init__(
        self,
        monitor: ResourceMonitor,
        kill: Callable[[int, int], None] = os.kill,
    ):
        """
        Initialize Reconciler.

        Args:
            monitor: ResourceMonitor used to refresh the snapshot
            kill: Signal sender, os.kill by default (injectable for testing)
        """
        self.monitor = monitor
        self._kill = kill
        self.last_killed: List[str] = []

    def reconcile(self, state: SchedulerState) -> SchedulerState:
        """
        Refresh the snapshot and kill unauthorized consumers.

        Raises:
            ResourceMonitorError: If the snapshot cannot be taken (fatal)
        """
        state.snapshot = self.monitor.poll()

        unauthorized = sorted(
            set(state.snapshot) - state.allow_list,
            key=lambda pid: int(pid),
        )

        killed = []
        for pid in unauthorized:
            record = state.snapshot[pid]
            logger.warning(
                f"Killing unauthorized GPU process {pid} "
                f"({record.name}, GPU {record.device_index}, "
                f"{record.memory_mib if record.memory_mib is not None else 'N/A'} MiB)"
            )
            try:
                self._kill(int(pid), signal.SIGKILL)
            except ProcessLookupError:
                logger.info(f"GPU process {pid} already exited")
                continue
            except PermissionError:
                logger.error(f"Permission denied to kill GPU process {pid}")
                continue
            killed.append(pid)

        self.last_killed = killed
        return state
