"""
Scheduler Test Fixtures.

Base fixtures:
  - Temporary control and jobs directories
  - Fake resource monitor with a settable process table
  - Recording kill function and job handler (no real processes)
  - Idle timer that never sleeps
"""

import json
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from src.scheduler import (
    ControlChannel,
    JobHandler,
    JobQueue,
    JobRunner,
    ProcessRecord,
    Reconciler,
    SchedulerState,
    Supervisor,
    IdleTimer,
)


# =============================================================================
# Sample nvidia-smi Output
# =============================================================================

SMI_HEADER = """\
Mon Oct 19 10:00:00 2026
+-----------------------------------------------------------------------------------------+
| NVIDIA-SMI 550.54.14              Driver Version: 550.54.14      CUDA Version: 12.4     |
|-----------------------------------------+------------------------+----------------------+
| GPU  Name                 Persistence-M | Bus-Id          Disp.A | Volatile Uncorr. ECC |
| Fan  Temp   Perf          Pwr:Usage/Cap |           Memory-Usage | GPU-Util  Compute M. |
|                                         |                        |               MIG M. |
|=========================================+========================+======================|
|   0  NVIDIA GeForce RTX 4090        Off |   00000000:01:00.0  On |                  Off |
|  0%   41C    P8             21W /  450W |    1050MiB /  24564MiB |      2%      Default |
|                                         |                        |                  N/A |
+-----------------------------------------+------------------------+----------------------+

+-----------------------------------------------------------------------------------------+
| Processes:                                                                              |
|  GPU   GI   CI        PID   Type   Process name                              GPU Memory |
|        ID   ID                                                               Usage      |
|=========================================================================================|
"""

SMI_FOOTER = "+-----------------------------------------------------------------------------------------+\n"

SMI_ROWS = """\
|    0   N/A  N/A      1932      G   /usr/lib/xorg/Xorg                            4MiB |
|    0   N/A  N/A     27114      C   python train.py --epochs 10                1024MiB |
|    1   N/A  N/A     31337    C+G   /opt/app/render                                N/A |
"""

SMI_OUTPUT = SMI_HEADER + SMI_ROWS + SMI_FOOTER

SMI_OUTPUT_EMPTY = SMI_HEADER + SMI_FOOTER

SMI_OUTPUT_NO_PROCESSES = (
    SMI_HEADER
    + "|  No running processes found                                                             |\n"
    + SMI_FOOTER
)


def make_record(pid: str, name: str = "python", device_index: int = 0) -> ProcessRecord:
    return ProcessRecord(
        device_index=device_index,
        gpu_instance="N/A",
        compute_instance="N/A",
        pid=pid,
        kind="C",
        name=name,
        memory_mib=512,
    )


def make_snapshot(*pids: str) -> Dict[str, ProcessRecord]:
    return {pid: make_record(pid) for pid in pids}


# =============================================================================
# Test Doubles
# =============================================================================


class FakeMonitor:
    """Resource monitor returning whatever process table the test sets."""

    def __init__(self, *pids: str):
        self.snapshot = make_snapshot(*pids)
        self.error: Optional[Exception] = None
        self.calls = 0

    def set(self, *pids: str) -> None:
        self.snapshot = make_snapshot(*pids)

    def add(self, *pids: str) -> None:
        self.snapshot.update(make_snapshot(*pids))

    def poll(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return dict(self.snapshot)


class FakeKiller:
    """Records kill calls; killed processes disappear from the monitor."""

    def __init__(self, monitor: Optional[FakeMonitor] = None):
        self.monitor = monitor
        self.calls: List[tuple] = []
        self.errors: Dict[int, Exception] = {}

    def __call__(self, pid: int, sig: int) -> None:
        if pid in self.errors:
            raise self.errors[pid]
        self.calls.append((pid, sig))
        if self.monitor is not None:
            self.monitor.snapshot.pop(str(pid), None)

    @property
    def killed(self) -> List[str]:
        return [str(pid) for pid, _ in self.calls]


class MockJobHandler(JobHandler):
    """
    Mock job handler for testing.

    Allows controlling execution outcome without subprocess.
    """

    def __init__(self):
        self.jobs_executed: List[Path] = []
        self.exit_code: Optional[int] = 0
        self.on_execute: Optional[Callable[[Path], None]] = None

    def execute(self, job_path: Path) -> Optional[int]:
        self.jobs_executed.append(job_path)
        if self.on_execute is not None:
            self.on_execute(job_path)
        return self.exit_code

    @property
    def job_names(self) -> List[str]:
        return [p.name for p in self.jobs_executed]


class NoWaitTimer(IdleTimer):
    """Idle timer that returns immediately and counts waits."""

    def __init__(self):
        super().__init__()
        self.waits = 0
        self.on_wait: Optional[Callable[[], None]] = None

    def wait(self, interval, wake_when=None) -> bool:
        self.waits += 1
        if self.on_wait is not None:
            self.on_wait()
        return False


# =============================================================================
# Directory Fixtures
# =============================================================================


@pytest.fixture
def control_dir(tmp_path: Path) -> Path:
    path = tmp_path / "control"
    path.mkdir()
    return path


@pytest.fixture
def jobs_dir(tmp_path: Path) -> Path:
    """Jobs directory pre-populated with a.job, b.job, c.job."""
    path = tmp_path / "jobs"
    path.mkdir()
    for name in ("a.job", "b.job", "c.job"):
        (path / name).write_text("#!/bin/sh\n")
    return path


@pytest.fixture
def write_command(control_dir: Path) -> Callable:
    """
    Factory fixture for dropping command files.

    Returns a function writing `payload` as JSON (or raw text if a str).
    """

    def _write(payload, name: str = "command.json") -> Path:
        path = control_dir / name
        if isinstance(payload, str):
            path.write_text(payload)
        else:
            path.write_text(json.dumps(payload))
        return path

    return _write


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def state() -> SchedulerState:
    return SchedulerState()


@pytest.fixture
def emitted() -> List[str]:
    return []


@pytest.fixture
def channel(control_dir: Path, emitted: List[str]) -> ControlChannel:
    return ControlChannel(control_dir, emit=emitted.append)


@pytest.fixture
def monitor() -> FakeMonitor:
    return FakeMonitor()


@pytest.fixture
def killer(monitor: FakeMonitor) -> FakeKiller:
    return FakeKiller(monitor)


@pytest.fixture
def reconciler(monitor: FakeMonitor, killer: FakeKiller) -> Reconciler:
    return Reconciler(monitor, kill=killer)


@pytest.fixture
def mock_handler() -> MockJobHandler:
    return MockJobHandler()


@pytest.fixture
def runner(mock_handler: MockJobHandler, jobs_dir: Path) -> JobRunner:
    return JobRunner(mock_handler, jobs_dir=jobs_dir)


@pytest.fixture
def timer() -> NoWaitTimer:
    return NoWaitTimer()


@pytest.fixture
def make_supervisor(
    channel: ControlChannel,
    runner: JobRunner,
    reconciler: Reconciler,
    monitor: FakeMonitor,
    timer: NoWaitTimer,
) -> Callable:
    """Factory fixture for a Supervisor wired to the test doubles."""

    def _create(
        jobs: Optional[List[str]] = None,
        background_mode: bool = False,
        idle_wake_on_command: bool = False,
    ) -> Supervisor:
        state = SchedulerState(
            queue=JobQueue(jobs or []),
            background_mode=background_mode,
        )
        return Supervisor(
            state=state,
            channel=channel,
            runner=runner,
            reconciler=reconciler,
            monitor=monitor,
            idle_interval=0.01,
            idle_wake_on_command=idle_wake_on_command,
            timer=timer,
        )

    return _create
