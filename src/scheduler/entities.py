"""
Scheduler Domain Entities.

- ProcessRecord / ResourceSnapshot: one poll of the accelerator process table
- CommandKind / ControlBatch: a decoded control file
- SchedulerState: everything the Supervisor owns between cycles
- SupervisorState: Idle / Draining / Exiting

A job has no entity of its own: it is the path/name string held in the queue.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .queue_manager import JobQueue


class SupervisorState(str, Enum):
    """Supervisor lifecycle states."""

    IDLE = "IDLE"
    DRAINING = "DRAINING"
    EXITING = "EXITING"


class CommandKind(str, Enum):
    """Command kinds recognised in a control file."""

    ADD_EXEMPT = "add_exempt"
    REMOVE_EXEMPT = "remove_exempt"
    READ_QUEUE = "read_queue"
    ENQUEUE_TAIL = "enqueue_tail"
    ENQUEUE_HEAD = "enqueue_head"
    DEQUEUE_BY_NAME = "dequeue_by_name"
    SET_BACKGROUND_MODE = "set_background_mode"
    SHOW_HELP = "show_help"
    REQUEST_EXIT = "request_exit"


# Order in which the kinds of one batch are applied, whatever the key order
# in the file.
COMMAND_PRECEDENCE: tuple = (
    CommandKind.ADD_EXEMPT,
    CommandKind.REMOVE_EXEMPT,
    CommandKind.READ_QUEUE,
    CommandKind.ENQUEUE_TAIL,
    CommandKind.ENQUEUE_HEAD,
    CommandKind.DEQUEUE_BY_NAME,
    CommandKind.SET_BACKGROUND_MODE,
    CommandKind.SHOW_HELP,
    CommandKind.REQUEST_EXIT,
)


@dataclass(frozen=True)
class ProcessRecord:
    """
    One row of the accelerator process table.

    memory_mib is None when the driver reports N/A (e.g. on WDDM or MIG
    setups that hide per-process usage).
    """

    device_index: int
    gpu_instance: str
    compute_instance: str
    pid: str
    kind: str
    name: str
    memory_mib: Optional[int] = None


# Consumer identifier (pid as text) -> record. Replaced wholesale on every poll.
ResourceSnapshot = Dict[str, ProcessRecord]


class ControlBatch(BaseModel):
    """
    A decoded control file.

    Every recognised key holds a list of strings. A key that is absent is
    None, which is distinct from an empty list: `{"read_queue": []}` still
    asks for the queue to be printed.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    add_exempt: Optional[List[str]] = None
    remove_exempt: Optional[List[str]] = None
    read_queue: Optional[List[str]] = None
    enqueue_tail: Optional[List[str]] = None
    enqueue_head: Optional[List[str]] = None
    dequeue_by_name: Optional[List[str]] = None
    set_background_mode: Optional[List[str]] = None
    show_help: Optional[List[str]] = Field(default=None, alias="info")
    request_exit: Optional[List[str]] = None

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_to_list(cls, value):
        if value is None:
            return []
        if isinstance(value, (str, int, float, bool)):
            return [str(value).lower() if isinstance(value, bool) else str(value)]
        if isinstance(value, list):
            return [str(v).lower() if isinstance(v, bool) else str(v) for v in value]
        return value

    @classmethod
    def from_mapping(cls, data: dict) -> "ControlBatch":
        """Validate a raw mapping, treating `help` as an alias of `info`."""
        if "help" in data and "info" not in data and "show_help" not in data:
            data = {**data, "info": data["help"]}
        return cls.model_validate(data)

    def present_kinds(self) -> List[CommandKind]:
        """Kinds present in this batch, in precedence order."""
        return [
            kind for kind in COMMAND_PRECEDENCE
            if getattr(self, kind.value) is not None
        ]

    def arguments(self, kind: CommandKind) -> List[str]:
        """Arguments for a kind, or an empty list if the kind is absent."""
        return getattr(self, kind.value) or []


@dataclass
class SchedulerState:
    """
    Mutable state owned by the Supervisor.

    Components receive it per call and must not keep a reference.
    """

    queue: JobQueue = field(default_factory=JobQueue)
    allow_list: Set[str] = field(default_factory=set)
    snapshot: ResourceSnapshot = field(default_factory=dict)
    background_mode: bool = False
    exit_requested: bool = False
