"""
Control Channel for the scheduler.

Lets the operator change a running scheduler by dropping JSON command files
into the control directory:

    control/command.json
    control/command1.json
    control/command27.json

Each file is claimed (renamed to `<name>.claimed`), decoded, applied in
COMMAND_PRECEDENCE order and deleted. A crash between applying and deleting
leaves the `.claimed` file behind and it is applied again on restart.

Leftover `.claimed` files are applied first, then the rest in
directory-listing order. A numeric suffix does not imply processing order.
"""

import json
import logging
import re
from pathlib import Path
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from src.infra.data_paths import parse_bool

from .entities import CommandKind, ControlBatch, SchedulerState
from .errors import ControlFileError


logger = logging.getLogger(__name__)

CONTROL_FILE_RE = re.compile(r"^command(\d*[1-9]\d*)?\.json$")
CLAIMED_SUFFIX = ".claimed"

HELP_TEXT = """\
Control files: drop a JSON object named command.json, command1.json, command2.json, ...
into the control directory. Every value is a list of strings.

  add_exempt           ["<pid>", ...]   never kill these GPU processes
  remove_exempt        ["<pid>", ...]   stop protecting these GPU processes
  read_queue           []               print the current queue
  enqueue_tail         ["<job>", ...]   append jobs to the end of the queue
  enqueue_head         ["<job>", ...]   move jobs to the front of the queue
  dequeue_by_name      ["<job>", ...]   remove every queue entry with this name
  set_background_mode  ["true"|"false"] keep waiting for jobs when the queue is empty
  info                 []               print this message
  request_exit         []               stop after the current job

Keys are applied in the order listed above, whatever their order in the file.
Unknown keys are ignored.

Example:
  {"enqueue_tail": ["train_a.py", "train_b.py"], "read_queue": []}
"""


class ControlChannel:
    """
    Applies drop-in command files to the scheduler state.

    What ControlChannel MUST NOT do:
    - Run jobs or signal processes
    - Keep a reference to the state between calls
    """

    def __init__(
        self,
        control_dir: Path,
        emit: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize ControlChannel.

        Args:
            control_dir: Directory scanned for command files
            emit: Sink for operator-facing output (queue listings, help text).
                Defaults to INFO logging.
        """
        self.control_dir = Path(control_dir)
        self._emit = emit or logger.info

        self._handlers: Dict[CommandKind, Callable[[SchedulerState, List[str]], None]] = {
            CommandKind.ADD_EXEMPT: self._add_exempt,
            CommandKind.REMOVE_EXEMPT: self._remove_exempt,
            CommandKind.READ_QUEUE: self._read_queue,
            CommandKind.ENQUEUE_TAIL: self._enqueue_tail,
            CommandKind.ENQUEUE_HEAD: self._enqueue_head,
            CommandKind.DEQUEUE_BY_NAME: self._dequeue_by_name,
            CommandKind.SET_BACKGROUND_MODE: self._set_background_mode,
            CommandKind.SHOW_HELP: self._show_help,
            CommandKind.REQUEST_EXIT: self._request_exit,
        }

    # =========================================================================
    # Discovery
    # =========================================================================

    def pending_files(self) -> List[Path]:
        """
        List command files waiting in the control directory.

        Includes files left claimed by an interrupted run.
        """
        if not self.control_dir.is_dir():
            return []

        pending = []
        for path in self.control_dir.iterdir():
            name = path.name
            if name.endswith(CLAIMED_SUFFIX):
                name = name[: -len(CLAIMED_SUFFIX)]
            if CONTROL_FILE_RE.match(name) and path.is_file():
                pending.append(path)
        return pending

    def has_pending(self) -> bool:
        """Check whether any command file is waiting."""
        return bool(self.pending_files())

    # =========================================================================
    # Ingestion
    # =========================================================================

    def ingest(self, state: SchedulerState) -> SchedulerState:
        """
        Apply every pending command file to the state.

        Args:
            state: Scheduler state, mutated in place

        Returns:
            The same state
        """
        # Leftovers from an interrupted run before fresh files
        pending = sorted(
            self.pending_files(),
            key=lambda p: not p.name.endswith(CLAIMED_SUFFIX),
        )
        for path in pending:
            claimed = self._claim(path)
            if claimed is None:
                continue

            try:
                batch = self.decode(claimed)
            except ControlFileError as e:
                logger.error(f"Discarding control file: {e}")
            else:
                logger.info(
                    f"Applying control file {path.name}: "
                    f"{[k.value for k in batch.present_kinds()]}"
                )
                self.apply(state, batch)
            finally:
                self._retire(claimed)

        return state

    def decode(self, path: Path) -> ControlBatch:
        """
        Decode a command file.

        Raises:
            ControlFileError: If the file is unreadable, not a JSON object,
                or a recognised key has the wrong shape
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ControlFileError(str(path), str(e)) from e

        if not isinstance(data, dict):
            raise ControlFileError(str(path), "top level must be a JSON object")

        try:
            return ControlBatch.from_mapping(data)
        except ValidationError as e:
            raise ControlFileError(str(path), str(e)) from e

    def apply(self, state: SchedulerState, batch: ControlBatch) -> SchedulerState:
        """Apply one batch in COMMAND_PRECEDENCE order."""
        for kind in batch.present_kinds():
            self._handlers[kind](state, batch.arguments(kind))
        return state

    # =========================================================================
    # File Hand-off
    # =========================================================================

    def _claim(self, path: Path) -> Optional[Path]:
        """Rename a pending file out of the writer's way before reading it."""
        if path.name.endswith(CLAIMED_SUFFIX):
            return path if path.exists() else None

        claimed = path.with_name(path.name + CLAIMED_SUFFIX)
        if claimed.exists():
            logger.warning(
                f"Control file {path.name} left for the next pass: "
                f"{claimed.name} is still pending"
            )
            return None
        try:
            path.rename(claimed)
        except FileNotFoundError:
            logger.debug(f"Control file {path.name} vanished before it was claimed")
            return None
        return claimed

    def _retire(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Could not delete control file {path}: {e}")

    # =========================================================================
    # Command Handlers
    # =========================================================================

    def _add_exempt(self, state: SchedulerState, args: List[str]) -> None:
        state.allow_list.update(args)
        logger.info(f"Exempted from termination: {args}")

    def _remove_exempt(self, state: SchedulerState, args: List[str]) -> None:
        state.allow_list.difference_update(args)
        logger.info(f"No longer exempt: {args}")

    def _read_queue(self, state: SchedulerState, args: List[str]) -> None:
        jobs = state.queue.as_list()
        if jobs:
            listing = "\n".join(f"  {i}. {job}" for i, job in enumerate(jobs, 1))
            self._emit(f"Queue ({len(jobs)} job(s)):\n{listing}")
        else:
            self._emit("Queue is empty")

    def _enqueue_tail(self, state: SchedulerState, args: List[str]) -> None:
        state.queue.append(args)
        logger.info(f"Queued at tail: {args}")

    def _enqueue_head(self, state: SchedulerState, args: List[str]) -> None:
        state.queue.prepend(args)
        logger.info(f"Queued at head: {args}")

    def _dequeue_by_name(self, state: SchedulerState, args: List[str]) -> None:
        removed = state.queue.remove(args)
        logger.info(f"Removed {removed} queue entr{'y' if removed == 1 else 'ies'} for {args}")

    def _set_background_mode(self, state: SchedulerState, args: List[str]) -> None:
        value = parse_bool(args[0]) if args else None
        if value is None:
            logger.warning(
                f"Ignoring set_background_mode: {args!r} is not a boolean, "
                f"background mode stays {state.background_mode}"
            )
            return
        state.background_mode = value
        logger.info(f"Background mode set to {value}")

    def _show_help(self, state: SchedulerState, args: List[str]) -> None:
        self._emit(HELP_TEXT)

    def _request_exit(self, state: SchedulerState, args: List[str]) -> None:
        state.exit_requested = True
        logger.info("Exit requested")
