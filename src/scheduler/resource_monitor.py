"""
Resource Monitor for the scheduler.

Reads the accelerator's process table from the default `nvidia-smi` report:

    +-----------------------------------------------------------------------------+
    | Processes:                                                                  |
    |  GPU   GI   CI        PID   Type   Process name                  GPU Memory |
    |        ID   ID                                                   Usage      |
    |=============================================================================|
    |    0   N/A  N/A      1234      C   python train.py                  1024MiB |
    +-----------------------------------------------------------------------------+

The table is located by three markers: the `Processes:` header line, the
`+---` separator right above it, and the `+---` separator below the rows.
The layout is a hard external dependency; any drift is a parse failure.
"""

import logging
import re
import subprocess
from typing import List, Optional, Sequence

from .entities import ProcessRecord, ResourceSnapshot
from .errors import ResourceParseError, ResourceQueryError


logger = logging.getLogger(__name__)

PROCESSES_HEADER = "Processes:"
NO_PROCESSES_ROW = "No running processes found"

_MEMORY_RE = re.compile(r"^(\d+)MiB$")

# GPU, GI, CI, PID, Type, at least one name token, memory
_MIN_ROW_TOKENS = 7


def _is_separator(line: str) -> bool:
    return line.strip().startswith("+-")


def _is_header_rule(line: str) -> bool:
    return line.strip().startswith("|=")


def _find_table_rows(lines: List[str]) -> List[str]:
    """Return the raw rows between the process table markers."""
    header_idx = next(
        (i for i, line in enumerate(lines)
         if line.strip().startswith("|") and PROCESSES_HEADER in line),
        None,
    )
    if header_idx is None:
        raise ResourceParseError("process table header not found")

    if header_idx == 0 or not _is_separator(lines[header_idx - 1]):
        raise ResourceParseError(
            "header separator missing above process table",
            line=lines[header_idx],
        )

    rule_idx = next(
        (i for i in range(header_idx + 1, len(lines)) if _is_header_rule(lines[i])),
        None,
    )
    if rule_idx is None:
        raise ResourceParseError("process table header rule not found")

    bottom_idx = next(
        (i for i in range(rule_idx + 1, len(lines)) if _is_separator(lines[i])),
        None,
    )
    if bottom_idx is None:
        raise ResourceParseError("bottom separator of process table not found")

    return lines[rule_idx + 1:bottom_idx]


def _parse_memory(token: str, line: str) -> Optional[int]:
    if token == "N/A":
        return None
    match = _MEMORY_RE.match(token)
    if match is None:
        raise ResourceParseError(f"unexpected memory column {token!r}", line=line)
    return int(match.group(1))


def parse_process_row(line: str) -> Optional[ProcessRecord]:
    """
    Parse one table row.

    Returns:
        The record, or None for blank rows and the "no processes" row

    Raises:
        ResourceParseError: If the row does not fit the column layout
    """
    body = line.strip().strip("|").strip()
    if not body or NO_PROCESSES_ROW in body:
        return None

    tokens = body.split()
    if len(tokens) < _MIN_ROW_TOKENS:
        raise ResourceParseError("too few columns in process row", line=line)

    try:
        device_index = int(tokens[0])
    except ValueError:
        raise ResourceParseError(f"unexpected GPU column {tokens[0]!r}", line=line)

    pid = tokens[3]
    if not pid.isdigit():
        raise ResourceParseError(f"unexpected PID column {pid!r}", line=line)

    return ProcessRecord(
        device_index=device_index,
        gpu_instance=tokens[1],
        compute_instance=tokens[2],
        pid=pid,
        kind=tokens[4],
        name=" ".join(tokens[5:-1]),
        memory_mib=_parse_memory(tokens[-1], line),
    )


def parse_process_table(text: str) -> ResourceSnapshot:
    """
    Parse the full listing into a snapshot keyed by PID.

    Raises:
        ResourceParseError: If the markers are missing or a row is malformed
    """
    snapshot: ResourceSnapshot = {}
    for row in _find_table_rows(text.splitlines()):
        record = parse_process_row(row)
        if record is not None:
            snapshot[record.pid] = record
    return snapshot


class ResourceMonitor:
    """
    Queries the accelerator process table.

    Every failure is raised. A failed poll is never reported as an empty
    snapshot.
    """

    def __init__(
        self,
        command: Sequence[str] = ("nvidia-smi",),
        timeout: float = 30.0,
    ):
        """
        Initialize ResourceMonitor.

        Args:
            command: Process-listing command and arguments
            timeout: Seconds before the command is abandoned
        """
        self.command = list(command)
        self.timeout = timeout

    def poll(self) -> ResourceSnapshot:
        """
        Take a fresh snapshot.

        Raises:
            ResourceQueryError: If the listing command cannot be run
            ResourceParseError: If its output cannot be parsed
        """
        output = self._query()
        snapshot = parse_process_table(output)
        logger.debug(
            f"Resource snapshot: {len(snapshot)} consumer(s) "
            f"{sorted(snapshot)}"
        )
        return snapshot

    def _query(self) -> str:
        try:
            result = subprocess.run(
                self.command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ResourceQueryError(self.command, "command not found") from e
        except subprocess.TimeoutExpired as e:
            raise ResourceQueryError(
                self.command, f"timed out after {self.timeout}s"
            ) from e
        except OSError as e:
            raise ResourceQueryError(self.command, str(e)) from e

        if result.returncode != 0:
            reason = (result.stderr or result.stdout or "").strip()[:300]
            raise ResourceQueryError(
                self.command,
                reason or f"exited with code {result.returncode}",
                returncode=result.returncode,
            )

        return result.stdout
