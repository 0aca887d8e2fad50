"""
Path and environment helpers for gpu-batch-queue.

Directory structure (defaults, relative to the project root):
control/                       # Drop-in command files (command.json, command1.json, ...)
logs/                          # Scheduler logs (gpu_queue_YYYYMMDD_HHMMSS.log)

Environment Variables:
- GPUQ_CONTROL_DIR: Override control file directory (default: control)
- GPUQ_JOBS_DIR: Directory relative job names are resolved against (default: cwd)
- GPUQ_JOB_LOG_DIR: Capture job output here instead of discarding it (default: unset)
- GPUQ_LOG_DIR: Scheduler log directory (default: logs)
"""

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# =============================================================================
# Environment Variable Helpers
# =============================================================================

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")


def parse_bool(value: Optional[str]) -> Optional[bool]:
    """
    Parse a boolean-like string.

    Returns:
        True/False for recognised spellings, None otherwise
    """
    if value is None:
        return None
    val = value.strip().lower()
    if val in _TRUE_VALUES:
        return True
    if val in _FALSE_VALUES:
        return False
    return None


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable."""
    parsed = parse_bool(os.getenv(key))
    if parsed is None:
        return default
    return parsed


def _get_env_float(key: str, default: float) -> float:
    """Get float value from environment variable."""
    val = os.getenv(key)
    if val is not None:
        try:
            return float(val)
        except ValueError:
            logger.warning(f"[DataPaths] Invalid number for {key}: {val}, using default: {default}")
    return default


def _get_env_path(key: str, default: Optional[Path]) -> Optional[Path]:
    """Get a resolved path from environment variable."""
    env_path = os.getenv(key)
    if env_path:
        return Path(env_path).expanduser().resolve()
    return default


# =============================================================================
# Base Paths
# =============================================================================

def get_project_root() -> Path:
    """
    Get the project root directory.

    File is at src/infra/data_paths.py, so project root is 2 levels up.
    """
    return Path(__file__).parent.parent.parent.resolve()


def get_control_dir() -> Path:
    """Get the directory scanned for command files."""
    return _get_env_path("GPUQ_CONTROL_DIR", get_project_root() / "control")


def get_jobs_dir() -> Path:
    """
    Get the directory relative job names are resolved against.

    Default: the current working directory, so `gpu-queue train.sh` finds
    ./train.sh the way a shell would.
    """
    return _get_env_path("GPUQ_JOBS_DIR", Path.cwd())


def get_job_log_dir() -> Optional[Path]:
    """Get the job output directory, or None when job output is discarded."""
    return _get_env_path("GPUQ_JOB_LOG_DIR", None)


def get_logs_dir() -> Path:
    """Get the scheduler log directory."""
    return _get_env_path("GPUQ_LOG_DIR", get_project_root() / "logs")


def ensure_directories(*paths: Optional[Path]) -> list:
    """
    Create the given directories if they don't exist.

    Safe to call multiple times. None entries are skipped.

    Returns:
        List of directories that were created
    """
    created = []
    for path in paths:
        if path is None:
            continue
        if not path.exists():
            path.mkdir(parents=True, exist_ok=True)
            created.append(path)
            logger.debug(f"[DataPaths] Created directory: {path}")
    return created
