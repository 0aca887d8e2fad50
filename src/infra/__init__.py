"""
Infrastructure module - logging, paths, and environment helpers.
"""

from .data_paths import (
    parse_bool,
    get_project_root,
    get_control_dir,
    get_jobs_dir,
    get_job_log_dir,
    get_logs_dir,
    ensure_directories,
)

from .logging_config import setup_logging, DailyRotatingFileHandler

__all__ = [
    # data_paths
    "parse_bool",
    "get_project_root",
    "get_control_dir",
    "get_jobs_dir",
    "get_job_log_dir",
    "get_logs_dir",
    "ensure_directories",
    # logging
    "setup_logging",
    "DailyRotatingFileHandler",
]
