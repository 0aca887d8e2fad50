"""
GPU job queue - main entry point.

Runs queued jobs one at a time on the shared accelerator and accepts
commands from JSON files dropped into the control directory.

Examples:
    python main.py train_a.py train_b.py
    python main.py --background --env torch
    echo '{"info": []}' > control/command.json
"""

import argparse
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from src.infra.data_paths import ensure_directories, get_logs_dir
from src.infra.logging_config import setup_logging
from src.scheduler import ResourceMonitorError, SchedulerConfig, SchedulerService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Single-node GPU job queue with drop-in control files"
    )
    parser.add_argument(
        "jobs",
        nargs="*",
        help="Jobs to queue at startup (paths, relative to --jobs-dir)",
    )
    parser.add_argument(
        "--background",
        action="store_true",
        default=None,
        help="Keep running and wait for new jobs when the queue is empty",
    )
    parser.add_argument(
        "--env",
        type=str,
        default=None,
        help="Named execution environment jobs run in (default: base)",
    )
    parser.add_argument(
        "--interpreter",
        type=str,
        default=None,
        help="Executable invoked inside the environment (default: python)",
    )
    parser.add_argument(
        "--control-dir",
        type=Path,
        default=None,
        help="Directory scanned for command files",
    )
    parser.add_argument(
        "--jobs-dir",
        type=Path,
        default=None,
        help="Base directory for relative job names (default: current directory)",
    )
    parser.add_argument(
        "--job-log-dir",
        type=Path,
        default=None,
        help="Keep job output in this directory instead of discarding it",
    )
    parser.add_argument(
        "--idle-interval",
        type=float,
        default=None,
        help="Seconds between idle checks (default: 60)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> SchedulerConfig:
    """Environment first, then command-line overrides."""
    config = SchedulerConfig.from_env()

    if args.background is not None:
        config.background_mode = args.background
    if args.env:
        config.env_name = args.env
    if args.interpreter:
        config.interpreter = args.interpreter
    if args.control_dir is not None:
        config.control_dir = args.control_dir.resolve()
    if args.jobs_dir is not None:
        config.jobs_dir = args.jobs_dir.resolve()
    if args.job_log_dir is not None:
        config.job_log_dir = args.job_log_dir.resolve()
    if args.idle_interval is not None:
        config.idle_interval = args.idle_interval

    return config


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()

    args = build_parser().parse_args(argv)

    log_level = (args.log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logger = setup_logging(log_level, log_dir=get_logs_dir())

    try:
        config = config_from_args(args)
        ensure_directories(config.control_dir, config.job_log_dir)
        service = SchedulerService.create(config, initial_jobs=args.jobs)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    def signal_handler(signum, frame):
        """SIGINT / SIGTERM - exit after the current job."""
        signal_name = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
        logger.info(f"{signal_name} received - exiting after the current job")
        service.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        service.run()
    except ResourceMonitorError as e:
        logger.critical(f"Aborting: GPU process visibility lost: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
