"""
Pytest configuration and shared fixtures.
"""

import logging

import pytest

from src.infra.logging_config import LOGGER_NAME


_SCHEDULER_ENV_VARS = (
    "GPUQ_CONTROL_DIR",
    "GPUQ_JOBS_DIR",
    "GPUQ_JOB_LOG_DIR",
    "GPUQ_LOG_DIR",
    "GPUQ_ENV_NAME",
    "GPUQ_INTERPRETER",
    "GPUQ_JOB_TEMPLATE",
    "GPUQ_DISCARD_EXIT_STATUS",
    "GPUQ_BACKGROUND",
    "GPUQ_IDLE_INTERVAL",
    "GPUQ_IDLE_WAKE_ON_COMMAND",
    "GPUQ_SMI_COMMAND",
    "GPUQ_SMI_TIMEOUT",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True, scope="function")
def clean_scheduler_env(monkeypatch):
    """
    Remove scheduler environment variables before each test.

    A developer's .env or shell exports must not leak into test defaults.
    """
    for key in _SCHEDULER_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture(autouse=True, scope="function")
def reset_project_logger():
    """
    Undo setup_logging() after each test.

    setup_logging() turns off propagation, which would hide records
    from caplog in later tests.
    """
    yield

    project_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(project_logger.handlers):
        handler.close()
    project_logger.handlers.clear()
    project_logger.propagate = True
    project_logger.setLevel(logging.NOTSET)
