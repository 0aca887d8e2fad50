"""
Tests for SchedulerService wiring.
"""

import pytest

from src.scheduler import (
    EnvironmentJobHandler,
    SchedulerConfig,
    SchedulerService,
    SupervisorState,
)

from .conftest import FakeMonitor, MockJobHandler


@pytest.fixture
def config(control_dir, jobs_dir) -> SchedulerConfig:
    return SchedulerConfig(
        control_dir=control_dir,
        jobs_dir=jobs_dir,
        idle_interval=0.01,
    )


class TestCreate:
    """Tests for SchedulerService.create."""

    def test_wires_config_into_components(self, config, tmp_path):
        config.env_name = "torch"
        config.background_mode = True
        config.job_log_dir = tmp_path / "out"

        service = SchedulerService.create(config, initial_jobs=["a.job"], monitor=FakeMonitor())

        supervisor = service.supervisor
        assert service.state.queue.as_list() == ["a.job"]
        assert service.state.background_mode is True
        assert supervisor.channel.control_dir == config.control_dir
        assert supervisor.runner.jobs_dir == config.jobs_dir
        assert supervisor.idle_interval == 0.01

        handler = supervisor.runner.handler
        assert isinstance(handler, EnvironmentJobHandler)
        assert handler.env_name == "torch"
        assert handler.log_dir == tmp_path / "out"

    def test_invalid_config_rejected(self, config):
        config.job_template = ["python"]
        with pytest.raises(ValueError):
            SchedulerService.create(config)


class TestRunAndStop:
    """Tests for run() / stop()."""

    def test_run_drains_initial_jobs(self, config):
        handler = MockJobHandler()
        service = SchedulerService.create(
            config, initial_jobs=["a.job", "b.job"], handler=handler, monitor=FakeMonitor()
        )

        assert service.run() == SupervisorState.EXITING
        assert handler.job_names == ["a.job", "b.job"]

    def test_stop_finishes_current_job_only(self, config):
        handler = MockJobHandler()
        service = SchedulerService.create(
            config, initial_jobs=["a.job", "b.job"], handler=handler, monitor=FakeMonitor()
        )
        handler.on_execute = lambda path: service.stop()

        service.run()

        assert handler.job_names == ["a.job"]
        assert service.state.exit_requested is True
