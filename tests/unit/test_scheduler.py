"""Unit tests for SweepScheduler job registration and job bodies."""

from unittest.mock import MagicMock

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from roster.models import ScheduleConfig
from roster.repositories.subscription_store import StoreError
from roster.services.scheduler import EXPIRY_JOB_ID, WARNING_JOB_ID, SweepScheduler


@pytest.fixture
def service():
    service = MagicMock()
    service.process_expired.return_value = [("U1", "role")]
    service.process_warnings.return_value = {"warn_1day": 1, "warn_30min": 0}
    return service


@pytest.fixture
def sweep_scheduler(service):
    return SweepScheduler(service, ScheduleConfig(expiry_sweep_interval_minutes=60, warning_sweep_interval_minutes=5))


class TestJobRegistration:
    """Test the jobs added to APScheduler."""

    def test_registers_both_jobs(self, sweep_scheduler):
        sweep_scheduler.register_jobs()

        jobs = {job.id: job for job in sweep_scheduler.scheduler.get_jobs()}
        assert set(jobs) == {EXPIRY_JOB_ID, WARNING_JOB_ID}
        assert jobs[EXPIRY_JOB_ID].trigger.interval.total_seconds() == 3600
        assert jobs[WARNING_JOB_ID].trigger.interval.total_seconds() == 300

    def test_jobs_do_not_overlap(self, sweep_scheduler):
        sweep_scheduler.register_jobs()

        for job in sweep_scheduler.scheduler.get_jobs():
            assert job.max_instances == 1
            assert job.coalesce is True

    def test_disabled_schedule_does_not_start(self, service):
        scheduler = MagicMock(spec=AsyncIOScheduler)
        sweeps = SweepScheduler(service, ScheduleConfig(enabled=False), scheduler=scheduler)

        sweeps.start()

        scheduler.start.assert_not_called()
        scheduler.add_job.assert_not_called()

    def test_start_and_shutdown(self, service):
        scheduler = MagicMock(spec=AsyncIOScheduler)
        scheduler.running = True
        sweeps = SweepScheduler(service, ScheduleConfig(), scheduler=scheduler)

        sweeps.start()
        sweeps.shutdown()

        assert scheduler.add_job.call_count == 2
        scheduler.start.assert_called_once()
        scheduler.shutdown.assert_called_once_with(wait=False)


class TestJobBodies:
    """Test that job bodies run the sweeps and never raise."""

    def test_expiry_job(self, sweep_scheduler, service):
        assert sweep_scheduler.run_expiry_sweep() == [("U1", "role")]
        service.process_expired.assert_called_once_with()

    def test_warning_job(self, sweep_scheduler, service):
        assert sweep_scheduler.run_warning_sweep() == {"warn_1day": 1, "warn_30min": 0}

    def test_job_failure_is_contained(self, sweep_scheduler, service):
        service.process_expired.side_effect = StoreError("store down")
        service.process_warnings.side_effect = StoreError("store down")

        assert sweep_scheduler.run_expiry_sweep() is None
        assert sweep_scheduler.run_warning_sweep() is None
