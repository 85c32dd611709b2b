from unittest.mock import MagicMock

import pytest

from geoattend.services.scheduler_service import SchedulerService


class TestSchedulerService:

    @pytest.fixture
    def agent(self):
        agent = MagicMock()
        agent.trigger.return_value = {"success": True, "synced": 2}
        return agent

    @pytest.fixture
    def monitor(self):
        return MagicMock()

    @pytest.fixture
    def service(self, agent, monitor):
        service = SchedulerService(agent=agent, monitor=monitor, sync_interval=60, check_interval=30)
        yield service
        service.stop()

    def test_start_registers_jobs_and_syncs_leftovers(self, service, agent):
        service.start()

        status = service.get_status()
        assert status["running"] is True
        assert sorted(job["id"] for job in status["jobs"]) == ["network_check", "periodic_attendance_sync"]
        agent.trigger_async.assert_called_once_with("startup")

    def test_start_twice_is_ignored(self, service):
        service.start(run_startup_sync=False)
        first = service.scheduler
        service.start(run_startup_sync=False)

        assert service.scheduler is first
        assert service.get_status()["total_jobs"] == 2

    def test_stop(self, service):
        assert service.get_status() == {"running": False, "jobs": []}
        service.start(run_startup_sync=False)
        service.stop()

        assert service.get_status()["running"] is False

    def test_jobs_delegate_and_survive_errors(self, service, agent, monitor):
        service._run_periodic_sync()
        agent.trigger.assert_called_once_with("periodic")

        agent.trigger.side_effect = RuntimeError("database locked")
        service._run_periodic_sync()

        monitor.check_reachability.side_effect = RuntimeError("no route")
        service._run_network_check()
        monitor.check_reachability.assert_called_once_with()
