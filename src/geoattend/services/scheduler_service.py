from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from geoattend.config import settings
from geoattend.services.network_monitor import network_monitor
from geoattend.services.sync_agent import sync_agent
from geoattend.shared.logger import app_logger


class SchedulerService:
    """Service for managing scheduled tasks"""

    def __init__(self, agent=None, monitor=None, sync_interval=None, check_interval=None):
        self.scheduler = None
        self.logger = app_logger
        self.is_running = False
        self.agent = agent or sync_agent
        self.monitor = monitor or network_monitor
        self.sync_interval = sync_interval or settings.SYNC_INTERVAL_SECONDS
        self.check_interval = check_interval or settings.NETWORK_CHECK_INTERVAL_SECONDS

    def start(self, run_startup_sync: bool = True):
        """Start the scheduler"""
        if self.scheduler and self.is_running:
            self.logger.warning("Scheduler is already running")
            return

        try:
            self.scheduler = BackgroundScheduler()

            self.scheduler.add_listener(self._job_executed_listener, EVENT_JOB_EXECUTED)
            self.scheduler.add_listener(self._job_error_listener, EVENT_JOB_ERROR)

            self._add_interval_job(
                self._run_periodic_sync, "periodic_attendance_sync", "Attendance sync", self.sync_interval
            )
            self._add_interval_job(
                self._run_network_check, "network_check", "Sync endpoint reachability check", self.check_interval
            )

            self.scheduler.start()
            self.is_running = True

            self.logger.info("Scheduler service started successfully")

        except Exception as e:
            self.logger.error(f"Failed to start scheduler: {e}")
            raise

        if run_startup_sync:
            # Logs left pending by a previous run
            self.agent.trigger_async("startup")

    def stop(self):
        """Stop the scheduler"""
        if self.scheduler and self.is_running:
            try:
                self.scheduler.shutdown(wait=False)
                self.is_running = False
                self.logger.info("Scheduler service stopped")
            except Exception as e:
                self.logger.error(f"Error stopping scheduler: {e}")

    def _add_interval_job(self, func, job_id: str, name: str, seconds: int):
        # A run that overlaps the next tick is skipped, never doubled up
        self.scheduler.add_job(
            func=func,
            trigger=IntervalTrigger(seconds=seconds),
            id=job_id,
            name=name,
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=seconds,
        )
        self.logger.info(f"{name} scheduled every {seconds} seconds")

    def _run_periodic_sync(self):
        """Execute periodic attendance sync job"""
        try:
            result = self.agent.trigger("periodic")

            if result.get("success"):
                synced = result.get("synced", 0)
                if synced:
                    self.logger.info(f"[CRON] Attendance Sync: Synced {synced} attendance records")
            else:
                self.logger.warning(
                    f"[CRON] Attendance Sync failed: {result.get('error', 'unknown error')}"
                )

        except Exception as e:
            self.logger.error(f"[CRON] Attendance Sync error: {e}")

    def _run_network_check(self):
        try:
            online = self.monitor.check_reachability()
            self.logger.debug(f"[CRON] Network check: {'online' if online else 'offline'}")
        except Exception as e:
            self.logger.error(f"[CRON] Network check error: {e}")

    def _job_executed_listener(self, event):
        self.logger.debug(f"Job '{event.job_id}' executed successfully")

    def _job_error_listener(self, event):
        self.logger.error(f"Job '{event.job_id}' crashed: {event.exception}")

    def get_status(self):
        """Get status of all scheduled jobs"""
        if not self.scheduler:
            return {"running": False, "jobs": []}

        jobs = [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": str(job.next_run_time) if job.next_run_time else None,
                "trigger": str(job.trigger),
            }
            for job in self.scheduler.get_jobs()
        ]
        return {"running": self.is_running, "jobs": jobs, "total_jobs": len(jobs)}


# Global scheduler instance
scheduler_service = SchedulerService()
