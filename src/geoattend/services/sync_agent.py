import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from geoattend.events import attendance_event_stream
from geoattend.exceptions import RecordNotFoundError, StaleRecordError, SyncError
from geoattend.models import SyncStatus
from geoattend.repositories import attendance_repo
from geoattend.services.network_monitor import network_monitor
from geoattend.services.remote_sync_client import remote_sync_client
from geoattend.shared.logger import app_logger


class SyncAgent:
    """Pushes pending attendance records to the remote endpoint.

    trigger() is single-flight: while a sync runs, further triggers are
    dropped, not queued. It never raises; failures leave records pending
    (or failed) for the next trigger.
    """

    def __init__(self, store=None, client=None, network=None, event_stream=None):
        self.store = store or attendance_repo
        self.client = client or remote_sync_client
        self.network = network or network_monitor
        self.event_stream = event_stream or attendance_event_stream
        self.logger = app_logger

        self._lock = threading.Lock()
        self.last_result: Optional[Dict[str, Any]] = None
        self.last_run_at: Optional[datetime] = None

        self.network.add_restore_listener(self._on_network_restored)

    @property
    def is_syncing(self) -> bool:
        return self._lock.locked()

    def trigger(self, reason: str = "manual") -> Dict[str, Any]:
        if not self._lock.acquire(blocking=False):
            self.logger.info(f"[SYNC] Sync already in progress; ignoring '{reason}' trigger")
            return {"success": True, "skipped": True, "reason": "in_progress"}

        try:
            result = self._run(reason)
        except Exception as e:
            self.logger.error(f"[SYNC] Unexpected sync error ({reason}): {e}", exc_info=True)
            self._notify_failure(str(e))
            result = {"success": False, "skipped": False, "reason": reason, "error": str(e)}
        finally:
            self._lock.release()

        self.last_result = result
        self.last_run_at = datetime.now(timezone.utc)
        return result

    def trigger_async(self, reason: str = "manual") -> Optional[threading.Thread]:
        """Run trigger() on a background thread; returns None if a sync is already running"""
        if self.is_syncing:
            self.logger.info(f"[SYNC] Sync already in progress; ignoring '{reason}' trigger")
            return None

        thread = threading.Thread(
            target=self.trigger, args=(reason,), daemon=True, name=f"Sync-{reason}"
        )
        thread.start()
        return thread

    def _on_network_restored(self) -> None:
        self.trigger_async("network_restored")

    def _run(self, reason: str) -> Dict[str, Any]:
        if not self.network.is_online:
            self.logger.warning(f"[SYNC] Offline; attendance logs will sync when back online ({reason})")
            return {"success": True, "skipped": True, "reason": "offline"}

        pending = self.store.query_pending()
        if not pending:
            return {"success": True, "skipped": True, "reason": "nothing_pending", "sent": 0}

        # Failed records get another chance
        requeued = [record for record in pending if record.sync_status == SyncStatus.FAILED]
        for record in requeued:
            self.store.update(record.id, {"sync_status": SyncStatus.PENDING})
        if requeued:
            pending = self.store.query_pending()

        self.logger.info(f"[SYNC] Sending {len(pending)} attendance log(s) ({reason})")

        try:
            verdicts = self.client.send_batch(pending)
        except SyncError as e:
            self.logger.error(f"[SYNC] Sync failed, will retry: {e.message}")
            self._notify_failure(e.message)
            return {
                "success": False,
                "skipped": False,
                "reason": reason,
                "sent": len(pending),
                "synced": 0,
                "failed": 0,
                "left_pending": len(pending),
                "error": e.message,
            }

        sent = {record.remote_log_id: record for record in pending}
        synced_count = 0
        failed_count = 0
        answered = set()

        for verdict in verdicts:
            snapshot = sent.get(verdict.log_id)
            if snapshot is None:
                self.logger.warning(f"[SYNC] Verdict for unknown log {verdict.log_id}; ignoring")
                continue
            answered.add(verdict.log_id)

            changes = {
                "sync_attempts": snapshot.sync_attempts + 1,
                "last_sync_message": verdict.message,
            }
            if verdict.synced:
                changes.update(sync_status=SyncStatus.SYNCED, synced_at=datetime.now(timezone.utc))
            else:
                changes.update(sync_status=SyncStatus.FAILED)

            try:
                self.store.update(snapshot.id, changes, expected_revision=snapshot.revision)
            except (StaleRecordError, RecordNotFoundError):
                # Changed locally while in flight (e.g. check-out); resend next time
                self.logger.info(f"[SYNC] Log {verdict.log_id} changed during sync; left pending")
                continue

            if verdict.synced:
                synced_count += 1
            else:
                failed_count += 1
                self.logger.warning(f"[SYNC] Log {verdict.log_id} failed to sync: {verdict.message}")

        left_pending = len(pending) - synced_count - failed_count
        unanswered = len(sent.keys() - answered)
        if unanswered:
            self.logger.warning(f"[SYNC] {unanswered} log(s) had no verdict; left pending")

        self.logger.info(
            f"[SYNC] Sync finished: {synced_count} synced, {failed_count} failed, {left_pending} pending"
        )

        result = {
            "success": True,
            "skipped": False,
            "reason": reason,
            "sent": len(pending),
            "synced": synced_count,
            "failed": failed_count,
            "left_pending": left_pending,
        }
        self.event_stream.publish("sync_completed", result)
        return result

    def _notify_failure(self, message: str) -> None:
        self.event_stream.publish(
            "sync_failed",
            {"message": "Sync failed, will retry", "error": message},
        )


sync_agent = SyncAgent()
