import json
import threading
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from geoattend.events import EventStream
from geoattend.exceptions import SyncError
from geoattend.models import AttendanceLogRecord, SyncStatus
from geoattend.repositories import AttendanceRepository
from geoattend.services.network_monitor import NetworkMonitor
from geoattend.services.remote_sync_client import SyncVerdict
from geoattend.services.sync_agent import SyncAgent

T0 = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


def verdicts_for(records, synced=True, message="ok"):
    return [SyncVerdict(r.remote_log_id, synced, message) for r in records]


class TestSyncAgent:

    @pytest.fixture
    def store(self):
        return AttendanceRepository()

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.send_batch.side_effect = lambda records: verdicts_for(records)
        return client

    @pytest.fixture
    def network(self):
        return NetworkMonitor(online=True, url_getter=lambda: "")

    @pytest.fixture
    def events(self):
        return EventStream()

    @pytest.fixture
    def agent(self, store, client, network, events):
        return SyncAgent(store=store, client=client, network=network, event_stream=events)

    def add_record(self, store, user_id="u1"):
        return store.append(
            AttendanceLogRecord(
                remote_log_id=str(uuid.uuid4()),
                user_id=user_id,
                site_id="downtown",
                site_name="Downtown Office",
                check_in_time=T0,
            )
        )

    def test_partial_success_leaves_failed_record_pending(self, agent, store, client):
        good = self.add_record(store, "u1")
        bad = self.add_record(store, "u2")
        client.send_batch.side_effect = lambda records: [
            SyncVerdict(good.remote_log_id, True, "Successfully synced to server."),
            SyncVerdict(bad.remote_log_id, False, "Rejected"),
        ]

        result = agent.trigger("test")

        assert result["success"] is True
        assert result["synced"] == 1
        assert result["failed"] == 1
        assert [r.id for r in store.query_pending()] == [bad.id]

        synced = store.get_by_id(good.id)
        assert synced.sync_status == SyncStatus.SYNCED
        assert synced.synced_at is not None
        assert synced.sync_attempts == 1

        failed = store.get_by_id(bad.id)
        assert failed.sync_status == SyncStatus.FAILED
        assert failed.last_sync_message == "Rejected"

    def test_whole_batch_sent_in_one_request(self, agent, store, client):
        records = [self.add_record(store) for _ in range(3)]

        agent.trigger("test")

        client.send_batch.assert_called_once()
        sent = client.send_batch.call_args[0][0]
        assert [r.id for r in sent] == [r.id for r in records]

    def test_synced_record_stays_out_of_pending(self, agent, store, client):
        self.add_record(store)
        agent.trigger("first")

        for _ in range(3):
            result = agent.trigger("again")
            assert result["reason"] == "nothing_pending"
            assert store.query_pending() == []
        assert client.send_batch.call_count == 1

    def test_offline_exits_without_sending(self, agent, store, client, network):
        self.add_record(store)
        network.set_online(False)

        result = agent.trigger("test")

        assert result == {"success": True, "skipped": True, "reason": "offline"}
        client.send_batch.assert_not_called()
        assert len(store.query_pending()) == 1

    def test_request_failure_keeps_records_pending(self, agent, store, client, events):
        record = self.add_record(store)
        client.send_batch.side_effect = SyncError("Sync request failed: connection refused")
        subscriber = events.subscribe()

        result = agent.trigger("test")

        assert result["success"] is False
        assert result["left_pending"] == 1
        assert store.get_by_id(record.id).sync_status == SyncStatus.PENDING
        assert json.loads(subscriber.get_nowait())["type"] == "sync_failed"
        assert not agent.is_syncing

    def test_unexpected_error_is_contained(self, agent, store, client):
        self.add_record(store)
        client.send_batch.side_effect = RuntimeError("boom")

        result = agent.trigger("test")
        assert result["success"] is False
        assert result["error"] == "boom"
        assert not agent.is_syncing

        client.send_batch.side_effect = lambda records: verdicts_for(records)
        assert agent.trigger("retry")["synced"] == 1

    def test_single_flight(self, agent, store, client):
        self.add_record(store)
        in_flight = threading.Event()
        release = threading.Event()

        def slow_send(records):
            in_flight.set()
            release.wait(5)
            return verdicts_for(records)

        client.send_batch.side_effect = slow_send

        first = threading.Thread(target=agent.trigger, args=("first",))
        first.start()
        assert in_flight.wait(5)

        second = agent.trigger("second")
        assert second == {"success": True, "skipped": True, "reason": "in_progress"}
        assert agent.trigger_async("third") is None

        release.set()
        first.join(5)
        assert client.send_batch.call_count == 1
        assert agent.last_result["synced"] == 1

    def test_record_changed_in_flight_stays_pending(self, agent, store, client):
        record = self.add_record(store)

        def send_while_checking_out(records):
            store.update(record.id, {"check_out_time": T0 + timedelta(hours=8)})
            return verdicts_for(records)

        client.send_batch.side_effect = send_while_checking_out

        result = agent.trigger("test")

        assert result["synced"] == 0
        assert result["left_pending"] == 1
        current = store.get_by_id(record.id)
        assert current.sync_status == SyncStatus.PENDING
        assert current.check_out_time is not None

    def test_check_out_just_before_reconcile_write_stays_pending(self, agent, store):
        record = self.add_record(store)
        real_update = store.update

        def update_after_check_out(local_id, changes, expected_revision=None):
            if expected_revision is not None:
                # Request thread checks out between the verdict and the write
                real_update(local_id, {"check_out_time": T0 + timedelta(hours=8)})
            return real_update(local_id, changes, expected_revision=expected_revision)

        with patch.object(store, "update", side_effect=update_after_check_out):
            result = agent.trigger("test")

        assert result["synced"] == 0
        assert result["left_pending"] == 1
        current = store.get_by_id(record.id)
        assert current.sync_status == SyncStatus.PENDING
        assert current.check_out_time is not None
        assert [r.id for r in store.query_pending()] == [record.id]

    def test_failed_records_are_retried(self, agent, store, client):
        record = self.add_record(store)
        store.update(record.id, {"sync_status": SyncStatus.FAILED})

        result = agent.trigger("retry")

        sent = client.send_batch.call_args[0][0]
        assert sent[0].sync_status == SyncStatus.PENDING
        assert result["synced"] == 1
        assert store.query_pending() == []

    def test_missing_verdict_leaves_record_pending(self, agent, store, client):
        answered = self.add_record(store)
        unanswered = self.add_record(store)
        client.send_batch.side_effect = lambda records: [
            SyncVerdict(answered.remote_log_id, True, "ok"),
            SyncVerdict("unknown-log", True, "ok"),
        ]

        result = agent.trigger("test")

        assert result["synced"] == 1
        assert result["left_pending"] == 1
        assert store.get_by_id(unanswered.id).sync_status == SyncStatus.PENDING

    def test_network_restore_triggers_sync(self, agent, network):
        network.set_online(False)
        with patch.object(agent, "trigger_async") as trigger_async:
            network.set_online(True)
            network.set_online(True)

        trigger_async.assert_called_once_with("network_restored")

    def test_trigger_async_runs_in_background(self, agent, store):
        record = self.add_record(store)

        thread = agent.trigger_async("check_out")
        thread.join(5)

        assert store.get_by_id(record.id).sync_status == SyncStatus.SYNCED
