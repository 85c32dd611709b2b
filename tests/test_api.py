from io import BytesIO
from unittest.mock import MagicMock, patch

import pytest
from openpyxl import load_workbook

from geoattend.services.remote_sync_client import remote_sync_client
from geoattend.services.sync_agent import sync_agent

DOWNTOWN_SITE = {
    "id": "downtown",
    "name": "Downtown Office",
    "center": {"latitude": 21.1702, "longitude": 72.8311},
    "radius_km": 0.5,
}
AT_DOWNTOWN = {"latitude": 21.1702, "longitude": 72.8311, "accuracy": 8}
TWO_KM_NORTH = {"latitude": 21.1882, "longitude": 72.8311}


@pytest.fixture
def no_background_sync():
    with patch.object(sync_agent, "trigger_async") as trigger_async:
        yield trigger_async


@pytest.fixture
def site(client):
    response = client.post("/geofences", json=DOWNTOWN_SITE)
    assert response.status_code == 201
    return response.get_json()["data"]


def check_in(client, user_id="u1"):
    client.post(f"/attendance/{user_id}/position", json=AT_DOWNTOWN)
    client.post(f"/attendance/{user_id}/select-site", json={"site_id": "downtown"})
    return client.post(f"/attendance/{user_id}/check-in")


class TestGeofenceApi:

    def test_crud(self, client, site):
        assert site["id"] == "downtown"

        listed = client.get("/geofences").get_json()
        assert [s["id"] for s in listed["data"]] == ["downtown"]

        updated = client.put("/geofences/downtown", json={"radius_km": 1.2})
        assert updated.status_code == 200
        assert updated.get_json()["data"]["radius_km"] == 1.2

        assert client.delete("/geofences/downtown").status_code == 200
        assert client.get("/geofences/downtown").status_code == 404
        assert client.delete("/geofences/downtown").status_code == 404

    def test_validation(self, client):
        response = client.post("/geofences", json={"name": "No radius", "center": {"latitude": 1, "longitude": 2}})
        assert response.status_code == 400
        assert response.get_json()["success"] is False

        response = client.post("/geofences", json={**DOWNTOWN_SITE, "radius_km": 0})
        assert response.status_code == 400

    def test_duplicate_and_missing(self, client, site):
        assert client.post("/geofences", json=DOWNTOWN_SITE).status_code == 409
        assert client.put("/geofences/nope", json={"name": "x"}).status_code == 404


class TestAttendanceApi:

    def test_full_session(self, client, site, no_background_sync):
        response = check_in(client)
        assert response.status_code == 201
        record = response.get_json()["data"]
        assert record["sync_status"] == "pending"
        assert record["is_open"] is True

        again = client.post("/attendance/u1/check-in")
        assert again.status_code == 409
        assert again.get_json()["error"] == "Already checked in"

        moved = client.post("/attendance/u1/position", json=TWO_KM_NORTH).get_json()
        assert moved["data"]["session"]["status"] == "pending_checkout_confirmation"

        declined = client.post("/attendance/u1/decline-check-out").get_json()
        assert declined["data"]["session"]["status"] == "checked_in"

        closed = client.post("/attendance/u1/check-out")
        assert closed.status_code == 200
        assert closed.get_json()["data"]["is_open"] is False

        state = client.get("/attendance/u1/state").get_json()["data"]
        assert state["session"]["status"] == "no_active_session"
        assert no_background_sync.call_count == 2

    def test_confirm_check_out(self, client, site, no_background_sync):
        check_in(client)
        client.post("/attendance/u1/position", json=TWO_KM_NORTH)

        response = client.post("/attendance/u1/confirm-check-out")
        assert response.status_code == 200
        assert response.get_json()["data"]["check_out_time"] is not None

    def test_check_in_outside_zone(self, client, site, no_background_sync):
        client.post("/attendance/u1/position", json=TWO_KM_NORTH)
        client.post("/attendance/u1/select-site", json={"site_id": "downtown"})

        response = client.post("/attendance/u1/check-in")
        assert response.status_code == 409
        assert response.get_json()["error"].startswith("Not within geofence")

    def test_check_in_without_site(self, client, site):
        response = client.post("/attendance/u1/check-in")
        assert response.status_code == 409

    def test_select_unknown_site(self, client, site):
        response = client.post("/attendance/u1/select-site", json={"site_id": "nowhere"})
        assert response.status_code == 404

    def test_check_out_without_session(self, client):
        assert client.post("/attendance/u1/check-out").status_code == 409
        assert client.post("/attendance/u1/confirm-check-out").status_code == 409

    def test_invalid_position(self, client):
        response = client.post("/attendance/u1/position", json={"latitude": 120, "longitude": 0})
        assert response.status_code == 400

    def test_position_error(self, client):
        client.post("/attendance/u1/start")
        response = client.post(
            "/attendance/u1/position-error",
            json={"code": "permission_denied", "message": "User denied geolocation"},
        )
        data = response.get_json()["data"]
        assert data["tracking"] is False
        assert data["location_error"]["code"] == "permission_denied"

        bad = client.post("/attendance/u1/position-error", json={"code": "lost"})
        assert bad.status_code == 400

    def test_start_and_stop(self, client):
        assert client.post("/attendance/u1/start").get_json()["data"]["tracking"] is True
        stopped = client.post("/attendance/u1/stop").get_json()
        assert stopped["stopped"] is True
        assert stopped["data"]["tracking"] is False

    def test_logs_pending_and_stats(self, client, site, no_background_sync):
        check_in(client, "u1")
        check_in(client, "u2")

        logs = client.get("/attendance/logs?user_id=u2").get_json()
        assert logs["pagination"]["total"] == 1
        assert logs["data"][0]["user_id"] == "u2"

        pending = client.get("/attendance/pending").get_json()
        assert pending["count"] == 2

        stats = client.get("/attendance/stats").get_json()["data"]
        assert stats == {"pending": 2, "synced": 0, "failed": 0, "total": 2}

        assert client.get("/attendance/logs?date=2024-13-01").status_code == 400
        assert client.get("/attendance/logs?sync_status=lost").status_code == 400

    def test_user_history(self, client, site, no_background_sync):
        check_in(client)
        client.post("/attendance/u1/check-out")
        check_in(client)
        check_in(client, "u2")

        history = client.get("/attendance/u1/history").get_json()
        assert history["count"] == 2
        assert history["data"][0]["is_open"] is True
        assert history["data"][1]["is_open"] is False

        assert client.get("/attendance/u1/history?limit=1").get_json()["count"] == 1
        assert client.get("/attendance/u1/history?limit=many").status_code == 400

    def test_export_excel(self, client, site, no_background_sync):
        check_in(client)

        response = client.get("/attendance/export-excel")
        assert response.status_code == 200
        assert response.mimetype == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

        sheet = load_workbook(BytesIO(response.data)).active
        assert sheet.cell(row=1, column=2).value == "User ID"
        assert sheet.cell(row=2, column=2).value == "u1"
        assert sheet.cell(row=2, column=3).value == "Downtown Office"


class TestSyncApi:

    def test_sync_through_mock_remote(self, client, site, no_background_sync):
        check_in(client)
        client.put("/settings", json={"SYNC_ENDPOINT_URL": "http://localhost/remote/attendance"})

        def post_to_mock_remote(url, json=None, headers=None, timeout=None):
            reply = client.post("/remote/attendance", json=json)
            return MagicMock(status_code=reply.status_code, json=MagicMock(return_value=reply.get_json()))

        with patch.object(remote_sync_client, "session") as session:
            session.post.side_effect = post_to_mock_remote
            result = sync_agent.trigger("manual")

        assert result["synced"] == 1
        assert client.get("/attendance/pending").get_json()["count"] == 0
        assert client.get("/remote/attendance").get_json()["count"] == 1

        status = client.get("/sync/status").get_json()["data"]
        assert status["stats"]["synced"] == 1
        assert status["last_result"]["synced"] == 1
        assert status["scheduler"]["running"] is False

        client.delete("/remote/attendance")

    def test_manual_sync_without_endpoint(self, client, site, no_background_sync):
        check_in(client)

        response = client.post("/sync")
        assert response.status_code == 502
        assert response.get_json()["data"]["left_pending"] == 1

    def test_manual_sync_nothing_pending(self, client):
        response = client.post("/sync")
        assert response.status_code == 200
        assert response.get_json()["data"]["reason"] == "nothing_pending"

    def test_network_restore_triggers_sync(self, client, no_background_sync):
        offline = client.post("/network", json={"online": False}).get_json()
        assert offline["data"] == {"online": False, "changed": True}

        online = client.post("/network", json={"online": True}).get_json()
        assert online["data"]["changed"] is True
        no_background_sync.assert_called_once_with("network_restored")

        assert client.post("/network", json={}).status_code == 400


class TestRemoteMock:

    def test_rejects_empty_batch(self, client):
        assert client.post("/remote/attendance", json=[]).status_code == 400

    def test_answers_every_log(self, client):
        batch = [
            {"logId": "a", "userId": "u1", "siteId": "s", "checkInTime": "2024-03-04T09:00:00+00:00"},
            {"logId": "b", "userId": "u2", "siteId": "s", "checkInTime": "2024-03-04T09:05:00+00:00"},
        ]
        response = client.post("/remote/attendance", json=batch).get_json()
        assert [r["logId"] for r in response["results"]] == ["a", "b"]
        assert all(r["synced"] for r in response["results"])

        # Re-sent logs replace earlier copies
        client.post("/remote/attendance", json=batch[:1])
        assert client.get("/remote/attendance").get_json()["count"] == 2
        client.delete("/remote/attendance")


class TestSettingsApi:

    def test_get_redacts_api_key(self, client):
        client.put("/settings", json={"SYNC_API_KEY": "secret"})
        settings = {s["key"]: s["value"] for s in client.get("/settings").get_json()["data"]}

        assert settings["SYNC_API_KEY"] == "***"
        assert settings["AUTO_CHECKOUT_ON_EXIT"] is False

    def test_update(self, client):
        response = client.put("/settings", json={"AUTO_CHECKOUT_ON_EXIT": True, "SYNC_REQUEST_TIMEOUT": 10})
        data = response.get_json()["data"]
        assert data["AUTO_CHECKOUT_ON_EXIT"] is True
        assert data["SYNC_REQUEST_TIMEOUT"] == 10.0

    def test_rejects_unknown_and_invalid(self, client):
        assert client.put("/settings", json={"DEBUG": True}).status_code == 400
        assert client.put("/settings", json={"SYNC_REQUEST_TIMEOUT": -1}).status_code == 400
        assert client.put("/settings", json={"AUTO_CHECKOUT_ON_EXIT": "perhaps"}).status_code == 400


class TestLiveEvents:

    def test_stream_starts_with_connected_event(self, client):
        response = client.get("/live-events")
        try:
            assert response.mimetype == "text/event-stream"
            first = next(iter(response.response))
            if isinstance(first, bytes):
                first = first.decode()
            assert first.startswith("event: connected")
        finally:
            response.close()
