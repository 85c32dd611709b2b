"""Stand-in for the remote attendance server.

Accepts the batch the sync agent sends and answers every logId as synced.
Entries are kept in memory keyed by logId, so a re-sent record replaces
its earlier copy instead of being counted twice.
"""

import threading

from flask import Blueprint, jsonify, request

from geoattend.schemas import sync_batch_schema, validate_data
from geoattend.shared.logger import app_logger

bp = Blueprint("remote", __name__, url_prefix="/remote")

_received = {}
_received_lock = threading.Lock()


@bp.route("/attendance", methods=["POST"])
def receive_attendance():
    logs = request.get_json(silent=True)

    valid, error = validate_data(logs, sync_batch_schema)
    if not valid:
        return jsonify({"error": "No attendance logs provided or invalid format.", "details": error}), 400

    with _received_lock:
        for log in logs:
            _received[log["logId"]] = log

    app_logger.info(f"[SYNC] Mock remote received {len(logs)} attendance log(s)")

    results = [
        {"logId": log["logId"], "synced": True, "message": "Successfully synced to server."}
        for log in logs
    ]
    return jsonify({"message": "Attendance logs processed.", "results": results})


@bp.route("/attendance", methods=["GET"])
def list_received_attendance():
    with _received_lock:
        logs = list(_received.values())
    return jsonify({"success": True, "data": logs, "count": len(logs)})


@bp.route("/attendance", methods=["DELETE"])
def clear_received_attendance():
    with _received_lock:
        _received.clear()
    return jsonify({"success": True})
