from flask import Blueprint, jsonify, request

from geoattend.api import error_response
from geoattend.repositories import attendance_repo
from geoattend.schemas import network_status_schema, validate_data
from geoattend.services.network_monitor import network_monitor
from geoattend.services.scheduler_service import scheduler_service
from geoattend.services.sync_agent import sync_agent

bp = Blueprint("sync", __name__, url_prefix="/")


@bp.route("/sync", methods=["POST"])
def trigger_sync():
    """Run a sync now and return its outcome"""
    try:
        result = sync_agent.trigger("manual")
        status = 200 if result.get("success") else 502
        return jsonify({"success": result.get("success", False), "data": result}), status
    except Exception as e:
        return error_response(e, "triggering sync")


@bp.route("/network", methods=["POST"])
def report_network():
    """Report connectivity; going back online triggers a sync"""
    data = request.get_json(silent=True)

    valid, error = validate_data(data, network_status_schema)
    if not valid:
        return jsonify({"success": False, "error": error}), 400

    try:
        changed = network_monitor.set_online(data["online"])
        return jsonify({
            "success": True,
            "data": {"online": network_monitor.is_online, "changed": changed},
        })
    except Exception as e:
        return error_response(e, "reporting network status")


@bp.route("/sync/status", methods=["GET"])
def get_sync_status():
    try:
        last_run_at = sync_agent.last_run_at
        return jsonify({
            "success": True,
            "data": {
                "online": network_monitor.is_online,
                "syncing": sync_agent.is_syncing,
                "last_result": sync_agent.last_result,
                "last_run_at": last_run_at.isoformat() if last_run_at else None,
                "stats": attendance_repo.get_sync_stats(),
                "scheduler": scheduler_service.get_status(),
            },
        })
    except Exception as e:
        return error_response(e, "getting sync status")
