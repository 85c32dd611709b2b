from datetime import datetime, time, timezone

from flask import Blueprint, jsonify, request, send_file

from geoattend.api import error_response
from geoattend.exceptions import LocationError
from geoattend.models import Coordinate, SyncStatus
from geoattend.repositories import attendance_repo
from geoattend.schemas import (
    position_error_schema,
    position_report_schema,
    select_site_schema,
    validate_data,
)
from geoattend.services.attendance_engine import attendance_engine
from geoattend.shared.logger import app_logger
from geoattend.utils.excel_export import XLSX_MIMETYPE, build_attendance_workbook, export_filename

bp = Blueprint("attendance", __name__, url_prefix="/")


def _parse_date(value: str, end_of_day: bool = False):
    """YYYY-MM-DD -> UTC datetime at the start (or end) of that day"""
    day = datetime.strptime(value, "%Y-%m-%d").date()
    return datetime.combine(day, time.max if end_of_day else time.min, tzinfo=timezone.utc)


def _date_range_from_args():
    start_date_str = request.args.get("start_date")
    end_date_str = request.args.get("end_date")
    date_str = request.args.get("date")

    if date_str:
        start_date_str = end_date_str = date_str

    start_date = _parse_date(start_date_str) if start_date_str else None
    end_date = _parse_date(end_date_str, end_of_day=True) if end_date_str else None
    return start_date, end_date, start_date_str, end_date_str


def _state_payload(user_id: str):
    return attendance_engine.get_status(user_id)


# Session commands


@bp.route("/attendance/<user_id>/start", methods=["POST"])
def start_tracking(user_id):
    """Start watching the user's position reports"""
    try:
        attendance_engine.start_tracking(user_id)
        return jsonify({"success": True, "data": _state_payload(user_id)})
    except Exception as e:
        return error_response(e, f"starting tracking for {user_id}")


@bp.route("/attendance/<user_id>/stop", methods=["POST"])
def stop_tracking(user_id):
    try:
        stopped = attendance_engine.stop_tracking(user_id)
        return jsonify({"success": True, "stopped": stopped, "data": _state_payload(user_id)})
    except Exception as e:
        return error_response(e, f"stopping tracking for {user_id}")


@bp.route("/attendance/<user_id>/select-site", methods=["POST"])
def select_site(user_id):
    data = request.get_json(silent=True)

    valid, error = validate_data(data, select_site_schema)
    if not valid:
        return jsonify({"success": False, "error": error}), 400

    try:
        attendance_engine.select_site(user_id, data["site_id"])
        return jsonify({"success": True, "data": _state_payload(user_id)})
    except Exception as e:
        return error_response(e, f"selecting site for {user_id}")


@bp.route("/attendance/<user_id>/position", methods=["POST"])
def report_position(user_id):
    """Position fix reported by the user's device"""
    data = request.get_json(silent=True)

    valid, error = validate_data(data, position_report_schema)
    if not valid:
        return jsonify({"success": False, "error": error}), 400

    try:
        position = Coordinate.from_dict(data)
        attendance_engine.report_position(user_id, position)
        return jsonify({"success": True, "data": _state_payload(user_id)})
    except Exception as e:
        return error_response(e, f"handling position for {user_id}")


@bp.route("/attendance/<user_id>/position-error", methods=["POST"])
def report_position_error(user_id):
    data = request.get_json(silent=True)

    valid, error = validate_data(data, position_error_schema)
    if not valid:
        return jsonify({"success": False, "error": error}), 400

    try:
        location_error = LocationError(data["code"], data.get("message"))
        attendance_engine.report_location_error(user_id, location_error)
        app_logger.warning(f"[GEOFENCE] Location error for user {user_id}: {location_error.code}")
        return jsonify({"success": True, "data": _state_payload(user_id)})
    except Exception as e:
        return error_response(e, f"handling position error for {user_id}")


@bp.route("/attendance/<user_id>/check-in", methods=["POST"])
def check_in(user_id):
    try:
        record = attendance_engine.check_in(user_id)
        return jsonify({
            "success": True,
            "message": f"Checked in at {record.site_name}",
            "data": record.to_dict(),
        }), 201
    except Exception as e:
        return error_response(e, f"checking in {user_id}")


@bp.route("/attendance/<user_id>/check-out", methods=["POST"])
def check_out(user_id):
    try:
        record = attendance_engine.check_out(user_id)
        return jsonify({
            "success": True,
            "message": f"Checked out from {record.site_name}",
            "data": record.to_dict(),
        })
    except Exception as e:
        return error_response(e, f"checking out {user_id}")


@bp.route("/attendance/<user_id>/confirm-check-out", methods=["POST"])
def confirm_check_out(user_id):
    try:
        record = attendance_engine.confirm_check_out(user_id)
        return jsonify({
            "success": True,
            "message": f"Checked out from {record.site_name}",
            "data": record.to_dict(),
        })
    except Exception as e:
        return error_response(e, f"confirming check-out for {user_id}")


@bp.route("/attendance/<user_id>/decline-check-out", methods=["POST"])
def decline_check_out(user_id):
    try:
        attendance_engine.decline_check_out(user_id)
        return jsonify({"success": True, "data": _state_payload(user_id)})
    except Exception as e:
        return error_response(e, f"declining check-out for {user_id}")


@bp.route("/attendance/<user_id>/state", methods=["GET"])
def get_state(user_id):
    try:
        return jsonify({"success": True, "data": _state_payload(user_id)})
    except Exception as e:
        return error_response(e, f"getting state for {user_id}")


@bp.route("/attendance/<user_id>/history", methods=["GET"])
def get_user_history(user_id):
    """The user's most recent attendance records, newest first"""
    try:
        limit = min(int(request.args.get("limit", 100)), 1000)
        logs = attendance_repo.get_by_user(user_id, limit=limit)
        return jsonify({"success": True, "data": [log.to_dict() for log in logs], "count": len(logs)})
    except Exception as e:
        return error_response(e, f"getting history for {user_id}")


# Log queries


@bp.route("/attendance/logs", methods=["GET"])
def get_attendance_logs():
    """Get stored attendance logs with pagination and filtering

    Query parameters:
    - user_id: Filter by user ID
    - sync_status: pending, synced or failed
    - limit: Max records to return (default: 100, max: 1000)
    - offset: Number of records to skip (default: 0)
    - date: Single date filter (YYYY-MM-DD)
    - start_date / end_date: Date range on check-in time (YYYY-MM-DD)
    """
    try:
        user_id = request.args.get("user_id")
        sync_status = request.args.get("sync_status")
        limit = min(int(request.args.get("limit", 100)), 1000)
        offset = int(request.args.get("offset", 0))

        if sync_status and sync_status not in SyncStatus.ALL:
            return jsonify({"success": False, "error": f"Invalid sync_status '{sync_status}'"}), 400

        try:
            start_date, end_date, _, _ = _date_range_from_args()
        except ValueError:
            return jsonify({"success": False, "error": "Invalid date format. Use YYYY-MM-DD"}), 400

        logs = attendance_repo.get_all(
            user_id=user_id,
            sync_status=sync_status,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            offset=offset,
        )
        total = attendance_repo.get_total_count(user_id, sync_status, start_date, end_date)

        return jsonify({
            "success": True,
            "data": [log.to_dict() for log in logs],
            "pagination": {"limit": limit, "offset": offset, "count": len(logs), "total": total},
        })

    except ValueError as e:
        return jsonify({"success": False, "error": f"Invalid value: {e}"}), 400
    except Exception as e:
        return error_response(e, "getting attendance logs")


@bp.route("/attendance/pending", methods=["GET"])
def get_pending_logs():
    """Records still owed to the server (pending and failed)"""
    try:
        logs = attendance_repo.query_pending()
        return jsonify({"success": True, "data": [log.to_dict() for log in logs], "count": len(logs)})
    except Exception as e:
        return error_response(e, "getting pending logs")


@bp.route("/attendance/stats", methods=["GET"])
def get_attendance_stats():
    try:
        return jsonify({"success": True, "data": attendance_repo.get_sync_stats()})
    except Exception as e:
        return error_response(e, "getting attendance stats")


@bp.route("/attendance/export-excel", methods=["GET"])
def export_attendance_excel():
    """Export attendance logs to an Excel file, optionally filtered by user and date range"""
    try:
        try:
            start_date, end_date, start_date_str, end_date_str = _date_range_from_args()
        except ValueError:
            return jsonify({"success": False, "error": "Invalid date format. Use YYYY-MM-DD"}), 400

        logs = attendance_repo.get_all(
            user_id=request.args.get("user_id"),
            start_date=start_date,
            end_date=end_date,
            limit=100000,
            offset=0,
        )
        excel_file = build_attendance_workbook(logs)

        app_logger.info(f"Exported {len(logs)} attendance records to Excel")

        return send_file(
            excel_file,
            mimetype=XLSX_MIMETYPE,
            as_attachment=True,
            download_name=export_filename(start_date_str, end_date_str),
        )

    except Exception as e:
        return error_response(e, "exporting attendance to Excel")
