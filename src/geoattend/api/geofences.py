from flask import Blueprint, jsonify, request

from geoattend.api import error_response
from geoattend.events import attendance_event_stream
from geoattend.repositories import geofence_repo
from geoattend.schemas import geofence_site_schema, geofence_site_update_schema, validate_data
from geoattend.services.site_catalog import site_catalog
from geoattend.shared.logger import app_logger

bp = Blueprint("geofences", __name__, url_prefix="/")


def _sites_changed(action: str, site_id: str):
    site_catalog.invalidate()
    attendance_event_stream.publish("geofences_changed", {"action": action, "site_id": site_id})


@bp.route("/geofences", methods=["GET"])
def get_geofences():
    """Get all geofence sites"""
    try:
        sites = geofence_repo.get_all()
        return jsonify({"success": True, "data": [site.to_dict() for site in sites]})
    except Exception as e:
        return error_response(e, "getting geofences")


@bp.route("/geofences/<site_id>", methods=["GET"])
def get_geofence(site_id):
    try:
        site = geofence_repo.get_by_id(site_id)
        if not site:
            return jsonify({"success": False, "error": "Geofence site not found"}), 404
        return jsonify({"success": True, "data": site.to_dict()})
    except Exception as e:
        return error_response(e, f"getting geofence {site_id}")


@bp.route("/geofences", methods=["POST"])
def create_geofence():
    """Create a geofence site"""
    data = request.get_json(silent=True)

    valid, error = validate_data(data, geofence_site_schema)
    if not valid:
        return jsonify({"success": False, "error": error}), 400

    try:
        site = geofence_repo.create(data)
        _sites_changed("created", site.id)
        app_logger.info(f"[GEOFENCE] Created site {site.name} ({site.id})")
        return jsonify({"success": True, "data": site.to_dict()}), 201
    except Exception as e:
        return error_response(e, "creating geofence")


@bp.route("/geofences/<site_id>", methods=["PUT"])
def update_geofence(site_id):
    data = request.get_json(silent=True)

    valid, error = validate_data(data, geofence_site_update_schema)
    if not valid:
        return jsonify({"success": False, "error": error}), 400

    try:
        site = geofence_repo.update(site_id, data)
        _sites_changed("updated", site.id)
        app_logger.info(f"[GEOFENCE] Updated site {site.name} ({site.id})")
        return jsonify({"success": True, "data": site.to_dict()})
    except Exception as e:
        return error_response(e, f"updating geofence {site_id}")


@bp.route("/geofences/<site_id>", methods=["DELETE"])
def delete_geofence(site_id):
    try:
        if not geofence_repo.delete(site_id):
            return jsonify({"success": False, "error": "Geofence site not found"}), 404
        _sites_changed("deleted", site_id)
        app_logger.info(f"[GEOFENCE] Deleted site {site_id}")
        return jsonify({"success": True, "message": f"Geofence site {site_id} deleted"})
    except Exception as e:
        return error_response(e, f"deleting geofence {site_id}")
