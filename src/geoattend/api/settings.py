from flask import Blueprint, jsonify, request

from geoattend.api import error_response
from geoattend.config.config_manager import config_manager
from geoattend.repositories.setting_repository import setting_repo
from geoattend.schemas import settings_update_schema, validate_data
from geoattend.shared.logger import app_logger

bp = Blueprint("settings", __name__, url_prefix="/")


def _described_settings():
    descriptions = {key: description for key, (_, description) in setting_repo.DEFAULTS.items()}
    return [
        {"key": key, "value": value, "description": descriptions.get(key)}
        for key, value in config_manager.get_config().items()
    ]


@bp.route("/settings", methods=["GET"])
def get_all_settings():
    """Runtime settings with descriptions; the API key is redacted"""
    try:
        return jsonify({"success": True, "data": _described_settings()})
    except Exception as e:
        return error_response(e, "getting settings")


@bp.route("/settings", methods=["PUT"])
def update_settings():
    data = request.get_json(silent=True)

    valid, error = validate_data(data, settings_update_schema)
    if not valid:
        return jsonify({"success": False, "error": error}), 400

    try:
        config_manager.save_config(data)
    except ValueError as e:
        return jsonify({"success": False, "error": f"Invalid value: {e}"}), 400
    except Exception as e:
        return error_response(e, "updating settings")

    app_logger.info(f"Settings updated: {', '.join(sorted(data))}")
    return jsonify({
        "success": True,
        "message": "Settings updated successfully",
        "data": config_manager.get_config(),
    })
