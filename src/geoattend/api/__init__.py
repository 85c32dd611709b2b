from flask import jsonify

from geoattend.exceptions import (
    GeoAttendError,
    LocationError,
    RecordNotFoundError,
    SessionError,
    StorageError,
)
from geoattend.shared.logger import app_logger


def error_status(error: Exception) -> int:
    """HTTP status for an engine error"""
    if isinstance(error, SessionError):
        return 409
    if isinstance(error, RecordNotFoundError):
        return 404
    if isinstance(error, StorageError):
        return 409
    if isinstance(error, (LocationError, ValueError)):
        return 400
    return 500


def error_response(error: Exception, context: str = None):
    status = error_status(error)
    message = error.message if isinstance(error, GeoAttendError) else str(error)

    if status >= 500:
        app_logger.error(f"Error {context or 'handling request'}: {error}", exc_info=True)
    else:
        app_logger.info(f"Rejected {context or 'request'}: {message}")

    return jsonify({"success": False, "error": message}), status
