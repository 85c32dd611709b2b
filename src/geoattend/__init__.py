import atexit
import logging
import os

import sentry_sdk
from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

from geoattend.shared.logger import create_log_handler

load_dotenv()

# Long-lived SSE requests would otherwise flood the werkzeug access log
QUIET_ENDPOINTS = ("/live-events",)


class EndpointFilter(logging.Filter):
    """Drop werkzeug access log lines for the given paths"""

    def __init__(self, *paths):
        super().__init__()
        self.paths = paths

    def filter(self, record):
        message = record.getMessage()
        return not any(path in message for path in self.paths)


def create_app(test_config=None):
    from geoattend.database.connection import db_manager
    from geoattend.repositories.setting_repository import setting_repo

    app = Flask(__name__)
    CORS(
        app,
        origins=["*"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
        methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    )

    app.config.from_object("geoattend.config.settings")
    if test_config:
        app.config.update(test_config)

    init_sentry(app.config.get("SENTRY_DSN"))

    app.logger.addHandler(create_log_handler())
    app.logger.setLevel(logging.INFO)
    logging.getLogger("werkzeug").addFilter(EndpointFilter(*QUIET_ENDPOINTS))

    register_blueprints(app)

    @app.teardown_appcontext
    def close_db_connection(exception=None):
        db_manager.close_connection()

    setting_repo.initialize_defaults()

    if app.config.get("TESTING") or not app.config.get("SCHEDULER_ENABLED", True):
        app.logger.info("Background sync scheduler disabled")
    elif os.environ.get("WERKZEUG_RUN_MAIN") in (None, "true"):
        # Under the reloader only the child process ("true") runs jobs
        start_background_services(app)
    else:
        app.logger.info("Skipping scheduler start in reloader process")

    return app


def register_blueprints(app):
    from geoattend.api.attendance import bp as attendance_bp
    from geoattend.api.events import bp as events_bp
    from geoattend.api.geofences import bp as geofences_bp
    from geoattend.api.remote import bp as remote_bp
    from geoattend.api.settings import bp as settings_bp
    from geoattend.api.sync import bp as sync_bp

    for blueprint in (geofences_bp, attendance_bp, sync_bp, settings_bp, events_bp, remote_bp):
        app.register_blueprint(blueprint)


def start_background_services(app):
    from geoattend.database.connection import db_manager
    from geoattend.services.attendance_engine import attendance_engine
    from geoattend.services.scheduler_service import scheduler_service

    try:
        scheduler_service.start()
    except Exception as e:
        app.logger.error(f"Failed to start scheduler service: {e}", exc_info=True)
        return

    def cleanup_services():
        app.logger.info("Shutting down attendance services...")
        scheduler_service.stop()
        attendance_engine.stop_all()
        db_manager.close_all_connections()

    atexit.register(cleanup_services)


def init_sentry(dsn=None):
    if not dsn:
        return
    sentry_sdk.init(dsn=dsn, traces_sample_rate=1.0)
