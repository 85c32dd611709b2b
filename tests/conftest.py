"""
Pytest configuration: every test runs against a throwaway SQLite database.
"""
import os
import tempfile

import pytest

# Must be set before anything imports geoattend.database.connection
_test_dir = tempfile.mkdtemp(prefix="geoattend-tests-")
os.environ["GEOATTEND_DB_PATH"] = os.path.join(_test_dir, "test.db")
os.environ["GEOATTEND_LOG_DIR"] = _test_dir
os.environ["SCHEDULER_ENABLED"] = "false"

from geoattend import create_app  # noqa: E402
from geoattend.database.connection import db_manager  # noqa: E402
from geoattend.models import Coordinate, GeofenceSite  # noqa: E402
from geoattend.repositories import geofence_repo, setting_repo  # noqa: E402
from geoattend.services.attendance_engine import attendance_engine  # noqa: E402
from geoattend.services.network_monitor import network_monitor  # noqa: E402
from geoattend.services.site_catalog import site_catalog  # noqa: E402

DOWNTOWN = Coordinate(21.1702, 72.8311)


@pytest.fixture(autouse=True)
def clean_state():
    db_manager.clear_all()
    setting_repo.initialize_defaults()
    site_catalog.teardown()
    attendance_engine.reset()
    network_monitor._online = True
    yield
    attendance_engine.reset()
    site_catalog.teardown()


@pytest.fixture
def downtown_site():
    return GeofenceSite(id="downtown", name="Downtown Office", center=DOWNTOWN, radius_km=0.5)


@pytest.fixture
def uptown_site():
    # About 3.3 km north of Downtown
    return GeofenceSite(
        id="uptown", name="Uptown Depot", center=Coordinate(21.2002, 72.8311), radius_km=0.5
    )


@pytest.fixture
def stored_sites(downtown_site, uptown_site):
    """Persist the two sample sites and return them as loaded from the database"""
    for site in (downtown_site, uptown_site):
        geofence_repo.create(site.to_dict())
    return geofence_repo.get_all()


@pytest.fixture
def app():
    return create_app({"TESTING": True, "SCHEDULER_ENABLED": False})


@pytest.fixture
def client(app):
    return app.test_client()
