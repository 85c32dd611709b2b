import pytest

from geoattend.exceptions import DuplicateRecordError, RecordNotFoundError
from geoattend.models import Coordinate
from geoattend.repositories import geofence_repo


class TestGeofenceRepository:

    def test_create_and_list_in_insertion_order(self, downtown_site, uptown_site):
        geofence_repo.create(uptown_site.to_dict())
        geofence_repo.create(downtown_site.to_dict())

        assert [site.id for site in geofence_repo.get_all()] == ["uptown", "downtown"]

    def test_generated_id(self):
        site = geofence_repo.create({
            "name": "Warehouse",
            "center": {"latitude": 10, "longitude": 20},
            "radius_km": 1,
        })
        assert site.id
        assert geofence_repo.get_by_id(site.id).name == "Warehouse"

    def test_duplicate_id_rejected(self, downtown_site):
        geofence_repo.create(downtown_site.to_dict())
        with pytest.raises(DuplicateRecordError):
            geofence_repo.create(downtown_site.to_dict())

    def test_update_merges_fields(self, downtown_site):
        geofence_repo.create(downtown_site.to_dict())
        updated = geofence_repo.update("downtown", {"radius_km": 0.75})

        assert updated.radius_km == 0.75
        assert updated.name == "Downtown Office"
        assert updated.center == downtown_site.center

    def test_update_missing_site(self):
        with pytest.raises(RecordNotFoundError):
            geofence_repo.update("nope", {"name": "x"})

    def test_polygon_round_trip(self, downtown_site):
        data = downtown_site.to_dict()
        data["polygon"] = [
            {"latitude": 0, "longitude": 0},
            {"latitude": 0, "longitude": 2},
            {"latitude": 2, "longitude": 2},
        ]
        site = geofence_repo.create(data)
        assert len(site.polygon) == 3

    def test_delete(self, downtown_site):
        geofence_repo.create(downtown_site.to_dict())
        assert geofence_repo.delete("downtown") is True
        assert geofence_repo.delete("downtown") is False

    def test_stored_outline_widens_site(self, downtown_site):
        data = downtown_site.to_dict()
        data["polygon"] = [
            {"latitude": 21.1650, "longitude": 72.8250},
            {"latitude": 21.1950, "longitude": 72.8250},
            {"latitude": 21.1950, "longitude": 72.8370},
            {"latitude": 21.1650, "longitude": 72.8370},
        ]
        geofence_repo.create(data)

        site = geofence_repo.get_by_id("downtown")
        assert site.contains(Coordinate(21.1882, 72.8311))
        assert not site.contains(Coordinate(21.2050, 72.8311))
