import json
import uuid
from typing import Dict, Any, List, Optional
from datetime import datetime, timezone

from geoattend.models import Coordinate, GeofenceSite
from geoattend.database.connection import db_manager
from geoattend.exceptions import DuplicateRecordError, RecordNotFoundError


class GeofenceRepository:
    """Geofence site database operations (admin managed, read by the engine)"""

    def __init__(self, db=None):
        self.db = db or db_manager

    def get_all(self) -> List[GeofenceSite]:
        """All sites in insertion order"""
        rows = self.db.fetch_all("SELECT * FROM geofence_sites ORDER BY rowid ASC")
        return [self._row_to_site(row) for row in rows]

    def get_by_id(self, site_id: str) -> Optional[GeofenceSite]:
        row = self.db.fetch_one("SELECT * FROM geofence_sites WHERE id = ?", (site_id,))
        return self._row_to_site(row) if row else None

    def create(self, site_data: Dict[str, Any]) -> GeofenceSite:
        """Create a site; id is generated when not supplied"""
        site_id = site_data.get("id") or str(uuid.uuid4())
        if self.get_by_id(site_id):
            raise DuplicateRecordError(f"Geofence site '{site_id}' already exists")

        site = GeofenceSite.from_dict({**site_data, "id": site_id})
        now = datetime.now(timezone.utc).isoformat()

        self.db.execute_query(
            """
            INSERT INTO geofence_sites (id, name, center_lat, center_lng, radius_km, polygon, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                site.id,
                site.name,
                site.center.latitude,
                site.center.longitude,
                site.radius_km,
                self._polygon_to_json(site.polygon),
                now,
                now,
            ),
        )
        return self.get_by_id(site.id)

    def update(self, site_id: str, site_data: Dict[str, Any]) -> GeofenceSite:
        """Update name, center, radius or polygon of an existing site"""
        current = self.get_by_id(site_id)
        if not current:
            raise RecordNotFoundError(f"Geofence site '{site_id}' not found")

        merged = current.to_dict()
        for key in ("name", "center", "radius_km", "polygon"):
            if key in site_data:
                merged[key] = site_data[key]
        # Validates the merged shape before touching the row
        site = GeofenceSite.from_dict(merged)

        self.db.execute_query(
            """
            UPDATE geofence_sites
            SET name = ?, center_lat = ?, center_lng = ?, radius_km = ?, polygon = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                site.name,
                site.center.latitude,
                site.center.longitude,
                site.radius_km,
                self._polygon_to_json(site.polygon),
                datetime.now(timezone.utc).isoformat(),
                site_id,
            ),
        )
        return self.get_by_id(site_id)

    def delete(self, site_id: str) -> bool:
        cursor = self.db.execute_query("DELETE FROM geofence_sites WHERE id = ?", (site_id,))
        return cursor.rowcount > 0

    @staticmethod
    def _polygon_to_json(polygon: List[Coordinate]) -> Optional[str]:
        if not polygon:
            return None
        return json.dumps([point.to_dict() for point in polygon])

    def _row_to_site(self, row) -> GeofenceSite:
        polygon = []
        if row["polygon"]:
            try:
                polygon = [Coordinate.from_dict(p) for p in json.loads(row["polygon"])]
            except (json.JSONDecodeError, KeyError, TypeError, ValueError):
                polygon = []

        return GeofenceSite(
            id=row["id"],
            name=row["name"],
            center=Coordinate(row["center_lat"], row["center_lng"]),
            radius_km=row["radius_km"],
            polygon=polygon,
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


geofence_repo = GeofenceRepository()
