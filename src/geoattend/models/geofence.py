from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional
from datetime import datetime

from geoattend.models.coordinate import Coordinate
from geoattend.utils.geometry import distance_km, point_in_polygon


@dataclass
class GeofenceSite:
    """Circular geofence: center plus radius in kilometers.

    An optional polygon outline widens the site: a point inside the polygon
    counts as inside even when it lies beyond the radius.
    """

    id: str
    name: str
    center: Coordinate
    radius_km: float
    polygon: List[Coordinate] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.radius_km = float(self.radius_km)
        if self.radius_km <= 0:
            raise ValueError(f"radius_km must be positive, got {self.radius_km}")

    def distance_to(self, position: Coordinate) -> float:
        return distance_km(position, self.center)

    def contains(self, position: Coordinate) -> bool:
        """Inclusive boundary: a point exactly radius_km away is inside"""
        return self.distance_to(position) <= self.radius_km or self.contains_polygon(position)

    def contains_polygon(self, position: Coordinate) -> bool:
        return point_in_polygon(position, self.polygon)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "center": self.center.to_dict(),
            "radius_km": self.radius_km,
            "polygon": [point.to_dict() for point in self.polygon],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeofenceSite":
        return cls(
            id=data["id"],
            name=data["name"],
            center=Coordinate.from_dict(data["center"]),
            radius_km=data.get("radius_km", data.get("radiusKm")),
            polygon=[Coordinate.from_dict(p) for p in data.get("polygon") or []],
        )
