from dataclasses import dataclass
from typing import Dict, Any


@dataclass(frozen=True)
class Coordinate:
    """Latitude/longitude pair in decimal degrees"""

    latitude: float
    longitude: float

    def __post_init__(self):
        # Frozen dataclass: coerce through object.__setattr__
        object.__setattr__(self, "latitude", float(self.latitude))
        object.__setattr__(self, "longitude", float(self.longitude))
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Coordinate":
        """Accept both {latitude, longitude} and {lat, lng} shapes"""
        if "latitude" in data:
            return cls(data["latitude"], data["longitude"])
        return cls(data["lat"], data["lng"])

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}
