"""Utility functions for the application"""

from .geometry import distance_km, is_within_radius, point_in_polygon, EARTH_RADIUS_KM

__all__ = ['distance_km', 'is_within_radius', 'point_in_polygon', 'EARTH_RADIUS_KM']
