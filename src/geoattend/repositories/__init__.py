from geoattend.repositories.attendance_repository import AttendanceRepository, attendance_repo
from geoattend.repositories.geofence_repository import GeofenceRepository, geofence_repo
from geoattend.repositories.setting_repository import SettingRepository, setting_repo


__all__ = [
    "AttendanceRepository",
    "GeofenceRepository",
    "SettingRepository",
    "attendance_repo",
    "geofence_repo",
    "setting_repo",
]
