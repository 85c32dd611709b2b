from geoattend.models.coordinate import Coordinate
from geoattend.models.geofence import GeofenceSite
from geoattend.models.attendance import AttendanceLogRecord, SyncStatus
from geoattend.models.setting import AppSetting

__all__ = [
    "Coordinate",
    "GeofenceSite",
    "AttendanceLogRecord",
    "SyncStatus",
    "AppSetting",
]
