"""Exception hierarchy for the geofence attendance engine.

Session and storage errors are raised synchronously to the caller.
Location errors travel through a watcher's error channel and sync
errors never leave the sync agent.
"""


class GeoAttendError(Exception):
    """Base class for all engine errors."""

    default_message = "Geofence attendance error"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


# Acquisition


class LocationError(GeoAttendError):
    """Location could not be acquired."""

    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"

    CODES = (PERMISSION_DENIED, POSITION_UNAVAILABLE, TIMEOUT, UNSUPPORTED)

    default_message = "Could not get your location"

    def __init__(self, code=POSITION_UNAVAILABLE, message=None):
        if code not in self.CODES:
            code = self.POSITION_UNAVAILABLE
        super().__init__(message)
        self.code = code

    def to_dict(self):
        return {"code": self.code, "message": self.message}


class WatcherError(GeoAttendError):
    default_message = "Position watcher cannot be restarted once cancelled"


# Session preconditions


class SessionError(GeoAttendError):
    default_message = "Check-in/out failed - try again"


class NotInZoneError(SessionError):
    default_message = "Not within geofence"


class AlreadyCheckedInError(SessionError):
    default_message = "Already checked in"


class NoOpenSessionError(SessionError):
    default_message = "No open attendance session"


class NoSiteSelectedError(SessionError):
    default_message = "No site selected for check-in"


class InvalidTransitionError(SessionError):
    default_message = "Action not allowed in the current session state"


class SessionBusyError(SessionError):
    default_message = "Another check-in/out is in progress"


# Storage


class StorageError(GeoAttendError):
    default_message = "Local attendance storage error"


class DuplicateRecordError(StorageError):
    default_message = "Attendance record already exists"


class RecordNotFoundError(StorageError):
    default_message = "Record not found"


class StaleRecordError(StorageError):
    default_message = "Record was changed by another writer"


# Sync


class SyncError(GeoAttendError):
    default_message = "Sync failed, will retry"
