from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional
from datetime import datetime


class SyncStatus:
    """Sync status constants for attendance logs"""
    PENDING = 'pending'
    SYNCED = 'synced'
    FAILED = 'failed'

    ALL = (PENDING, SYNCED, FAILED)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if isinstance(value, datetime) else value


@dataclass
class AttendanceLogRecord:
    """Check-in/check-out record with sync tracking.

    The record stays open while check_out_time is None.
    """
    remote_log_id: str  # client-generated UUID, idempotency key on the server
    user_id: str
    site_id: str
    site_name: str
    check_in_time: datetime
    check_out_time: Optional[datetime] = None
    sync_status: str = SyncStatus.PENDING
    sync_attempts: int = 0
    last_sync_message: Optional[str] = None
    synced_at: Optional[datetime] = None
    revision: int = 0
    id: Optional[int] = None  # local id, assigned by the store
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.check_out_time is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses"""
        data = asdict(self)
        for key in ('check_in_time', 'check_out_time', 'synced_at', 'created_at', 'updated_at'):
            data[key] = _iso(data[key])
        data['is_open'] = self.is_open
        return data

    def to_remote_dict(self) -> Dict[str, Any]:
        """Shape sent to the remote sync endpoint"""
        return {
            'logId': self.remote_log_id,
            'userId': self.user_id,
            'siteId': self.site_id,
            'siteName': self.site_name,
            'checkInTime': _iso(self.check_in_time),
            'checkOutTime': _iso(self.check_out_time),
            'syncStatus': self.sync_status,
        }
