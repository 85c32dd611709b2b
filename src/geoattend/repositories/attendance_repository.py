import sqlite3
from typing import Dict, Any, List, Optional
from datetime import datetime, timezone

from geoattend.models.attendance import AttendanceLogRecord, SyncStatus
from geoattend.database.connection import db_manager
from geoattend.exceptions import DuplicateRecordError, RecordNotFoundError, StaleRecordError


def _to_db_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if isinstance(value, datetime) else value


def _from_db_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class AttendanceRepository:
    """Local attendance log store.

    Append-only from the caller's point of view: records are inserted
    and updated field by field, never deleted.
    """

    UPDATABLE_FIELDS = (
        "check_out_time",
        "sync_status",
        "sync_attempts",
        "last_sync_message",
        "synced_at",
        "site_name",
    )
    TIME_FIELDS = ("check_out_time", "synced_at")

    def __init__(self, db=None):
        self.db = db or db_manager

    def append(self, record: AttendanceLogRecord) -> AttendanceLogRecord:
        """Insert a new record; remote_log_id must be unique"""
        if record.sync_status not in SyncStatus.ALL:
            raise ValueError(f"invalid sync status {record.sync_status!r}")
        self._check_times(record.check_in_time, record.check_out_time)

        now = _to_db_time(datetime.now(timezone.utc))
        query = """
            INSERT INTO attendance_logs (
                remote_log_id, user_id, site_id, site_name, check_in_time,
                check_out_time, sync_status, sync_attempts, last_sync_message,
                synced_at, revision, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
        """
        try:
            cursor = self.db.execute_query(
                query,
                (
                    record.remote_log_id,
                    record.user_id,
                    record.site_id,
                    record.site_name,
                    _to_db_time(record.check_in_time),
                    _to_db_time(record.check_out_time),
                    record.sync_status,
                    record.sync_attempts,
                    record.last_sync_message,
                    _to_db_time(record.synced_at),
                    now,
                    now,
                ),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateRecordError(
                f"Attendance record {record.remote_log_id} already exists"
            ) from e

        return self.get_by_id(cursor.lastrowid)

    def update(
        self, local_id: int, changes: Dict[str, Any], expected_revision: Optional[int] = None
    ) -> AttendanceLogRecord:
        """Merge the given fields into a record; always bumps updated_at and revision.

        With expected_revision the write only lands if the stored revision
        still matches; otherwise StaleRecordError is raised and nothing changes.
        """
        current = self.get_by_id(local_id)
        if current is None:
            raise RecordNotFoundError(f"Attendance record {local_id} not found")

        unknown = set(changes) - set(self.UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        if "sync_status" in changes and changes["sync_status"] not in SyncStatus.ALL:
            raise ValueError(f"invalid sync status {changes['sync_status']!r}")

        if "check_out_time" in changes:
            self._check_times(current.check_in_time, changes["check_out_time"])

        assignments = []
        params = []
        for key, value in changes.items():
            assignments.append(f"{key} = ?")
            params.append(_to_db_time(value) if key in self.TIME_FIELDS else value)

        assignments.append("updated_at = ?")
        params.append(_to_db_time(datetime.now(timezone.utc)))
        assignments.append("revision = revision + 1")
        where = "id = ?"
        params.append(local_id)
        if expected_revision is not None:
            where += " AND revision = ?"
            params.append(expected_revision)

        cursor = self.db.execute_query(
            f"UPDATE attendance_logs SET {', '.join(assignments)} WHERE {where}",
            tuple(params),
        )
        if cursor.rowcount == 0:
            if expected_revision is None:
                raise RecordNotFoundError(f"Attendance record {local_id} not found")
            raise StaleRecordError(
                f"Attendance record {local_id} changed since revision {expected_revision}"
            )
        return self.get_by_id(local_id)

    def get_by_id(self, local_id: int) -> Optional[AttendanceLogRecord]:
        row = self.db.fetch_one(
            "SELECT * FROM attendance_logs WHERE id = ?", (local_id,)
        )
        return self._row_to_record(row) if row else None

    def query_by_remote_log_id(self, remote_log_id: str) -> Optional[AttendanceLogRecord]:
        row = self.db.fetch_one(
            "SELECT * FROM attendance_logs WHERE remote_log_id = ?", (remote_log_id,)
        )
        return self._row_to_record(row) if row else None

    def query_pending(self, include_failed: bool = True) -> List[AttendanceLogRecord]:
        """Records still owed to the server, in insertion order.

        Failed records are included by default: they stay eligible for
        retry until the server accepts them.
        """
        statuses = (SyncStatus.PENDING, SyncStatus.FAILED) if include_failed else (SyncStatus.PENDING,)
        placeholders = ", ".join("?" for _ in statuses)
        rows = self.db.fetch_all(
            f"SELECT * FROM attendance_logs WHERE sync_status IN ({placeholders}) ORDER BY id ASC",
            statuses,
        )
        return [self._row_to_record(row) for row in rows]

    def get_open_for_user(self, user_id: str) -> Optional[AttendanceLogRecord]:
        """The user's record without a check-out time, if any"""
        row = self.db.fetch_one(
            """
            SELECT * FROM attendance_logs
            WHERE user_id = ? AND check_out_time IS NULL
            ORDER BY id DESC LIMIT 1
            """,
            (user_id,),
        )
        return self._row_to_record(row) if row else None

    def get_by_user(self, user_id: str, limit: int = 100) -> List[AttendanceLogRecord]:
        rows = self.db.fetch_all(
            "SELECT * FROM attendance_logs WHERE user_id = ? ORDER BY id DESC LIMIT ?",
            (user_id, limit),
        )
        return [self._row_to_record(row) for row in rows]

    def get_all(
        self,
        user_id: str = None,
        sync_status: str = None,
        start_date: datetime = None,
        end_date: datetime = None,
        limit: int = 1000,
        offset: int = 0,
    ) -> List[AttendanceLogRecord]:
        """Get attendance logs with pagination and optional filtering"""
        conditions, params = self._build_filters(user_id, sync_status, start_date, end_date)
        where_clause = " AND ".join(conditions) if conditions else "1=1"
        query = f"SELECT * FROM attendance_logs WHERE {where_clause} ORDER BY id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        rows = self.db.fetch_all(query, tuple(params))
        return [self._row_to_record(row) for row in rows]

    def get_total_count(
        self,
        user_id: str = None,
        sync_status: str = None,
        start_date: datetime = None,
        end_date: datetime = None,
    ) -> int:
        conditions, params = self._build_filters(user_id, sync_status, start_date, end_date)
        where_clause = " AND ".join(conditions) if conditions else "1=1"
        result = self.db.fetch_one(
            f"SELECT COUNT(*) as count FROM attendance_logs WHERE {where_clause}",
            tuple(params),
        )
        return result["count"] if result else 0

    def get_sync_stats(self) -> Dict[str, int]:
        """Count records per sync status"""
        rows = self.db.fetch_all(
            "SELECT sync_status, COUNT(*) as count FROM attendance_logs GROUP BY sync_status"
        )
        stats = {status: 0 for status in SyncStatus.ALL}
        for row in rows:
            stats[row["sync_status"]] = row["count"]
        stats["total"] = sum(stats[status] for status in SyncStatus.ALL)
        return stats

    @staticmethod
    def _build_filters(user_id, sync_status, start_date, end_date):
        conditions = []
        params = []

        if user_id:
            conditions.append("user_id = ?")
            params.append(user_id)

        if sync_status:
            conditions.append("sync_status = ?")
            params.append(sync_status)

        if start_date:
            conditions.append("check_in_time >= ?")
            params.append(_to_db_time(start_date))

        if end_date:
            conditions.append("check_in_time <= ?")
            params.append(_to_db_time(end_date))

        return conditions, params

    @staticmethod
    def _check_times(check_in_time, check_out_time):
        if check_out_time is not None and check_out_time < check_in_time:
            raise ValueError("check_out_time must not be earlier than check_in_time")

    def _row_to_record(self, row) -> AttendanceLogRecord:
        return AttendanceLogRecord(
            id=row["id"],
            remote_log_id=row["remote_log_id"],
            user_id=row["user_id"],
            site_id=row["site_id"],
            site_name=row["site_name"],
            check_in_time=_from_db_time(row["check_in_time"]),
            check_out_time=_from_db_time(row["check_out_time"]),
            sync_status=row["sync_status"],
            sync_attempts=row["sync_attempts"] or 0,
            last_sync_message=row["last_sync_message"],
            synced_at=_from_db_time(row["synced_at"]),
            revision=row["revision"] or 0,
            created_at=_from_db_time(row["created_at"]),
            updated_at=_from_db_time(row["updated_at"]),
        )


attendance_repo = AttendanceRepository()
