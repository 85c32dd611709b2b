import sqlite3
import os
import threading
import atexit
from contextlib import contextmanager
from typing import Optional, List, Set

from geoattend.shared.logger import app_logger

SCHEMA = (
    # Local attendance log store; rows are never deleted
    """
    CREATE TABLE IF NOT EXISTS attendance_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        remote_log_id TEXT NOT NULL UNIQUE,
        user_id TEXT NOT NULL,
        site_id TEXT NOT NULL,
        site_name TEXT NOT NULL,
        check_in_time TEXT NOT NULL,
        check_out_time TEXT NULL,
        sync_status TEXT DEFAULT 'pending', -- pending, synced, failed
        sync_attempts INTEGER DEFAULT 0,
        last_sync_message TEXT NULL,
        synced_at TEXT NULL,
        revision INTEGER DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS geofence_sites (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        center_lat REAL NOT NULL,
        center_lng REAL NOT NULL,
        radius_km REAL NOT NULL,
        polygon TEXT, -- JSON list of {latitude, longitude}
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS app_settings (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        description TEXT,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_attendance_user_id ON attendance_logs(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_attendance_sync_status ON attendance_logs(sync_status)",
    "CREATE INDEX IF NOT EXISTS idx_attendance_open ON attendance_logs(user_id, check_out_time)",
)


def resolve_db_path(db_path: str) -> str:
    """GEOATTEND_DB_PATH wins; relative paths sit next to this package"""
    path = os.environ.get("GEOATTEND_DB_PATH") or db_path
    if not os.path.isabs(path):
        path = os.path.join(os.path.dirname(os.path.abspath(__file__)), path)

    directory = os.path.dirname(path)
    if directory:
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as exc:
            raise RuntimeError(f"Unable to create database directory '{directory}': {exc}") from exc
    return path


class DatabaseManager:
    """SQLite access for the attendance store, geofence sites and settings.

    Each thread gets its own connection. All of them are tracked so the
    process can close them on exit.
    """

    TABLES = ("attendance_logs", "geofence_sites", "app_settings")

    def __init__(self, db_path: str = "geoattend.db"):
        self.db_path = resolve_db_path(db_path)
        self._local = threading.local()
        self._connections: Set[sqlite3.Connection] = set()
        self._lock = threading.Lock()

        atexit.register(self.close_all_connections)
        self.init_database()

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=30.0)
        conn.row_factory = sqlite3.Row
        for pragma in ("foreign_keys = ON", "journal_mode = WAL", "synchronous = NORMAL"):
            conn.execute(f"PRAGMA {pragma}")
        with self._lock:
            self._connections.add(conn)
        return conn

    def get_connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "connection", None)
        if conn is None:
            conn = self._local.connection = self._open()
        return conn

    @contextmanager
    def get_cursor(self):
        """Cursor that commits on success and rolls back on error"""
        conn = self.get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
        except Exception:
            conn.rollback()
            raise
        else:
            conn.commit()
        finally:
            cursor.close()

    def init_database(self):
        with self.get_cursor() as cursor:
            for statement in SCHEMA:
                cursor.execute(statement)

        app_logger.info(f"Attendance store ready at: {self.db_path}")

    def execute_query(self, query: str, params: tuple = ()) -> sqlite3.Cursor:
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            return cursor

    def fetch_one(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with self.get_cursor() as cursor:
            return cursor.execute(query, params).fetchone()

    def fetch_all(self, query: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self.get_cursor() as cursor:
            return cursor.execute(query, params).fetchall()

    def clear_all(self):
        """Empty every table and restart local ids at 1"""
        with self.get_cursor() as cursor:
            for table in self.TABLES:
                cursor.execute(f"DELETE FROM {table}")
            cursor.execute("DELETE FROM sqlite_sequence WHERE name = 'attendance_logs'")

    @staticmethod
    def _close_quietly(conn: sqlite3.Connection) -> bool:
        try:
            conn.close()
            return True
        except sqlite3.Error as e:
            app_logger.warning(f"Error closing database connection: {e}")
            return False

    def close_connection(self):
        """Close the calling thread's connection, if it has one"""
        conn = getattr(self._local, "connection", None)
        if conn is None:
            return
        self._local.connection = None
        with self._lock:
            self._connections.discard(conn)
        self._close_quietly(conn)

    def close_all_connections(self):
        with self._lock:
            connections = list(self._connections)
            self._connections.clear()

        closed = sum(1 for conn in connections if self._close_quietly(conn))
        if connections:
            app_logger.info(f"[DB] Closed {closed}/{len(connections)} connection(s)")


db_manager = DatabaseManager()
