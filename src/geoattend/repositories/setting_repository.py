from datetime import datetime, timezone
from typing import Dict, Optional

from geoattend.database.connection import db_manager
from geoattend.models.setting import AppSetting


class SettingRepository:
    """Key/value runtime settings (sync endpoint, API key, checkout policy)"""

    DEFAULTS = {
        'SYNC_ENDPOINT_URL': ('', 'Remote endpoint receiving attendance log batches (POST)'),
        'SYNC_API_KEY': ('', 'API key sent with sync requests'),
        'SYNC_REQUEST_TIMEOUT': ('30', 'Timeout in seconds for a sync request'),
        'AUTO_CHECKOUT_ON_EXIT': (
            'false',
            'Check out automatically on zone exit instead of asking for confirmation',
        ),
    }

    def __init__(self, db=None):
        self.db = db or db_manager

    def get(self, key: str) -> Optional[AppSetting]:
        row = self.db.fetch_one("SELECT * FROM app_settings WHERE key = ?", (key,))
        return AppSetting.from_row(row) if row else None

    def get_value(self, key: str) -> Optional[str]:
        row = self.db.fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,))
        return row['value'] if row else None

    def set(self, key: str, value: str, description: str = None) -> bool:
        """Upsert a value; a missing description keeps the stored one"""
        cursor = self.db.execute_query(
            '''
            INSERT INTO app_settings (key, value, description, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                description = COALESCE(excluded.description, app_settings.description),
                updated_at = excluded.updated_at
            ''',
            (key, value, description, datetime.now(timezone.utc).isoformat()),
        )
        return cursor.rowcount > 0

    def get_all(self) -> Dict[str, str]:
        rows = self.db.fetch_all("SELECT key, value FROM app_settings ORDER BY key")
        return {row['key']: row['value'] for row in rows}

    def initialize_defaults(self):
        """Write defaults for keys that were never set"""
        for key, (value, description) in self.DEFAULTS.items():
            self.db.execute_query(
                "INSERT OR IGNORE INTO app_settings (key, value, description, updated_at) VALUES (?, ?, ?, ?)",
                (key, value, description, datetime.now(timezone.utc).isoformat()),
            )


setting_repo = SettingRepository()
