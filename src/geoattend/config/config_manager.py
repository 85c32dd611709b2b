from typing import Dict, Any, Optional

from geoattend.config.settings import strtobool
from geoattend.repositories import setting_repo


class SQLiteConfigManager:
    """Runtime configuration backed by the app_settings table"""

    EDITABLE_KEYS = (
        "SYNC_ENDPOINT_URL",
        "SYNC_API_KEY",
        "SYNC_REQUEST_TIMEOUT",
        "AUTO_CHECKOUT_ON_EXIT",
    )

    def __init__(self, repo=None):
        self.repo = repo or setting_repo

    def get_config(self) -> Dict[str, Any]:
        """Get configuration (API key redacted)"""
        return {
            "SYNC_ENDPOINT_URL": self.get_sync_endpoint_url(),
            "SYNC_API_KEY": "***" if self.get_sync_api_key() else "",
            "SYNC_REQUEST_TIMEOUT": self.get_sync_request_timeout(),
            "AUTO_CHECKOUT_ON_EXIT": self.get_auto_checkout_on_exit(),
        }

    def save_config(self, config_data: Dict[str, Any]) -> None:
        """Save the editable keys present in config_data"""
        if "SYNC_ENDPOINT_URL" in config_data:
            self.repo.set(
                "SYNC_ENDPOINT_URL",
                self._normalize_url(config_data.get("SYNC_ENDPOINT_URL")),
            )

        if "SYNC_API_KEY" in config_data:
            self.repo.set("SYNC_API_KEY", config_data["SYNC_API_KEY"] or "")

        if "SYNC_REQUEST_TIMEOUT" in config_data:
            timeout = float(config_data["SYNC_REQUEST_TIMEOUT"])
            if timeout <= 0:
                raise ValueError("SYNC_REQUEST_TIMEOUT must be positive")
            self.repo.set("SYNC_REQUEST_TIMEOUT", str(timeout))

        if "AUTO_CHECKOUT_ON_EXIT" in config_data:
            value = config_data["AUTO_CHECKOUT_ON_EXIT"]
            if isinstance(value, str):
                value = bool(strtobool(value))
            self.repo.set("AUTO_CHECKOUT_ON_EXIT", "true" if value else "false")

    def get_sync_endpoint_url(self) -> str:
        return self._normalize_url(self.repo.get_value("SYNC_ENDPOINT_URL"))

    def get_sync_api_key(self) -> str:
        return self.repo.get_value("SYNC_API_KEY") or ""

    def get_sync_request_timeout(self) -> float:
        value = self.repo.get_value("SYNC_REQUEST_TIMEOUT")
        try:
            return float(value) if value else 30.0
        except ValueError:
            return 30.0

    def get_auto_checkout_on_exit(self) -> bool:
        value = self.repo.get_value("AUTO_CHECKOUT_ON_EXIT")
        if not value:
            return False
        try:
            return bool(strtobool(value))
        except ValueError:
            return False

    @staticmethod
    def _normalize_url(url: Optional[str]) -> str:
        if not url:
            return ""
        return url.strip().rstrip("/")


config_manager = SQLiteConfigManager()
