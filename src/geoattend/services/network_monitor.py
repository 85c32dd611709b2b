import threading
from typing import Callable, List, Optional

import requests

from geoattend.config.config_manager import config_manager
from geoattend.shared.logger import app_logger


class NetworkMonitor:
    """Tracks whether the sync endpoint is reachable.

    State changes come from explicit reports (set_online) or from
    check_reachability(). Restore listeners fire on each offline -> online
    transition.
    """

    CHECK_TIMEOUT = 5

    def __init__(self, online: bool = True, url_getter: Optional[Callable[[], str]] = None):
        self._online = online
        self._lock = threading.Lock()
        self._restore_listeners: List[Callable[[], None]] = []
        self.url_getter = url_getter or config_manager.get_sync_endpoint_url

    @property
    def is_online(self) -> bool:
        with self._lock:
            return self._online

    def add_restore_listener(self, callback: Callable[[], None]) -> None:
        with self._lock:
            self._restore_listeners.append(callback)

    def set_online(self, online: bool) -> bool:
        """Record connectivity; returns True when the state changed"""
        with self._lock:
            changed = self._online != online
            self._online = online
            listeners = list(self._restore_listeners) if changed and online else []

        if changed:
            app_logger.info(f"[SYNC] Network is now {'online' if online else 'offline'}")

        for listener in listeners:
            try:
                listener()
            except Exception as e:
                app_logger.error(f"[SYNC] Network restore listener failed: {e}", exc_info=True)

        return changed

    def check_reachability(self) -> bool:
        """Check reachability of the sync endpoint; any HTTP answer counts as online"""
        url = self.url_getter()
        if not url:
            return self.is_online

        try:
            requests.head(url, timeout=self.CHECK_TIMEOUT, allow_redirects=True)
            online = True
        except requests.exceptions.RequestException as e:
            app_logger.debug(f"[SYNC] Reachability check of {url} failed: {e}")
            online = False

        self.set_online(online)
        return online


network_monitor = NetworkMonitor()
