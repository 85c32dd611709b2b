import threading
from concurrent.futures import Future
from typing import Callable, List, Optional

from geoattend.models import GeofenceSite
from geoattend.repositories import geofence_repo
from geoattend.shared.logger import app_logger


class SiteCatalog:
    """Process-wide cache of geofence sites.

    The first ensure_loaded() call loads the sites; concurrent callers wait
    on the same future. A failed load is not cached, so the next call
    retries. Users of the catalog acquire() and release() it; when the
    last subscriber releases, the cache is torn down.
    """

    def __init__(self, loader: Optional[Callable[[], List[GeofenceSite]]] = None):
        self.loader = loader or geofence_repo.get_all
        self._lock = threading.Lock()
        self._future: Optional[Future] = None
        self._subscribers = 0

    @property
    def is_loaded(self) -> bool:
        with self._lock:
            future = self._future
        return future is not None and future.done() and future.exception() is None

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return self._subscribers

    def ensure_loaded(self) -> List[GeofenceSite]:
        owner = False
        with self._lock:
            if self._future is None:
                self._future = Future()
                owner = True
            future = self._future

        if owner:
            try:
                sites = list(self.loader())
            except Exception as e:
                app_logger.error(f"[GEOFENCE] Failed to load geofence sites: {e}")
                with self._lock:
                    if self._future is future:
                        self._future = None
                future.set_exception(e)
                raise
            future.set_result(sites)
            app_logger.info(f"[GEOFENCE] Loaded {len(sites)} geofence site(s)")

        return future.result()

    def get_sites(self) -> List[GeofenceSite]:
        return self.ensure_loaded()

    def get_site(self, site_id: str) -> Optional[GeofenceSite]:
        return next((site for site in self.ensure_loaded() if site.id == site_id), None)

    def acquire(self) -> int:
        with self._lock:
            self._subscribers += 1
            return self._subscribers

    def release(self) -> int:
        with self._lock:
            if self._subscribers > 0:
                self._subscribers -= 1
            remaining = self._subscribers
        if remaining == 0:
            self.teardown()
        return remaining

    def invalidate(self) -> None:
        """Drop cached sites; the next read reloads them"""
        with self._lock:
            self._future = None

    def teardown(self) -> None:
        with self._lock:
            self._future = None
            self._subscribers = 0


site_catalog = SiteCatalog()
