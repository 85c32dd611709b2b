import threading
from typing import Callable, Optional

from geoattend.exceptions import LocationError, WatcherError
from geoattend.models import Coordinate
from geoattend.services.location_providers import LocationProvider
from geoattend.shared.logger import app_logger


class PositionWatcher:
    """Single live position plus an error channel over a location provider.

    The subscription is acquired by start() and released by stop(); use it
    as a context manager to guarantee release. A watcher is one-shot: once
    stopped (or ended by an acquisition error) it never emits again and
    cannot be restarted. Create a fresh watcher to resume.
    """

    def __init__(
        self,
        provider: LocationProvider,
        on_position: Callable[[Coordinate], None],
        on_error: Optional[Callable[[LocationError], None]] = None,
        name: str = "watcher",
    ):
        self.provider = provider
        self.on_position = on_position
        self.on_error = on_error
        self.name = name

        self._lock = threading.RLock()
        self._watch_id = None
        self._started = False
        self._cancelled = False
        self.current: Optional[Coordinate] = None
        self.error: Optional[LocationError] = None

    @property
    def is_active(self) -> bool:
        return self._started and not self._cancelled

    def start(self) -> "PositionWatcher":
        with self._lock:
            if self._cancelled:
                raise WatcherError()
            if self._started:
                return self
            self._started = True
            self._watch_id = self.provider.watch_position(self._handle_position, self._handle_error)
        app_logger.info(f"[GEOFENCE] Position watcher '{self.name}' started")
        return self

    def stop(self) -> None:
        """Release the subscription; safe to call any number of times"""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            watch_id, self._watch_id = self._watch_id, None

        if watch_id is not None:
            self.provider.clear_watch(watch_id)
        app_logger.info(f"[GEOFENCE] Position watcher '{self.name}' stopped")

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    def _handle_position(self, position: Coordinate) -> None:
        with self._lock:
            if not self.is_active:
                return
            # Only changes are emitted
            if position == self.current:
                return
            self.current = position

        try:
            self.on_position(position)
        except Exception as e:
            # Keep the provider's delivery thread alive
            app_logger.error(
                f"[GEOFENCE] Position handler for '{self.name}' failed: {e}", exc_info=True
            )

    def _handle_error(self, error: LocationError) -> None:
        with self._lock:
            if not self.is_active:
                return
            self.error = error

        app_logger.warning(
            f"[GEOFENCE] Location error on '{self.name}' ({error.code}): {error.message}"
        )
        self.stop()

        if self.on_error:
            try:
                self.on_error(error)
            except Exception as e:
                app_logger.error(
                    f"[GEOFENCE] Error handler for '{self.name}' failed: {e}", exc_info=True
                )
