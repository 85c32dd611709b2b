"""Device location capabilities.

A provider exposes a continuous "watch position" primitive and a
one-shot "get current position" primitive, mirroring what a device
geolocation API offers. Watch callbacks receive a Coordinate or a
LocationError.
"""

import itertools
import threading
from typing import Callable, Dict, Optional, Tuple

from geoattend.config import settings
from geoattend.exceptions import LocationError
from geoattend.models import Coordinate
from geoattend.shared.logger import app_logger

PositionCallback = Callable[[Coordinate], None]
ErrorCallback = Callable[[LocationError], None]


class LocationProvider:
    """Base class for location sources"""

    def watch_position(self, on_position: PositionCallback, on_error: ErrorCallback) -> int:
        """Start delivering positions; returns a watch id for clear_watch()"""
        raise NotImplementedError

    def clear_watch(self, watch_id: int) -> None:
        raise NotImplementedError

    def get_current_position(self) -> Coordinate:
        raise NotImplementedError


class PushLocationProvider(LocationProvider):
    """Provider fed from outside, e.g. fixes reported by a mobile client over HTTP.

    Delivery is synchronous on the publishing thread.
    """

    def __init__(self):
        self._watchers: Dict[int, Tuple[PositionCallback, ErrorCallback]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._last_position: Optional[Coordinate] = None

    @property
    def watcher_count(self) -> int:
        with self._lock:
            return len(self._watchers)

    def watch_position(self, on_position, on_error) -> int:
        with self._lock:
            watch_id = next(self._ids)
            self._watchers[watch_id] = (on_position, on_error)
        return watch_id

    def clear_watch(self, watch_id: int) -> None:
        with self._lock:
            self._watchers.pop(watch_id, None)

    def get_current_position(self) -> Coordinate:
        if self._last_position is None:
            raise LocationError(LocationError.POSITION_UNAVAILABLE, "No position reported yet")
        return self._last_position

    def publish(self, position: Coordinate) -> None:
        self._last_position = position
        with self._lock:
            callbacks = [on_position for on_position, _ in self._watchers.values()]
        for on_position in callbacks:
            on_position(position)

    def publish_error(self, error: LocationError) -> None:
        with self._lock:
            callbacks = [on_error for _, on_error in self._watchers.values()]
        for on_error in callbacks:
            on_error(error)


class PollingLocationProvider(LocationProvider):
    """Provider that polls a callable returning a Coordinate on a worker thread.

    Any exception from the reader ends that watch with a LocationError.
    """

    def __init__(self, read_position: Callable[[], Coordinate], interval: float = None):
        self.read_position = read_position
        self.interval = interval if interval is not None else settings.POSITION_POLL_INTERVAL
        self._threads: Dict[int, Tuple[threading.Thread, threading.Event]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def watch_position(self, on_position, on_error) -> int:
        stop_event = threading.Event()
        with self._lock:
            watch_id = next(self._ids)
            thread = threading.Thread(
                target=self._poll_loop,
                args=(watch_id, stop_event, on_position, on_error),
                daemon=True,
                name=f"PositionPoll-{watch_id}",
            )
            self._threads[watch_id] = (thread, stop_event)
        thread.start()
        return watch_id

    def clear_watch(self, watch_id: int, wait_timeout: float = 2.0) -> None:
        with self._lock:
            entry = self._threads.pop(watch_id, None)
        if not entry:
            return

        thread, stop_event = entry
        stop_event.set()
        # A callback may clear its own watch from the worker thread
        if thread is not threading.current_thread() and thread.is_alive():
            thread.join(timeout=wait_timeout)

    def get_current_position(self) -> Coordinate:
        return self._read()

    def _read(self) -> Coordinate:
        try:
            return self.read_position()
        except LocationError:
            raise
        except Exception as e:
            raise LocationError(LocationError.POSITION_UNAVAILABLE, str(e)) from e

    def _poll_loop(self, watch_id, stop_event, on_position, on_error):
        while not stop_event.is_set():
            try:
                position = self._read()
            except LocationError as e:
                app_logger.warning(f"[GEOFENCE] Position poll {watch_id} failed: {e.message}")
                if not stop_event.is_set():
                    on_error(e)
                return

            if stop_event.is_set():
                return
            on_position(position)
            stop_event.wait(self.interval)
