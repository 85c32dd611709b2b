import threading
from typing import Any, Dict, Optional, Tuple

from geoattend.config.config_manager import config_manager
from geoattend.events import attendance_event_stream
from geoattend.exceptions import LocationError, RecordNotFoundError
from geoattend.models import AttendanceLogRecord, Coordinate
from geoattend.services.location_providers import LocationProvider, PushLocationProvider
from geoattend.services.position_watcher import PositionWatcher
from geoattend.services.session_controller import AttendanceSessionController, SessionStatus
from geoattend.services.site_catalog import site_catalog
from geoattend.services.sync_agent import sync_agent
from geoattend.services.zone_tracker import (
    ZoneEntered,
    ZoneEvaluation,
    ZoneExited,
    ZoneMembershipTracker,
)
from geoattend.shared.logger import app_logger


class AttendanceEngine:
    """Wires position watchers, zone trackers and the session controller per user.

    Position updates flow watcher -> tracker -> controller; check-in/out
    mutations go through the controller to the local store and kick off a
    background sync.
    """

    def __init__(
        self,
        controller: AttendanceSessionController = None,
        catalog=None,
        sync=None,
        event_stream=None,
        auto_checkout: Optional[bool] = None,
    ):
        self.catalog = catalog or site_catalog
        self.sync = sync or sync_agent
        self.event_stream = event_stream or attendance_event_stream
        self.controller = controller or AttendanceSessionController(
            sync_trigger=self._request_sync,
            site_resolver=self._resolve_site,
        )
        self._auto_checkout = auto_checkout

        self._lock = threading.Lock()
        self._trackers: Dict[str, ZoneMembershipTracker] = {}
        self._watchers: Dict[str, PositionWatcher] = {}
        self._push_providers: Dict[str, PushLocationProvider] = {}
        self._evaluations: Dict[str, ZoneEvaluation] = {}
        self._location_errors: Dict[str, LocationError] = {}
        # user_id -> (checked-in site id, inside it at the last fix)
        self._site_presence: Dict[str, Tuple[str, bool]] = {}

    @property
    def auto_checkout(self) -> bool:
        if self._auto_checkout is not None:
            return self._auto_checkout
        return config_manager.get_auto_checkout_on_exit()

    # Watcher lifecycle

    def start_tracking(self, user_id: str, provider: LocationProvider = None) -> PositionWatcher:
        """Start (or return the running) watcher for a user"""
        with self._lock:
            watcher = self._watchers.get(user_id)
            if watcher and watcher.is_active:
                return watcher
            # A watcher ended by a location error still holds the catalog
            needs_catalog = watcher is None

            if provider is None:
                provider = self._push_providers.get(user_id)
                if provider is None:
                    provider = self._push_providers[user_id] = PushLocationProvider()

            watcher = PositionWatcher(
                provider,
                on_position=lambda position: self.handle_position(user_id, position),
                on_error=lambda error: self._handle_location_error(user_id, error),
                name=f"user-{user_id}",
            )
            self._watchers[user_id] = watcher
            self._trackers.setdefault(user_id, ZoneMembershipTracker())
            self._location_errors.pop(user_id, None)

        if needs_catalog and self.catalog.acquire() == 1:
            app_logger.debug("[GEOFENCE] Site catalog acquired by first watcher")
        watcher.start()
        return watcher

    def stop_tracking(self, user_id: str) -> bool:
        with self._lock:
            watcher = self._watchers.pop(user_id, None)
            self._push_providers.pop(user_id, None)
        if watcher is None:
            return False
        watcher.stop()
        self.catalog.release()
        return True

    def stop_all(self) -> None:
        with self._lock:
            user_ids = list(self._watchers)
        for user_id in user_ids:
            self.stop_tracking(user_id)

    def is_tracking(self, user_id: str) -> bool:
        with self._lock:
            watcher = self._watchers.get(user_id)
        return bool(watcher and watcher.is_active)

    # Position input

    def report_position(self, user_id: str, position: Coordinate) -> Optional[ZoneEvaluation]:
        """Feed a client-reported fix through the user's watcher"""
        self.start_tracking(user_id)
        with self._lock:
            provider = self._push_providers.get(user_id)
        if provider is None:
            # Tracking runs on a non-push provider; evaluate directly
            return self.handle_position(user_id, position)
        provider.publish(position)
        return self._evaluations.get(user_id)

    def report_location_error(self, user_id: str, error: LocationError) -> None:
        with self._lock:
            provider = self._push_providers.get(user_id)
        if provider is not None:
            provider.publish_error(error)
        else:
            self._handle_location_error(user_id, error)

    def handle_position(self, user_id: str, position: Coordinate) -> ZoneEvaluation:
        with self._lock:
            tracker = self._trackers.setdefault(user_id, ZoneMembershipTracker())

        sites = self.catalog.get_sites()
        evaluation = tracker.evaluate(position, sites)
        self._evaluations[user_id] = evaluation
        self.controller.update_position(user_id, position)

        for transition in evaluation.transitions:
            if isinstance(transition, ZoneEntered):
                self.controller.on_zone_entered(user_id, transition.site)
                self._publish(user_id, "zone_entered", site=transition.site.to_dict())
            elif isinstance(transition, ZoneExited):
                self._on_exit(user_id, transition.site)

        # Overlapping zones: the checked-in site can be left without the
        # tracker reporting it, because another site was nearer
        state = self.controller.get_state(user_id)
        if state.has_open_session and state.site is not None:
            inside = state.site.contains(position)
            was_inside = self._site_presence.get(user_id) == (state.site.id, True)
            self._site_presence[user_id] = (state.site.id, inside)

            exited_ids = {t.site.id for t in evaluation.transitions if isinstance(t, ZoneExited)}
            if (
                state.status == SessionStatus.CHECKED_IN
                and was_inside
                and not inside
                and state.site.id not in exited_ids
            ):
                self._on_exit(user_id, state.site)
        else:
            self._site_presence.pop(user_id, None)

        return evaluation

    def _on_exit(self, user_id: str, site) -> None:
        state = self.controller.on_zone_exited(user_id, site)
        self._publish(user_id, "zone_exited", site=site.to_dict())

        if state.status != SessionStatus.PENDING_CHECKOUT_CONFIRMATION:
            return

        if self.auto_checkout:
            record = self.controller.confirm_check_out(user_id)
            app_logger.info(f"[GEOFENCE] Auto check-out for user {user_id} at {site.name}")
            self._publish(user_id, "checked_out", record=record.to_dict(), automatic=True)
        else:
            self._publish(
                user_id,
                "checkout_confirmation_required",
                site=site.to_dict(),
                message=f"You have left the {site.name} geofence.",
            )

    def _handle_location_error(self, user_id: str, error: LocationError) -> None:
        self._location_errors[user_id] = error
        self._publish(user_id, "location_error", **error.to_dict())

    # Session commands

    def select_site(self, user_id: str, site_id: str):
        site = self.catalog.get_site(site_id)
        if site is None:
            raise RecordNotFoundError(f"Geofence site '{site_id}' not found")
        return self.controller.select_site(user_id, site)

    def check_in(self, user_id: str) -> AttendanceLogRecord:
        record = self.controller.check_in(user_id)
        # Check-in is only allowed from inside the site
        self._site_presence[user_id] = (record.site_id, True)
        self._publish(user_id, "checked_in", record=record.to_dict())
        return record

    def check_out(self, user_id: str) -> AttendanceLogRecord:
        record = self.controller.check_out(user_id)
        self._publish(user_id, "checked_out", record=record.to_dict(), automatic=False)
        return record

    def confirm_check_out(self, user_id: str) -> AttendanceLogRecord:
        record = self.controller.confirm_check_out(user_id)
        self._publish(user_id, "checked_out", record=record.to_dict(), automatic=False)
        return record

    def decline_check_out(self, user_id: str):
        return self.controller.decline_check_out(user_id)

    def get_status(self, user_id: str) -> Dict[str, Any]:
        evaluation = self._evaluations.get(user_id)
        error = self._location_errors.get(user_id)
        open_record = self.controller.store.get_open_for_user(user_id)
        return {
            "user_id": user_id,
            "session": self.controller.get_state(user_id).to_dict(),
            "tracking": self.is_tracking(user_id),
            "zone": evaluation.to_dict() if evaluation else None,
            "location_error": error.to_dict() if error else None,
            "open_record": open_record.to_dict() if open_record else None,
        }

    def reset(self) -> None:
        """Stop every watcher and forget all per-user tracking state"""
        self.stop_all()
        with self._lock:
            self._trackers.clear()
            self._evaluations.clear()
            self._location_errors.clear()
            self._site_presence.clear()
        self.controller.reset()

    def _request_sync(self, reason: str):
        return self.sync.trigger_async(reason)

    def _resolve_site(self, site_id: str):
        try:
            return self.catalog.get_site(site_id)
        except Exception as e:
            app_logger.warning(f"[GEOFENCE] Could not resolve site {site_id}: {e}")
            return None

    def _publish(self, user_id: str, event_type: str, **data) -> None:
        self.event_stream.publish(event_type, {"user_id": user_id, **data})


attendance_engine = AttendanceEngine()
