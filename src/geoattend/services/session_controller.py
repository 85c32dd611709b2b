"""Per-user attendance session state machine.

States:
    NO_ACTIVE_SESSION -> AWAITING_ZONE_ENTRY    select_site()
    AWAITING_ZONE_ENTRY -> CHECKED_IN           check_in() (inside the target zone)
    CHECKED_IN -> PENDING_CHECKOUT_CONFIRMATION zone exit of the checked-in site
    PENDING_CHECKOUT_CONFIRMATION -> CHECKED_IN decline_check_out()
    CHECKED_IN / PENDING_CHECKOUT_CONFIRMATION -> NO_ACTIVE_SESSION
                                                check_out() / confirm_check_out()

Transitions are computed by the pure reduce() function; the controller
wraps it with the store mutations and per-user serialization. The
controller never copies record data beyond the open record's local id.
"""

import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Union

from geoattend.exceptions import (
    AlreadyCheckedInError,
    InvalidTransitionError,
    NoOpenSessionError,
    NoSiteSelectedError,
    NotInZoneError,
    SessionBusyError,
)
from geoattend.models import AttendanceLogRecord, Coordinate, GeofenceSite, SyncStatus
from geoattend.repositories import attendance_repo
from geoattend.services.zone_tracker import ZoneEntered, ZoneExited
from geoattend.shared.logger import app_logger


class SessionStatus:
    NO_ACTIVE_SESSION = "no_active_session"
    AWAITING_ZONE_ENTRY = "awaiting_zone_entry"
    CHECKED_IN = "checked_in"
    PENDING_CHECKOUT_CONFIRMATION = "pending_checkout_confirmation"


@dataclass(frozen=True)
class SessionState:
    status: str = SessionStatus.NO_ACTIVE_SESSION
    site_id: Optional[str] = None
    site: Optional[GeofenceSite] = None
    open_record_id: Optional[int] = None
    can_check_in: bool = False

    @property
    def has_open_session(self) -> bool:
        return self.status in (
            SessionStatus.CHECKED_IN,
            SessionStatus.PENDING_CHECKOUT_CONFIRMATION,
        )

    def to_dict(self):
        return {
            "status": self.status,
            "site_id": self.site_id,
            "site_name": self.site.name if self.site else None,
            "open_record_id": self.open_record_id,
            "can_check_in": self.can_check_in,
        }


# Events consumed by reduce(); ZoneEntered/ZoneExited come from the tracker


@dataclass(frozen=True)
class SiteSelected:
    site: GeofenceSite


@dataclass(frozen=True)
class CheckedIn:
    site: GeofenceSite
    record_id: int


@dataclass(frozen=True)
class CheckOutConfirmed:
    pass


@dataclass(frozen=True)
class CheckOutDeclined:
    pass


@dataclass(frozen=True)
class CheckedOut:
    pass


SessionEvent = Union[
    SiteSelected, ZoneEntered, ZoneExited, CheckedIn, CheckOutConfirmed, CheckOutDeclined, CheckedOut
]


def reduce(state: SessionState, event: SessionEvent) -> SessionState:
    """Next state for an event; raises SessionError for forbidden commands.

    Zone events are observations: when they do not apply they leave the
    state unchanged instead of failing.
    """
    status = state.status

    if isinstance(event, SiteSelected):
        if state.has_open_session:
            raise AlreadyCheckedInError("Cannot change site while checked in")
        return SessionState(
            status=SessionStatus.AWAITING_ZONE_ENTRY,
            site_id=event.site.id,
            site=event.site,
        )

    if isinstance(event, ZoneEntered):
        if status == SessionStatus.AWAITING_ZONE_ENTRY and event.site.id == state.site_id:
            return replace(state, can_check_in=True)
        return state

    if isinstance(event, ZoneExited):
        if event.site.id != state.site_id:
            return state
        if status == SessionStatus.CHECKED_IN:
            return replace(state, status=SessionStatus.PENDING_CHECKOUT_CONFIRMATION)
        if status == SessionStatus.AWAITING_ZONE_ENTRY:
            return replace(state, can_check_in=False)
        return state

    if isinstance(event, CheckedIn):
        if state.has_open_session:
            raise AlreadyCheckedInError()
        return SessionState(
            status=SessionStatus.CHECKED_IN,
            site_id=event.site.id,
            site=event.site,
            open_record_id=event.record_id,
        )

    if isinstance(event, CheckOutConfirmed):
        if status != SessionStatus.PENDING_CHECKOUT_CONFIRMATION:
            raise InvalidTransitionError("No check-out awaiting confirmation")
        return SessionState()

    if isinstance(event, CheckOutDeclined):
        if status != SessionStatus.PENDING_CHECKOUT_CONFIRMATION:
            raise InvalidTransitionError("No check-out awaiting confirmation")
        return replace(state, status=SessionStatus.CHECKED_IN)

    if isinstance(event, CheckedOut):
        if not state.has_open_session:
            raise NoOpenSessionError()
        return SessionState()

    raise TypeError(f"Unknown session event: {event!r}")


class AttendanceSessionController:
    """Drives reduce() for many users and persists check-in/out through the store"""

    def __init__(
        self,
        store=None,
        sync_trigger: Optional[Callable[[str], object]] = None,
        site_resolver: Optional[Callable[[str], Optional[GeofenceSite]]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store or attendance_repo
        self.sync_trigger = sync_trigger
        self.site_resolver = site_resolver
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        self._states: Dict[str, SessionState] = {}
        self._positions: Dict[str, Coordinate] = {}
        self._user_locks: Dict[str, tuple] = {}
        self._main_lock = threading.Lock()

    # State access

    def get_state(self, user_id: str) -> SessionState:
        with self._lock_for(user_id):
            return self._state(user_id)

    def get_position(self, user_id: str) -> Optional[Coordinate]:
        return self._positions.get(user_id)

    def update_position(self, user_id: str, position: Coordinate) -> None:
        self._positions[user_id] = position

    def reset(self) -> None:
        """Drop the transient state of every user"""
        with self._main_lock:
            self._states.clear()
            self._positions.clear()

    # Commands

    def select_site(self, user_id: str, site: GeofenceSite) -> SessionState:
        with self._lock_for(user_id):
            state = self._apply(user_id, SiteSelected(site))
            position = self._positions.get(user_id)
            if position is not None and site.contains(position):
                state = self._apply(user_id, ZoneEntered(site))
            return state

    def on_zone_entered(self, user_id: str, site: GeofenceSite) -> SessionState:
        with self._lock_for(user_id):
            return self._apply(user_id, ZoneEntered(site))

    def on_zone_exited(self, user_id: str, site: GeofenceSite) -> SessionState:
        with self._lock_for(user_id):
            before = self._state(user_id)
            state = self._apply(user_id, ZoneExited(site))
            if state.status != before.status and state.status == SessionStatus.PENDING_CHECKOUT_CONFIRMATION:
                app_logger.info(
                    f"[GEOFENCE] User {user_id} left {site.name}; awaiting check-out confirmation"
                )
            return state

    def check_in(self, user_id: str, position: Optional[Coordinate] = None) -> AttendanceLogRecord:
        with self._command_guard(user_id):
            state = self._state(user_id)

            if state.has_open_session or self.store.get_open_for_user(user_id):
                raise AlreadyCheckedInError()

            if state.status != SessionStatus.AWAITING_ZONE_ENTRY or state.site is None:
                raise NoSiteSelectedError()

            site = state.site
            if position is not None:
                self._positions[user_id] = position
            position = self._positions.get(user_id)
            if position is None:
                raise NotInZoneError("Current location unknown")
            if not site.contains(position):
                raise NotInZoneError(
                    f"Not within geofence of {site.name} "
                    f"({site.distance_to(position):.3f} km from center, radius {site.radius_km} km)"
                )

            record = self.store.append(
                AttendanceLogRecord(
                    remote_log_id=str(uuid.uuid4()),
                    user_id=user_id,
                    site_id=site.id,
                    site_name=site.name,
                    check_in_time=self.clock(),
                    sync_status=SyncStatus.PENDING,
                )
            )
            self._states[user_id] = reduce(state, CheckedIn(site, record.id))

        app_logger.info(f"[GEOFENCE] User {user_id} checked in at {site.name} (log {record.remote_log_id})")
        self._request_sync("check_in")
        return record

    def confirm_check_out(self, user_id: str) -> AttendanceLogRecord:
        return self._close_session(user_id, CheckOutConfirmed())

    def decline_check_out(self, user_id: str) -> SessionState:
        with self._lock_for(user_id):
            return self._apply(user_id, CheckOutDeclined())

    # Alias kept for callers phrasing the decision positively
    stays_checked_in = decline_check_out

    def check_out(self, user_id: str) -> AttendanceLogRecord:
        return self._close_session(user_id, CheckedOut())

    # Internals

    def _close_session(self, user_id: str, event) -> AttendanceLogRecord:
        with self._command_guard(user_id):
            state = self._state(user_id)
            next_state = reduce(state, event)

            record = None
            if state.open_record_id is not None:
                record = self.store.get_by_id(state.open_record_id)
            if record is None or not record.is_open:
                record = self.store.get_open_for_user(user_id)
            if record is None:
                # Stale in-memory session; nothing to close
                self._states[user_id] = SessionState()
                raise NoOpenSessionError()

            check_out_time = max(self.clock(), record.check_in_time)
            record = self.store.update(
                record.id,
                {"check_out_time": check_out_time, "sync_status": SyncStatus.PENDING},
            )
            self._states[user_id] = next_state

        app_logger.info(f"[GEOFENCE] User {user_id} checked out from {record.site_name}")
        self._request_sync("check_out")
        return record

    def _apply(self, user_id: str, event) -> SessionState:
        state = reduce(self._state(user_id), event)
        self._states[user_id] = state
        return state

    def _state(self, user_id: str) -> SessionState:
        state = self._states.get(user_id)
        if state is None:
            state = self._restore(user_id)
            self._states[user_id] = state
        return state

    def _restore(self, user_id: str) -> SessionState:
        """Rebuild the session from an open record left by a previous run"""
        record = self.store.get_open_for_user(user_id)
        if record is None:
            return SessionState()
        site = self.site_resolver(record.site_id) if self.site_resolver else None
        return SessionState(
            status=SessionStatus.CHECKED_IN,
            site_id=record.site_id,
            site=site,
            open_record_id=record.id,
        )

    def _locks(self, user_id: str):
        with self._main_lock:
            locks = self._user_locks.get(user_id)
            if locks is None:
                locks = self._user_locks[user_id] = (threading.RLock(), threading.Lock())
            return locks

    def _lock_for(self, user_id: str) -> threading.RLock:
        """State lock: short, blocking critical sections"""
        return self._locks(user_id)[0]

    @contextmanager
    def _command_guard(self, user_id: str):
        """Serialize check-in/out per user; a concurrent attempt is rejected"""
        state_lock, command_lock = self._locks(user_id)
        if not command_lock.acquire(blocking=False):
            raise SessionBusyError()
        try:
            with state_lock:
                yield
        finally:
            command_lock.release()

    def _request_sync(self, reason: str) -> None:
        if not self.sync_trigger:
            return
        try:
            self.sync_trigger(reason)
        except Exception as e:
            app_logger.error(f"[SYNC] Could not schedule sync after {reason}: {e}", exc_info=True)
