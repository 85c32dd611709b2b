import threading
from unittest.mock import MagicMock

import pytest

from geoattend.exceptions import LocationError, WatcherError
from geoattend.models import Coordinate
from geoattend.services.location_providers import PollingLocationProvider, PushLocationProvider
from geoattend.services.position_watcher import PositionWatcher

HERE = Coordinate(21.1702, 72.8311)
THERE = Coordinate(21.1747, 72.8311)


class TestPositionWatcher:

    @pytest.fixture
    def provider(self):
        return PushLocationProvider()

    def test_emits_only_changes(self, provider):
        on_position = MagicMock()
        watcher = PositionWatcher(provider, on_position).start()

        provider.publish(HERE)
        provider.publish(HERE)
        provider.publish(THERE)

        assert [c.args[0] for c in on_position.call_args_list] == [HERE, THERE]
        assert watcher.current == THERE

    def test_nothing_emitted_before_start_or_after_stop(self, provider):
        on_position = MagicMock()
        watcher = PositionWatcher(provider, on_position)

        provider.publish(HERE)
        watcher.start()
        watcher.stop()
        provider.publish(THERE)

        on_position.assert_not_called()
        assert provider.watcher_count == 0

    def test_error_stops_watcher(self, provider):
        on_position = MagicMock()
        on_error = MagicMock()
        watcher = PositionWatcher(provider, on_position, on_error).start()

        error = LocationError(LocationError.PERMISSION_DENIED, "User denied geolocation")
        provider.publish_error(error)
        provider.publish(HERE)

        on_error.assert_called_once_with(error)
        on_position.assert_not_called()
        assert watcher.error is error
        assert not watcher.is_active
        assert provider.watcher_count == 0

    def test_cannot_restart(self, provider):
        watcher = PositionWatcher(provider, MagicMock()).start()
        watcher.stop()
        watcher.stop()

        with pytest.raises(WatcherError):
            watcher.start()

    def test_context_manager_releases_on_error(self, provider):
        with pytest.raises(RuntimeError):
            with PositionWatcher(provider, MagicMock()):
                assert provider.watcher_count == 1
                raise RuntimeError("caller failed")

        assert provider.watcher_count == 0

    def test_handler_exception_does_not_propagate(self, provider):
        on_position = MagicMock(side_effect=ValueError("bad handler"))
        watcher = PositionWatcher(provider, on_position).start()

        provider.publish(HERE)

        assert watcher.is_active
        assert watcher.current == HERE

    def test_unknown_error_code_is_normalized(self):
        assert LocationError("gps_on_fire").code == LocationError.POSITION_UNAVAILABLE


class TestPollingLocationProvider:

    def test_polls_until_stopped(self):
        positions = iter([HERE, HERE, THERE] + [THERE] * 1000)
        seen_there = threading.Event()
        received = []

        def on_position(position):
            received.append(position)
            if position == THERE:
                seen_there.set()

        provider = PollingLocationProvider(lambda: next(positions), interval=0.001)
        watcher = PositionWatcher(provider, on_position).start()

        assert seen_there.wait(5)
        watcher.stop()

        assert received[:2] == [HERE, THERE]

    def test_reader_failure_becomes_location_error(self):
        failed = threading.Event()
        errors = []

        def on_error(error):
            errors.append(error)
            failed.set()

        def broken_reader():
            raise OSError("GPS device unplugged")

        provider = PollingLocationProvider(broken_reader, interval=0.001)
        watcher = PositionWatcher(provider, MagicMock(), on_error).start()

        assert failed.wait(5)
        assert errors[0].code == LocationError.POSITION_UNAVAILABLE
        assert "unplugged" in errors[0].message
        assert not watcher.is_active

    def test_get_current_position(self):
        provider = PollingLocationProvider(lambda: HERE, interval=1)
        assert provider.get_current_position() == HERE

    def test_push_provider_without_fix(self):
        with pytest.raises(LocationError):
            PushLocationProvider().get_current_position()
