import pytest

from geoattend.config.config_manager import config_manager
from geoattend.config.settings import strtobool
from geoattend.repositories import setting_repo


class TestStrtobool:

    @pytest.mark.parametrize("value", ["y", "Yes", "TRUE", "on", "1"])
    def test_truthy(self, value):
        assert strtobool(value) == 1

    @pytest.mark.parametrize("value", ["n", "No", "false", "OFF", "0"])
    def test_falsy(self, value):
        assert strtobool(value) == 0

    def test_invalid(self):
        with pytest.raises(ValueError):
            strtobool("maybe")


class TestConfigManager:

    def test_defaults(self):
        assert config_manager.get_sync_endpoint_url() == ""
        assert config_manager.get_sync_request_timeout() == 30.0
        assert config_manager.get_auto_checkout_on_exit() is False

    def test_save_and_read_back(self):
        config_manager.save_config({
            "SYNC_ENDPOINT_URL": " https://example.test/api/attendance/ ",
            "SYNC_API_KEY": "secret",
            "SYNC_REQUEST_TIMEOUT": "12.5",
            "AUTO_CHECKOUT_ON_EXIT": "yes",
        })

        assert config_manager.get_sync_endpoint_url() == "https://example.test/api/attendance"
        assert config_manager.get_sync_api_key() == "secret"
        assert config_manager.get_sync_request_timeout() == 12.5
        assert config_manager.get_auto_checkout_on_exit() is True
        assert config_manager.get_config()["SYNC_API_KEY"] == "***"

    def test_description_kept_on_update(self):
        description = setting_repo.get("SYNC_ENDPOINT_URL").description
        config_manager.save_config({"SYNC_ENDPOINT_URL": "http://localhost:1"})
        assert setting_repo.get("SYNC_ENDPOINT_URL").description == description

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValueError):
            config_manager.save_config({"SYNC_REQUEST_TIMEOUT": 0})
