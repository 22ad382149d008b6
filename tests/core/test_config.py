"""
配置系统测试
"""
import pytest

from core.config import (
    Settings,
    IncidentIoSettings,
    FireHydrantSettings,
    DispatchSettings,
    SimulatorSettings,
    LoggingSettings,
)


class TestIncidentIoSettings:
    """incident.io 配置测试"""

    def test_configured(self):
        assert IncidentIoSettings(token="t", alert_source_config_id="c").configured is True
        assert IncidentIoSettings(token="t", alert_source_config_id="").configured is False

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("INCIDENT_IO_TOKEN", "env-token")
        monkeypatch.setenv("INCIDENT_IO_ALERT_SOURCE_CONFIG_ID", "01XYZ")
        settings = IncidentIoSettings()
        assert settings.token == "env-token"
        assert settings.alert_source_config_id == "01XYZ"


class TestFireHydrantSettings:
    """FireHydrant 配置测试"""

    def test_metadata_json(self, monkeypatch):
        monkeypatch.setenv("FIREHYDRANT_METADATA", '{"region": "eu"}')
        assert FireHydrantSettings().metadata == {"region": "eu"}

    def test_configured(self):
        assert FireHydrantSettings(webhook_url="https://example.com").configured is True
        assert FireHydrantSettings(webhook_url="").configured is False


class TestDispatchSettings:
    """投递配置测试"""

    def test_defaults(self):
        settings = DispatchSettings()
        assert settings.timeout_seconds == 30.0
        assert settings.max_payload_bytes == 1000

    def test_timeout_upper_bound(self):
        with pytest.raises(ValueError):
            DispatchSettings(timeout_seconds=60)


class TestSimulatorSettings:
    """模拟器配置测试"""

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            SimulatorSettings(tick_interval_seconds=0)


class TestLoggingSettings:
    """日志配置测试"""

    def test_level_normalized(self):
        assert LoggingSettings(level="debug").level == "DEBUG"

    def test_invalid_level(self):
        with pytest.raises(ValueError):
            LoggingSettings(level="VERBOSE")

    def test_invalid_format(self):
        with pytest.raises(ValueError):
            LoggingSettings(format="xml")


class TestSettings:
    """主配置测试"""

    def test_environment_validation(self):
        with pytest.raises(ValueError):
            Settings(environment="qa")

    def test_cors_origin_list(self):
        settings = Settings(cors_origins="https://a.example.com, https://b.example.com")
        assert settings.cors_origin_list == ["https://a.example.com", "https://b.example.com"]

    def test_display_config_masks_secrets(self):
        settings = Settings(
            incident_io=IncidentIoSettings(token="super-secret", alert_source_config_id="c"),
            firehydrant=FireHydrantSettings(webhook_url="https://hooks.example.com/secret"),
        )
        display = settings.display_config()

        assert display["incident_io_token"] == "***"
        assert display["firehydrant_webhook_url"] == "***"
        assert "super-secret" not in str(display)

    def test_simulator_disabled_in_tests(self, test_settings):
        assert test_settings.simulator.enabled is False
