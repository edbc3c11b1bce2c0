from __future__ import annotations

from cli.config import DEFAULT_MQTT_PORT, load_config
from datastore.sensor_store import build_default_store
from models.readings import MonitorMode, SensorLayout
from settings import get_settings


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    database = tmp_path / "nested" / "override.db"

    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{database}")
    monkeypatch.setenv("DATABASE_CREATE_SCHEMA", "no")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("TEMP_MAX_LIMIT", "8")
    monkeypatch.setenv("TEMP_MIN_LIMIT", "2")
    monkeypatch.setenv("HUMIDITY_MAX_LIMIT", "not-a-number")

    get_settings.cache_clear()
    build_default_store.cache_clear()

    settings = get_settings()
    store = build_default_store()

    try:
        assert settings.create_schema is False
        assert settings.log_level == "DEBUG"
        assert settings.limits.temp_max == 8.0
        assert settings.limits.temp_min == 2.0
        assert settings.limits.humidity_max == 90.0
        assert str(store.engine.url).endswith("override.db")
        assert database.parent.is_dir()
    finally:
        store.dispose()
        build_default_store.cache_clear()
        get_settings.cache_clear()


def test_client_config_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("API_BASE_URL", "http://dashboard.local/api/")
    monkeypatch.setenv("MQTT_BROKER", "broker.local")
    monkeypatch.setenv("MQTT_PORT", "-1")
    monkeypatch.setenv("MQTT_TRANSPORT", "tcp")
    monkeypatch.setenv("POLL_INTERVAL", "2.5")
    monkeypatch.setenv("CHART_INTERVAL", "")
    monkeypatch.setenv("MONITOR_MODE", "LIVE")
    monkeypatch.setenv("SENSOR_LAYOUT", "triple")

    config = load_config()

    assert config.base_url == "http://dashboard.local/api"
    assert config.mqtt_broker == "broker.local"
    assert config.mqtt_port == DEFAULT_MQTT_PORT
    assert config.mqtt_transport == "tcp"
    assert config.poll_interval == 2.5
    assert config.chart_interval == 20.0
    assert config.mode is MonitorMode.live
    assert config.layout is SensorLayout.dual


def test_with_overrides_skips_none() -> None:
    config = load_config(base_url="http://x/api")

    updated = config.with_overrides(mode=MonitorMode.polled, layout=None)

    assert updated.mode is MonitorMode.polled
    assert updated.layout is config.layout
    assert config.with_overrides(mode=None) is config
