from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

from models.readings import MonitorMode, SensorLayout

DEFAULT_BASE_URL = "http://localhost:8000/api"
DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_CHART_INTERVAL = 20.0
DEFAULT_TIMEOUT = 10.0
DEFAULT_MQTT_BROKER = "localhost"
DEFAULT_MQTT_PORT = 9001
DEFAULT_MQTT_TOPIC = "esp32/data"
DEFAULT_MQTT_TRANSPORT = "websockets"
DEFAULT_MQTT_WS_PATH = "/mqtt"
DEFAULT_MQTT_CONNECT_TIMEOUT = 10.0

_BASE_URL_ENV = "API_BASE_URL"
_POLL_INTERVAL_ENV = "POLL_INTERVAL"
_CHART_INTERVAL_ENV = "CHART_INTERVAL"
_TIMEOUT_ENV = "POLL_TIMEOUT"
_MQTT_BROKER_ENV = "MQTT_BROKER"
_MQTT_PORT_ENV = "MQTT_PORT"
_MQTT_TOPIC_ENV = "MQTT_TOPIC"
_MQTT_TRANSPORT_ENV = "MQTT_TRANSPORT"
_MQTT_WS_PATH_ENV = "MQTT_WS_PATH"
_MQTT_CONNECT_TIMEOUT_ENV = "MQTT_CONNECT_TIMEOUT"
_MODE_ENV = "MONITOR_MODE"
_LAYOUT_ENV = "SENSOR_LAYOUT"


@dataclass(frozen=True)
class CLIConfig:
    base_url: str = DEFAULT_BASE_URL
    poll_interval: float = DEFAULT_POLL_INTERVAL
    chart_interval: float = DEFAULT_CHART_INTERVAL
    request_timeout: float = DEFAULT_TIMEOUT
    mqtt_broker: str = DEFAULT_MQTT_BROKER
    mqtt_port: int = DEFAULT_MQTT_PORT
    mqtt_topic: str = DEFAULT_MQTT_TOPIC
    mqtt_transport: str = DEFAULT_MQTT_TRANSPORT
    mqtt_ws_path: str = DEFAULT_MQTT_WS_PATH
    mqtt_connect_timeout: float = DEFAULT_MQTT_CONNECT_TIMEOUT
    mode: MonitorMode = MonitorMode.both
    layout: SensorLayout = SensorLayout.dual

    def with_overrides(self, **changes: object) -> "CLIConfig":
        """Return a copy with every non-``None`` override applied."""
        applied = {key: value for key, value in changes.items() if value is not None}
        return replace(self, **applied) if applied else self


def _read_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_int(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_choice(value: Optional[str], choices: tuple[str, ...], default: str) -> str:
    if value is None:
        return default
    candidate = value.strip().lower()
    return candidate if candidate in choices else default


def load_config(
    base_url: Optional[str] = None,
    request_timeout: Optional[float] = None,
) -> CLIConfig:
    url = base_url or os.getenv(_BASE_URL_ENV) or DEFAULT_BASE_URL
    if request_timeout is None:
        request_timeout = _read_float(os.getenv(_TIMEOUT_ENV), DEFAULT_TIMEOUT)
    mode = _read_choice(
        os.getenv(_MODE_ENV), tuple(item.value for item in MonitorMode), MonitorMode.both.value
    )
    layout = _read_choice(
        os.getenv(_LAYOUT_ENV), tuple(item.value for item in SensorLayout), SensorLayout.dual.value
    )
    return CLIConfig(
        base_url=url.rstrip("/"),
        poll_interval=_read_float(os.getenv(_POLL_INTERVAL_ENV), DEFAULT_POLL_INTERVAL),
        chart_interval=_read_float(os.getenv(_CHART_INTERVAL_ENV), DEFAULT_CHART_INTERVAL),
        request_timeout=request_timeout,
        mqtt_broker=os.getenv(_MQTT_BROKER_ENV, "").strip() or DEFAULT_MQTT_BROKER,
        mqtt_port=_read_int(os.getenv(_MQTT_PORT_ENV), DEFAULT_MQTT_PORT),
        mqtt_topic=os.getenv(_MQTT_TOPIC_ENV, "").strip() or DEFAULT_MQTT_TOPIC,
        mqtt_transport=_read_choice(
            os.getenv(_MQTT_TRANSPORT_ENV), ("tcp", "websockets"), DEFAULT_MQTT_TRANSPORT
        ),
        mqtt_ws_path=os.getenv(_MQTT_WS_PATH_ENV, "").strip() or DEFAULT_MQTT_WS_PATH,
        mqtt_connect_timeout=_read_float(
            os.getenv(_MQTT_CONNECT_TIMEOUT_ENV), DEFAULT_MQTT_CONNECT_TIMEOUT
        ),
        mode=MonitorMode(mode),
        layout=SensorLayout(layout),
    )
